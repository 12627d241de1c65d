import click

from equipment_rental import create_app
from equipment_rental.database import db
from equipment_rental.seed import seed_database

app = create_app()


@app.cli.command('seed-db')
@click.option('--reset', is_flag=True, help='Drop and recreate every table first.')
def seed_db_command(reset):
    """Create the tables and load demo data."""
    if reset:
        db.drop_all()
    db.create_all()
    summary = seed_database()
    click.echo(f"Seeded: {summary}")


if __name__ == '__main__':
    with app.app_context():
        db.create_all()  # create the tables on first run
    app.run(debug=True)
