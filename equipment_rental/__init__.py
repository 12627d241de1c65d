import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from equipment_rental.database import db, serialize_sqlite_writes
from equipment_rental.errors import RentalAppError

migrate = Migrate()
logger = logging.getLogger(__name__)


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("equipment_rental").setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(RentalAppError)
    def handle_app_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify({"message": "Internal server error"}), 500


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False
    configure_logging(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    # Database
    db.init_app(app)
    migrate.init_app(app, db)
    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            serialize_sqlite_writes(db.engine)

    from equipment_rental.routes import routes
    app.register_blueprint(routes, url_prefix='/api')
    register_error_handlers(app)

    @app.route('/')
    def home():
        return jsonify({"message": "Equipment rental API running", "api": "/api"})

    return app
