from datetime import timedelta

import pytest

from config import TestConfig
from equipment_rental import create_app, reconciliation, storage
from equipment_rental.database import db
from equipment_rental.models import utcnow


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def customer(app):
    return storage.create_customer({"name": "BuildWell Construction", "email": "info@buildwell.com"})


@pytest.fixture
def category(app):
    return storage.create_category({"name": "Excavators", "description": "Earth moving"})


@pytest.fixture
def equipment(category):
    return reconciliation.create_equipment({
        "name": "Excavator 1", "category_id": category.id, "daily_rate": 150.0,
    })


def rental_data(customer_id, equipment_id, **extra):
    start = utcnow()
    data = {
        "customer_id": customer_id,
        "equipment_id": equipment_id,
        "start_date": start,
        "end_date": start + timedelta(days=7),
    }
    data.update(extra)
    return data


def maintenance_data(equipment_id, **extra):
    data = {
        "equipment_id": equipment_id,
        "type": "Preventive",
        "description": "Hydraulics check",
        "scheduled_date": utcnow() + timedelta(days=2),
    }
    data.update(extra)
    return data
