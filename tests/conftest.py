from datetime import datetime

import pytest
from flask import has_app_context

from app import create_app
from config import TestConfig
from models.models import db
from repositories.repositories import ParkingRepository, SpotRepository, TokenRepository, UserRepository

FROZEN_NOW = datetime(2025, 10, 22, 12, 0, 0)


def frozen_clock():
    return FROZEN_NOW


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    app.config["CLOCK"] = frozen_clock
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_token(app):
    with app.app_context():
        admin = UserRepository().create(
            {"name": "Admin", "email": "admin@parking.com", "password": "password", "role": "admin"}
        )
        return TokenRepository().issue(admin)


@pytest.fixture()
def auth(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture()
def make_parking(app):
    """Create a parking plus one spot per status given; returns the parking id."""

    def create(statuses=(), name="Centre Ville", location="Rue de la Paix, Paris", total_spots=50):
        parkings, spots = ParkingRepository(), SpotRepository()
        parking = parkings.create({"name": name, "location": location, "total_spots": total_spots})
        for i, status in enumerate(statuses, start=1):
            spots.create({"number": f"A{i:02d}", "status": status, "parking_id": parking.id})
        return parking.id

    def factory(*args, **kwargs):
        if has_app_context():
            return create(*args, **kwargs)
        with app.app_context():
            return create(*args, **kwargs)

    return factory
