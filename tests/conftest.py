from __future__ import annotations

import itertools
from datetime import datetime, timedelta

import pytest

from invoiceflow import create_app
from invoiceflow.extensions import db as _db
from invoiceflow.models import User
from invoiceflow.settings import TestingConfig
from invoiceflow.utils.passwords import hash_password

NOW = datetime(2026, 10, 17, 12, 0, 0)
PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def now():
    return NOW


@pytest.fixture(scope="session")
def password_hash():
    # scrypt is slow on purpose; hash once per run.
    return hash_password(PASSWORD)


@pytest.fixture
def make_user(app, password_hash):
    counter = itertools.count(1)

    def _make(**overrides) -> User:
        n = next(counter)
        fields = {
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "password_hash": password_hash,
            "monthly_invoice_limit": 100,
            "last_invoice_reset": NOW,
        }
        fields.update(overrides)
        user = User(**fields)
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture
def invoice_data():
    def _make(**overrides) -> dict:
        data = {
            "client_name": "Acme Corp",
            "client_email": "billing@acme.example",
            "items": [{"description": "Consulting", "quantity": 3, "unit_price": 19.99}],
            "tax_rate": 8.5,
            "due_date": NOW + timedelta(days=30),
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def login(client, make_user):
    """Create a user and log the test client in as them."""

    def _login(**overrides) -> User:
        user = make_user(**overrides)
        resp = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return user

    return _login
