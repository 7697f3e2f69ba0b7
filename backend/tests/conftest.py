"""
Pytest fixtures for sales API tests.

Each test gets a fresh application on its own in-memory SQLite database.
One RSA key is generated per session and shared by every app.
"""

from collections import namedtuple
from datetime import timedelta

import pytest

from sales_api import create_app
from sales_api.extensions import db
from sales_api.models.auth import ROLE_ADMIN, ROLE_USER
from sales_api.services.auth_service import create_user
from sales_api.services.token_service import (
    Authenticator,
    generate_private_key,
    new_claims,
    simple_key_lookup,
)
from sales_api.time_utils import utcnow

TEST_PASSWORD = "Gophers123"
KEY_ID = "1"

Caller = namedtuple("Caller", ["user_id", "roles", "headers"])


def make_authenticator(key=None, key_id=KEY_ID) -> Authenticator:
    key = key or generate_private_key(2048)
    return Authenticator(key, key_id, "RS256", simple_key_lookup(key_id, key.public_key()))


def build_app(authenticator, **overrides):
    config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'WEB_REQUEST_TIMEOUT': 5.0,
        'LOG_LEVEL': 'DEBUG',
    }
    config.update(overrides)
    app = create_app(test_config=config, authenticator=authenticator)
    with app.app_context():
        db.create_all()
    return app


@pytest.fixture(scope='session')
def signing_key():
    return generate_private_key(2048)


@pytest.fixture(scope='session')
def authenticator(signing_key):
    return make_authenticator(signing_key)


@pytest.fixture(scope='function')
def app(authenticator):
    """Application with an empty schema."""
    app = build_app(authenticator)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


def issue_token(authenticator, user_id: str, roles, *, issued=None, ttl=timedelta(hours=1)) -> str:
    """Helper to sign a token without going through Basic auth."""
    claims = new_claims(user_id, roles, issued or utcnow(), ttl)
    return authenticator.generate_token(claims)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def make_caller(app, authenticator, email: str, roles) -> Caller:
    with app.app_context():
        user = create_user(email.split("@")[0], email, TEST_PASSWORD, roles, utcnow(), rounds=4)
        user_id = user.user_id
    token = issue_token(authenticator, user_id, roles)
    return Caller(user_id, tuple(roles), auth_headers(token))


@pytest.fixture(scope='function')
def admin(app, authenticator):
    """Caller holding ADMIN and USER."""
    return make_caller(app, authenticator, "admin@example.com", [ROLE_ADMIN, ROLE_USER])


@pytest.fixture(scope='function')
def user(app, authenticator):
    """Plain USER; owns whatever it creates."""
    return make_caller(app, authenticator, "user@example.com", [ROLE_USER])


@pytest.fixture(scope='function')
def other_user(app, authenticator):
    """A second plain USER, for ownership checks."""
    return make_caller(app, authenticator, "other@example.com", [ROLE_USER])


def create_product(client, headers, **overrides) -> dict:
    body = {"name": "Comic Books", "cost": 50, "quantity": 42}
    body.update(overrides)
    resp = client.post("/v1/products", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def add_sale(client, headers, product_id: str, quantity: int, paid: int) -> dict:
    resp = client.post(
        f"/v1/products/{product_id}/sales",
        json={"quantity": quantity, "paid": paid},
        headers=headers,
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture(scope='function')
def product(client, user):
    """Product owned by `user`."""
    return create_product(client, user.headers)
