"""Test configuration for pytest."""

import pytest

from app import create_app
from extensions import db, bcrypt
from models import User
from rate_limit import PRESET_LIMITERS
from routes.auth import issue_tokens

DEFAULT_PASSWORD = 'Str0ng#Pass'


class FakeClock:
    """Manually advanced clock for rate limiter tests."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def config_overrides():
    """Per-test config overrides; override this fixture to customize."""
    return {}


@pytest.fixture
def app(config_overrides):
    """Create an application with a fresh in-memory database."""
    app = create_app('testing', config_overrides)

    ctx = app.app_context()
    ctx.push()
    db.create_all()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()

    for preset in PRESET_LIMITERS.values():
        preset.stop_cleanup()
        preset.clear()


@pytest.fixture
def client(app):
    """Provide a Flask test client."""
    return app.test_client()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_user(app):
    """Factory creating users directly in the database."""

    def _make_user(email='buyer@example.com', password=DEFAULT_PASSWORD,
                   role='buyer', **fields):
        user = User(
            email=email,
            password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
            role=role,
            is_active=fields.pop('is_active', True),
            **fields
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def buyer(make_user):
    return make_user()


@pytest.fixture
def seller(make_user):
    return make_user(email='seller@example.com', role='seller')


@pytest.fixture
def admin(make_user):
    return make_user(email='admin@example.com', role='admin')


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user."""

    def _auth_headers(user):
        access_token, _ = issue_tokens(user)
        return {'Authorization': f'Bearer {access_token}'}

    return _auth_headers
