"""
Pytest fixtures for storefront backend tests.

Provides test database setup, user/item/session fixtures, and a
file-backed application for multi-threaded tests.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from storefront import create_app
from storefront.extensions import db
from storefront.models import Item, User
from storefront.services.password_service import hash_password


TEST_PASSWORD = "password"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'SESSION_SWEEP_ENABLED': False,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: insert a user directly with the given balance."""
    def _make(username="test_user", balance_cents=0, password=TEST_PASSWORD):
        user = User(
            username=username,
            password_hash=hash_password(password, rounds=4),
            balance_cents=balance_cents,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(name="Nvidia RTX 3060 12GB", price_cents=17500, description="Graphics Card"):
        item = Item(name=name, description=description, price_cents=price_cents)
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def test_user(make_user):
    return make_user("test_user", balance_cents=0)


@pytest.fixture(scope='function')
def rich_user(make_user):
    return make_user("rich_test_user", balance_cents=20000)


@pytest.fixture(scope='function')
def gpu(make_item):
    return make_item()


def _file_backed_app(db_path, lock_timeout_ms):
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'LOCK_TIMEOUT_MS': lock_timeout_ms,
    })
    app.config['TEST_DB_PATH'] = str(db_path)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    Application on a temp-file SQLite database.

    In-memory SQLite shares one connection; threads need real connections
    that contend for the database lock.
    """
    yield from _file_backed_app(tmp_path / "concurrency.db", lock_timeout_ms=10000)


@pytest.fixture(scope='function')
def short_lock_app(tmp_path):
    """File-backed application that gives up on a held lock after 200ms."""
    yield from _file_backed_app(tmp_path / "short_lock.db", lock_timeout_ms=200)
