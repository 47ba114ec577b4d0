import pytest

from db import get_engine, get_session
from main import create_app
from tests.factories import ALL_FACTORIES


@pytest.fixture
def app(tmp_path):
    """A Flask app bound to a fresh SQLite file for this test."""
    app = create_app(f"sqlite:///{tmp_path / 'toolcrib-test.sqlite'}")
    app.config.update(TESTING=True)
    yield app
    get_engine().dispose()


@pytest.fixture
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture
def session(app):
    """A session shared with the factories; expire_all() before re-reading."""
    s = get_session()
    for f in ALL_FACTORIES:
        f._meta.sqlalchemy_session = s
    yield s
    s.close()
    for f in ALL_FACTORIES:
        f._meta.sqlalchemy_session = None


@pytest.fixture
def issuer(app):
    return app.extensions["toolcrib"]["issuer"]


@pytest.fixture
def ledger(app):
    return app.extensions["toolcrib"]["ledger"]
