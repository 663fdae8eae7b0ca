import pytest

from referee_league.api import create_app
from referee_league.services import JsonDocumentStore

from factories import FlaskTestSession


@pytest.fixture
def store(tmp_path):
    return JsonDocumentStore(str(tmp_path / "data"))


@pytest.fixture
def app(store):
    app = create_app(store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    return FlaskTestSession(app)
