import httpx
import pytest

from smartmarks import create_app
from smartmarks.client.config import ClientConfig
from smartmarks.client.session import ClientSession
from smartmarks.config import TestConfig
from smartmarks.extensions import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_session(app):
    sessions = []

    def _make(token=None, retry_delay=3.0):
        config = ClientConfig(
            base_url="http://testserver",
            token=token,
            retry_delay=retry_delay,
            poll_wait=0.0,
        )
        session = ClientSession(
            config, transport=httpx.WSGITransport(app=app), autostart=False
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
