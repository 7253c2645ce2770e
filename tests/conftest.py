"""Shared fixtures: an app on in-memory SQLite, a client, a fake mailer."""

import itertools
import smtplib

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from database import Base
from main import create_app
from models.user import Role, User

API = "/api/v1"
PASSWORD = "Secret123"

_counter = itertools.count(1)


class FakeMailer:
    """Records outgoing mail instead of talking SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_welcome(self, user, url):
        self.sent.append(("welcome", user.email, url))

    def send_password_reset(self, user, url):
        if self.fail:
            raise smtplib.SMTPException("connection refused")
        self.sent.append(("reset", user.email, url))

    def last_reset_token(self):
        urls = [url for kind, _, url in self.sent if kind == "reset"]
        return urls[-1].rsplit("/", 1)[1]


def make_settings(**overrides) -> Settings:
    values = dict(
        _env_file=None,
        environment="development",
        database_url="sqlite://",
        jwt_secret_key="test-secret-key-0123456789-abcdefghijklmnopqrstuvwxyz",
        password_hash_rounds=1000,
        rate_limit_enabled=False,
        logging_conf=None,
    )
    values.update(overrides)
    return Settings(**values)


def build_app(settings: Settings):
    app = create_app(settings)
    Base.metadata.create_all(app.state.engine)
    app.state.mailer = FakeMailer()
    return app


def signup_payload(**overrides) -> dict:
    n = next(_counter)
    payload = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": f"ada{n}@citylog.io",
        "phoneNumber": f"98765{n:05d}",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
    }
    payload.update(overrides)
    return payload


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings):
    app = build_app(settings)
    yield app
    Base.metadata.drop_all(app.state.engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer(app):
    return app.state.mailer


@pytest.fixture
def register(client):
    """Sign a user up and return ``(user_json, token)``; cookies are cleared."""

    def _register(**overrides):
        resp = client.post(f"{API}/users/signup", json=signup_payload(**overrides))
        assert resp.status_code == 201, resp.text
        client.cookies.clear()
        body = resp.json()
        return body["user"], body["token"]

    return _register


@pytest.fixture
def make_admin(app, register):
    """Sign a user up and promote it to ADMIN directly in the database."""

    def _make_admin():
        user, token = register()
        session = app.state.session_factory()
        try:
            row = session.get(User, user["id"])
            row.role = Role.ADMIN
            session.commit()
        finally:
            session.close()
        return user, token

    return _make_admin
