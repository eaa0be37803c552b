"""Shared pytest fixtures: an app on a throwaway SQLite file, accounts, a capturing mailer."""
import re

import pytest

from api import create_app
from models import storage
from models.user import User
from security.credentials import hash_password
from security.mailer import MailDeliveryError, Mailer

PASSWORD = "Secret@123"
ADMIN_KEY = "test-admin-key"


class CapturingMailer(Mailer):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body_html):
        if self.fail:
            raise MailDeliveryError("smtp down")
        self.sent.append({"to": to, "subject": subject, "body": body_html})

    def last_code(self):
        match = re.search(r"<strong>(\d+)</strong>", self.sent[-1]["body"])
        return match.group(1)


@pytest.fixture
def mailer():
    return CapturingMailer()


@pytest.fixture
def app(tmp_path, mailer):
    app = create_app(
        "testing",
        overrides={
            "DATABASE_URL": f"sqlite:///{tmp_path / 'library-test.db'}",
            "MAILER": mailer,
        },
    )
    yield app
    storage.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["session_store"]


@pytest.fixture
def issuer(app):
    return app.extensions["token_issuer"]


@pytest.fixture
def make_account(app):
    """Insert an account straight into the store."""
    def _make(email="reader@example.com", name="Reader", role="user", password=PASSWORD, id=None):
        user = User(
            id=id,
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        storage.new(user)
        storage.save()
        return user

    return _make


def refresh_cookie(client):
    cookie = client.get_cookie("refreshToken")
    return cookie.value if cookie else None


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, email="reader@example.com", password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})
