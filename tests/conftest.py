"""
Shared fixtures: an in-memory database, a fast AuthGateway and the Flask app.
"""

import itertools

import httpx
import pytest

from healpath.api.app import create_app
from healpath.database import init_engine
from healpath.gateway import AuthGateway
from healpath.security import TokenIssuer

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
PASSWORD = "correct-horse-battery"


# ── Helpers / Fakes ──────────────────────────────────────────────────

class FakePushSender:
    """Records notifications instead of calling the Expo service."""
    def __init__(self):
        self.sent = []

    def send(self, token, title, body, data=None):
        self.sent.append({"to": token, "title": title, "body": body, "data": data or {}})
        return [{"status": "ok", "id": f"ticket-{len(self.sent)}"}]


class FlaskTransport(httpx.AsyncBaseTransport):
    """Routes httpx requests into a Flask test client, so the client library
    can be exercised against the real app without a socket."""
    def __init__(self, app):
        self.client = app.test_client()
        self.calls = []

    async def handle_async_request(self, request):
        body = await request.aread()
        headers = {
            k: v for k, v in request.headers.items()
            if k.lower() in ("authorization", "content-type", "accept")
        }
        self.calls.append((request.method, request.url.path))
        response = self.client.open(
            path=request.url.path,
            method=request.method,
            query_string=request.url.query.decode("ascii"),
            headers=headers,
            data=body,
        )
        return httpx.Response(
            response.status_code,
            headers={"Content-Type": response.content_type},
            content=response.get_data(),
        )


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    return init_engine("sqlite:///:memory:")


@pytest.fixture
def issuer():
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture
def gateway(engine, issuer):
    return AuthGateway(engine, issuer=issuer, bcrypt_rounds=4)


@pytest.fixture
def push_sender():
    return FakePushSender()


@pytest.fixture
def app(engine, gateway, push_sender):
    app = create_app(engine=engine, gateway=gateway, push_sender=push_sender)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register_user(client):
    """Register through the API and return the response ``data`` (user + tokens)."""
    counter = itertools.count(1)

    def _register(role="patient", name=None, email=None, password=PASSWORD):
        n = next(counter)
        response = client.post("/api/auth/register", json={
            "name": name or f"{role.title()} {n}",
            "email": email or f"{role}{n}@example.com",
            "password": password,
            "role": role,
        })
        assert response.status_code == 201, response.get_json()
        return response.get_json()["data"]

    return _register


@pytest.fixture
def linked_pair(client, register_user):
    """A patient and a caregiver already linked through the patient's access code."""
    patient = register_user("patient")
    carer = register_user("caregiver")
    response = client.post(
        "/api/caregiver/link",
        json={"accessCode": patient["user"]["accessCode"]},
        headers=bearer(carer["accessToken"]),
    )
    assert response.status_code == 200
    return patient, carer


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def flask_transport(app):
    """Factory for fresh FlaskTransport instances over the test app."""
    return lambda: FlaskTransport(app)
