# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Pytest configuration and shared fixtures.

This module provides test fixtures that are shared across the test suite.

Assumptions:
- Database fixtures use in-memory SQLite
- Provider HTTP traffic goes to an httpx.MockTransport, never the network
- Each test gets a fresh mock provider and a fresh TestClient
"""
import os

# Keep create_app() from writing a database file in the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without the web app")
    config.addinivalue_line("markers", "integration: tests through the FastAPI app")
    config.addinivalue_line("markers", "hypothesis: property-based tests")


class OAuth2TestServer:
    """Fake OAuth2 provider served through httpx.MockTransport.

    Register expected endpoints with the expect_* methods; unregistered
    paths answer 404. Every request received is kept in `requests`.
    """

    site = "http://localhost:4000"

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.token_requests = []
        self.is_down = False
        self.client = httpx.Client(transport=httpx.MockTransport(self.handle))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.is_down:
            raise httpx.ConnectError("Connection refused", request=request)

        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "not_found"})

        return route(request)

    def expect_access_token_request(self, uri="/oauth/token", params=None, status_code=200):
        body = params if params is not None else {"access_token": "access_token", "token_type": "bearer"}

        def respond(request):
            self.token_requests.append(dict(parse_qsl(request.content.decode())))
            return httpx.Response(status_code, json=body)

        self.routes[("POST", uri)] = respond

    def expect_user_request(self, user, uri="/api/user"):
        def respond(request):
            if request.headers.get("authorization") != "Bearer access_token":
                return httpx.Response(401, json={"error": "invalid_token"})
            return httpx.Response(200, json=user)

        self.routes[("GET", uri)] = respond

    def expect_api_request(self, uri, body, status_code=200):
        self.routes[("GET", uri)] = lambda request: httpx.Response(status_code, json=body)

    def down(self):
        self.is_down = True

    def close(self):
        self.client.close()


@pytest.fixture
def oauth2_server():
    """Fresh fake provider for each test."""
    server = OAuth2TestServer()
    try:
        yield server
    finally:
        server.close()


@pytest.fixture
def oauth2_config(oauth2_server):
    """Provider config pointing at the fake provider.

    Assumptions:
    - session_params state matches callback_params state
    """
    return {
        "client_id": "id",
        "client_secret": "secret",
        "site": oauth2_server.site,
        "redirect_uri": "http://localhost:8000/auth/callback",
        "session_params": {"state": "test"},
        "http_client": oauth2_server.client,
    }


@pytest.fixture
def callback_params():
    """Query params a provider redirects back with."""
    return {"code": "test", "state": "test"}


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Returns:
        Session: SQLAlchemy session

    Assumptions:
    - StaticPool keeps connection alive across threads
    - check_same_thread=False allows TestClient to use same connection
    - Schema is created fresh for each test
    """
    from assent.database.schema import init_db

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    init_db(engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session, oauth2_server, monkeypatch):
    """Create test client sharing the database session and fake provider.

    Assumptions:
    - github and instagram are configured against the fake provider
    - get_db and get_http_client are overridden for the app
    """
    from assent.api.auth import get_http_client
    from assent.config import settings
    from assent.database.session import get_db
    from assent.main import create_app

    monkeypatch.setattr(settings, "providers", {
        "github": {
            "client_id": "github-id",
            "client_secret": "github-secret",
            "site": oauth2_server.site,
            "authorize_url": "/login/oauth/authorize",
            "token_url": "/login/oauth/access_token",
        },
        "instagram": {
            "client_id": "instagram-id",
            "client_secret": "instagram-secret",
            "site": oauth2_server.site,
        },
    })

    app = create_app()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_http_client] = lambda: oauth2_server.client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def user(db_session):
    """Password-less user with no identities."""
    from assent.database.schema import User

    user = User(email="user@example.com", password_hash=None)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    """Second password-less user with no identities."""
    from assent.database.schema import User

    user = User(email="other@example.com", password_hash=None)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user
