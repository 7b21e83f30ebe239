"""Shared fixtures."""

import os
import tempfile
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


# Settings are cached on first use, so the environment must be ready before
# anything from coursemart is imported.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="coursemart-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

from coursemart.auth.actors import ActorType  # noqa: E402
from coursemart.auth.models import Account  # noqa: E402
from coursemart.auth.security import create_access_token, hash_password  # noqa: E402
from coursemart.courses.models import Course, Module  # noqa: E402


KEYSPACE = "test_keyspace"
PASSWORD = "Secret#12345"
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def app() -> FastAPI:
    """Application without lifespan; tests attach services to app.state."""
    from coursemart.main import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def account_factory():
    """Factory for Account entities with a known password."""

    def _create(username: str | None = None, **overrides) -> Account:
        username = username or f"user_{uuid4().hex[:8]}"
        values = {
            "username": username,
            "email": f"{username}@coursemart.io",
            "contact": "9876543210",
            "address": "221B Baker Street",
            "password_hash": _PASSWORD_HASH,
        }
        values.update(overrides)
        return Account(**values)

    return _create


@pytest.fixture
def course_factory():
    def _create(owner_id=None, price: int = 500, **overrides) -> Course:
        values = {
            "title": "Async Python",
            "description": "Event loops in depth",
            "price": price,
            "owner_id": owner_id or uuid4(),
            "image_url": "https://cdn.coursemart.io/async.png",
        }
        values.update(overrides)
        return Course(**values)

    return _create


@pytest.fixture
def module_factory():
    def _create(course_id, title: str, minute: int = 0, admin_id=None) -> Module:
        created = datetime(2024, 1, 1, 12, minute, tzinfo=UTC)
        return Module(
            course_id=course_id,
            admin_id=admin_id or uuid4(),
            title=title,
            created_at=created,
            updated_at=created,
        )

    return _create


@pytest.fixture
def auth_headers():
    """Authorization header carrying an access token for an account."""

    def _headers(actor_type: ActorType, account: Account) -> dict[str, str]:
        token = create_access_token(actor_type, account.token_claims())
        return {"Authorization": f"Bearer {token}"}

    return _headers
