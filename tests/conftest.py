# tests/conftest.py
"""
Pytest configuration and shared fixtures.

- Environment: sandbox secrets and OTP settings patched per test
- Rate limiter: slowapi limiter reset between tests
- Storage: in-memory storage plus a recording variant that snapshots every write
- API clients: MockTransport-backed client, and a client wired to the sandbox app
"""

import os
import sys
import json
from pathlib import Path
from typing import Dict, Iterable, List
from unittest.mock import patch

import httpx
import pytest

# Make "import gamerhive" work when tests run from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from gamerhive.api import ApiClient  # noqa: E402
from gamerhive.accounts.session import MemoryStorage, SessionStore  # noqa: E402
from gamerhive.sandbox import create_app  # noqa: E402
from gamerhive.sandbox.otp import StubOTPService  # noqa: E402
from gamerhive.sandbox.routes import limiter  # noqa: E402

TEST_BASE_URL = "http://gamerhive.test"


# ============================================================
# Environment Setup
# ============================================================

@pytest.fixture(autouse=True)
def sandbox_env():
    """Deterministic sandbox settings for every test."""
    test_env = {
        "SANDBOX_JWT_SECRET": "test-secret-for-testing-only-not-production",
        "SANDBOX_OTP_TTL_MINUTES": "5",
        "SANDBOX_OTP_MAX_ATTEMPTS": "3",
        "SANDBOX_OTP_COOLDOWN_SECONDS": "0",
        "SANDBOX_RESEND_LIMIT": "100/minute",
    }
    with patch.dict(os.environ, test_env):
        yield


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """The limiter is module-level; start every test with empty counters."""
    limiter.reset()
    yield
    limiter.reset()


# ============================================================
# Storage Fixtures
# ============================================================

class RecordingStorage(MemoryStorage):
    """MemoryStorage that keeps a snapshot after every write."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.history: List[Dict[str, str]] = []

    def set_items(self, items: Dict[str, str]) -> None:
        super().set_items(items)
        self.history.append(self.snapshot())

    def remove_items(self, keys: Iterable[str]) -> None:
        super().remove_items(keys)
        self.history.append(self.snapshot())

    def has_session_keys(self) -> bool:
        data = self.snapshot()
        return "user" in data or "token" in data


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def store(storage):
    return SessionStore(storage)


# ============================================================
# API Client Fixtures
# ============================================================

@pytest.fixture
def make_api(store):
    """
    Build an ApiClient over httpx.MockTransport.

    Usage:
        api = make_api(handler)   # handler(request) -> httpx.Response (sync or async)
    """
    def _make(handler, with_store: bool = True) -> ApiClient:
        return ApiClient(
            base_url=TEST_BASE_URL,
            store=store if with_store else None,
            transport=httpx.MockTransport(handler),
        )
    return _make


class RequestLog:
    """Collects requests seen by a MockTransport handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def bodies(self) -> List[dict]:
        return [json.loads(r.content) if r.content else None for r in self.requests]


@pytest.fixture
def request_log():
    return RequestLog()


@pytest.fixture
def otp_outbox():
    return StubOTPService()


@pytest.fixture
def sandbox_app(otp_outbox):
    """Fresh sandbox backend with empty state."""
    return create_app(otp_service=otp_outbox)


@pytest.fixture
def sandbox_api(sandbox_app, store):
    """ApiClient wired to the sandbox app through ASGITransport."""
    return ApiClient(
        base_url=TEST_BASE_URL,
        store=store,
        transport=httpx.ASGITransport(app=sandbox_app),
    )


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_user():
    """Sample verify-otp user payload."""
    return {
        "id": "u1",
        "username": "player_one",
        "email": "a@b.com",
        "name": "Player One",
        "isActive": True,
        "picture": None,
    }


@pytest.fixture
def sample_verify_payload(sample_user):
    return {
        "success": True,
        "message": "OTP verified successfully. Login successful.",
        "data": {"user": sample_user, "token": "t1"},
    }
