"""
tests/conftest.py -- Shared test fixtures for the ESCC Report API.

This module provides:
  - FakeProcedureStore: in-memory stand-in for store.procedures.ProcedureStore
    that records every call, so tests can assert which procedures ran
  - legacy_credential(): builds the stored VARBINARY form of a password
  - _patch_lifespan(): wires a fake store into app.state, bypassing the real
    database connection at startup
  - api_client: module-scoped TestClient over the real app
  - fake_store / token_issuer: per-test handles on the same objects

The DEBUG env var must be set before any api/auth/core import so
get_settings() auto-generates signing secrets in dev mode rather than raising
ValueError. LOGIN_RATE_LIMIT is raised so the login tests never hit 429.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Optional

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.session import SessionService
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.models import JobSearchCriteria, LoginValidation, SessionClaims

# ---------------------------------------------------------------------------
# Legacy credential helper
# ---------------------------------------------------------------------------


def legacy_credential(plaintext: str) -> bytes:
    """Return what the legacy client stores for plaintext.

    Every UTF-16 unit is shifted up by 10, a NUL terminator is appended, and
    the result is serialized as UTF-7.
    """
    data = plaintext.encode("utf-16-le")
    units = [int.from_bytes(data[i : i + 2], "little") + 10 for i in range(0, len(data), 2)]
    shifted = b"".join(u.to_bytes(2, "little") for u in units).decode("utf-16-le", "surrogatepass")
    return (shifted + "\x00").encode("utf-7")


# ---------------------------------------------------------------------------
# Fake store
# ---------------------------------------------------------------------------


@dataclass
class FakeAccount:
    password: str
    error_code: Optional[int] = 0
    login_attempts: int = 0
    user_work_email: Optional[str] = "user@escc.example"
    restriction_code: Optional[int] = 0
    user_id: int = 1
    encoded_credential: Optional[bytes] = None

    def stored_credential(self) -> bytes:
        if self.encoded_credential is not None:
            return self.encoded_credential
        return legacy_credential(self.password)


@dataclass
class FakeProcedureStore:
    """Records calls as (operation, args) tuples in call order."""

    accounts: dict[str, FakeAccount] = field(default_factory=dict)
    jobs: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    search_rows: list[dict[str, Any]] = field(default_factory=list)
    calls: list[tuple[str, tuple]] = field(default_factory=list)
    fail_with: Optional[Exception] = None
    fail_failed_attempt: bool = False
    healthy: bool = True

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        if self.fail_with is not None:
            raise self.fail_with

    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]

    def validate_login(self, username: str, ip_address: str) -> LoginValidation:
        self._record("validate-login", username, ip_address)
        account = self.accounts.get(username)
        if account is None:
            return LoginValidation(error_code=1)
        return LoginValidation(
            error_code=account.error_code,
            encoded_credential=account.stored_credential() if account.error_code == 0 else None,
            login_attempts=account.login_attempts,
            user_work_email=account.user_work_email,
        )

    def apply_login_restrictions(self, username: str, ip_address: str) -> Optional[int]:
        self._record("apply-login-restrictions", username, ip_address)
        return self.accounts[username].restriction_code

    def resolve_user_id(self, username: str) -> int:
        self._record("resolve-user-id", username)
        return self.accounts[username].user_id

    def record_failed_attempt(self, username: str, ip_address: str, comments: str, access_code: str) -> None:
        self._record("record-failed-attempt", username, ip_address, comments, access_code)
        if self.fail_failed_attempt:
            raise RuntimeError("audit table unavailable")

    def get_job(self, job_id: int) -> list[dict[str, Any]]:
        self._record("job-details", job_id)
        return self.jobs.get(job_id, [])

    def search_jobs(self, criteria: JobSearchCriteria) -> list[dict[str, Any]]:
        self._record("job-search", criteria)
        return list(self.search_rows)

    def ping(self) -> bool:
        return self.healthy

    def close(self) -> None:
        pass

    def reset(self) -> None:
        self.calls.clear()
        self.fail_with = None
        self.fail_failed_attempt = False
        self.healthy = True


def _seed_store() -> FakeProcedureStore:
    store = FakeProcedureStore()
    store.accounts = {
        "jdoe": FakeAccount(password="s3cret!", login_attempts=2, user_id=42, user_work_email="jdoe@escc.example"),
        "disabled": FakeAccount(password="whatever", error_code=2, login_attempts=5),
        "locked": FakeAccount(password="whatever", error_code=3, login_attempts=9),
        "odd": FakeAccount(password="whatever", error_code=7),
        "remote": FakeAccount(password="pw12345", restriction_code=11, user_id=7),
        "corrupt": FakeAccount(password="ignored", encoded_credential=b"\x80\x81", login_attempts=1),
        "nullcode": FakeAccount(password="whatever", error_code=None, login_attempts=4),
        "nullgate": FakeAccount(password="gate123", restriction_code=None, user_id=8),
    }
    store.jobs = {
        1001: [{"Job_ID": "1001", "Status_Code": 1, "Project_Manager": "A. Smith"}],
    }
    store.search_rows = [{"Job_ID": str(1000 + i), "Status_Code": 1} for i in range(7)]
    return store


# ---------------------------------------------------------------------------
# App wiring
# ---------------------------------------------------------------------------


def _patch_lifespan(store: FakeProcedureStore, tokens: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires the fake store and a TokenIssuer built from the test Settings into
    app.state so routes never touch a real database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.tokens = tokens
        app.state.store = store
        app.state.sessions = SessionService(store, tokens)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, FakeProcedureStore, TokenIssuer], None, None]:
    """Yield (client, store, tokens) for API integration tests."""
    store = _seed_store()
    tokens = TokenIssuer(get_settings())
    app.router.lifespan_context = _patch_lifespan(store, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, tokens


@pytest.fixture
def fake_store(api_client) -> FakeProcedureStore:
    """The app's fake store with its call log and failure switches reset."""
    store = api_client[1]
    store.reset()
    return store


@pytest.fixture
def client(api_client, fake_store) -> TestClient:
    return api_client[0]


@pytest.fixture
def token_issuer(api_client) -> TokenIssuer:
    return api_client[2]


@pytest.fixture
def bearer(token_issuer) -> dict[str, str]:
    """Authorization header carrying a valid access token for jdoe."""
    claims = SessionClaims(user_id=42, username="jdoe", user_work_email="jdoe@escc.example", source_ip_address="10.0.0.5")
    return {"Authorization": f"Bearer {token_issuer.create_access_token(claims)}"}


@pytest.fixture
def seeded_store() -> FakeProcedureStore:
    """A standalone fake store for unit tests that do not go through HTTP."""
    return _seed_store()
