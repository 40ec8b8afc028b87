"""
tests/conftest.py -- Shared fixtures for FediSession tests.

This module provides:
  - FakeInstance: an in-memory stand-in for a Mastodon server. It hands out
    FakeGateway objects through .factory, records every call together with
    the bearer token it was made with, and can be told to fail an operation
    with a given HTTP status.
  - store:    CredentialStore on an in-memory SQLite database
  - settings: Settings isolated from the developer's environment and .env
  - session:  MastodonSession wired to the fake instance and the store

No test in this suite touches the network.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import Optional

import pytest
import requests

from auth.oauth import FULL_SCOPE
from auth.session import MastodonSession
from cache.store import CredentialStore
from core.config import Settings
from core.models import Account, Application, ScheduledStatus, Status, Token

HOSTNAME = "example.social"

# ---------------------------------------------------------------------------
# HTTP error helper
# ---------------------------------------------------------------------------


def http_error(status: int) -> requests.HTTPError:
    """Build the exception raise_for_status() would raise for this status."""
    resp = requests.Response()
    resp.status_code = status
    return requests.HTTPError(f"{status} Error", response=resp)


# ---------------------------------------------------------------------------
# Fake instance
# ---------------------------------------------------------------------------


class FakeInstance:
    def __init__(self, rules: Optional[list[str]] = None) -> None:
        self.rules = rules if rules is not None else ["Be excellent to each other.", "No spam."]
        self.passwords: dict[str, str] = {}
        self.calls: list[tuple[str, Optional[str]]] = []
        self.failures: dict[str, int] = {}
        self.gateways: list[FakeGateway] = []
        self.statuses: list[str] = []
        self.scheduled: list[tuple[str, str]] = []
        self._issued = 0

    def factory(self, hostname: str, access_token: Optional[str] = None, timeout: float = 10.0) -> "FakeGateway":
        gateway = FakeGateway(self, hostname, access_token)
        self.gateways.append(gateway)
        return gateway

    def calls_to(self, operation: str) -> list[tuple[str, Optional[str]]]:
        return [c for c in self.calls if c[0] == operation]

    def fail(self, operation: str, status: int) -> None:
        self.failures[operation] = status

    def issue(self, prefix: str) -> Token:
        self._issued += 1
        return Token(access_token=f"{prefix}-{self._issued}", scope=FULL_SCOPE, created_at=1700000000)


class FakeGateway:
    def __init__(self, instance: FakeInstance, hostname: str, access_token: Optional[str]) -> None:
        self.instance = instance
        self.hostname = hostname
        self.access_token = access_token
        self.closed = False

    def _record(self, operation: str) -> None:
        self.instance.calls.append((operation, self.access_token))
        if operation in self.instance.failures:
            raise http_error(self.instance.failures[operation])

    def create_application(self, name: str, redirect: str, website: Optional[str], scope: str) -> Application:
        self._record("create_application")
        return Application(
            client_id="client-id-1",
            client_secret="client-secret-1",
            name=name,
            redirect_uri=redirect,
            scopes=scope,
            website=website,
            id="1",
        )

    def get_client_credentials_token(self, client_id: str, secret: str, redirect: str, scope: str) -> Token:
        self._record("get_client_credentials_token")
        return self.instance.issue("app")

    def get_password_grant_token(
        self, client_id: str, secret: str, redirect: str, username: str, password: str, scope: str
    ) -> Token:
        self._record("get_password_grant_token")
        if self.instance.passwords.get(username) != password:
            raise http_error(401)
        return self.instance.issue(f"user-{username}")

    def register_account(
        self,
        username: str,
        email: str,
        password: str,
        agreement: bool,
        locale: str,
        reason: Optional[str] = None,
    ) -> Token:
        self._record("register_account")
        if not self.access_token or username in self.instance.passwords:
            raise http_error(422)
        self.instance.passwords[username] = password
        return self.instance.issue(f"user-{username}")

    def get_instance_rules(self) -> list[str]:
        self._record("get_instance_rules")
        return list(self.instance.rules)

    def verify_app_credentials(self) -> Application:
        self._record("verify_app_credentials")
        return Application(client_id="", client_secret="", name="FediSession Client", redirect_uri="", scopes="")

    def verify_user_credentials(self) -> Account:
        self._record("verify_user_credentials")
        username = self.access_token.split("-")[1] if self.access_token else "?"
        return Account(id="100", username=username, acct=username)

    def get_home_timeline(self, limit: Optional[int] = None) -> list[Status]:
        self._record("get_home_timeline")
        return [Status(id=str(i), content=text, created_at="") for i, text in enumerate(self.instance.statuses)]

    def get_public_timeline(self, limit: Optional[int] = None) -> list[Status]:
        self._record("get_public_timeline")
        return []

    def search_accounts(self, query: str, limit: int = 40) -> list[Account]:
        self._record("search_accounts")
        self.last_search = (query, limit)
        name = query.split("@")[0]
        if name in self.instance.passwords:
            return [Account(id="100", username=name, acct=query)]
        return []

    def post_status(self, text: str) -> Status:
        self._record("post_status")
        self.instance.statuses.append(text)
        return Status(id=str(len(self.instance.statuses)), content=text, created_at="")

    def schedule_status(self, text: str, scheduled_at: str) -> ScheduledStatus:
        self._record("schedule_status")
        self.instance.scheduled.append((text, scheduled_at))
        return ScheduledStatus(id="s1", scheduled_at=scheduled_at, text=text)

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def instance() -> FakeInstance:
    return FakeInstance()


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        hostname=HOSTNAME,
        force_requests=False,
        credential_db_url="sqlite:///:memory:",
    )


@pytest.fixture
def make_session(instance: FakeInstance, store: CredentialStore, settings: Settings):
    """Return a builder so a test can create several sessions over the same store."""

    def _make(**overrides) -> MastodonSession:
        cfg = settings.model_copy(update=overrides) if overrides else settings
        return MastodonSession(HOSTNAME, store=store, gateway_factory=instance.factory, settings=cfg)

    return _make


@pytest.fixture
def session(make_session) -> MastodonSession:
    return make_session()
