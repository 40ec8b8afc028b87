"""
auth/resolver.py -- Store-first credential resolution.

Every credential the session needs (application, request token, access
token) is obtained the same way:

  1. unless force_requests is set, look it up in the CredentialStore;
  2. on a hit, return it without touching the network;
  3. on a miss, fetch it from the instance (through the RequestExecutor),
     write it back to the store, and return it.

Failure policy:
  - A store read that raises is logged and treated as a miss, so a broken
    cache file degrades to the network path instead of blocking login.
  - A store write that raises is logged and ignored. The credential was
    granted; losing the cached copy only costs a round-trip next time.
  - A network failure (RemoteFailure) propagates untouched. Nothing has been
    saved at that point, and the caller has not adopted anything yet.

The resolver never touches SessionState. Callers adopt the returned record
only after resolve() returns.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from auth.oauth import FULL_SCOPE, NO_REDIRECT
from cache.store import CredentialStore
from core.executor import RequestExecutor
from core.models import Application, Token

logger = logging.getLogger("fedisession.resolver")

T = TypeVar("T")

# Exceptions a store backend may raise for reasons unrelated to the lookup key.
_STORE_ERRORS = (SQLAlchemyError, OSError)


class CredentialResolver:
    def __init__(self, store: CredentialStore, force_requests: bool = False) -> None:
        self.store = store
        self.force_requests = force_requests

    def resolve(
        self,
        label: str,
        load: Callable[[], Optional[T]],
        fetch: Callable[[], T],
        save: Callable[[T], None],
    ) -> T:
        """Return a credential from the store, or fetch and persist a new one.

        Args:
            label: Human-readable name for log lines, e.g. "access token for alice".
            load:  Store read. Returns None on a miss.
            fetch: Network grant. Raises RemoteFailure on failure.
            save:  Store write for a freshly fetched credential.
        """
        if not self.force_requests:
            try:
                cached = load()
            except _STORE_ERRORS as e:
                logger.warning("Could not read %s from store, requesting a new one: %s", label, e)
                cached = None
            if cached is not None:
                logger.debug("Loaded %s from store", label)
                return cached

        record = fetch()
        logger.debug("Obtained %s from instance", label)
        try:
            save(record)
        except _STORE_ERRORS as e:
            logger.warning("Could not save %s to store: %s", label, e)
        return record

    # ------------------------------------------------------------------
    # The three credential kinds
    # ------------------------------------------------------------------

    def resolve_application(
        self,
        hostname: str,
        executor: RequestExecutor,
        client_name: str,
        website: Optional[str] = None,
    ) -> Application:
        return self.resolve(
            f"application for {hostname}",
            load=lambda: self.store.get_application(hostname),
            fetch=lambda: executor.create_application(client_name, NO_REDIRECT, website, FULL_SCOPE),
            save=lambda app: self.store.save_application(hostname, app),
        )

    def resolve_request_token(self, application: Application, executor: RequestExecutor) -> Token:
        return self.resolve(
            f"request token for client {application.client_id}",
            load=lambda: self.store.get_request_token(application.client_id),
            fetch=lambda: executor.get_client_credentials_token(
                application.client_id, application.client_secret, NO_REDIRECT, FULL_SCOPE
            ),
            save=lambda token: self.store.save_request_token(application.client_id, token),
        )

    def resolve_access_token(
        self,
        application: Application,
        executor: RequestExecutor,
        username: str,
        password: str,
    ) -> Token:
        return self.resolve(
            f"access token for {username}",
            load=lambda: self.store.get_access_token(application.client_id, username),
            fetch=lambda: executor.get_password_grant_token(
                application.client_id, application.client_secret, NO_REDIRECT, username, password, FULL_SCOPE
            ),
            save=lambda token: self.store.save_access_token(application.client_id, username, token),
        )

    def remember_access_token(self, application: Application, username: str, token: Token) -> None:
        """Best-effort write of a token obtained outside resolve(), e.g. by registration."""
        try:
            self.store.save_access_token(application.client_id, username, token)
        except _STORE_ERRORS as e:
            logger.warning("Could not save access token for %s to store: %s", username, e)
