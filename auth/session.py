"""
auth/session.py -- The client session: authorization state machine plus the
user-scoped operations it guards.

Lifecycle:

    UNINITIALIZED --(app created/loaded)--> APPLICATION_READY
    APPLICATION_READY --register()--> USER_REGISTERED     (optional)
    APPLICATION_READY / USER_REGISTERED / LOGGED_OUT --login()--> LOGGED_IN
    LOGGED_IN --logout()--> LOGGED_OUT

Ordering rules enforced here:
  - tokens can only be requested once an Application exists (StateError);
  - register() needs get_rules() to have succeeded first (PreconditionError);
  - every user-scoped call needs a logged-in user (StateError).

All three checks run before any network call. State is written only after
the remote call it depends on has returned, so a RemoteFailure never leaves
the session half-updated.

Registration and login failures are logged at ERROR and re-raised as
RemoteFailure, so callers can branch on them and retry with corrected input.
A failed application initialization is only logged: the session stays usable
for anonymous calls (rules, public timeline) and every authenticated call
fails fast with StateError.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from auth.models import SessionState
from auth.resolver import CredentialResolver
from cache.store import CredentialStore
from core.config import Settings, get_settings
from core.errors import PreconditionError, RemoteFailure, StateError
from core.executor import RequestExecutor
from core.gateway import MastodonGateway
from core.models import Account, Application, ScheduledStatus, Status, Token
from core.validators import check_status_text, parse_duration

logger = logging.getLogger("fedisession.session")

SEARCH_USER_LIMIT = 5
LOOKUP_USER_LIMIT = 20


class SessionPhase(enum.Enum):
    UNINITIALIZED = "uninitialized"
    APPLICATION_READY = "application_ready"
    USER_REGISTERED = "user_registered"
    LOGGED_IN = "logged_in"
    LOGGED_OUT = "logged_out"


class MastodonSession:
    """One client session against one instance.

    Holds at most one logged-in user. Not thread-safe: a session must not be
    shared across threads without external synchronization.

    Usage:
        session = MastodonSession("example.social")
        print(session.get_rules())
        session.register("alice", "alice@example.com", "pw123456", True, "en-US", auto_login=True)
        session.post_status("Hello, fediverse!")
        session.logout()
    """

    def __init__(
        self,
        hostname: str,
        store: Optional[CredentialStore] = None,
        gateway_factory: Optional[Callable[..., object]] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._hostname = hostname
        self._settings = settings or get_settings()
        self._owns_store = store is None
        self.store = store if store is not None else CredentialStore(self._settings.credential_db_url)
        self._gateway_factory = gateway_factory or MastodonGateway
        self._resolver = CredentialResolver(self.store, force_requests=self._settings.force_requests)
        self.state = SessionState()
        self._phase = SessionPhase.UNINITIALIZED
        self._gateway = None
        self._executor: RequestExecutor

        logger.debug("Initializing session for %s", hostname)
        self._rebuild_transport(None)
        self._init_application()

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rebuild_transport(self, token: Optional[Token]) -> None:
        """Replace the gateway with one bound to token (or an anonymous one)."""
        old = self._gateway
        self._gateway = self._gateway_factory(
            self._hostname,
            access_token=token.access_token if token is not None else None,
            timeout=self._settings.request_timeout,
        )
        self._executor = RequestExecutor(self._gateway)
        if old is not None and hasattr(old, "close"):
            old.close()

    def _init_application(self) -> None:
        try:
            app = self._resolver.resolve_application(
                self._hostname,
                self._executor,
                self._settings.client_name,
                self._settings.website,
            )
        except RemoteFailure as e:
            logger.error("Application initialization failed for %s. Status code: %s", self._hostname, e.status_code)
            return
        self.state.adopt_application(app)
        self._phase = SessionPhase.APPLICATION_READY
        logger.debug("Initialized application: client_id=%s", app.client_id)

    def _require_application(self) -> Application:
        app = self.state.application
        if app is None or not app.client_id or not app.client_secret:
            raise StateError("Application is not initialized.")
        return app

    # ------------------------------------------------------------------
    # Authorization lifecycle
    # ------------------------------------------------------------------

    def authorize_application(self) -> Token:
        """Obtain the app's request token (client-credentials grant) and adopt it."""
        app = self._require_application()
        token = self._resolver.resolve_request_token(app, self._executor)
        self.state.adopt_request_token(token)
        if not self.state.is_logged_in:
            self._rebuild_transport(token)
        logger.debug("Authorized application: client_id=%s", app.client_id)
        return token

    def get_rules(self) -> str:
        """Return the instance rules as one newline-joined text and mark them as seen."""
        rules = self._executor.get_instance_rules()
        self.state.mark_rules_seen()
        return "\n".join(rules)

    def register(
        self,
        username: str,
        email: str,
        password: str,
        agreement: bool,
        locale: str,
        auto_login: bool,
        reason: Optional[str] = None,
    ) -> Token:
        """Create an account on the instance and store its access token.

        Raises:
            PreconditionError: get_rules() has not succeeded yet.
            StateError:        the application is not initialized.
            RemoteFailure:     the instance refused the request token or the sign-up.
        """
        if not self.state.has_seen_rules:
            raise PreconditionError(
                "User has not seen the rules yet. Call get_rules() and show rules to the user first."
            )
        app = self._require_application()
        if self.state.request_token is None:
            self.authorize_application()

        logger.debug("Registering user %s (agreement=%s, locale=%s)", username, agreement, locale)
        try:
            token = self._executor.register_account(username, email, password, agreement, locale, reason)
        except RemoteFailure as e:
            logger.error("User registration failed for %s. Status code: %s", username, e.status_code)
            raise
        self._resolver.remember_access_token(app, username, token)
        if not self.state.is_logged_in:
            self._phase = SessionPhase.USER_REGISTERED
        logger.info("Registered user %s on %s", username, self._hostname)

        if auto_login:
            logger.debug("Auto-login as %s", username)
            self.login(username, password)
        return token

    def login(self, username: str, password: str) -> None:
        """Log in as username, reusing a stored access token when there is one.

        Raises:
            StateError:    the application is not initialized.
            RemoteFailure: the password grant was refused (e.g. status 401).
        """
        app = self._require_application()
        try:
            token = self._resolver.resolve_access_token(app, self._executor, username, password)
        except RemoteFailure as e:
            logger.error("User login failed for %s. Status code: %s", username, e.status_code)
            raise
        self.state.sign_in(username, token)
        self._rebuild_transport(token)
        self._phase = SessionPhase.LOGGED_IN
        logger.info("Logged in as %s@%s", username, self._hostname)

    def logout(self) -> None:
        """Forget the current user. Stored tokens are kept for the next login."""
        if not self.state.is_logged_in:
            return
        username = self.state.username
        self.state.sign_out()
        self._rebuild_transport(self.state.request_token)
        self._phase = SessionPhase.LOGGED_OUT
        logger.info("Logged out %s", username)

    def forget_user(self, username: str) -> bool:
        """Log username out and delete its stored access token.

        The next login for username needs the password again. Returns False
        when there was no stored token. Store errors propagate: a token the
        caller asked to delete must not survive silently.
        """
        if self.state.username == username:
            self.logout()
        app = self.state.application
        if app is None:
            return False
        forgotten = self.store.forget_access_token(app.client_id, username)
        logger.info("Forgot stored access token for %s: %s", username, forgotten)
        return forgotten

    def ensure_login(self) -> None:
        if not self.state.is_logged_in:
            raise StateError("User is not logged in.")

    def verify_app_credentials(self) -> Application:
        if self.state.request_token is None:
            raise StateError("Application is not authorized.")
        return self._executor.verify_app_credentials()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_home_timeline(self, limit: Optional[int] = None) -> list[Status]:
        self.ensure_login()
        return self._executor.get_home_timeline(limit)

    def get_public_timeline(self, limit: Optional[int] = None) -> list[Status]:
        return self._executor.get_public_timeline(limit)

    def search_user(self, query: str) -> list[Account]:
        self.ensure_login()
        return list(self._executor.search_accounts(query, limit=SEARCH_USER_LIMIT))

    def get_user_by_username(self, username: str, hostname: Optional[str] = None) -> Optional[Account]:
        """Look up user@hostname (hostname defaults to this instance). Returns None if unknown."""
        self.ensure_login()
        host = hostname.replace("@", "") if hostname else self._hostname
        query = f"{username.replace('@', '')}@{host}"
        result = self._executor.search_accounts(query, limit=LOOKUP_USER_LIMIT)
        return result[0] if result else None

    def get_me(self) -> Account:
        self.ensure_login()
        return self._executor.verify_user_credentials()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def post_status(self, text: str) -> Status:
        self.ensure_login()
        check_status_text(text)
        return self._executor.post_status(text)

    def schedule_status_after_delay(self, text: str, delay_pattern: str) -> ScheduledStatus:
        """Schedule text to be published after an ISO-8601 delay such as "PT1H30M"."""
        self.ensure_login()
        check_status_text(text)
        delay = parse_duration(delay_pattern)
        scheduled_at = (datetime.now(timezone.utc) + delay).isoformat()
        logger.debug("Status is scheduled at: %s", scheduled_at)
        return self._executor.schedule_status(text, scheduled_at)

    def close(self) -> None:
        if self._gateway is not None and hasattr(self._gateway, "close"):
            self._gateway.close()
        if self._owns_store:
            self.store.close()
