"""
auth/models.py -- In-memory session state.

SessionState is the single mutable record of a MastodonSession. It is
changed only through its methods, which enforce:

  - access_token present <=> username present
  - any token present     => application present

Violations raise StateError rather than leaving a half-updated record.

Layer rule: no imports from cache/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import StateError
from core.models import Application, Token


@dataclass
class SessionState:
    application: Application | None = None
    request_token: Token | None = None
    access_token: Token | None = None
    username: str | None = None
    has_seen_rules: bool = False

    @property
    def is_logged_in(self) -> bool:
        return self.username is not None

    def adopt_application(self, application: Application) -> None:
        if self.application is not None and self.application.client_id != application.client_id:
            raise StateError("Application is already initialized for this session.")
        self.application = application

    def adopt_request_token(self, token: Token) -> None:
        if self.application is None:
            raise StateError("Application is not initialized.")
        self.request_token = token

    def sign_in(self, username: str, token: Token) -> None:
        """Bind the session to one user, replacing any previous one."""
        if self.application is None:
            raise StateError("Application is not initialized.")
        self.username = username
        self.access_token = token

    def sign_out(self) -> None:
        self.username = None
        self.access_token = None

    def mark_rules_seen(self) -> None:
        self.has_seen_rules = True
