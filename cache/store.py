"""
cache/store.py -- SQLAlchemy Core persistence for OAuth credentials.

Avoids redundant round-trips to the instance by keeping every credential the
client has been granted:

  applications    hostname            -> Application
  request_tokens  client_id           -> Token  (client-credentials grant)
  access_tokens   (client_id, user)   -> Token  (password grant / registration)

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_application / _row_to_token are the mappers. Session code never
touches SQL directly.

Contract:
  get_* returns None on a clean miss and never raises for it.
  save_* is an upsert: a newer credential replaces the stored one.
  Secrets are stored as plain text. Protect the database file accordingly.

Usage:
    store = CredentialStore()
    store.save_application("example.social", app)
    app = store.get_application("example.social")   # Application or None
    store.close()

Layer rule: no imports from auth/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from core.config import DEFAULT_DB_URL
from core.models import Application, Token

logger = logging.getLogger("fedisession.store")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_applications = Table(
    "applications",
    _metadata,
    Column("hostname", String(255), primary_key=True),
    Column("client_id", Text, nullable=False),
    Column("client_secret", Text, nullable=False),
    Column("name", String(255), nullable=False),
    Column("redirect_uri", Text, nullable=False),
    Column("scopes", Text, nullable=False),
    Column("website", Text),
    Column("remote_id", String(64)),  # instance-side app ID, may be absent
    Column("saved_at", String(32), nullable=False),
)

_request_tokens = Table(
    "request_tokens",
    _metadata,
    Column("client_id", String(255), primary_key=True),
    Column("access_token", Text, nullable=False),
    Column("token_type", String(32), nullable=False),
    Column("scope", Text, nullable=False, server_default=""),
    Column("created_at", BigInteger),
    Column("saved_at", String(32), nullable=False),
)

_access_tokens = Table(
    "access_tokens",
    _metadata,
    Column("client_id", String(255), primary_key=True),
    Column("username", String(255), primary_key=True),
    Column("access_token", Text, nullable=False),
    Column("token_type", String(32), nullable=False),
    Column("scope", Text, nullable=False, server_default=""),
    Column("created_at", BigInteger),
    Column("saved_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Application and Token records."""

    def __init__(self, db_url: str = DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------

    def get_application(self, hostname: str) -> Application | None:
        with self.engine.connect() as conn:
            row = conn.execute(_applications.select().where(_applications.c.hostname == hostname)).fetchone()
        return _row_to_application(row) if row is not None else None

    def save_application(self, hostname: str, application: Application) -> None:
        with self.engine.begin() as conn:
            conn.execute(_applications.delete().where(_applications.c.hostname == hostname))
            conn.execute(
                _applications.insert().values(
                    hostname=hostname,
                    client_id=application.client_id,
                    client_secret=application.client_secret,
                    name=application.name,
                    redirect_uri=application.redirect_uri,
                    scopes=application.scopes,
                    website=application.website,
                    remote_id=application.id,
                    saved_at=_now_iso(),
                )
            )
        logger.debug("Saved application for %s (client_id=%s)", hostname, application.client_id)

    # ------------------------------------------------------------------
    # Request tokens
    # ------------------------------------------------------------------

    def get_request_token(self, client_id: str) -> Token | None:
        with self.engine.connect() as conn:
            row = conn.execute(_request_tokens.select().where(_request_tokens.c.client_id == client_id)).fetchone()
        return _row_to_token(row) if row is not None else None

    def save_request_token(self, client_id: str, token: Token) -> None:
        with self.engine.begin() as conn:
            conn.execute(_request_tokens.delete().where(_request_tokens.c.client_id == client_id))
            conn.execute(_request_tokens.insert().values(client_id=client_id, saved_at=_now_iso(), **_token_values(token)))
        logger.debug("Saved request token for client_id=%s", client_id)

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    def get_access_token(self, client_id: str, username: str) -> Token | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _access_tokens.select().where(
                    (_access_tokens.c.client_id == client_id) & (_access_tokens.c.username == username)
                )
            ).fetchone()
        return _row_to_token(row) if row is not None else None

    def save_access_token(self, client_id: str, username: str, token: Token) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                _access_tokens.delete().where(
                    (_access_tokens.c.client_id == client_id) & (_access_tokens.c.username == username)
                )
            )
            conn.execute(
                _access_tokens.insert().values(
                    client_id=client_id,
                    username=username,
                    saved_at=_now_iso(),
                    **_token_values(token),
                )
            )
        logger.debug("Saved access token for %s (client_id=%s)", username, client_id)

    def forget_access_token(self, client_id: str, username: str) -> bool:
        """Delete a stored access token. Returns True if one was removed."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _access_tokens.delete().where(
                    (_access_tokens.c.client_id == client_id) & (_access_tokens.c.username == username)
                )
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _token_values(token: Token) -> dict:
    return {
        "access_token": token.access_token,
        "token_type": token.token_type,
        "scope": token.scope,
        "created_at": token.created_at,
    }


def _row_to_application(row) -> Application:
    return Application(
        client_id=row.client_id,
        client_secret=row.client_secret,
        name=row.name,
        redirect_uri=row.redirect_uri,
        scopes=row.scopes,
        website=row.website,
        id=row.remote_id,
    )


def _row_to_token(row) -> Token:
    return Token(
        access_token=row.access_token,
        token_type=row.token_type,
        scope=row.scope,
        created_at=row.created_at,
    )
