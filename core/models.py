"""
core/models.py -- Domain dataclasses for credentials and instance entities.

Pure data containers with zero logic. JSON -> dataclass mapping lives in
core/gateway.py, next to the requests that produce the JSON; row mapping
lives in cache/store.py.

Application and Token are frozen: a credential is never edited, only
superseded by a newer one.
"""

from dataclasses import dataclass, field
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Counted in characters (code points), not bytes.
MAX_STATUS_LENGTH = 1000


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Application:
    """The registered client identity recognized by one instance."""

    client_id: str
    client_secret: str
    name: str
    redirect_uri: str
    scopes: str
    website: Optional[str] = None
    id: Optional[str] = None  # instance-side record ID, not every server returns it


@dataclass(frozen=True)
class Token:
    """An OAuth bearer credential.

    Structurally identical for both roles: a request token authorizes the
    application itself, an access token authorizes one user.
    """

    access_token: str
    token_type: str = "Bearer"
    scope: str = ""
    created_at: Optional[int] = None  # epoch seconds, as reported by the instance


# ---------------------------------------------------------------------------
# Instance entities
# ---------------------------------------------------------------------------


@dataclass
class Account:
    id: str
    username: str
    acct: str  # "user" for local accounts, "user@host" for remote ones
    display_name: str = ""
    url: str = ""
    note: str = ""
    locked: bool = False
    bot: bool = False
    followers_count: int = 0
    following_count: int = 0
    statuses_count: int = 0


@dataclass
class Status:
    id: str
    content: str  # HTML as delivered by the instance
    created_at: str  # ISO 8601
    account: Optional[Account] = None
    url: Optional[str] = None
    visibility: str = "public"
    sensitive: bool = False
    spoiler_text: str = ""
    in_reply_to_id: Optional[str] = None
    media_ids: list[str] = field(default_factory=list)


@dataclass
class ScheduledStatus:
    id: str
    scheduled_at: str  # ISO 8601, UTC
    text: str = ""
    visibility: Optional[str] = None
