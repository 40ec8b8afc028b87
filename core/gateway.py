"""
core/gateway.py -- All HTTP traffic with a Mastodon-compatible instance.

One MastodonGateway is bound to one instance and, optionally, one bearer
token. Authorizing as someone else means building a new gateway; an existing
one never changes identity.

Error contract:
  Every method lets requests.RequestException escape. A non-2xx reply is
  turned into requests.HTTPError by raise_for_status(), so the status code
  travels with the exception. Translating that into RemoteFailure is the
  job of core/executor.py -- this module only speaks HTTP.

Layer rule: core/ is the kernel. This module may not import from auth/ or cache/.
"""

import logging
from typing import Any, Optional

import requests

from core.models import Account, Application, ScheduledStatus, Status, Token

logger = logging.getLogger("fedisession.gateway")

APPS_PATH = "/api/v1/apps"
APPS_VERIFY_PATH = "/api/v1/apps/verify_credentials"
TOKEN_PATH = "/oauth/token"
ACCOUNTS_PATH = "/api/v1/accounts"
ACCOUNTS_VERIFY_PATH = "/api/v1/accounts/verify_credentials"
ACCOUNTS_SEARCH_PATH = "/api/v1/accounts/search"
RULES_PATH = "/api/v1/instance/rules"
HOME_TIMELINE_PATH = "/api/v1/timelines/home"
PUBLIC_TIMELINE_PATH = "/api/v1/timelines/public"
STATUSES_PATH = "/api/v1/statuses"

_DEFAULT_TIMEOUT = 10.0


class MastodonGateway:
    """Thin REST client for the endpoints FediSession uses.

    Usage:
        gateway = MastodonGateway("example.social")
        app = gateway.create_application("My Client", NO_REDIRECT, None, FULL_SCOPE)
        authed = MastodonGateway("example.social", access_token="...")
        authed.verify_user_credentials()
    """

    def __init__(
        self,
        hostname: str,
        access_token: Optional[str] = None,
        timeout: float = _DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.hostname = hostname
        self.base_url = f"https://{hostname}"
        self.timeout = timeout
        self._session = session or requests.Session()
        # Instances are known hosts; a long redirect chain is a misconfiguration.
        self._session.max_redirects = 3
        self._session.headers["Accept"] = "application/json"
        if access_token:
            self._session.headers["Authorization"] = f"Bearer {access_token}"

    @property
    def is_authorized(self) -> bool:
        return "Authorization" in self._session.headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        return resp.json()

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def create_application(self, name: str, redirect: str, website: Optional[str], scope: str) -> Application:
        data = {"client_name": name, "redirect_uris": redirect, "scopes": scope}
        if website:
            data["website"] = website
        body = self._request("POST", APPS_PATH, data=data)
        return _to_application(body, redirect=redirect, scope=scope, registered=True)

    def get_client_credentials_token(self, client_id: str, secret: str, redirect: str, scope: str) -> Token:
        body = self._request(
            "POST",
            TOKEN_PATH,
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": secret,
                "redirect_uri": redirect,
                "scope": scope,
            },
        )
        return _to_token(body)

    def get_password_grant_token(
        self,
        client_id: str,
        secret: str,
        redirect: str,
        username: str,
        password: str,
        scope: str,
    ) -> Token:
        body = self._request(
            "POST",
            TOKEN_PATH,
            data={
                "grant_type": "password",
                "client_id": client_id,
                "client_secret": secret,
                "redirect_uri": redirect,
                "username": username,
                "password": password,
                "scope": scope,
            },
        )
        return _to_token(body)

    def register_account(
        self,
        username: str,
        email: str,
        password: str,
        agreement: bool,
        locale: str,
        reason: Optional[str] = None,
    ) -> Token:
        """Create a user account. Needs a gateway bound to the app's request token.

        reason is only read by instances that approve sign-ups manually.
        """
        data = {
            "username": username,
            "email": email,
            "password": password,
            "agreement": "true" if agreement else "false",
            "locale": locale,
        }
        if reason:
            data["reason"] = reason
        return _to_token(self._request("POST", ACCOUNTS_PATH, data=data))

    def get_instance_rules(self) -> list[str]:
        return [rule.get("text", "") for rule in self._request("GET", RULES_PATH)]

    def verify_app_credentials(self) -> Application:
        return _to_application(self._request("GET", APPS_VERIFY_PATH))

    def verify_user_credentials(self) -> Account:
        return _to_account(self._request("GET", ACCOUNTS_VERIFY_PATH))

    # ------------------------------------------------------------------
    # Pass-through reads and writes
    # ------------------------------------------------------------------

    def get_home_timeline(self, limit: Optional[int] = None) -> list[Status]:
        params = {"limit": limit} if limit else {}
        return [_to_status(s) for s in self._request("GET", HOME_TIMELINE_PATH, params=params)]

    def get_public_timeline(self, limit: Optional[int] = None) -> list[Status]:
        params = {"limit": limit} if limit else {}
        return [_to_status(s) for s in self._request("GET", PUBLIC_TIMELINE_PATH, params=params)]

    def search_accounts(self, query: str, limit: int = 40) -> list[Account]:
        body = self._request("GET", ACCOUNTS_SEARCH_PATH, params={"q": query, "limit": limit})
        return [_to_account(a) for a in body]

    def post_status(self, text: str) -> Status:
        return _to_status(self._request("POST", STATUSES_PATH, json={"status": text}))

    def schedule_status(self, text: str, scheduled_at: str) -> ScheduledStatus:
        body = self._request("POST", STATUSES_PATH, json={"status": text, "scheduled_at": scheduled_at})
        return _to_scheduled_status(body)

    def close(self) -> None:
        self._session.close()


# ---------------------------------------------------------------------------
# JSON mappers
# ---------------------------------------------------------------------------


def _to_application(body: dict, redirect: str = "", scope: str = "", registered: bool = False) -> Application:
    # verify_credentials omits the secret (and, on older servers, the client ID).
    # A freshly registered app is useless without both, so they are required there.
    if registered:
        client_id, client_secret = body["client_id"], body["client_secret"]
    else:
        client_id, client_secret = body.get("client_id") or "", body.get("client_secret") or ""
    return Application(
        client_id=client_id,
        client_secret=client_secret,
        name=body.get("name", ""),
        redirect_uri=body.get("redirect_uri") or redirect,
        scopes=" ".join(body["scopes"]) if isinstance(body.get("scopes"), list) else scope,
        website=body.get("website"),
        id=str(body["id"]) if body.get("id") is not None else None,
    )


def _to_token(body: dict) -> Token:
    return Token(
        access_token=body["access_token"],
        token_type=body.get("token_type", "Bearer"),
        scope=body.get("scope", ""),
        created_at=body.get("created_at"),
    )


def _to_account(body: dict) -> Account:
    return Account(
        id=str(body["id"]),
        username=body.get("username", ""),
        acct=body.get("acct", ""),
        display_name=body.get("display_name", ""),
        url=body.get("url", ""),
        note=body.get("note", ""),
        locked=bool(body.get("locked", False)),
        bot=bool(body.get("bot", False)),
        followers_count=int(body.get("followers_count", 0)),
        following_count=int(body.get("following_count", 0)),
        statuses_count=int(body.get("statuses_count", 0)),
    )


def _to_status(body: dict) -> Status:
    account = body.get("account")
    return Status(
        id=str(body["id"]),
        content=body.get("content", ""),
        created_at=body.get("created_at", ""),
        account=_to_account(account) if account else None,
        url=body.get("url"),
        visibility=body.get("visibility", "public"),
        sensitive=bool(body.get("sensitive", False)),
        spoiler_text=body.get("spoiler_text", ""),
        in_reply_to_id=body.get("in_reply_to_id"),
        media_ids=[str(m["id"]) for m in body.get("media_attachments", []) if "id" in m],
    )


def _to_scheduled_status(body: dict) -> ScheduledStatus:
    params = body.get("params") or {}
    return ScheduledStatus(
        id=str(body["id"]),
        scheduled_at=body.get("scheduled_at", ""),
        text=params.get("text", ""),
        visibility=params.get("visibility"),
    )
