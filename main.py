#!/usr/bin/env python3
"""
FediSession -- command-line client for a Mastodon-compatible instance.

Usage:
  python main.py --instance example.social rules
  python main.py --instance example.social register alice alice@example.com --password pw123456 --agree
  python main.py --instance example.social post "Hello!" --username alice --password pw123456
  python main.py --instance example.social schedule "Later" PT1H --username alice --password pw123456
  python main.py --instance example.social timeline --public
  python main.py --instance example.social logout --username alice

Each run is a fresh session: user-scoped commands log in first. After the
first successful login the access token is read from the credential store,
so the password grant is not repeated.

Environment variables (see core/config.py):
  FEDISESSION_HOSTNAME           Default instance when --instance is omitted.
  FEDISESSION_CREDENTIAL_DB_URL  SQLAlchemy URL of the credential store.
  FEDISESSION_FORCE_REQUESTS     Always request fresh credentials.
  FEDISESSION_DEBUG              Enable debug logging.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from auth.session import MastodonSession
from core.config import Settings, get_settings, normalize_hostname
from core.errors import SessionError
from core.models import Account, Status


class UsageError(Exception):
    """A command was given without the options it needs."""


def _print_account(account: Account) -> None:
    print(f"  @{account.acct}  {account.display_name}")
    if account.url:
        print(f"    {account.url}")


def _print_statuses(statuses: list[Status]) -> None:
    if not statuses:
        print("  (no statuses)")
    for status in statuses:
        author = f"@{status.account.acct}" if status.account else "?"
        print(f"  [{status.created_at}] {author}: {status.content}")


def _build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict = {}
    if args.db:
        overrides["credential_db_url"] = args.db
    if args.force_requests:
        overrides["force_requests"] = True
    if args.debug:
        overrides["debug"] = True
    base = get_settings()
    return base.model_copy(update=overrides) if overrides else base


def _login(session: MastodonSession, args: argparse.Namespace) -> None:
    if not args.username:
        raise UsageError("--username is required for this command.")
    password: Optional[str] = args.password or getpass.getpass(f"Password for {args.username}: ")
    session.login(args.username, password)


def _run(session: MastodonSession, args: argparse.Namespace) -> None:
    cmd = args.command

    if cmd == "rules":
        print(session.get_rules())

    elif cmd == "register":
        print(session.get_rules())
        if not args.agree:
            raise UsageError("Registration requires accepting the rules above (--agree).")
        password = args.password or getpass.getpass(f"Password for {args.username}: ")
        session.register(
            args.username,
            args.email,
            password,
            True,
            args.locale,
            auto_login=not args.no_login,
            reason=args.reason,
        )
        print(f"  Registered {args.username}.")

    elif cmd == "login":
        _login(session, args)
        print(f"  Logged in as {session.state.username}.")

    elif cmd == "logout":
        # Each run starts logged out, so logging out means dropping the stored token.
        if not args.username:
            raise UsageError("--username is required for this command.")
        if session.forget_user(args.username):
            print(f"  Logged out {args.username}; the stored token was removed.")
        else:
            print(f"  No stored token for {args.username}.")

    elif cmd == "me":
        _login(session, args)
        _print_account(session.get_me())

    elif cmd == "timeline":
        if args.public:
            _print_statuses(session.get_public_timeline(args.limit))
        else:
            _login(session, args)
            _print_statuses(session.get_home_timeline(args.limit))

    elif cmd == "search":
        _login(session, args)
        accounts = session.search_user(args.query)
        if not accounts:
            print("  No accounts found.")
        for account in accounts:
            _print_account(account)

    elif cmd == "post":
        _login(session, args)
        status = session.post_status(args.text)
        print(f"  Posted: {status.url or status.id}")

    elif cmd == "schedule":
        _login(session, args)
        scheduled = session.schedule_status_after_delay(args.text, args.delay)
        print(f"  Scheduled {scheduled.id} for {scheduled.scheduled_at}")

    elif cmd == "verify-app":
        # The client-credentials grant happens as part of registration; here it
        # is requested explicitly so the app can be checked on its own.
        session.authorize_application()
        app = session.verify_app_credentials()
        print(f"  {app.name}  {app.website or ''}".rstrip())


def _user_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument("--username", help="Account to log in as")
    parent.add_argument("--password", help="Account password (prompted when omitted)")
    return parent


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fedisession",
        description="Session-managed client for Mastodon-compatible instances.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--instance", metavar="HOST", help="Instance hostname, e.g. example.social")
    parser.add_argument("--db", metavar="URL", help="SQLAlchemy URL of the credential store")
    parser.add_argument(
        "--force-requests",
        action="store_true",
        help="Ignore stored credentials and request fresh ones from the instance",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    user = _user_options()
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("rules", help="Show the instance rules")

    p_register = sub.add_parser("register", help="Create an account")
    p_register.add_argument("username")
    p_register.add_argument("email")
    p_register.add_argument("--password", help="Account password (prompted when omitted)")
    p_register.add_argument("--agree", action="store_true", help="Accept the instance rules")
    p_register.add_argument("--locale", default="en-US")
    p_register.add_argument("--reason", help="Sign-up reason for instances with manual approval")
    p_register.add_argument("--no-login", action="store_true", help="Do not log in after registering")

    sub.add_parser("login", help="Log in and cache the access token", parents=[user])
    p_logout = sub.add_parser("logout", help="Remove the stored access token for a user")
    p_logout.add_argument("--username", help="Account to log out")
    sub.add_parser("me", help="Show the logged-in account", parents=[user])

    p_timeline = sub.add_parser("timeline", help="Show the home (or public) timeline", parents=[user])
    p_timeline.add_argument("--public", action="store_true")
    p_timeline.add_argument("--limit", type=int, default=None)

    p_search = sub.add_parser("search", help="Search accounts", parents=[user])
    p_search.add_argument("query")

    p_post = sub.add_parser("post", help="Publish a status", parents=[user])
    p_post.add_argument("text")

    p_schedule = sub.add_parser("schedule", help="Publish a status after an ISO-8601 delay", parents=[user])
    p_schedule.add_argument("text")
    p_schedule.add_argument("delay", metavar="DELAY", help="e.g. PT30M, PT2H, P1DT6H")

    sub.add_parser("verify-app", help="Check the registered application with the instance")

    args = parser.parse_args(argv)
    settings = _build_settings(args)
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    hostname = normalize_hostname(args.instance) if args.instance else settings.hostname
    if not hostname:
        print("  [!] No instance given. Use --instance or set FEDISESSION_HOSTNAME.")
        return 2

    session: Optional[MastodonSession] = None
    try:
        session = MastodonSession(hostname, settings=settings)
        _run(session, args)
    except UsageError as e:
        print(f"  [!] {e}")
        return 2
    except SessionError as e:
        print(f"  [!] {e}")
        return 1
    except SQLAlchemyError as e:
        print(f"  [!] Credential store error: {e}")
        return 1
    finally:
        if session is not None:
            session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
