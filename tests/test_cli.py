"""Tests for main.py -- argument wiring and error reporting.

MastodonSession is patched out; these tests only check that each command
calls the right session methods and that library errors become a non-zero
exit status with a readable message.
"""

from unittest.mock import MagicMock, patch

from sqlalchemy.exc import ArgumentError

from core.errors import RemoteFailure, StateError
from core.models import Account, Status
from main import main


def _run(argv, configure=None):
    session = MagicMock()
    session.state.username = "alice"
    if configure:
        configure(session)
    with patch("main.MastodonSession", return_value=session) as cls:
        code = main(["--db", "sqlite:///:memory:", *argv])
    return code, session, cls


class TestCommands:
    def test_rules(self, capsys):
        code, session, cls = _run(["--instance", "https://Example.Social/", "rules"],
                                  lambda s: setattr(s.get_rules, "return_value", "Be nice."))
        assert code == 0
        assert cls.call_args.args[0] == "example.social"
        assert "Be nice." in capsys.readouterr().out
        session.close.assert_called_once()

    def test_register_requires_agreement(self, capsys):
        code, session, _ = _run(["--instance", "example.social", "register", "alice", "a@x.com", "--password", "pw"])
        assert code == 2
        assert "--agree" in capsys.readouterr().out
        session.register.assert_not_called()

    def test_register_fetches_rules_first(self):
        code, session, _ = _run(
            ["--instance", "example.social", "register", "alice", "a@x.com", "--password", "pw", "--agree"]
        )
        assert code == 0
        session.get_rules.assert_called_once()
        session.register.assert_called_once_with(
            "alice", "a@x.com", "pw", True, "en-US", auto_login=True, reason=None
        )

    def test_post_logs_in_first(self):
        def configure(s):
            s.post_status.return_value = Status(id="1", content="hi", created_at="")

        code, session, _ = _run(
            ["--instance", "example.social", "post", "hi", "--username", "alice", "--password", "pw"], configure
        )
        assert code == 0
        session.login.assert_called_once_with("alice", "pw")
        session.post_status.assert_called_once_with("hi")

    def test_me_prints_account(self, capsys):
        def configure(s):
            s.get_me.return_value = Account(id="1", username="alice", acct="alice", display_name="Alice")

        code, _, _ = _run(["--instance", "example.social", "me", "--username", "alice", "--password", "pw"], configure)
        assert code == 0
        assert "@alice" in capsys.readouterr().out

    def test_public_timeline_needs_no_login(self):
        code, session, _ = _run(
            ["--instance", "example.social", "timeline", "--public"],
            lambda s: setattr(s.get_public_timeline, "return_value", []),
        )
        assert code == 0
        session.login.assert_not_called()

    def test_logout_forgets_stored_token(self, capsys):
        code, session, _ = _run(
            ["--instance", "example.social", "logout", "--username", "alice"],
            lambda s: setattr(s.forget_user, "return_value", True),
        )
        assert code == 0
        session.forget_user.assert_called_once_with("alice")
        session.login.assert_not_called()
        assert "stored token was removed" in capsys.readouterr().out

    def test_logout_requires_username(self, capsys):
        code, session, _ = _run(["--instance", "example.social", "logout"])
        assert code == 2
        session.forget_user.assert_not_called()
        assert "--username" in capsys.readouterr().out


class TestErrors:
    def test_remote_failure_exits_non_zero(self, capsys):
        def configure(s):
            s.login.side_effect = RemoteFailure("MastodonGateway.get_password_grant_token", "Token", 401)

        code, session, _ = _run(
            ["--instance", "example.social", "login", "--username", "alice", "--password", "bad"], configure
        )
        assert code == 1
        assert "failed: 401" in capsys.readouterr().out
        session.close.assert_called_once()

    def test_state_error_exits_non_zero(self, capsys):
        def configure(s):
            s.login.side_effect = StateError("Application is not initialized.")

        code, _, _ = _run(["--instance", "example.social", "login", "--username", "a", "--password", "p"], configure)
        assert code == 1
        assert "not initialized" in capsys.readouterr().out

    def test_missing_instance(self, monkeypatch, capsys):
        monkeypatch.delenv("FEDISESSION_HOSTNAME", raising=False)
        with patch("main.get_settings") as get_settings:
            get_settings.return_value.hostname = ""
            get_settings.return_value.model_copy.return_value.hostname = ""
            get_settings.return_value.model_copy.return_value.debug = False
            code = main(["--db", "sqlite:///:memory:", "rules"])
        assert code == 2
        assert "No instance given" in capsys.readouterr().out

    def test_unusable_store_is_reported(self, capsys):
        with patch("main.MastodonSession", side_effect=ArgumentError("Could not parse SQLAlchemy URL")):
            code = main(["--instance", "example.social", "--db", "not-a-url", "rules"])
        assert code == 1
        assert "Credential store error" in capsys.readouterr().out
