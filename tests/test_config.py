"""Unit tests for core/config.py -- defaults, env mapping and hostname normalization."""

import inspect

import pytest
from pydantic import ValidationError as PydanticValidationError

from cache.store import CredentialStore
from core.config import DEFAULT_CLIENT_NAME, Settings, get_settings, normalize_hostname


class TestNormalizeHostname:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("example.social", "example.social"),
            ("https://Example.Social/", "example.social"),
            ("http://example.social", "example.social"),
            ("  example.social  ", "example.social"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_hostname(raw) == expected


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("FEDISESSION_HOSTNAME", "FEDISESSION_FORCE_REQUESTS", "FEDISESSION_DEBUG"):
            monkeypatch.delenv(var, raising=False)
        s = Settings(_env_file=None)
        assert s.hostname == ""
        assert s.force_requests is False
        assert s.client_name == DEFAULT_CLIENT_NAME
        assert s.request_timeout == 10.0
        assert s.credential_db_url.startswith("sqlite:///")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("FEDISESSION_HOSTNAME", "https://Mastodon.Example/")
        monkeypatch.setenv("FEDISESSION_FORCE_REQUESTS", "true")
        s = Settings(_env_file=None)
        assert s.hostname == "mastodon.example"
        assert s.force_requests is True

    def test_timeout_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, request_timeout=0)

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_store_default_matches_settings_default(self, monkeypatch):
        monkeypatch.delenv("FEDISESSION_CREDENTIAL_DB_URL", raising=False)
        default = inspect.signature(CredentialStore).parameters["db_url"].default
        assert default == Settings(_env_file=None).credential_db_url
