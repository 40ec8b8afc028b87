"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for FediSession happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from FEDISESSION_* environment
      variables and an optional .env file. Field names map to env var names
      (e.g. force_requests -> FEDISESSION_FORCE_REQUESTS). Type coercion and
      validation are built in.

  @model_validator(mode="after"): Normalizes the instance hostname once so
      every credential lookup is keyed by the same string regardless of how
      the user typed it ("https://Example.Social/" -> "example.social").

Layer rule: core/ is the kernel. This module may not import from auth/ or cache/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("fedisession.config")

DEFAULT_CLIENT_NAME = "FediSession Client"

DEFAULT_DB_URL = f"sqlite:///{Path.cwd() / '.fedisession.db'}"


def normalize_hostname(value: str) -> str:
    """Strip scheme, slashes and whitespace from an instance name and lower-case it."""
    host = value.strip()
    for scheme in ("https://", "http://"):
        if host.lower().startswith(scheme):
            host = host[len(scheme) :]
    return host.strip("/").lower()


class Settings(BaseSettings):
    """Client settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FEDISESSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Instance
    # ------------------------------------------------------------------

    # Empty string means "not configured"; the CLI then requires --instance.
    hostname: str = ""
    client_name: str = DEFAULT_CLIENT_NAME
    website: Optional[str] = None

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # When true, every credential is requested from the instance and the
    # stored copy is overwritten. Stored credentials are never read.
    force_requests: bool = False
    credential_db_url: str = DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    request_timeout: float = Field(default=10.0, gt=0)

    debug: bool = False

    @model_validator(mode="after")
    def normalize_instance(self) -> "Settings":
        if self.hostname:
            normalized = normalize_hostname(self.hostname)
            if normalized != self.hostname:
                logger.debug("Normalized instance hostname %r -> %r", self.hostname, normalized)
            self.hostname = normalized
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
