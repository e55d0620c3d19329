"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the login service happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. bcrypt_rounds -> BCRYPT_ROUNDS). Type coercion is built in.

  @model_validator(mode="after"): Cross-field rules run once every field is
      resolved. Production mode forces secure cookies; a DB_HOST without a
      DATABASE_URL is turned into a PostgreSQL URL.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("loginsvc.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'loginsvc.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # NODE_ENV is accepted so an existing deployment .env keeps working.
    environment: str = Field(default="development", validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"))
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Empty string means "not configured": the validator derives a URL from
    # the DB_* fields, or falls back to the local SQLite file.
    database_url: str = ""
    db_host: str = ""
    db_port: int = 5432
    db_user: str = ""
    db_password: str = ""
    db_database: str = ""

    # ------------------------------------------------------------------
    # Passwords and sessions
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    session_ttl_seconds: int = Field(default=24 * 60 * 60, gt=0)
    session_cookie_name: str = "loginSid"
    session_sweep_interval_seconds: int = Field(default=600, gt=0)
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 3000
    fallback_port: int = 3001

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def resolve_derived_fields(self) -> "Settings":
        """Fill in the database URL and enforce production cookie policy.

        Precedence for the database: DATABASE_URL, then DB_HOST + DB_* parts
        (PostgreSQL), then the bundled SQLite file.
        """
        if not self.database_url:
            if self.db_host:
                self.database_url = (
                    f"postgresql://{self.db_user}:{self.db_password}"
                    f"@{self.db_host}:{self.db_port}/{self.db_database}"
                )
            else:
                self.database_url = _DEFAULT_DB_URL
        if self.is_production and not self.secure_cookies:
            self.secure_cookies = True
        if self.is_production and self.database_url.startswith("sqlite"):
            logger.warning("Running in production with a SQLite database (%s)", self.database_url)
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
