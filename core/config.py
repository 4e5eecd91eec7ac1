"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for BookApp happen here. No module should
call os.getenv() or os.environ.get() directly -- build a Settings value once
at startup and pass it (or the objects built from it) to the components that
need it.

Design patterns used:
  Explicit configuration value: create_app(settings) receives a Settings
      instance and builds the hasher, token codec and stores from it. There is
      no module-level settings singleton inside auth/.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a signing secret with a
      warning; production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every issued token.

  In production mode (DEBUG not set or false), a missing JWT_SECRET is a hard
  startup failure. A random key in production would silently invalidate every
  session on restart.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("bookapp.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'bookapp.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.

    The ARGON_* fields are optional overrides layered on top of the profile
    named by ARGON_PROFILE; see auth.policy.HashPolicy.from_settings().
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    database_url: str = _DEFAULT_DB_URL
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    token_ttl_seconds: int = Field(default=8 * 3600, ge=0)

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    argon_profile: Literal["default", "development", "production"] = "default"
    argon_memory_cost_kb: Optional[int] = None
    argon_iterations: Optional[int] = None
    argon_parallelism: Optional[int] = None
    argon_output_length: Optional[int] = None
    argon_variant: Optional[str] = None
    argon_secret_key: Optional[str] = None

    # Threads dedicated to hashing; sized independently from the request
    # threadpool that runs store calls.
    hash_workers: int = Field(default=2, ge=1, le=64)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    # When set and the users table is empty, an "admin" account is created
    # with this password on startup. Leave empty in production after first run.
    bootstrap_admin_password: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated JWT_SECRET. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings read from the environment.

    Only the ASGI entry point (asgi.py) calls this; everything below it
    receives the resulting Settings explicitly. Tests construct Settings(...)
    directly instead.

    In tests: call get_settings.cache_clear() if you need to re-read the
    environment.
    """
    return Settings()
