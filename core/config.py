"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the ESCC Report API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
and pass the Settings object to whatever needs it.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: the lifespan in api/main.py builds the TokenIssuer,
      ProcedureStore and SessionService from this object once at startup.
      Nothing reads a secret ad hoc in the middle of a request.

  @model_validator(mode="after"): DEBUG-conditional secret handling. Dev mode
      generates missing signing secrets with a warning; production mode refuses
      to start without them.

Security notes:
  [S1] Signing secrets shorter than 32 chars are rejected outright. HS256
       relies on key entropy -- a short key weakens every token we mint.

  [S2] The access and refresh secrets must differ. A shared secret would let a
       1-hour access token be replayed against /refresh-token as a 7-day
       refresh token.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or store/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("escc.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `access_token_secret` reads from ACCESS_TOKEN_SECRET.
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
    host: str = "0.0.0.0"  # nosec B104 -- bind address for the container
    port: int = 3000

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_ttl_seconds: int = 3600  # 1 hour
    refresh_token_ttl_seconds: int = 7 * 24 * 3600  # 7 days

    # ------------------------------------------------------------------
    # External store (SQL Server stored procedures)
    # ------------------------------------------------------------------

    database_url: str = "mssql+pyodbc://@localhost:1433/escc?driver=ODBC+Driver+18+for+SQL+Server&TrustServerCertificate=yes&Trusted_Connection=yes"
    db_connect_timeout: int = 60
    # Per-statement timeout. A hung procedure call fails after this many
    # seconds instead of pinning a worker thread forever.
    db_request_timeout: int = 60
    db_pool_size: int = 10
    db_max_overflow: int = 190
    db_pool_recycle_seconds: int = 2400

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    cors_allow_origins: list[str] = ["*"]
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the signing secret policy [S1] [S2].

        Dev mode (DEBUG=true): auto-generate any missing secret with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            secret is missing.
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            value = getattr(self, name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, name, value)
                logger.warning("WARNING: Using auto-generated %s. Tokens will not persist across restarts.", name.upper())
            if len(value) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.access_token_ttl_seconds <= 0 or self.refresh_token_ttl_seconds <= 0:
            raise ValueError("Token TTLs must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
