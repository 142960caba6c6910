"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for PostGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_private_key -> ACCESS_TOKEN_PRIVATE_KEY).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the signing key policy: dev mode
      generates an ephemeral RSA key pair per token role with a warning,
      production mode refuses to start without all four keys.

Key material:
  The four *_KEY settings hold base64-encoded PEM. They are base64-checked
  here at startup; auth/tokens.py decodes them into a KeyRing once per process.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or posts/.
"""

import base64
import binascii
import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("postgate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'postgate.db'}"

_KEY_FIELDS = (
    "access_token_private_key",
    "access_token_public_key",
    "refresh_token_private_key",
    "refresh_token_public_key",
)


def generate_key_pair(key_size: int = 2048) -> tuple[str, str]:
    """Return a fresh RSA key pair as (private, public) base64-encoded PEM strings.

    Shared by the dev-mode fallback below and `python main.py keygen`.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(private_pem).decode("ascii"), base64.b64encode(public_pem).decode("ascii")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    environment: Literal["development", "production"] = "development"
    port: int = 8000

    # ------------------------------------------------------------------
    # Token signing keys (base64-encoded PEM). Empty string = not configured.
    # ------------------------------------------------------------------

    access_token_private_key: str = ""
    access_token_public_key: str = ""
    refresh_token_private_key: str = ""
    refresh_token_public_key: str = ""

    # Lifetimes in minutes. Refresh lifetime also bounds the Redis session TTL.
    access_token_expires_in: int = Field(default=15, gt=0)
    refresh_token_expires_in: int = Field(default=60, gt=0)

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    # bcrypt work factor. Read at hash time, so raising it takes effect for
    # every password written after the next settings reload.
    cost_factor: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    db_connect_retry_seconds: float = 5.0

    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 5.0
    session_key_prefix: str = "session:"

    # ------------------------------------------------------------------
    # Cookies and HTTP
    # ------------------------------------------------------------------

    cookie_domain: Optional[str] = None
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    secure_cookies: bool = False

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def cookie_secure(self) -> bool:
        """Secure flag for auth cookies. Always on in production."""
        return self.secure_cookies or self.environment == "production"

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.access_token_expires_in * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.refresh_token_expires_in * 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy.

        Dev mode (DEBUG=true): any missing key pair is replaced with an
            ephemeral RSA pair. Tokens will not survive restart -- acceptable
            for local dev.

        Production mode (DEBUG=false or not set): refuse to start if any of
            the four keys is missing.

        Both modes: every configured key must be valid base64.
        """
        missing = [name for name in _KEY_FIELDS if not getattr(self, name)]
        if missing:
            if not self.debug:
                raise ValueError(
                    f"Missing token signing keys: {', '.join(k.upper() for k in missing)}. "
                    "Generate them with `python main.py keygen`. "
                    "To run in development mode, set DEBUG=true."
                )
            for role in ("access", "refresh"):
                private_field = f"{role}_token_private_key"
                public_field = f"{role}_token_public_key"
                if getattr(self, private_field) and getattr(self, public_field):
                    continue
                private_b64, public_b64 = generate_key_pair()
                setattr(self, private_field, private_b64)
                setattr(self, public_field, public_b64)
            logger.warning("WARNING: Using auto-generated token signing keys. Sessions will not persist across restarts.")

        for name in _KEY_FIELDS:
            try:
                base64.b64decode(getattr(self, name), validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"{name.upper()} must be base64-encoded PEM.") from exc
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
