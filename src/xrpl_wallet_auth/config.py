"""Configuration settings for the wallet authentication service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from .errors import ConfigError

DEFAULT_XUMM_API_URL = "https://xumm.app/api/v1/platform"
SESSION_TTL_SECONDS = 7 * 24 * 60 * 60
NONCE_TTL_SECONDS = 60 * 60


@dataclass(frozen=True)
class Settings:
    """Process-wide, read-only configuration.

    Built once at startup and handed to every component that needs it. Missing
    secrets are allowed here; they surface as ConfigError when an operation
    actually needs them.
    """

    session_secret: str | None = None
    xumm_api_key: str | None = None
    xumm_api_secret: str | None = None
    xumm_api_url: str = DEFAULT_XUMM_API_URL
    session_ttl: int = SESSION_TTL_SECONDS
    nonce_ttl: int = NONCE_TTL_SECONDS
    http_timeout: float = 30.0
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 10000
    dev_mode: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            session_secret=env.get("ENC_KEY") or None,
            xumm_api_key=env.get("XUMM_KEY") or None,
            xumm_api_secret=env.get("XUMM_KEY_SECRET") or None,
            xumm_api_url=env.get("XUMM_API_URL", DEFAULT_XUMM_API_URL).rstrip("/"),
            session_ttl=int(env.get("SESSION_TTL_SECONDS", SESSION_TTL_SECONDS)),
            nonce_ttl=int(env.get("NONCE_TTL_SECONDS", NONCE_TTL_SECONDS)),
            http_timeout=float(env.get("XUMM_HTTP_TIMEOUT", "30")),
            host=env.get("AUTH_HOST", "0.0.0.0"),  # noqa: S104
            port=int(env.get("AUTH_PORT", "10000")),
            dev_mode=env.get("AUTH_DEV_MODE", "").lower() == "true",
        )

    def require_session_secret(self) -> str:
        if not self.session_secret:
            raise ConfigError("Server configuration error")
        return self.session_secret

    def require_xumm_credentials(self) -> tuple[str, str]:
        if not self.xumm_api_key or not self.xumm_api_secret:
            raise ConfigError("XUMM API keys not configured")
        return self.xumm_api_key, self.xumm_api_secret
