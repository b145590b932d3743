from __future__ import annotations

import os
from dataclasses import dataclass

from smartmarks.config import ConfigError


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    token: str | None = None
    retry_delay: float = 3.0
    poll_wait: float = 20.0
    http_timeout: float = 10.0

    @classmethod
    def from_env(cls, environ=None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        base_url = (env.get("SMARTMARKS_URL") or "").strip().rstrip("/")
        if not base_url:
            raise ConfigError("SMARTMARKS_URL must be set")
        try:
            return cls(
                base_url=base_url,
                token=(env.get("SMARTMARKS_TOKEN") or "").strip() or None,
                retry_delay=float(env.get("SMARTMARKS_RETRY_DELAY", "3")),
                poll_wait=float(env.get("SMARTMARKS_POLL_WAIT", "20")),
                http_timeout=float(env.get("SMARTMARKS_HTTP_TIMEOUT", "10")),
            )
        except ValueError as exc:
            raise ConfigError(f"invalid client setting: {exc}") from None
