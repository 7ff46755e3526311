from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]
    max_body_bytes: int = 10 * 1024 * 1024
    default_limit: int = 50


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        # malformed values fall back to the default
        return default


def load_settings() -> Settings:
    """
    Build settings from the environment.
    PORT is kept unprefixed so the service runs unchanged on PaaS hosts that inject it.
    """
    origins = os.getenv("NOTIFY_CORS_ORIGINS", "*")
    return Settings(
        host=os.getenv("NOTIFY_HOST", "0.0.0.0"),
        port=_int_env("PORT", 3000),
        log_level=os.getenv("NOTIFY_LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] or ["*"],
        max_body_bytes=_int_env("NOTIFY_MAX_BODY_BYTES", 10 * 1024 * 1024),
        default_limit=_int_env("NOTIFY_DEFAULT_LIMIT", 50),
    )
