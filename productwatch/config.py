"""Environment-driven settings for the monitoring agent."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_DATABASE_URL = "sqlite:///product_watch.db"
DEFAULT_FROM_EMAIL = "no-reply@productwatch.local"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    sendgrid_api_key: Optional[str] = None
    notification_from_email: str = DEFAULT_FROM_EMAIL
    fetch_timeout: float = 15.0
    watch_poll_interval: float = 60.0
    event_poll_interval: float = 5.0
    event_batch_size: int = 50
    watch_concurrency: int = 4


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from the environment, falling back to defaults."""
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        database_url=_text(env, "DATABASE_URL") or defaults.database_url,
        sendgrid_api_key=_text(env, "SENDGRID_API_KEY"),
        notification_from_email=(
            _text(env, "NOTIFICATION_FROM_EMAIL") or defaults.notification_from_email
        ),
        fetch_timeout=_number(env, "FETCH_TIMEOUT", defaults.fetch_timeout),
        watch_poll_interval=_number(
            env, "WATCH_POLL_INTERVAL", defaults.watch_poll_interval
        ),
        event_poll_interval=_number(
            env, "EVENT_POLL_INTERVAL", defaults.event_poll_interval
        ),
        event_batch_size=int(
            _number(env, "EVENT_BATCH_SIZE", defaults.event_batch_size)
        ),
        watch_concurrency=int(
            _number(env, "WATCH_CONCURRENCY", defaults.watch_concurrency)
        ),
    )


def _text(env: Mapping[str, str], name: str) -> Optional[str]:
    value = (env.get(name) or "").strip()
    return value or None


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _text(env, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value
