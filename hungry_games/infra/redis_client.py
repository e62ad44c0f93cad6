from __future__ import annotations

import os

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def get_redis_url() -> str:
    """HUNGRY_GAMES_REDIS_URL wins over the generic REDIS_URL."""

    return os.environ.get("HUNGRY_GAMES_REDIS_URL") or os.environ.get("REDIS_URL", DEFAULT_REDIS_URL)


def _socket_timeout() -> float | None:
    raw = os.environ.get("HUNGRY_GAMES_REDIS_TIMEOUT_S", "").strip()
    return float(raw) if raw else None


def create_redis() -> redis.Redis:
    # Instance documents and stream fields are JSON/str; decode on the way out.
    return redis.Redis.from_url(get_redis_url(), decode_responses=True, socket_timeout=_socket_timeout())
