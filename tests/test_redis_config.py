from __future__ import annotations

import pytest

from hungry_games.infra.redis_client import DEFAULT_REDIS_URL, get_redis_url


def test_redis_url_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HUNGRY_GAMES_REDIS_URL", raising=False)
    monkeypatch.delenv("REDIS_URL", raising=False)
    assert get_redis_url() == DEFAULT_REDIS_URL

    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
    assert get_redis_url() == "redis://cache:6379/1"

    monkeypatch.setenv("HUNGRY_GAMES_REDIS_URL", "redis://games:6379/2")
    assert get_redis_url() == "redis://games:6379/2"
