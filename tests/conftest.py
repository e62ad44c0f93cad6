from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` by default so a developer's local
    overrides (REDIS_URL, template path) never leak into the suite.
    """

    # Opt-in in CI with: HUNGRY_GAMES_LOAD_DOTENV_FOR_TESTS=1
    if os.environ.get("CI") and os.environ.get("HUNGRY_GAMES_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(scope="session", autouse=True)
def _init_templates_from_test_fixtures(_load_dotenv_for_tests: None) -> None:
    """Initialize templates from `tests/assets` and forbid the built-in fallback.

    This keeps tests hermetic and prevents coupling to the repo's real event library.
    """

    os.environ["HUNGRY_GAMES_STRICT_TEMPLATES"] = "1"
    os.environ.pop("HUNGRY_GAMES_TEMPLATES_PATH", None)

    from hungry_games.templates.singleton import init_templates, reset_templates_for_tests

    reset_templates_for_tests()

    # Point the template loader at a fake project root: tests/ contains an assets/ dir.
    test_root = Path(__file__).resolve().parent
    init_templates(project_root=test_root)


@pytest.fixture()
def client_and_redis():
    """FastAPI TestClient wired to a fresh fakeredis."""

    import fakeredis
    from fastapi.testclient import TestClient

    from hungry_games.api.deps import get_redis
    from hungry_games.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
