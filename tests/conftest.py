from __future__ import annotations

import os

import pytest

from azure_ops import config


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep developer .env files and CI summaries out of unit test runs.
    os.environ.pop("GITHUB_STEP_SUMMARY", None)
    os.environ.pop("RETRY_BASE_DELAY", None)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()
