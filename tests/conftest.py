"""Shared pytest fixtures."""

import pytest

SETTINGS_ENV = (
    "GITHUB_TOKEN",
    "GITHUB_REPO",
    "GITHUB_BRANCH",
    "DATA_FILE",
    "DEFAULT_GROUP",
    "CONFLICT_RETRIES",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch):
    """Keep the developer's environment out of the settings under test."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
