"""Shared fixtures for Device Tools tests."""

import os

import pytest

from device_tools.config import Settings, get_settings

TEST_ENV = {
    "EXA_API_KEY": "test-exa-key",
    "ANTHROPIC_API_KEY": "test-anthropic-key",
}


@pytest.fixture(autouse=True, scope="session")
def _test_env():
    """Provide dummy API keys to code that reads the cached settings.

    Keys already exported in the shell win, so the suite can run against
    real services when they are set.
    """
    with pytest.MonkeyPatch.context() as mp:
        for key, value in TEST_ENV.items():
            if key not in os.environ:
                mp.setenv(key, value)
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        exa_api_key="test-exa-key",
        anthropic_api_key="test-anthropic-key",
        http_timeout=5.0,
    )
