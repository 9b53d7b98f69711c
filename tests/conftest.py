"""Shared pytest configuration and fixtures."""

from collections.abc import Generator
from typing import Any
from unittest.mock import patch

import pytest

from gtm_traffic.config import Credentials, Settings, get_settings

TEST_HOST = "akab-test.luna.akamaiapis.net"


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that hit the real reporting API (requires .env with valid credentials)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="Need --run-e2e flag to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def _no_dotenv(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Block .env loading so tests never pick up real credentials.

    Sets Settings.model_config['env_file'] = None before each test (except e2e).
    """
    if "e2e" in request.keywords:
        yield
        return

    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def credentials_json() -> dict[str, Any]:
    return {
        "clientSecret": "dGVzdC1jbGllbnQtc2VjcmV0",
        "host": TEST_HOST,
        "accessToken": "akab-access-token-test",
        "clientToken": "akab-client-token-test",
    }


@pytest.fixture
def credentials(credentials_json: dict[str, Any]) -> Credentials:
    return Credentials.decode(credentials_json)


@pytest.fixture
def mock_settings() -> Generator[Settings, None, None]:
    """Provide fake settings so tests don't need a .env file.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = Settings(
        client_secret="dGVzdC1jbGllbnQtc2VjcmV0",
        host=TEST_HOST,
        access_token="akab-access-token-test",
        client_token="akab-client-token-test",
        request_timeout_seconds=5.0,
    )
    with (
        patch("gtm_traffic.config.get_settings", return_value=fake_settings),
        patch("gtm_traffic.datasource.get_settings", return_value=fake_settings),
        patch("gtm_traffic.reporting.client.get_settings", return_value=fake_settings),
    ):
        yield fake_settings
