"""
Shared test configuration and fixtures for mockhttp tests.

Re-exports the fixtures of the package's own pytest plugin and provides the sample headers
used across the request and response test files.
"""

import pytest

from social.graze.mockhttp.pytest_plugin import (  # noqa: F401
    mock_request,
    mock_response,
    mocked_pair,
    mockhttp_settings,
)


SAMPLE_HEADERS = {
    "user_agent": ("User-Agent", "Mozilla/5.0"),
    "cache_control": ("Cache-Control", "max-age=300"),
    "set_cookie": ("Set-Cookie", ["session=dadadada", "token=fefufefu"]),
    "connection": ("Connection", "keep-alive"),
}


@pytest.fixture
def sample_headers():
    """Name/value pairs with mixed casing, including a multi-valued Set-Cookie."""
    return dict(SAMPLE_HEADERS)


@pytest.fixture(autouse=True)
def clean_mockhttp_environment(monkeypatch):
    """Keep MOCKHTTP_* variables of the surrounding shell out of the tests."""
    for name in (
        "MOCKHTTP_REMOTE_ADDRESS",
        "MOCKHTTP_REMOTE_PORT",
        "MOCKHTTP_HTTP_VERSION",
        "MOCKHTTP_HIGH_WATER_MARK",
        "MOCKHTTP_SEND_DATE",
    ):
        monkeypatch.delenv(name, raising=False)
