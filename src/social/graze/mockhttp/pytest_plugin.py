"""
pytest fixtures for middleware tests.

Enable in a conftest.py with:

    pytest_plugins = ["social.graze.mockhttp.pytest_plugin"]
"""

from typing import Tuple

import pytest

from social.graze.mockhttp.config import Settings
from social.graze.mockhttp.middleware import make_mocked_pair
from social.graze.mockhttp.request import MockRequest
from social.graze.mockhttp.response import MockResponse


@pytest.fixture
def mockhttp_settings() -> Settings:
    """Settings read from the MOCKHTTP_* environment of the test run."""
    return Settings()


@pytest.fixture
def mock_request(mockhttp_settings: Settings) -> MockRequest:
    """A GET / request with an empty body."""
    return MockRequest(settings=mockhttp_settings)


@pytest.fixture
def mock_response(mockhttp_settings: Settings) -> MockResponse:
    """A fresh response with nothing written."""
    return MockResponse(settings=mockhttp_settings)


@pytest.fixture
def mocked_pair() -> Tuple[MockRequest, MockResponse]:
    return make_mocked_pair()
