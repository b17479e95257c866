"""pytest fixtures for HTTP request interception.

The plugin is registered through the ``pytest11`` entry point, so the
fixtures are available as soon as the package is installed:

    def test_ping(http_interceptor, intercepted_client):
        http_interceptor.register_get("https://api.x/ping", "pong")
        assert intercepted_client.get("https://api.x/ping").text == "pong"
"""

from collections.abc import Iterator

import httpx
import pytest

from http_interception.registry import InterceptorRegistry


@pytest.fixture
def http_interceptor() -> InterceptorRegistry:
    """A fresh registry that fails requests it has no registration for."""
    return InterceptorRegistry(throw_on_missing_registration=True)


@pytest.fixture
def intercepted_client(
    http_interceptor: InterceptorRegistry,
) -> Iterator[httpx.Client]:
    """An httpx.Client whose requests are answered by ``http_interceptor``."""
    with http_interceptor.create_client() as client:
        yield client
