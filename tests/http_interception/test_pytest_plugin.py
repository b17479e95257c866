"""Tests for the fixtures provided by the pytest plugin."""

import httpx
import pytest

from http_interception.common.exceptions import RequestNotInterceptedException
from http_interception.registry import InterceptorRegistry


class TestPytestPlugin:
    """Tests for the http_interceptor and intercepted_client fixtures."""

    def test_http_interceptor_is_fresh_and_strict(
        self, http_interceptor: InterceptorRegistry
    ) -> None:
        """The fixture shall be an empty registry that throws on misses."""
        assert len(http_interceptor) == 0
        assert http_interceptor.throw_on_missing_registration

    def test_intercepted_client(
        self, http_interceptor: InterceptorRegistry, intercepted_client: httpx.Client
    ) -> None:
        """The client shall be answered by the fixture registry."""
        http_interceptor.register_get("https://api.x/ping", "pong")

        assert intercepted_client.get("https://api.x/ping").text == "pong"
        with pytest.raises(RequestNotInterceptedException):
            intercepted_client.get("https://api.x/missing")
