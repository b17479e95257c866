"""Synchronous intercepting transport.

InterceptingTransport plugs an InterceptorRegistry into httpx.Client. Each
request moves through these states:

    Received -> Matched -> ResponseBuilt -> Delivered
    Received -> Unmatched -> FallThrough | Fail

An unmatched request is offered to the registry's missing-registration hook
first. If that does not answer it, the request either fails (when the
registry throws on missing registrations) or is sent through the inner
transport. With no inner transport configured it fails with
TransportNotConfiguredException.

Errors raised while materializing content propagate to the caller of the
request unchanged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from http_interception.common.content import materialize
from http_interception.common.exceptions import TransportNotConfiguredException
from http_interception.common.interceptors import SyncInterceptor
from http_interception.data_types import MatchRule
from http_interception.transport.responses import (
    build_response,
    ensure_sync,
    not_intercepted,
)

if TYPE_CHECKING:
    from http_interception.registry import InterceptorRegistry

logger = logging.getLogger(__name__)


class InterceptingTransport(httpx.BaseTransport):
    """httpx transport that answers requests from an InterceptorRegistry.

    Example:
        registry = InterceptorRegistry()
        registry.register_get("https://api.x/ping", "pong")
        client = httpx.Client(transport=InterceptingTransport(registry))
    """

    def __init__(
        self,
        registry: InterceptorRegistry,
        inner: httpx.BaseTransport | None = None,
        interceptors: list[SyncInterceptor] | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            registry: Registry to answer requests from.
            inner: Transport for unmatched requests, used only when the
                registry does not throw on missing registrations.
            interceptors: Hooks applied in order to requests and in reverse
                order to responses.
        """
        self.registry = registry
        self.inner = inner
        self.interceptors = interceptors or []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        response: httpx.Response | None = None
        for interceptor in self.interceptors:
            result = interceptor.modify_request(request)
            if isinstance(result, httpx.Response):
                response = result
                break
            request = result

        if response is None:
            response = self._respond(request)

        for interceptor in reversed(self.interceptors):
            response = interceptor.modify_response(response, request)
        return response

    def _respond(self, request: httpx.Request) -> httpx.Response:
        registry = self.registry
        if registry.on_send is not None:
            ensure_sync(registry.on_send(request), "on_send")

        rule = registry.match(request)
        if rule is not None and self._accepts(rule, request):
            body = materialize(rule.content)
            return build_response(rule, request, body)

        if registry.on_missing_registration is not None:
            fallback = ensure_sync(
                registry.on_missing_registration(request), "on_missing_registration"
            )
            if fallback is not None:
                return fallback

        if registry.throw_on_missing_registration:
            raise not_intercepted(request)

        if self.inner is None:
            raise TransportNotConfiguredException(request)

        logger.debug(f"Passing {request.method} {request.url} to the inner transport")
        return self.inner.handle_request(request)

    def _accepts(self, rule: MatchRule, request: httpx.Request) -> bool:
        if rule.on_intercepted is None:
            return True
        result = ensure_sync(rule.on_intercepted(request), "on_intercepted")
        if result is False:
            logger.debug(f"Interception declined by callback for {rule.describe()}")
            return False
        return True

    def close(self) -> None:
        if self.inner is not None:
            self.inner.close()
