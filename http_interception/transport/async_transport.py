"""Asynchronous intercepting transport.

AsyncInterceptingTransport mirrors InterceptingTransport for
httpx.AsyncClient with three differences:
1. Predicates, callbacks and hooks may be coroutine functions
2. Content is materialized with amaterialize, so async factories run on the
   caller's event loop
3. Cancelling the request cancels materialization; the registry is never
   touched by a request, so cancellation cannot leave it inconsistent
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

import httpx

from http_interception.common.content import amaterialize
from http_interception.common.exceptions import TransportNotConfiguredException
from http_interception.common.interceptors import AsyncInterceptor
from http_interception.data_types import MatchRule
from http_interception.transport.responses import build_response, not_intercepted

if TYPE_CHECKING:
    from http_interception.registry import InterceptorRegistry

logger = logging.getLogger(__name__)


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class AsyncInterceptingTransport(httpx.AsyncBaseTransport):
    """httpx async transport that answers requests from an InterceptorRegistry."""

    def __init__(
        self,
        registry: InterceptorRegistry,
        inner: httpx.AsyncBaseTransport | None = None,
        interceptors: list[AsyncInterceptor] | None = None,
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

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        response: httpx.Response | None = None
        for interceptor in self.interceptors:
            result = await interceptor.modify_request(request)
            if isinstance(result, httpx.Response):
                response = result
                break
            request = result

        if response is None:
            response = await self._respond(request)

        for interceptor in reversed(self.interceptors):
            response = await interceptor.modify_response(response, request)
        return response

    async def _respond(self, request: httpx.Request) -> httpx.Response:
        registry = self.registry
        if registry.on_send is not None:
            await _resolve(registry.on_send(request))

        rule = await registry.amatch(request)
        if rule is not None and await self._accepts(rule, request):
            body = await amaterialize(rule.content)
            return build_response(rule, request, body)

        if registry.on_missing_registration is not None:
            fallback = await _resolve(registry.on_missing_registration(request))
            if fallback is not None:
                return fallback

        if registry.throw_on_missing_registration:
            raise not_intercepted(request)

        if self.inner is None:
            raise TransportNotConfiguredException(request)

        logger.debug(f"Passing {request.method} {request.url} to the inner transport")
        return await self.inner.handle_async_request(request)

    async def _accepts(self, rule: MatchRule, request: httpx.Request) -> bool:
        if rule.on_intercepted is None:
            return True
        result = await _resolve(rule.on_intercepted(request))
        if result is False:
            logger.debug(f"Interception declined by callback for {rule.describe()}")
            return False
        return True

    async def aclose(self) -> None:
        if self.inner is not None:
            await self.inner.aclose()
