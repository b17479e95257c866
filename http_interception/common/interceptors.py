"""Interceptor protocol for request/response hooks on the intercepting transports.

Hooks implement the middleware pattern around registry matching. They see
every request before the registry does and every response before the
client does, whether the response came from a registration, from the
missing-registration hook or from the inner transport.

Key behaviors:
- modify_request() returns an httpx.Request to continue, or an
  httpx.Response to short-circuit matching and the inner transport
- Short-circuiting skips the remaining request hooks
- modify_response() runs in reverse order, so the first hook sees the
  response last
- Short-circuited responses still go through the response chain
"""

from collections.abc import Awaitable
from typing import Protocol

import httpx


class SyncInterceptor(Protocol):
    """Protocol for hooks used with InterceptingTransport."""

    def modify_request(self, request: httpx.Request) -> httpx.Request | httpx.Response:
        """Modify request before it is matched, or short-circuit with a response.

        Args:
            request: The outgoing request.

        Returns:
            httpx.Request to continue the chain, or httpx.Response to
            short-circuit.
        """
        return request

    def modify_response(
        self, response: httpx.Response, request: httpx.Request
    ) -> httpx.Response:
        """Modify response before it is returned to the client.

        Args:
            response: The response to modify.
            request: The request that produced this response.

        Returns:
            Modified response.
        """
        return response


class AsyncInterceptor(Protocol):
    """Protocol for hooks used with AsyncInterceptingTransport."""

    def modify_request(
        self, request: httpx.Request
    ) -> Awaitable[httpx.Request | httpx.Response]:
        """Modify request before it is matched, or short-circuit with a response."""
        ...

    def modify_response(
        self, response: httpx.Response, request: httpx.Request
    ) -> Awaitable[httpx.Response]:
        """Modify response before it is returned to the client."""
        ...
