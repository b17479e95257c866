"""Example interceptor implementations.

These hooks demonstrate the interceptor protocol and are handy when
debugging a test that does not get the response it expects.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class LoggingInterceptor:
    """Interceptor that logs requests and responses.

    This interceptor observes traffic without modifying it. Use
    AsyncLoggingInterceptor with the asynchronous transport.
    """

    def __init__(self, prefix: str = "", level: int = logging.INFO) -> None:
        """Initialize the logging interceptor.

        Args:
            prefix: Optional prefix for log messages.
            level: Logging level used for every message.
        """
        self.prefix = prefix
        self.level = level
        self.request_count = 0
        self.response_count = 0

    def modify_request(self, request: httpx.Request) -> httpx.Request | httpx.Response:
        """Log the request and return it unchanged."""
        self.request_count += 1
        logger.log(
            self.level,
            f"{self.prefix}Request #{self.request_count}: {request.method} {request.url}",
        )
        return request

    def modify_response(
        self, response: httpx.Response, request: httpx.Request
    ) -> httpx.Response:
        """Log the response and return it unchanged."""
        self.response_count += 1
        logger.log(
            self.level,
            f"{self.prefix}Response #{self.response_count}: "
            f"{response.status_code} from {request.url}",
        )
        return response


class AsyncLoggingInterceptor(LoggingInterceptor):
    """LoggingInterceptor for AsyncInterceptingTransport."""

    async def modify_request(  # type: ignore[override]
        self, request: httpx.Request
    ) -> httpx.Request | httpx.Response:
        return LoggingInterceptor.modify_request(self, request)

    async def modify_response(  # type: ignore[override]
        self, response: httpx.Response, request: httpx.Request
    ) -> httpx.Response:
        return LoggingInterceptor.modify_response(self, response, request)
