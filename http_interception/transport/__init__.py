"""httpx transports that answer requests from an InterceptorRegistry."""

from http_interception.transport.async_transport import AsyncInterceptingTransport
from http_interception.transport.sync_transport import InterceptingTransport

__all__ = ["AsyncInterceptingTransport", "InterceptingTransport"]
