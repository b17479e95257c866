"""Response synthesis shared by the synchronous and asynchronous transports."""

import inspect
from typing import Any

import httpx

from http_interception.common.exceptions import (
    ConfigurationException,
    RequestNotInterceptedException,
)
from http_interception.data_types import MatchRule


def http_version_label(version: str) -> str:
    """Convert a dotted version such as "1.1" or "2.0" to "HTTP/1.1" or "HTTP/2"."""
    major, _, minor = version.partition(".")
    minor = minor.split(".")[0] if minor else "0"
    if int(major) >= 2 and int(minor) == 0:
        return f"HTTP/{int(major)}"
    return f"HTTP/{int(major)}.{int(minor)}"


def build_response(
    rule: MatchRule, request: httpx.Request, body: bytes
) -> httpx.Response:
    """Build the response a rule describes.

    Response headers come first, then content headers. A Content-Type
    header is added from the content source's media type unless a response
    or content header already sets one.

    Args:
        rule: The matched rule.
        request: The intercepted request.
        body: The materialized response body.

    Returns:
        The synthesized response.
    """
    headers: list[tuple[str, str]] = [
        (name, value) for name, values in rule.response_headers for value in values
    ]
    headers.extend(
        (name, value) for name, values in rule.content_headers for value in values
    )
    has_content_type = any(
        name.lower() == "content-type" for name, _ in headers
    )
    if rule.content.media_type and not has_content_type:
        headers.append(("Content-Type", rule.content.media_type))

    extensions: dict[str, Any] = {}
    if rule.reason_phrase is not None:
        extensions["reason_phrase"] = rule.reason_phrase.encode("ascii")
    if rule.http_version is not None:
        extensions["http_version"] = http_version_label(rule.http_version).encode(
            "ascii"
        )

    return httpx.Response(
        status_code=rule.status_code,
        headers=headers,
        content=body,
        request=request,
        extensions=extensions,
    )


def not_intercepted(request: httpx.Request) -> RequestNotInterceptedException:
    return RequestNotInterceptedException(
        f"No HTTP response is configured for {request.method} {request.url}.",
        request=request,
    )


def ensure_sync(result: Any, hook: str) -> Any:
    """Reject an awaitable returned to the synchronous transport.

    Raises:
        ConfigurationException: If ``result`` is awaitable.
    """
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise ConfigurationException(
            f"The {hook} hook is asynchronous and requires an async client."
        )
    return result
