"""Data types for HTTP request interception.

This module defines the immutable values shared by the registry, the
matcher and the transports:

1. MatchRule - how to recognize a request and what to answer it with
2. Fingerprint - the identity used to replace an earlier registration
3. HttpMethod - the common HTTP methods, for readability at call sites

Rules are frozen dataclasses. A rule is never modified once built, so
requests being matched on other threads never observe a half-configured
rule.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

import httpx

from http_interception.common.content import EMPTY_CONTENT, ContentSource
from http_interception.common.exceptions import ConfigurationException

RequestPredicate = Callable[[httpx.Request], bool | Awaitable[bool]]
ContentPredicate = Callable[[bytes], bool | Awaitable[bool]]
InterceptionCallback = Callable[
    [httpx.Request], bool | None | Awaitable[bool | None]
]

# Header name -> values, in registration order. Names keep the caller's
# casing for response headers; request header requirements are lower-cased.
HeaderItems = tuple[tuple[str, tuple[str, ...]], ...]
HeadersInput = Mapping[str, str | Iterable[str]]


class HttpMethod(Enum):
    """HTTP methods commonly registered for interception."""

    GET = "GET"
    OPTIONS = "OPTIONS"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


def normalize_method(method: str | HttpMethod | None) -> str:
    """Return the upper-case method token for ``method``.

    Raises:
        ConfigurationException: If no method is given.
    """
    if isinstance(method, HttpMethod):
        return method.value
    if not method or not method.strip():
        raise ConfigurationException("An HTTP method must be configured.")
    return method.strip().upper()


def to_absolute_url(uri: str | httpx.URL | None, item_id: str | None = None) -> httpx.URL:
    """Parse ``uri`` and check that it is absolute.

    Args:
        uri: The URI to parse.
        item_id: Identifier used in error messages.

    Returns:
        The parsed URL.

    Raises:
        ConfigurationException: If the URI is missing, unparsable or relative.
    """
    if uri is None:
        raise ConfigurationException(
            "A request URI must be configured.", item_id=item_id
        )
    try:
        url = uri if isinstance(uri, httpx.URL) else httpx.URL(uri)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationException(
            f"The request URI '{uri}' is not a valid URI: {e}",
            item_id=item_id,
            context={"uri": str(uri)},
        ) from e
    if not url.is_absolute_url or not url.host:
        raise ConfigurationException(
            f"The request URI '{uri}' is not an absolute URI.",
            item_id=item_id,
            context={"uri": str(uri)},
        )
    return url


def normalize_headers(
    headers: HeadersInput | None, lower_names: bool = False
) -> HeaderItems:
    """Convert a header mapping to an immutable, multi-valued form.

    A single string value becomes a one-element tuple. Later entries with the
    same (case-insensitive) name replace earlier ones.

    Args:
        headers: Header names mapped to a value or an iterable of values.
        lower_names: Whether to lower-case the header names.

    Returns:
        A tuple of ``(name, values)`` pairs.
    """
    if not headers:
        return ()
    merged: dict[str, tuple[str, tuple[str, ...]]] = {}
    for name, values in headers.items():
        if isinstance(values, str):
            values = (values,)
        key = name.lower()
        merged[key] = (key if lower_names else name, tuple(values))
    return tuple(merged.values())


@dataclass(frozen=True)
class Fingerprint:
    """Identity of a registration.

    Registering a rule whose fingerprint equals an existing one replaces it.
    Header requirements and custom predicates are part of the identity, so
    rules for the same URI that differ only in the headers they require
    coexist.
    """

    method: str
    uri: str
    ignore_host: bool = False
    ignore_path: bool = False
    ignore_query: bool = False
    request_headers: frozenset[tuple[str, frozenset[str]]] = frozenset()
    predicate: object | None = None
    content_predicate: object | None = None


@dataclass(frozen=True)
class MatchRule:
    """An immutable request/response mapping.

    Attributes:
        method: HTTP method, upper-case; matched case-insensitively.
        uri: Absolute URI of the requests to intercept.
        ignore_host: Whether the host is left out of URI matching.
        ignore_path: Whether the path is left out of URI matching.
        ignore_query: Whether the query string is left out of URI matching.
        request_headers: Headers a request must carry, with their values.
        predicate: Extra test over the whole request, run last.
        content_predicate: Extra test over the request body.
        priority: Higher values win; None ranks as 0.
        status_code: Response status code.
        reason_phrase: Optional response reason phrase.
        http_version: Optional response HTTP version, e.g. "1.1" or "2.0".
        response_headers: Headers set on the response.
        content_headers: Headers describing the content, e.g. Content-Language.
        content: Source of the response body and its media type.
        on_intercepted: Callback run after a match; returning False declines it.
        id: Diagnostic identifier.
        comment: Diagnostic comment.
        skip: Whether the rule is kept but never matched.
    """

    method: str
    uri: httpx.URL
    ignore_host: bool = False
    ignore_path: bool = False
    ignore_query: bool = False
    request_headers: HeaderItems = ()
    predicate: RequestPredicate | None = None
    content_predicate: ContentPredicate | None = None
    priority: int | None = None
    status_code: int = 200
    reason_phrase: str | None = None
    http_version: str | None = None
    response_headers: HeaderItems = ()
    content_headers: HeaderItems = ()
    content: ContentSource = field(default=EMPTY_CONTENT)
    on_intercepted: InterceptionCallback | None = None
    id: str | None = None
    comment: str | None = None
    skip: bool = False

    def __post_init__(self) -> None:
        """Normalize the method, URI and request header requirements.

        Raises:
            ConfigurationException: If a field is missing or invalid.
        """
        # Since the dataclass is frozen, we need to use object.__setattr__
        object.__setattr__(self, "method", normalize_method(self.method))
        object.__setattr__(self, "uri", to_absolute_url(self.uri, self.id))
        requirements = normalize_headers(
            dict(self.request_headers), lower_names=True
        )
        for name, values in requirements:
            if not values:
                raise ConfigurationException(
                    f"The request header '{name}' must have at least one value.",
                    item_id=self.id,
                )
        object.__setattr__(self, "request_headers", requirements)
        if self.reason_phrase is not None and not self.reason_phrase.isascii():
            raise ConfigurationException(
                f"The reason phrase '{self.reason_phrase}' must be ASCII text.",
                item_id=self.id,
            )

    @property
    def effective_priority(self) -> int:
        return self.priority if self.priority is not None else 0

    @property
    def fingerprint(self) -> Fingerprint:
        return Fingerprint(
            method=self.method,
            uri=str(self.uri),
            ignore_host=self.ignore_host,
            ignore_path=self.ignore_path,
            ignore_query=self.ignore_query,
            request_headers=frozenset(
                (name, frozenset(values)) for name, values in self.request_headers
            ),
            predicate=self.predicate,
            content_predicate=self.content_predicate,
        )

    def describe(self) -> str:
        """Short human-readable description for log messages."""
        label = f"{self.method} {self.uri}"
        if self.id:
            label = f"{label} (id={self.id})"
        return label
