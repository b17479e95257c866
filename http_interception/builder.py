"""Fluent builder for match rules.

InterceptionBuilder collects the request criteria and the response to
return, one chained call at a time, and freezes them into an immutable
MatchRule when built or registered. The builder itself is mutable and is
not meant to be shared between threads; the rules it builds are.

Example:
    builder = (
        InterceptionBuilder()
        .for_get()
        .for_https()
        .for_host("api.github.com")
        .for_path("orgs/acme")
        .for_request_header("Authorization", "Bearer T")
        .with_json_content({"login": "acme"})
    )
    registry.register(builder)
"""

from __future__ import annotations

import inspect
import json
from collections.abc import Callable, Iterable, Mapping
from functools import partial
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from http_interception.common.content import (
    EMPTY_CONTENT,
    FORM_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    AsyncFactoryContent,
    BytesFactoryContent,
    ContentSource,
    StaticContent,
    StreamFactoryContent,
)
from http_interception.data_types import (
    ContentPredicate,
    HeadersInput,
    HttpMethod,
    InterceptionCallback,
    MatchRule,
    RequestPredicate,
    normalize_headers,
    normalize_method,
    to_absolute_url,
)

if TYPE_CHECKING:
    from http_interception.registry import InterceptorRegistry

ContentFactoryInput = bytes | str | Callable[[], Any] | None


def _all_of(predicates: tuple[RequestPredicate, ...]) -> RequestPredicate:
    """Combine predicates so that a request must satisfy all of them."""
    if any(inspect.iscoroutinefunction(p) for p in predicates):

        async def combined_async(request: httpx.Request) -> bool:
            for predicate in predicates:
                result = predicate(request)
                if inspect.isawaitable(result):
                    result = await result
                if not result:
                    return False
            return True

        return combined_async

    def combined(request: httpx.Request) -> bool:
        return all(predicate(request) for predicate in predicates)

    return combined


class InterceptionBuilder:
    """Staged builder for a MatchRule.

    Defaults: GET ``http://localhost/``, status 200, an empty body declared
    as ``application/json``.
    """

    def __init__(self) -> None:
        self._method: str = HttpMethod.GET.value
        self._uri: httpx.URL = httpx.URL("http://localhost/")
        self._ignore_host = False
        self._ignore_path = False
        self._ignore_query = False
        self._request_headers: dict[str, tuple[str, tuple[str, ...]]] = {}
        self._predicate: RequestPredicate | None = None
        self._content_predicate: ContentPredicate | None = None
        self._priority: int | None = None
        self._status_code = 200
        self._reason_phrase: str | None = None
        self._http_version: str | None = None
        self._response_headers: dict[str, tuple[str, tuple[str, ...]]] = {}
        self._content_headers: dict[str, tuple[str, tuple[str, ...]]] = {}
        self._media_type = JSON_MEDIA_TYPE
        self._content: Callable[..., ContentSource] | None = None
        self._on_intercepted: InterceptionCallback | None = None
        self._id: str | None = None
        self._comment: str | None = None
        self._skip = False

    # -- request criteria -------------------------------------------------

    def for_method(self, method: str | HttpMethod) -> InterceptionBuilder:
        self._method = normalize_method(method)
        return self

    def for_get(self) -> InterceptionBuilder:
        return self.for_method(HttpMethod.GET)

    def for_post(self) -> InterceptionBuilder:
        return self.for_method(HttpMethod.POST)

    def for_put(self) -> InterceptionBuilder:
        return self.for_method(HttpMethod.PUT)

    def for_patch(self) -> InterceptionBuilder:
        return self.for_method(HttpMethod.PATCH)

    def for_delete(self) -> InterceptionBuilder:
        return self.for_method(HttpMethod.DELETE)

    def for_uri(self, uri: str | httpx.URL) -> InterceptionBuilder:
        """Match requests for an absolute URI.

        Raises:
            ConfigurationException: If the URI is not absolute.
        """
        self._uri = to_absolute_url(uri, self._id)
        self._ignore_host = False
        return self

    def for_scheme(self, scheme: str) -> InterceptionBuilder:
        self._uri = self._uri.copy_with(scheme=scheme)
        return self

    def for_http(self) -> InterceptionBuilder:
        return self.for_scheme("http")

    def for_https(self) -> InterceptionBuilder:
        return self.for_scheme("https")

    def for_host(self, host: str) -> InterceptionBuilder:
        self._uri = self._uri.copy_with(host=host)
        self._ignore_host = False
        return self

    def for_any_host(self) -> InterceptionBuilder:
        """Match requests for any host; scheme, port and path still apply."""
        self._ignore_host = True
        return self

    def for_port(self, port: int | None) -> InterceptionBuilder:
        self._uri = self._uri.copy_with(port=port)
        return self

    def for_path(self, path: str) -> InterceptionBuilder:
        if not path.startswith("/"):
            path = f"/{path}"
        self._uri = self._uri.copy_with(path=path)
        return self

    def for_query(self, query: str) -> InterceptionBuilder:
        self._uri = self._uri.copy_with(query=query.lstrip("?").encode("utf-8"))
        return self

    def ignoring_path(self, ignore_path: bool = True) -> InterceptionBuilder:
        self._ignore_path = ignore_path
        return self

    def ignoring_query(self, ignore_query: bool = True) -> InterceptionBuilder:
        self._ignore_query = ignore_query
        return self

    def for_request_header(self, name: str, *values: str) -> InterceptionBuilder:
        """Require a header on the request.

        Args:
            name: Header name, matched case-insensitively.
            *values: Values the header must carry, in any order. At least
                one is required.

        Raises:
            ValueError: If the name or the values are missing.
        """
        if not name:
            raise ValueError("A request header name must be provided.")
        if not values:
            raise ValueError(f"At least one value is required for header '{name}'.")
        self._request_headers[name.lower()] = (name.lower(), tuple(values))
        return self

    def for_request_headers(self, headers: HeadersInput) -> InterceptionBuilder:
        self._request_headers = {
            name: (name, values)
            for name, values in normalize_headers(headers, lower_names=True)
        }
        return self

    def for_predicate(self, *predicates: RequestPredicate) -> InterceptionBuilder:
        """Require a custom test over the whole request.

        Several predicates may be given; all of them must pass. Calling with
        no predicates removes any predicate set earlier. Predicates may be
        coroutine functions when the rule is used through an async client.
        """
        match len(predicates):
            case 0:
                self._predicate = None
            case 1:
                self._predicate = predicates[0]
            case _:
                self._predicate = _all_of(predicates)
        return self

    def for_content(self, predicate: ContentPredicate | None) -> InterceptionBuilder:
        """Require a test over the request body; None removes it."""
        self._content_predicate = predicate
        return self

    def for_form_content(self, parameters: Mapping[str, str]) -> InterceptionBuilder:
        """Require a form-encoded body containing the given parameters.

        Extra parameters in the body are allowed. Bodies that are not form
        data simply do not match.
        """
        expected = dict(parameters)

        def is_match(body: bytes) -> bool:
            form = httpx.QueryParams(body.decode("utf-8", errors="replace"))
            return all(
                key in form and ",".join(form.get_list(key)) == value
                for key, value in expected.items()
            )

        return self.for_content(is_match)

    def having_priority(self, priority: int | None) -> InterceptionBuilder:
        """Set the priority; higher values are preferred when several rules match."""
        self._priority = priority
        return self

    # -- response ---------------------------------------------------------

    def with_status(self, status_code: int) -> InterceptionBuilder:
        self._status_code = int(status_code)
        return self

    def with_reason(self, reason_phrase: str | None) -> InterceptionBuilder:
        self._reason_phrase = reason_phrase
        return self

    def with_version(self, version: str | None) -> InterceptionBuilder:
        self._http_version = version
        return self

    def with_media_type(self, media_type: str) -> InterceptionBuilder:
        self._media_type = media_type
        return self

    def with_content(self, content: ContentFactoryInput) -> InterceptionBuilder:
        """Set the response body.

        Args:
            content: Bytes or text for a fixed body, a callable returning
                bytes, a coroutine function returning bytes, or None to
                clear the body.
        """
        match content:
            case None:
                self._content = None
            case bytes():
                self._content = partial(StaticContent, content)
            case str():
                self._content = partial(StaticContent, content.encode("utf-8"))
            case _ if inspect.iscoroutinefunction(content):
                self._content = partial(AsyncFactoryContent, content)
            case _ if callable(content):
                self._content = partial(BytesFactoryContent, content)
            case _:
                raise TypeError(f"Unsupported content type: {type(content).__name__}")
        return self

    def with_content_stream(self, factory: Callable[[], Any] | None) -> InterceptionBuilder:
        """Set the response body to the stream returned by ``factory``.

        The stream is read to the end and closed for every intercepted
        request, so the factory must return a new stream each time it is
        called. Coroutine functions are supported.
        """
        if factory is None:
            self._content = None
        elif inspect.iscoroutinefunction(factory):
            self._content = partial(AsyncFactoryContent, factory)
        else:
            self._content = partial(StreamFactoryContent, factory)
        return self

    def with_json_content(self, content: Any) -> InterceptionBuilder:
        """Serialize ``content`` to JSON for each intercepted request."""

        def serialize() -> bytes:
            return json.dumps(content).encode("utf-8")

        self._content = partial(BytesFactoryContent, serialize)
        return self.with_media_type(JSON_MEDIA_TYPE)

    def with_form_content(self, parameters: Mapping[str, str] | Iterable[tuple[str, str]]) -> InterceptionBuilder:
        body = urlencode(list(dict(parameters).items())).encode("ascii")
        self._content = partial(StaticContent, body)
        return self.with_media_type(FORM_MEDIA_TYPE)

    def with_response_header(self, name: str, *values: str) -> InterceptionBuilder:
        if not name:
            raise ValueError("A response header name must be provided.")
        self._response_headers[name.lower()] = (name, tuple(values))
        return self

    def with_response_headers(self, headers: HeadersInput) -> InterceptionBuilder:
        self._response_headers = {
            name.lower(): (name, values) for name, values in normalize_headers(headers)
        }
        return self

    def with_content_header(self, name: str, *values: str) -> InterceptionBuilder:
        if not name:
            raise ValueError("A content header name must be provided.")
        self._content_headers[name.lower()] = (name, tuple(values))
        return self

    def with_content_headers(self, headers: HeadersInput) -> InterceptionBuilder:
        self._content_headers = {
            name.lower(): (name, values) for name, values in normalize_headers(headers)
        }
        return self

    def with_interception_callback(
        self, callback: InterceptionCallback | None
    ) -> InterceptionBuilder:
        """Run ``callback`` whenever the rule matches.

        The callback receives the request. If it returns False (directly or
        by awaiting), the interception is declined and the request is handled
        as if nothing had matched.
        """
        self._on_intercepted = callback
        return self

    # -- diagnostics ------------------------------------------------------

    def with_id(self, item_id: str | None) -> InterceptionBuilder:
        self._id = item_id
        return self

    def with_comment(self, comment: str | None) -> InterceptionBuilder:
        self._comment = comment
        return self

    def skipped(self, skip: bool = True) -> InterceptionBuilder:
        self._skip = skip
        return self

    # -- terminal ---------------------------------------------------------

    def build(self) -> MatchRule:
        """Freeze the current configuration into a MatchRule.

        Raises:
            ConfigurationException: If the configuration is invalid.
        """
        content = (
            self._content(media_type=self._media_type)
            if self._content is not None
            else StaticContent(EMPTY_CONTENT.body, media_type=self._media_type)
        )
        return MatchRule(
            method=self._method,
            uri=self._uri,
            ignore_host=self._ignore_host,
            ignore_path=self._ignore_path,
            ignore_query=self._ignore_query,
            request_headers=tuple(self._request_headers.values()),
            predicate=self._predicate,
            content_predicate=self._content_predicate,
            priority=self._priority,
            status_code=self._status_code,
            reason_phrase=self._reason_phrase,
            http_version=self._http_version,
            response_headers=tuple(self._response_headers.values()),
            content_headers=tuple(self._content_headers.values()),
            content=content,
            on_intercepted=self._on_intercepted,
            id=self._id,
            comment=self._comment,
            skip=self._skip,
        )

    def register_with(self, registry: InterceptorRegistry) -> InterceptionBuilder:
        """Register the built rule with ``registry`` and return the builder."""
        registry.register(self)
        return self
