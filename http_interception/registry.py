"""The interception registry.

InterceptorRegistry stores registered rules and answers "which rule, if any,
handles this request?" for the transports. It is an ordinary object owned by
the caller, usually one per test fixture; there is no global registry.

Registrations are keyed by fingerprint. Registering a rule with the
fingerprint of an existing one replaces it and makes it the most recent
registration.

Concurrency: mutations take a short-held lock, update the keyed map and
publish a new immutable ranked snapshot. Matching reads the current snapshot
without locking, so in-flight requests see either the old or the new set of
rules, never a mix. No lock is held while predicates run or content is
materialized.
"""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from os import PathLike
from threading import Lock
from typing import IO, TYPE_CHECKING, Any

import httpx

from http_interception import matching
from http_interception.builder import InterceptionBuilder
from http_interception.bundles.loader import (
    aload_bundle_file,
    aload_bundle_stream,
    load_bundle_file,
    load_bundle_stream,
)
from http_interception.common.content import JSON_MEDIA_TYPE
from http_interception.data_types import (
    Fingerprint,
    HeadersInput,
    HttpMethod,
    MatchRule,
    normalize_method,
    to_absolute_url,
)
from http_interception.matching import RankedRule
from http_interception.transport.async_transport import (
    AsyncInterceptingTransport,
)
from http_interception.transport.sync_transport import InterceptingTransport

if TYPE_CHECKING:
    from http_interception.common.interceptors import (
        AsyncInterceptor,
        SyncInterceptor,
    )

logger = logging.getLogger(__name__)

SendHook = Callable[[httpx.Request], None | Awaitable[None]]
MissingRegistrationHook = Callable[
    [httpx.Request], httpx.Response | None | Awaitable[httpx.Response | None]
]


class InterceptorRegistry:
    """Registry of request interceptions.

    Attributes:
        throw_on_missing_registration: Whether a request with no matching
            registration fails with RequestNotInterceptedException instead
            of falling through to the inner transport.
        on_send: Optional hook called with every request before matching.
        on_missing_registration: Optional hook called for unmatched requests;
            a response it returns is used instead of the missing-registration
            policy.

    Example:
        registry = InterceptorRegistry().throws_on_missing_registration()
        registry.register_get("https://api.x/ping", "pong")

        with registry.create_client() as client:
            assert client.get("https://api.x/ping").text == "pong"
    """

    def __init__(
        self,
        throw_on_missing_registration: bool = False,
        on_send: SendHook | None = None,
        on_missing_registration: MissingRegistrationHook | None = None,
    ) -> None:
        self.throw_on_missing_registration = throw_on_missing_registration
        self.on_send = on_send
        self.on_missing_registration = on_missing_registration
        self._lock = Lock()
        self._sequence = itertools.count()
        self._entries: dict[Fingerprint, RankedRule] = {}
        self._snapshot: tuple[MatchRule, ...] = ()

    # -- mutation ---------------------------------------------------------

    def _publish(self) -> None:
        # Caller holds the lock.
        self._snapshot = matching.rank_rules(self._entries.values())

    def register(
        self, *registrations: MatchRule | InterceptionBuilder
    ) -> InterceptorRegistry:
        """Register one or more rules, replacing any with the same fingerprint.

        Builders are built before anything is stored, so an invalid builder
        leaves the registry unchanged.

        Args:
            *registrations: Rules or builders to register, in order. Later
                registrations win priority ties against earlier ones.

        Returns:
            The registry, for chaining.

        Raises:
            ConfigurationException: If a builder cannot be built.
        """
        rules = [
            item.build() if isinstance(item, InterceptionBuilder) else item
            for item in registrations
        ]
        with self._lock:
            for rule in rules:
                self._entries[rule.fingerprint] = RankedRule(
                    next(self._sequence), rule
                )
            self._publish()
        for rule in rules:
            logger.debug(f"Registered interception for {rule.describe()}")
        return self

    def register_all(
        self, registrations: Iterable[MatchRule | InterceptionBuilder]
    ) -> InterceptorRegistry:
        return self.register(*registrations)

    def deregister(
        self,
        method: str | HttpMethod | MatchRule | InterceptionBuilder,
        uri: str | httpx.URL | None = None,
        ignore_path: bool = False,
        ignore_query: bool = False,
        ignore_host: bool = False,
        request_headers: HeadersInput | None = None,
    ) -> InterceptorRegistry:
        """Remove a registration, if present.

        Either pass the method and URI (plus any flags and header
        requirements it was registered with), or pass the rule or builder
        that was registered. Removing something that is not registered is
        not an error.

        Returns:
            The registry, for chaining.
        """
        match method:
            case InterceptionBuilder():
                fingerprint = method.build().fingerprint
            case MatchRule():
                fingerprint = method.fingerprint
            case _:
                fingerprint = MatchRule(
                    method=normalize_method(method),
                    uri=to_absolute_url(uri),
                    ignore_host=ignore_host,
                    ignore_path=ignore_path,
                    ignore_query=ignore_query,
                    request_headers=tuple((request_headers or {}).items()),
                ).fingerprint
        with self._lock:
            removed = self._entries.pop(fingerprint, None)
            if removed is not None:
                self._publish()
        if removed is not None:
            logger.debug(f"Deregistered interception for {removed.rule.describe()}")
        return self

    def clear(self) -> InterceptorRegistry:
        """Remove every registration."""
        with self._lock:
            self._entries = {}
            self._publish()
        logger.debug("Cleared all interceptions")
        return self

    def throws_on_missing_registration(self, enabled: bool = True) -> InterceptorRegistry:
        """Set the missing-registration policy and return the registry."""
        self.throw_on_missing_registration = enabled
        return self

    @contextmanager
    def begin_scope(self) -> Iterator[InterceptorRegistry]:
        """Restore the current registrations when the block exits.

        Registrations made inside the block are discarded on exit, and
        registrations removed inside it come back.

        Example:
            with registry.begin_scope():
                registry.register_get("https://api.x/ping", "overridden")
                ...
            # the original registration for /ping is back
        """
        with self._lock:
            saved = dict(self._entries)
        try:
            yield self
        finally:
            with self._lock:
                self._entries = saved
                self._publish()

    def clone(self) -> InterceptorRegistry:
        """Copy the registry, including its registrations, policy and hooks."""
        copy = InterceptorRegistry(
            throw_on_missing_registration=self.throw_on_missing_registration,
            on_send=self.on_send,
            on_missing_registration=self.on_missing_registration,
        )
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda entry: entry.sequence)
        copy.register(*(entry.rule for entry in entries))
        return copy

    # -- convenience registration ----------------------------------------

    def register_bytes(
        self,
        method: str | HttpMethod,
        uri: str | httpx.URL,
        content_factory: Callable[[], Any],
        status_code: int = 200,
        media_type: str = JSON_MEDIA_TYPE,
        response_headers: HeadersInput | None = None,
    ) -> InterceptorRegistry:
        """Register a body produced by ``content_factory`` for each request.

        The factory may be a plain function returning bytes or a coroutine
        function.
        """
        builder = (
            InterceptionBuilder()
            .for_method(method)
            .for_uri(uri)
            .with_status(status_code)
            .with_media_type(media_type)
            .with_content(content_factory)
        )
        if response_headers:
            builder.with_response_headers(response_headers)
        return self.register(builder)

    def register_stream(
        self,
        method: str | HttpMethod,
        uri: str | httpx.URL,
        stream_factory: Callable[[], Any],
        status_code: int = 200,
        media_type: str = JSON_MEDIA_TYPE,
        response_headers: HeadersInput | None = None,
    ) -> InterceptorRegistry:
        """Register a body read from a fresh stream for each request."""
        builder = (
            InterceptionBuilder()
            .for_method(method)
            .for_uri(uri)
            .with_status(status_code)
            .with_media_type(media_type)
            .with_content_stream(stream_factory)
        )
        if response_headers:
            builder.with_response_headers(response_headers)
        return self.register(builder)

    def register_get(
        self,
        uri: str | httpx.URL,
        content: str | None,
        status_code: int = 200,
        media_type: str = JSON_MEDIA_TYPE,
    ) -> InterceptorRegistry:
        body = (content or "").encode("utf-8")
        return self.register_bytes(
            HttpMethod.GET, uri, lambda: body, status_code, media_type
        )

    def register_get_json(
        self, uri: str | httpx.URL, content: Any, status_code: int = 200
    ) -> InterceptorRegistry:
        """Register a GET returning ``content`` serialized as JSON."""
        if content is None:
            raise ValueError("JSON content must be provided.")

        def serialize() -> bytes:
            return json.dumps(content).encode("utf-8")

        return self.register_bytes(HttpMethod.GET, uri, serialize, status_code)

    def deregister_get(self, uri: str | httpx.URL) -> InterceptorRegistry:
        return self.deregister(HttpMethod.GET, uri)

    # -- bundles ----------------------------------------------------------

    def register_bundle(
        self,
        path: str | PathLike[str],
        template_values: Mapping[str, str] | None = None,
    ) -> InterceptorRegistry:
        """Register every live item of the bundle file at ``path``.

        Args:
            path: Path of the JSON bundle document.
            template_values: Placeholder values that override the values
                declared by the bundle items.

        Raises:
            ConfigurationException: If the bundle or one of its items is
                invalid. Nothing is registered in that case.
        """
        return self._register_loaded(load_bundle_file(path, template_values))

    def register_bundle_from_stream(
        self,
        stream: IO[Any],
        template_values: Mapping[str, str] | None = None,
    ) -> InterceptorRegistry:
        return self._register_loaded(load_bundle_stream(stream, template_values))

    async def aregister_bundle(
        self,
        path: str | PathLike[str],
        template_values: Mapping[str, str] | None = None,
    ) -> InterceptorRegistry:
        """Asynchronously read and register a bundle file.

        Cancelling the awaiting task before loading finishes registers
        nothing.
        """
        return self._register_loaded(await aload_bundle_file(path, template_values))

    async def aregister_bundle_from_stream(
        self,
        stream: IO[Any],
        template_values: Mapping[str, str] | None = None,
    ) -> InterceptorRegistry:
        return self._register_loaded(
            await aload_bundle_stream(stream, template_values)
        )

    def _register_loaded(self, rules: list[MatchRule]) -> InterceptorRegistry:
        live = []
        for rule in rules:
            if rule.skip:
                logger.info(f"Skipping bundle item {rule.describe()}")
            else:
                live.append(rule)
        return self.register(*live)

    # -- lookup -----------------------------------------------------------

    @property
    def rules(self) -> tuple[MatchRule, ...]:
        """Registered rules, best ranked first."""
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def match(self, request: httpx.Request) -> MatchRule | None:
        """Return the best rule for ``request``, or None."""
        return matching.match(request, self._snapshot)

    async def amatch(self, request: httpx.Request) -> MatchRule | None:
        """Return the best rule for ``request``, awaiting async predicates."""
        return await matching.amatch(request, self._snapshot)

    # -- wiring -----------------------------------------------------------

    def create_transport(
        self,
        inner: httpx.BaseTransport | None = None,
        interceptors: list[SyncInterceptor] | None = None,
    ) -> InterceptingTransport:
        return InterceptingTransport(self, inner=inner, interceptors=interceptors)

    def create_async_transport(
        self,
        inner: httpx.AsyncBaseTransport | None = None,
        interceptors: list[AsyncInterceptor] | None = None,
    ) -> AsyncInterceptingTransport:
        return AsyncInterceptingTransport(self, inner=inner, interceptors=interceptors)

    def create_client(
        self,
        base_url: str | httpx.URL = "",
        inner: httpx.BaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.Client:
        """Create an httpx.Client whose requests go through this registry.

        Args:
            base_url: Base URL for relative request URLs.
            inner: Transport used for unmatched requests when the registry
                does not throw on missing registrations.
            **kwargs: Passed through to httpx.Client.
        """
        return httpx.Client(
            base_url=base_url, transport=self.create_transport(inner), **kwargs
        )

    def create_async_client(
        self,
        base_url: str | httpx.URL = "",
        inner: httpx.AsyncBaseTransport | None = None,
        **kwargs: Any,
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=base_url, transport=self.create_async_transport(inner), **kwargs
        )
