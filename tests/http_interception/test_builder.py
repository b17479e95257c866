"""Tests for InterceptionBuilder.

Key behaviors tested:
- Defaults produce a GET for http://localhost/ with an empty JSON body
- URI parts can be set piecemeal
- Header requirements are validated when they are declared
- Content helpers choose the right content source
- Built rules are immutable and independent of the builder
"""

import dataclasses
import io

import httpx
import pytest

from http_interception.builder import InterceptionBuilder
from http_interception.common.content import (
    FORM_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    AsyncFactoryContent,
    BytesFactoryContent,
    StaticContent,
    StreamFactoryContent,
    materialize,
)
from http_interception.common.exceptions import ConfigurationException
from http_interception.data_types import HttpMethod
from http_interception.registry import InterceptorRegistry


class TestRequestCriteria:
    """Tests for the request side of the builder."""

    def test_defaults(self) -> None:
        """A fresh builder shall describe GET http://localhost/ returning 200."""
        rule = InterceptionBuilder().build()

        assert rule.method == "GET"
        assert rule.uri == httpx.URL("http://localhost/")
        assert rule.status_code == 200
        assert rule.content.media_type == JSON_MEDIA_TYPE
        assert materialize(rule.content) == b""

    def test_uri_parts(self) -> None:
        """Scheme, host, port, path and query shall compose into one URI."""
        rule = (
            InterceptionBuilder()
            .for_post()
            .for_https()
            .for_host("api.github.com")
            .for_port(8443)
            .for_path("orgs/acme")
            .for_query("?page=2")
            .build()
        )

        assert rule.method == "POST"
        assert str(rule.uri) == "https://api.github.com:8443/orgs/acme?page=2"

    def test_method_is_normalized(self) -> None:
        """Methods shall be stored upper-case."""
        assert InterceptionBuilder().for_method("patch").build().method == "PATCH"
        assert InterceptionBuilder().for_method(HttpMethod.HEAD).build().method == "HEAD"

    def test_empty_method_is_rejected(self) -> None:
        """An empty method shall be a configuration error."""
        with pytest.raises(ConfigurationException):
            InterceptionBuilder().for_method("  ")

    def test_relative_uri_is_rejected(self) -> None:
        """A relative URI shall be a configuration error."""
        with pytest.raises(ConfigurationException, match="not an absolute URI"):
            InterceptionBuilder().for_uri("/orgs/acme")

    def test_request_header_requires_values(self) -> None:
        """A required request header shall need a name and at least one value."""
        with pytest.raises(ValueError):
            InterceptionBuilder().for_request_header("Authorization")
        with pytest.raises(ValueError):
            InterceptionBuilder().for_request_header("", "value")

    def test_request_header_names_are_lower_cased(self) -> None:
        """Required header names shall be stored lower-case."""
        rule = (
            InterceptionBuilder()
            .for_request_header("Authorization", "Bearer T")
            .build()
        )

        assert rule.request_headers == (("authorization", ("Bearer T",)),)

    def test_flags(self) -> None:
        """Ignore flags and priority shall be carried onto the rule."""
        rule = (
            InterceptionBuilder()
            .for_any_host()
            .ignoring_path()
            .ignoring_query()
            .having_priority(5)
            .build()
        )

        assert rule.ignore_host and rule.ignore_path and rule.ignore_query
        assert rule.effective_priority == 5
        assert InterceptionBuilder().build().effective_priority == 0


class TestResponse:
    """Tests for the response side of the builder."""

    def test_text_content(self) -> None:
        """Text content shall be stored as UTF-8 bytes."""
        rule = InterceptionBuilder().with_content("héllo").build()

        assert isinstance(rule.content, StaticContent)
        assert materialize(rule.content) == "héllo".encode()

    def test_callable_content(self) -> None:
        """A plain callable shall become a bytes factory."""
        rule = InterceptionBuilder().with_content(lambda: b"made").build()

        assert isinstance(rule.content, BytesFactoryContent)
        assert materialize(rule.content) == b"made"

    def test_coroutine_function_content(self) -> None:
        """A coroutine function shall become an async factory."""

        async def factory() -> bytes:
            return b"async"

        rule = InterceptionBuilder().with_content(factory).build()

        assert isinstance(rule.content, AsyncFactoryContent)

    def test_stream_content(self) -> None:
        """A stream factory shall become a stream source."""
        rule = (
            InterceptionBuilder()
            .with_content_stream(lambda: io.BytesIO(b"streamed"))
            .build()
        )

        assert isinstance(rule.content, StreamFactoryContent)
        assert materialize(rule.content) == b"streamed"

    def test_json_content(self) -> None:
        """JSON content shall be serialized lazily with the JSON media type."""
        payload = {"login": "acme"}
        rule = InterceptionBuilder().with_json_content(payload).build()
        payload["login"] = "changed"

        assert rule.content.media_type == JSON_MEDIA_TYPE
        assert materialize(rule.content) == b'{"login": "changed"}'

    def test_form_content(self) -> None:
        """Form content shall be URL-encoded with the form media type."""
        rule = InterceptionBuilder().with_form_content({"a": "1", "b": "x y"}).build()

        assert rule.content.media_type == FORM_MEDIA_TYPE
        assert materialize(rule.content) == b"a=1&b=x+y"

    def test_media_type_applies_to_content(self) -> None:
        """The media type shall be attached to the content source at build time."""
        rule = (
            InterceptionBuilder()
            .with_content("<p/>")
            .with_media_type("text/html")
            .build()
        )

        assert rule.content.media_type == "text/html"

    def test_headers_status_and_diagnostics(self) -> None:
        """Status, reason, version, headers and diagnostics shall reach the rule."""
        rule = (
            InterceptionBuilder()
            .with_status(404)
            .with_reason("Gone Fishing")
            .with_version("2.0")
            .with_response_header("X-Trace", "a", "b")
            .with_content_header("Content-Language", "en-GB")
            .with_id("trace")
            .with_comment("diagnostics")
            .skipped()
            .build()
        )

        assert rule.status_code == 404
        assert rule.reason_phrase == "Gone Fishing"
        assert rule.http_version == "2.0"
        assert rule.response_headers == (("X-Trace", ("a", "b")),)
        assert rule.content_headers == (("Content-Language", ("en-GB",)),)
        assert (rule.id, rule.comment, rule.skip) == ("trace", "diagnostics", True)


class TestBuiltRules:
    """Tests for the rules a builder produces."""

    def test_rules_are_frozen(self) -> None:
        """A built rule shall be immutable."""
        rule = InterceptionBuilder().build()

        with pytest.raises(dataclasses.FrozenInstanceError):
            rule.status_code = 500  # type: ignore[misc]

    def test_later_builder_changes_do_not_affect_built_rules(self) -> None:
        """Changing the builder after build() shall not change the rule."""
        builder = InterceptionBuilder().with_status(201)
        rule = builder.build()
        builder.with_status(500)

        assert rule.status_code == 201

    def test_non_ascii_reason_is_rejected(self) -> None:
        """A reason phrase that is not ASCII shall be rejected when the rule is built."""
        builder = InterceptionBuilder().with_reason("Café")

        with pytest.raises(ConfigurationException, match="ASCII"):
            builder.build()

    def test_register_with(self) -> None:
        """register_with() shall register the built rule and return the builder."""
        registry = InterceptorRegistry()
        builder = InterceptionBuilder().for_uri("https://api.x/ping")

        assert builder.register_with(registry) is builder
        assert len(registry) == 1
