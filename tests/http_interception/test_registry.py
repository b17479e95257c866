"""Tests for InterceptorRegistry.

Key behaviors tested:
- Registering the same fingerprint replaces the earlier registration
- Rules differing only in required headers coexist
- Deregistering is a no-op when nothing matches
- Scopes and clones isolate registrations
- Convenience registration helpers
- Concurrent registration and matching
"""

import io
import threading

import httpx
import pytest

from http_interception.builder import InterceptionBuilder
from http_interception.common.exceptions import ConfigurationException
from http_interception.data_types import HttpMethod
from http_interception.registry import InterceptorRegistry


class TestRegistration:
    """Tests for register and deregister."""

    def test_same_fingerprint_replaces(self, registry: InterceptorRegistry) -> None:
        """A second registration with the same fingerprint shall replace the first."""
        registry.register_get("https://x/y", "first")
        registry.register_get("https://x/y", "second")

        assert len(registry) == 1
        with registry.create_client() as client:
            assert client.get("https://x/y").text == "second"

    def test_header_requirements_coexist(self, registry: InterceptorRegistry) -> None:
        """A rule differing only in required headers shall be added, not replace."""
        registry.register_get("https://x/y", "first")
        registry.register_get("https://x/y", "second")
        registry.register(
            InterceptionBuilder()
            .for_uri("https://x/y")
            .for_request_header("Authorization", "Bearer T")
            .with_content("third")
        )

        assert len(registry) == 2

    def test_flags_are_part_of_fingerprint(self, registry: InterceptorRegistry) -> None:
        """Rules differing only in ignore flags shall coexist."""
        registry.register(InterceptionBuilder().for_uri("https://x/y"))
        registry.register(InterceptionBuilder().for_uri("https://x/y").ignoring_query())

        assert len(registry) == 2

    def test_invalid_builder_registers_nothing(self) -> None:
        """A builder that fails to build shall leave the registry unchanged."""
        registry = InterceptorRegistry()
        broken = InterceptionBuilder()
        broken._method = ""

        with pytest.raises(ConfigurationException):
            registry.register(InterceptionBuilder().for_uri("https://x/ok"), broken)

        assert len(registry) == 0

    def test_deregister_by_method_and_uri(self, registry: InterceptorRegistry) -> None:
        """deregister() shall remove the matching registration."""
        registry.register_get("https://x/y", "hello")

        registry.deregister(HttpMethod.GET, "https://x/y")

        assert len(registry) == 0

    def test_deregister_by_builder(self, registry: InterceptorRegistry) -> None:
        """deregister() shall accept the builder that was registered."""
        builder = (
            InterceptionBuilder()
            .for_uri("https://x/y")
            .for_request_header("Authorization", "Bearer T")
        )
        registry.register(builder)

        registry.deregister(builder)

        assert len(registry) == 0

    def test_deregister_unknown_is_noop(self, registry: InterceptorRegistry) -> None:
        """Deregistering something never registered shall not fail."""
        registry.register_get("https://x/y", "hello")

        registry.deregister("DELETE", "https://x/y").deregister_get("https://x/other")

        assert len(registry) == 1

    def test_clear(self, registry: InterceptorRegistry) -> None:
        """clear() shall remove every registration."""
        registry.register_get("https://x/a", "a").register_get("https://x/b", "b")

        registry.clear()

        assert len(registry) == 0
        assert registry.rules == ()

    def test_rules_are_ranked(self, registry: InterceptorRegistry) -> None:
        """rules shall list registrations best ranked first."""
        registry.register(
            InterceptionBuilder().for_uri("https://x/a").with_id("a").having_priority(1),
            InterceptionBuilder().for_uri("https://x/b").with_id("b"),
            InterceptionBuilder().for_uri("https://x/c").with_id("c"),
        )

        assert [rule.id for rule in registry.rules] == ["a", "c", "b"]

    def test_missing_registration_policy(self) -> None:
        """throws_on_missing_registration() shall toggle the policy."""
        registry = InterceptorRegistry()

        assert registry.throws_on_missing_registration() is registry
        assert registry.throw_on_missing_registration
        registry.throws_on_missing_registration(False)
        assert not registry.throw_on_missing_registration


class TestConvenienceRegistration:
    """Tests for the register_* helpers."""

    def test_register_get_json(self, registry: InterceptorRegistry) -> None:
        """register_get_json() shall serve the value as JSON."""
        registry.register_get_json("https://x/user", {"login": "acme"})

        with registry.create_client() as client:
            response = client.get("https://x/user")

        assert response.json() == {"login": "acme"}
        assert response.headers["content-type"] == "application/json"

    def test_register_get_json_requires_content(
        self, registry: InterceptorRegistry
    ) -> None:
        """register_get_json() shall reject None."""
        with pytest.raises(ValueError):
            registry.register_get_json("https://x/user", None)

    def test_register_bytes(self, registry: InterceptorRegistry) -> None:
        """register_bytes() shall use the factory, status, media type and headers."""
        registry.register_bytes(
            "PUT",
            "https://x/upload",
            lambda: b"stored",
            status_code=201,
            media_type="text/plain",
            response_headers={"Location": "https://x/files/1"},
        )

        with registry.create_client() as client:
            response = client.put("https://x/upload", content=b"data")

        assert response.status_code == 201
        assert response.text == "stored"
        assert response.headers["content-type"] == "text/plain"
        assert response.headers["location"] == "https://x/files/1"

    def test_register_stream(self, registry: InterceptorRegistry) -> None:
        """register_stream() shall read a fresh stream for every request."""
        opened = []

        def factory() -> io.BytesIO:
            opened.append(1)
            return io.BytesIO(b"streamed")

        registry.register_stream(HttpMethod.GET, "https://x/file", factory)

        with registry.create_client() as client:
            assert client.get("https://x/file").content == b"streamed"
            assert client.get("https://x/file").content == b"streamed"

        assert len(opened) == 2


class TestScopes:
    """Tests for begin_scope and clone."""

    def test_scope_restores_registrations(self, registry: InterceptorRegistry) -> None:
        """Leaving a scope shall restore the registrations present on entry."""
        registry.register_get("https://x/y", "original")

        with registry.begin_scope():
            registry.register_get("https://x/y", "overridden")
            registry.register_get("https://x/extra", "extra")
            with registry.create_client() as client:
                assert client.get("https://x/y").text == "overridden"

        assert len(registry) == 1
        with registry.create_client() as client:
            assert client.get("https://x/y").text == "original"

    def test_scope_restores_on_error(self, registry: InterceptorRegistry) -> None:
        """A scope shall restore registrations even when the block raises."""
        registry.register_get("https://x/y", "original")

        with pytest.raises(RuntimeError):
            with registry.begin_scope():
                registry.clear()
                raise RuntimeError("boom")

        assert len(registry) == 1

    def test_clone_is_independent(self, registry: InterceptorRegistry) -> None:
        """A clone shall copy registrations and policy but not share later changes."""
        registry.register_get("https://x/y", "hello")

        copy = registry.clone()
        copy.register_get("https://x/z", "only in copy")
        registry.clear()

        assert len(copy) == 2
        assert copy.throw_on_missing_registration
        assert len(registry) == 0


class TestConcurrency:
    """Tests for concurrent use of one registry."""

    def test_concurrent_registration_and_matching(self) -> None:
        """Concurrent registrations shall all land and matching shall never fail."""
        registry = InterceptorRegistry()
        request = httpx.Request("GET", "https://x/stable")
        registry.register_get("https://x/stable", "stable")
        errors: list[BaseException] = []

        def writer(start: int) -> None:
            for i in range(start, start + 50):
                registry.register_get(f"https://x/{i}", str(i))

        def reader() -> None:
            for _ in range(200):
                if registry.match(request) is None:
                    errors.append(AssertionError("stable registration not matched"))

        threads = [threading.Thread(target=writer, args=(n * 50,)) for n in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(registry) == 201
