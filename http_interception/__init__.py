"""Intercept httpx requests and answer them with registered responses.

Typical use in a test:

    registry = InterceptorRegistry().throws_on_missing_registration()
    (
        InterceptionBuilder()
        .for_get()
        .for_uri("https://api.github.com/orgs/acme")
        .with_json_content({"login": "acme"})
        .register_with(registry)
    )

    with registry.create_client() as client:
        assert client.get("https://api.github.com/orgs/acme").json()["login"] == "acme"
"""

from http_interception.builder import InterceptionBuilder
from http_interception.bundles.converter import item_to_rule
from http_interception.bundles.loader import (
    aload_bundle_file,
    aload_bundle_stream,
    load_bundle_file,
    load_bundle_stream,
    load_bundle_text,
)
from http_interception.bundles.models import Bundle, BundleItem
from http_interception.common.content import (
    AsyncFactoryContent,
    BytesFactoryContent,
    ContentSource,
    StaticContent,
    StreamFactoryContent,
    amaterialize,
    materialize,
)
from http_interception.common.exceptions import (
    BundleConfigurationException,
    ConfigurationException,
    InterceptionException,
    RequestNotInterceptedException,
    TransportNotConfiguredException,
    UnsupportedBundleVersionException,
)
from http_interception.data_types import Fingerprint, HttpMethod, MatchRule
from http_interception.registry import InterceptorRegistry
from http_interception.transport.async_transport import AsyncInterceptingTransport
from http_interception.transport.sync_transport import InterceptingTransport

__all__ = [
    "AsyncFactoryContent",
    "AsyncInterceptingTransport",
    "Bundle",
    "BundleConfigurationException",
    "BundleItem",
    "BytesFactoryContent",
    "ConfigurationException",
    "ContentSource",
    "Fingerprint",
    "HttpMethod",
    "InterceptingTransport",
    "InterceptionBuilder",
    "InterceptionException",
    "InterceptorRegistry",
    "MatchRule",
    "RequestNotInterceptedException",
    "StaticContent",
    "StreamFactoryContent",
    "TransportNotConfiguredException",
    "UnsupportedBundleVersionException",
    "aload_bundle_file",
    "aload_bundle_stream",
    "amaterialize",
    "item_to_rule",
    "load_bundle_file",
    "load_bundle_stream",
    "load_bundle_text",
    "materialize",
]
