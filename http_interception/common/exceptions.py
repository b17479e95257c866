"""Exception hierarchy for HTTP request interception.

Every error raised by this package derives from InterceptionException so
test code can catch the whole family at once. Errors raised by content
factories are never wrapped; they reach the caller of the intercepted
request unchanged.

The hierarchy:
- ConfigurationException: an invalid registration or bundle
    - BundleConfigurationException: an invalid bundle item
    - UnsupportedBundleVersionException: a bundle document of unknown version
- RequestNotInterceptedException: no registration matched and the registry
  is configured to fail on missing registrations
- TransportNotConfiguredException: no registration matched and there is no
  inner transport to fall through to
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class InterceptionException(Exception):
    """Base class for all interception errors."""


class ConfigurationException(InterceptionException):
    """Raised when a registration cannot be built or stored.

    Attributes:
        item_id: Identifier of the offending registration or bundle item,
            if one is known.
        context: Additional details useful when debugging a failing fixture.
    """

    def __init__(
        self,
        message: str,
        item_id: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.item_id = item_id
        self.context = context or {}


class BundleConfigurationException(ConfigurationException):
    """Raised when a bundle item fails validation.

    The message always names the item's id, or ``unknown`` if the item
    does not declare one.
    """


class UnsupportedBundleVersionException(ConfigurationException):
    """Raised when a bundle document declares a version other than 1."""

    def __init__(self, version: int) -> None:
        super().__init__(
            f"HTTP request interception bundles of version {version} are not supported.",
            context={"version": version},
        )
        self.version = version


class RequestNotInterceptedException(InterceptionException):
    """Raised when a request has no registration and the registry throws on misses.

    Attributes:
        request: The request that was not intercepted.
    """

    def __init__(
        self,
        message: str = "No HTTP response is configured for this HTTP request.",
        request: httpx.Request | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.request = request


class TransportNotConfiguredException(InterceptionException):
    """Raised when an unmatched request has no inner transport to fall through to."""

    def __init__(self, request: httpx.Request) -> None:
        super().__init__(
            f"No HTTP response is configured for {request.method} {request.url} "
            "and no inner transport is configured."
        )
        self.request = request
