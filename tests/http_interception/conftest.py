"""Shared fixtures for the http_interception tests."""

from pathlib import Path

import pytest

from http_interception.registry import InterceptorRegistry

BUNDLES_DIR = Path(__file__).parent / "bundles"


@pytest.fixture
def bundles_dir() -> Path:
    """Directory holding the bundle documents used by the tests."""
    return BUNDLES_DIR


@pytest.fixture
def registry() -> InterceptorRegistry:
    """A registry that fails unmatched requests."""
    return InterceptorRegistry(throw_on_missing_registration=True)
