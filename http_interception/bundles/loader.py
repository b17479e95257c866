"""Loading of HTTP request interception bundles.

The loaders parse a bundle document, validate it and convert every item to
a MatchRule. They never touch a registry; InterceptorRegistry.register_bundle
registers what they return. A bundle either loads completely or raises, so a
failed load never leaves part of a bundle registered.
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from os import PathLike
from pathlib import Path
from typing import IO, Any

from pydantic import ValidationError

from http_interception.bundles.converter import UNKNOWN_ITEM_ID, item_to_rule
from http_interception.bundles.models import Bundle
from http_interception.common.exceptions import (
    BundleConfigurationException,
    UnsupportedBundleVersionException,
)
from http_interception.data_types import MatchRule

logger = logging.getLogger(__name__)

SUPPORTED_BUNDLE_VERSION = 1


def _offending_item_id(text: str | bytes, error: ValidationError) -> str | None:
    """Return the id of the first bundle item a validation error points at.

    Returns None when the error concerns the bundle itself rather than one of
    its items, and UNKNOWN_ITEM_ID when the item declares no usable id.
    """
    for detail in error.errors():
        location = detail["loc"]
        if len(location) < 2 or location[0] != "items":
            continue
        if not isinstance(location[1], int):
            continue
        try:
            item = json.loads(text)["items"][location[1]]
        except (ValueError, LookupError, TypeError):
            return UNKNOWN_ITEM_ID
        item_id = item.get("id") if isinstance(item, dict) else None
        return item_id if isinstance(item_id, str) and item_id else UNKNOWN_ITEM_ID
    return None


def parse_bundle(text: str | bytes) -> Bundle:
    """Parse and validate the structure of a bundle document.

    Raises:
        BundleConfigurationException: If the document is not valid JSON or
            does not have the shape of a bundle.
        UnsupportedBundleVersionException: If the bundle version is not 1.
    """
    try:
        bundle = Bundle.model_validate_json(text)
    except ValidationError as e:
        item_id = _offending_item_id(text, e)
        if item_id is None:
            message = f"The HTTP request interception bundle is invalid: {e}"
        else:
            message = f"Bundle item with Id '{item_id}' is invalid: {e}"
        raise BundleConfigurationException(
            message,
            item_id=item_id,
            context={"errors": e.errors(include_url=False)},
        ) from e
    if bundle.version != SUPPORTED_BUNDLE_VERSION:
        raise UnsupportedBundleVersionException(bundle.version)
    return bundle


def bundle_to_rules(
    bundle: Bundle, template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    """Convert every item of ``bundle`` to a rule, in declaration order.

    Null items are ignored. Skipped items are converted and returned with
    ``skip=True``.
    """
    rules = [
        item_to_rule(item, template_values) for item in bundle.items if item is not None
    ]
    logger.debug(f"Loaded {len(rules)} interceptions from bundle {bundle.id or '<unnamed>'}")
    return rules


def load_bundle_text(
    text: str | bytes, template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    return bundle_to_rules(parse_bundle(text), template_values)


def load_bundle_file(
    path: str | PathLike[str], template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    """Load the bundle stored at ``path``.

    Args:
        path: Path of the JSON bundle document.
        template_values: Placeholder values that override those declared by
            the items.

    Returns:
        The converted rules in declaration order.
    """
    return load_bundle_text(Path(path).read_bytes(), template_values)


def load_bundle_stream(
    stream: IO[Any], template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    """Load a bundle from a text or binary stream. The stream is not closed."""
    return load_bundle_text(stream.read(), template_values)


async def aload_bundle_file(
    path: str | PathLike[str], template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    """Load a bundle file without blocking the event loop.

    The file is read on a worker thread. Conversion happens only once the
    whole document has been read.
    """
    data = await asyncio.to_thread(Path(path).read_bytes)
    return load_bundle_text(data, template_values)


async def aload_bundle_stream(
    stream: IO[Any], template_values: Mapping[str, str] | None = None
) -> list[MatchRule]:
    data = await asyncio.to_thread(stream.read)
    return load_bundle_text(data, template_values)
