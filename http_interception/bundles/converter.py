"""Conversion of bundle items to match rules.

item_to_rule is a validating parser: it either returns a complete MatchRule
or raises BundleConfigurationException naming the offending item. It has no
side effects, so it can be tested without a registry.
"""

import base64
import binascii
import json
import re
from collections.abc import Mapping
from typing import Any

import httpx

from http_interception.builder import InterceptionBuilder
from http_interception.bundles.models import BundleItem
from http_interception.common.exceptions import (
    BundleConfigurationException,
    ConfigurationException,
)
from http_interception.common.templating import (
    apply_template,
    apply_template_to_headers,
)
from http_interception.data_types import MatchRule

UNKNOWN_ITEM_ID = "unknown"

VERSION_PATTERN = re.compile(r"^\d+(\.\d+){1,3}$")

# httpx.codes names with case and underscores removed, e.g. "notfound"
_STATUS_NAMES = {code.name.replace("_", "").lower(): int(code) for code in httpx.codes}


def _parse_uri(item_id: str, uri: str | None) -> httpx.URL:
    if uri is None or not uri.strip():
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' has no URI configured.",
            item_id=item_id,
        )
    try:
        url = httpx.URL(uri)
    except httpx.InvalidURL as e:
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' has an invalid absolute URI '{uri}' configured.",
            item_id=item_id,
            context={"uri": uri},
        ) from e
    if not url.is_absolute_url or not url.host:
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' has an invalid absolute URI '{uri}' configured.",
            item_id=item_id,
            context={"uri": uri},
        )
    return url


def _parse_version(item_id: str, version: str | None) -> str | None:
    if version is None:
        return None
    if not VERSION_PATTERN.match(version.strip()):
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' has an invalid version '{version}' configured.",
            item_id=item_id,
        )
    return version.strip()


def parse_status(item_id: str, status: str | int | None) -> int:
    """Parse a bundle status into an integer status code.

    Args:
        item_id: Identifier used in error messages.
        status: An integer code, its decimal text, or an httpx.codes name
            such as ``NotFound`` or ``NOT_FOUND``. None means 200.

    Returns:
        The status code.

    Raises:
        BundleConfigurationException: If the status cannot be parsed.
    """
    if status is None or (isinstance(status, str) and not status.strip()):
        return 200
    if isinstance(status, str):
        text = status.strip()
        if text.isdigit():
            code = int(text)
        else:
            code = _STATUS_NAMES.get(text.replace("_", "").lower(), -1)
    else:
        code = status
    if not 100 <= code <= 599:
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' has an invalid HTTP status code '{status}' configured.",
            item_id=item_id,
        )
    return code


def _template_json(value: Any, values: Mapping[str, str]) -> Any:
    """Substitute placeholders in every string key and value of a JSON value."""
    match value:
        case str():
            return apply_template(value, values)
        case list():
            return [_template_json(element, values) for element in value]
        case dict():
            return {
                apply_template(key, values): _template_json(element, values)
                for key, element in value.items()
            }
        case _:
            return value


def _content(item: BundleItem, item_id: str, values: Mapping[str, str]) -> bytes:
    content_format = (item.content_format or "string").strip().lower()
    match content_format:
        case "string":
            return apply_template(item.content_string or "", values).encode("utf-8")
        case "base64":
            try:
                raw = base64.b64decode(item.content_string or "", validate=True)
            except (binascii.Error, ValueError) as e:
                raise BundleConfigurationException(
                    f"Bundle item with Id '{item_id}' has invalid base64 content configured.",
                    item_id=item_id,
                ) from e
            if b"${" not in raw:
                return raw
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                # Binary payload; placeholders only apply to text.
                return raw
            return apply_template(text, values).encode("utf-8")
        case "json":
            if item.content_json is None:
                return b""
            return json.dumps(_template_json(item.content_json, values)).encode("utf-8")
        case _:
            raise BundleConfigurationException(
                f"Content format '{item.content_format}' for bundle item with Id "
                f"'{item_id}' is not supported.",
                item_id=item_id,
            )


def item_to_rule(
    item: BundleItem, template_values: Mapping[str, str] | None = None
) -> MatchRule:
    """Convert a bundle item to a MatchRule.

    Placeholders of the form ``${Name}`` are substituted in the URI, in
    request, response and content header values, and in string, base64 or
    JSON content. Base64 content is templated after decoding, as UTF-8
    text. Values passed in ``template_values`` override those declared by
    the item. Placeholders with no value are left as written.

    Args:
        item: The bundle item.
        template_values: Placeholder values supplied by the caller.

    Returns:
        The rule. Skipped items are converted too and come back with
        ``skip=True``.

    Raises:
        BundleConfigurationException: If the item is invalid.
    """
    item_id = item.id or UNKNOWN_ITEM_ID
    values = {**(item.template_values or {}), **(template_values or {})}

    uri = item.uri if item.uri is None else apply_template(item.uri, values)
    url = _parse_uri(item_id, uri)
    version = _parse_version(item_id, item.version)
    status_code = parse_status(item_id, item.status)
    body = _content(item, item_id, values)

    builder = (
        InterceptionBuilder()
        .with_id(item.id)
        .with_comment(item.comment)
        .for_method(item.method or "GET")
        .for_uri(url)
        .ignoring_path(item.ignore_path)
        .ignoring_query(item.ignore_query)
        .having_priority(item.priority)
        .with_status(status_code)
        .with_version(version)
        .with_content(body)
        .skipped(item.skip)
    )
    if item.ignore_host:
        builder.for_any_host()

    request_headers = apply_template_to_headers(item.request_headers, values)
    if request_headers:
        builder.for_request_headers(request_headers)
    response_headers = apply_template_to_headers(item.response_headers, values)
    if response_headers:
        builder.with_response_headers(response_headers)
    content_headers = apply_template_to_headers(item.content_headers, values)
    if content_headers:
        builder.with_content_headers(content_headers)

    try:
        return builder.build()
    except BundleConfigurationException:
        raise
    except ConfigurationException as e:
        raise BundleConfigurationException(
            f"Bundle item with Id '{item_id}' is invalid: {e.message}", item_id=item_id
        ) from e
