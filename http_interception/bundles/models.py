"""Pydantic models for HTTP request interception bundle documents.

A bundle is a JSON document that declares interceptions instead of
registering them in code. Field names in the document are camelCase; the
models expose them as snake_case attributes.

These models only describe the shape of the document. Semantic checks
(absolute URIs, status codes, content formats) happen when an item is
converted to a MatchRule.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BundleModel(BaseModel):
    """Base class for bundle document models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BundleItem(BundleModel):
    """One declared interception."""

    id: str | None = None
    comment: str | None = None
    version: str | None = None
    method: str | None = None
    uri: str | None = None
    ignore_host: bool = False
    ignore_path: bool = False
    ignore_query: bool = False
    priority: int | None = None
    status: str | int | None = None
    request_headers: dict[str, list[str]] | None = None
    response_headers: dict[str, list[str]] | None = None
    content_headers: dict[str, list[str]] | None = None
    content_format: str | None = None
    content_json: Any = None
    content_string: str | None = None
    template_values: dict[str, str] | None = None
    skip: bool = False


class Bundle(BundleModel):
    """A bundle document.

    ``items`` is required but may be empty. Null entries are allowed and
    ignored when the bundle is loaded.
    """

    id: str | None = None
    comment: str | None = None
    version: int = 1
    items: list[BundleItem | None]
