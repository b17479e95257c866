"""Request matching.

Given an outgoing request and the registry's ranked rules, select the single
best rule or report that nothing matches.

Criteria are checked cheapest first:

1. Method (case-insensitive)
2. URI: scheme and port always, host unless ignore_host, path unless
   ignore_path, query unless ignore_query
3. Required request headers (extra request headers are ignored)
4. Skipped rules are dropped
5. Request body predicate, then the custom predicate

Rules arrive ranked by priority, then by the number of required headers,
then by recency, so the first rule that passes every criterion is the best
match. A rule that requires a header therefore wins over an otherwise equal
rule that does not, whichever was registered first. Matching has no side effects of its
own: the same request against the same snapshot yields the same rule.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from http_interception.common.exceptions import ConfigurationException
from http_interception.data_types import MatchRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedRule:
    """A registered rule together with its registration sequence number."""

    sequence: int
    rule: MatchRule


def rank_rules(entries: Iterable[RankedRule]) -> tuple[MatchRule, ...]:
    """Order rules by priority, then by header requirements, then by recency."""
    ordered = sorted(
        entries,
        key=lambda entry: (
            entry.rule.effective_priority,
            len(entry.rule.request_headers),
            entry.sequence,
        ),
        reverse=True,
    )
    return tuple(entry.rule for entry in ordered)


def _group_query(url: httpx.URL) -> dict[str, list[str]]:
    """Group decoded query values by key, keeping each key's value order."""
    grouped: dict[str, list[str]] = {}
    for key, value in httpx.QueryParams(url.query).multi_items():
        grouped.setdefault(key, []).append(value)
    return grouped


def uri_matches(rule: MatchRule, url: httpx.URL) -> bool:
    """Check whether ``url`` is equivalent to the rule's URI.

    Args:
        rule: The rule whose URI and flags to use.
        url: The URL of the outgoing request.

    Returns:
        True if the URL matches under the rule's flags.
    """
    expected = rule.uri
    if expected.scheme != url.scheme or expected.port != url.port:
        return False
    if not rule.ignore_host and expected.host != url.host:
        return False
    if not rule.ignore_path and expected.path != url.path:
        return False
    if not rule.ignore_query and _group_query(expected) != _group_query(url):
        return False
    return True


def _split_values(values: Iterable[str]) -> set[str]:
    return {
        part.strip() for value in values for part in value.split(",") if part.strip()
    }


def headers_match(rule: MatchRule, headers: httpx.Headers) -> bool:
    """Check that the request carries every header value the rule requires.

    Header names are compared case-insensitively. For each required header
    the set of values on the request must equal the required set; the order
    of values does not matter. Values folded into one comma-separated line
    compare equal to the same values sent on separate lines.
    """
    for name, required in rule.request_headers:
        actual = headers.get_list(name)
        if not actual:
            return False
        if set(actual) == set(required):
            continue
        if _split_values(actual) != _split_values(required):
            return False
    return True


def is_candidate(rule: MatchRule, request: httpx.Request) -> bool:
    """Apply every criterion except the body and custom predicates."""
    if rule.skip:
        return False
    if rule.method != request.method.upper():
        return False
    if not uri_matches(rule, request.url):
        return False
    return headers_match(rule, request.headers)


def _require_sync(result: Any, rule: MatchRule) -> bool:
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise ConfigurationException(
            f"The registration for {rule.describe()} uses an asynchronous "
            "predicate, which requires an async client.",
            item_id=rule.id,
        )
    return bool(result)


def _passes_predicates(rule: MatchRule, request: httpx.Request) -> bool:
    if rule.content_predicate is not None:
        body = request.read()
        if not _require_sync(rule.content_predicate(body), rule):
            return False
    if rule.predicate is not None:
        return _require_sync(rule.predicate(request), rule)
    return True


async def _await_if_needed(result: Any) -> bool:
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def _apasses_predicates(rule: MatchRule, request: httpx.Request) -> bool:
    if rule.content_predicate is not None:
        body = await request.aread()
        if not await _await_if_needed(rule.content_predicate(body)):
            return False
    if rule.predicate is not None:
        return await _await_if_needed(rule.predicate(request))
    return True


def match(request: httpx.Request, rules: Sequence[MatchRule]) -> MatchRule | None:
    """Select the best rule for ``request``.

    Args:
        request: The outgoing request.
        rules: Rules ranked best first, as produced by rank_rules.

    Returns:
        The matching rule, or None if no rule matches.

    Raises:
        ConfigurationException: If a candidate rule needs an asynchronous
            predicate.
    """
    for rule in rules:
        if is_candidate(rule, request) and _passes_predicates(rule, request):
            logger.debug(f"Matched {request.method} {request.url} to {rule.describe()}")
            return rule
    logger.debug(f"No registration matched {request.method} {request.url}")
    return None


async def amatch(
    request: httpx.Request, rules: Sequence[MatchRule]
) -> MatchRule | None:
    """Select the best rule for ``request``, awaiting async predicates."""
    for rule in rules:
        if is_candidate(rule, request) and await _apasses_predicates(rule, request):
            logger.debug(f"Matched {request.method} {request.url} to {rule.describe()}")
            return rule
    logger.debug(f"No registration matched {request.method} {request.url}")
    return None
