"""Placeholder substitution for bundle items.

Bundles may contain ``${Name}`` tokens in URIs, header values and content.
Substitution is a plain textual pass: each token whose name has a value is
replaced, and tokens without a value are left exactly as written.
"""

import re
from collections.abc import Mapping

PLACEHOLDER_PATTERN = re.compile(r"\$\{(?P<name>[^{}]+)\}")


def apply_template(text: str, values: Mapping[str, str]) -> str:
    """Replace every known ``${Name}`` placeholder in ``text``.

    Args:
        text: The text to substitute into.
        values: Placeholder names mapped to their replacement text.

    Returns:
        The text with known placeholders replaced.

    Example:
        >>> apply_template("https://api.x/orgs/${Org}", {"Org": "acme"})
        'https://api.x/orgs/acme'
        >>> apply_template("${Missing}", {})
        '${Missing}'
    """
    if not values or "${" not in text:
        return text

    def _replace(match: re.Match[str]) -> str:
        name = match.group("name")
        if name in values:
            return str(values[name])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def apply_template_to_headers(
    headers: Mapping[str, list[str] | tuple[str, ...]] | None,
    values: Mapping[str, str],
) -> dict[str, list[str]] | None:
    """Substitute placeholders in every header value."""
    if headers is None:
        return None
    return {
        name: [apply_template(value, values) for value in header_values]
        for name, header_values in headers.items()
    }
