"""
Resource identity derivation.

Turns a human display name ("Weather API", "Orders / v2") into the canonical
lowercase-hyphen token the management API uses as a resource key
(``weather-api``, ``orders-v2``). The same function keys APIs, products, tags
and operations, so a display name always lands on the same remote resource and
re-running a batch converges instead of duplicating.

Invariants:
    - deterministic: same input, same output
    - idempotent: ``sanitize(sanitize(x)) == sanitize(x)``
    - output matches ``^[a-z0-9]+(-[a-z0-9]+)*$`` or is empty

Examples:
    >>> sanitize("Weather API")
    'weather-api'
    >>> sanitize("--Foo__Bar--")
    'foo-bar'
    >>> sanitize(sanitize("GET-/forecast/{city}"))
    'get-forecast-city'
"""

from __future__ import annotations

import re
from typing import Any

from gateway_spine.core.errors import InvalidIdentitySource

_OUTSIDE_ALPHABET = re.compile(r"[^a-z0-9-]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_HYPHEN_RUNS = re.compile(r"-+")


def sanitize(text: Any) -> str:
    """
    Canonical resource-safe identifier for ``text``.

    Raises:
        InvalidIdentitySource: ``text`` is None or blank.
    """
    if text is None:
        raise InvalidIdentitySource(text)
    value = str(text).strip()
    if not value:
        raise InvalidIdentitySource(text)

    value = _OUTSIDE_ALPHABET.sub("-", value.lower())
    value = _EDGE_HYPHENS.sub("", value)
    return _HYPHEN_RUNS.sub("-", value)


def derive_identity(text: Any) -> str:
    """Like :func:`sanitize`, but an empty result is also rejected."""
    identity = sanitize(text)
    if not identity:
        raise InvalidIdentitySource(text, f"{text!r} has no characters usable in a resource identity")
    return identity


__all__ = ["sanitize", "derive_identity"]
