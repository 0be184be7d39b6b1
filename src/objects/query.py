"""Filter and cursor helpers shared by ObjectStore backends."""

from __future__ import annotations

import base64
import binascii
from typing import TYPE_CHECKING, Any

from src.objects.payloads import ensure_json_value
from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.shared.types import ObjectRecord

_FILTER_ROOTS = frozenset({"data", "metadata"})
_MISSING = object()


def parse_filter_key(key: str) -> tuple[str, list[str]]:
    """Split ``data.a.b`` into ``("data", ["a", "b"])``.

    Raises:
        ValidationError: Unknown root or empty path segment.
    """
    root, _, rest = key.partition(".")
    path = rest.split(".") if rest else []
    if root not in _FILTER_ROOTS or not path or any(not part for part in path):
        raise ValidationError(
            f"Invalid filter key {key!r}: expected data.<field> or metadata.<field>",
            field="filters",
        )
    return root, path


def _has_nul(value: Any) -> bool:
    if isinstance(value, str):
        return "\x00" in value
    if isinstance(value, dict):
        return any(_has_nul(k) or _has_nul(v) for k, v in value.items())
    if isinstance(value, list):
        return any(_has_nul(v) for v in value)
    return False


def parse_filters(filters: Mapping[str, Any] | None) -> list[tuple[str, list[str], Any]]:
    """``(root, path, expected)`` per filter, keys and values checked up front.

    Raises:
        ValidationError: Bad key, a non-JSON value, or a NUL character in
            the value (PostgreSQL cannot compare one as jsonb).
    """
    parsed = []
    for key, value in (filters or {}).items():
        root, path = parse_filter_key(key)
        ensure_json_value(value, field="filters")
        if _has_nul(value):
            raise ValidationError(f"Filter {key!r} contains a NUL character", field="filters")
        parsed.append((root, path, value))
    return parsed


def lookup_path(document: Mapping[str, Any], path: list[str]) -> Any:
    """Value at ``path`` or the module-level missing sentinel."""
    node: Any = document
    for part in path:
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def matches_filters(record: ObjectRecord, filters: Mapping[str, Any] | None) -> bool:
    """Exact-equality match of every filter against the record."""
    if not filters:
        return True
    for key, expected in filters.items():
        root, path = parse_filter_key(key)
        source = record.data if root == "data" else record.metadata
        actual = lookup_path(source, path)
        if actual is _MISSING or actual != expected:
            return False
        # bool is an int subclass: True must not match 1
        if isinstance(actual, bool) != isinstance(expected, bool):
            return False
    return True


def encode_cursor(seq: int) -> str:
    return base64.urlsafe_b64encode(f"seq:{seq}".encode()).decode().rstrip("=")


def decode_cursor(cursor: str) -> int:
    """Inverse of encode_cursor.

    Raises:
        ValidationError: Cursor was not produced by encode_cursor.
    """
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise ValidationError("bad_after_cursor", field="cursor") from exc
    prefix, _, number = raw.partition(":")
    if prefix != "seq" or not number.isdigit():
        raise ValidationError("bad_after_cursor", field="cursor")
    return int(number)


def clamp_limit(limit: int, *, maximum: int = 1000) -> int:
    if limit < 1:
        raise ValidationError("limit must be a positive integer", field="limit")
    return min(limit, maximum)
