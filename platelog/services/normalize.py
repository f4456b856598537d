"""
Field normalization shared by every write path.

Both the direct create/update functions and the CSV importer pass their
values through `normalize_record`, so the two paths cannot drift apart.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ..core.errors import ValidationError

TRUE_TOKENS = {"1", "true", "yes", "y"}
FALSE_TOKENS = {"0", "false", "no", "n"}


def clean_text(value: Any) -> Optional[str]:
    """Strip surrounding whitespace; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_timestamp(value: Optional[datetime]) -> Optional[datetime]:
    """Store timestamps as naive UTC so string comparison in SQLite orders correctly."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def coerce_bool(value: Any, *, field: str | None = None) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    v = str(value).strip().lower()
    if not v:
        return None
    if v in TRUE_TOKENS:
        return True
    if v in FALSE_TOKENS:
        return False
    raise ValidationError(f"Invalid boolean: {value!r}", field=field)


def normalize_record(
    data: dict[str, Any],
    *,
    bool_fields: Iterable[str] = (),
    required: Iterable[str] = (),
    defaults: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Return a cleaned copy of ``data``.

    Strings are trimmed (blank -> None), boolean-like tokens in
    ``bool_fields`` become bools, missing booleans take ``defaults``, and
    every field in ``required`` must end up non-empty.
    """
    bool_set = set(bool_fields)
    defaults = defaults or {}
    out: dict[str, Any] = {}
    for key, value in data.items():
        if key in bool_set:
            out[key] = coerce_bool(value, field=key)
        elif isinstance(value, str) or value is None:
            out[key] = clean_text(value)
        elif isinstance(value, datetime):
            out[key] = normalize_timestamp(value)
        else:
            out[key] = value
    for key, default in defaults.items():
        if out.get(key) is None:
            out[key] = default
    for key in required:
        if out.get(key) is None:
            raise ValidationError(f"{key} is required", field=key)
    return out


def external_id_segments_ok(external_id: str, min_segments: int) -> bool:
    """Structural check: at least ``min_segments`` hyphen-separated parts (e.g. Country-State-id)."""
    if min_segments <= 0:
        return True
    parts = [p for p in external_id.split("-") if p.strip()]
    return len(parts) >= min_segments
