"""JSON payload helpers shared by export, import and backups."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from blogstore.errors import ValidationFailure
from pydantic import BaseModel


def dump_posts(records: Sequence[BaseModel]) -> str:
    """Serialise records as an indented JSON array (aliases applied)."""
    return json.dumps(
        [r.model_dump(mode="json", by_alias=True) for r in records],
        indent=2,
        ensure_ascii=False,
    )


def parse_post_array(text: str) -> list[Any]:
    """Parse an import payload and check its top-level shape.

    Raises:
        ValidationFailure: The text is not JSON or not a JSON array.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ValidationFailure(f"import payload is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ValidationFailure(f"import payload must be a JSON array, got {type(data).__name__}")
    return data


def has_required_fields(raw: Any, *, require_id: bool) -> bool:
    """Whether *raw* carries the fields an importable post must have."""
    if not isinstance(raw, dict):
        return False
    if require_id and raw.get("id") is None:
        return False
    return all(raw.get(key) for key in ("title", "content", "date"))


def read_time_of(raw: dict[str, Any]) -> str:
    """Read-time value from either naming convention."""
    return raw.get("readTime") or raw.get("read_time") or ""
