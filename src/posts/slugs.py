"""Deterministic slug allocation shared by both backends.

Both stores must turn the same title into the same slug, otherwise
posts copied between them would no longer line up by title.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterator, Mapping

MAX_SLUG_LENGTH = 60
EMPTY_SLUG = "post"

_COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")
_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def slugify(title: str) -> str:
    """Return the base slug for *title*, without any collision suffix."""
    slug = unicodedata.normalize("NFD", title.lower())
    slug = _COMBINING_MARKS.sub("", slug)
    slug = _DISALLOWED.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug).strip("-")
    return slug[:MAX_SLUG_LENGTH] or EMPTY_SLUG


def candidate_slugs(base: str) -> Iterator[str]:
    """Yield ``base``, ``base-1``, ``base-2``, ... forever."""
    yield base
    counter = 1
    while True:
        yield f"{base}-{counter}"
        counter += 1


def allocate_slug(
    title: str,
    existing: Mapping[int, str],
    exclude_id: int | None = None,
) -> str:
    """Allocate a slug for *title* that is free among *existing*.

    Args:
        title: Post title.
        existing: Post id -> slug for every post already in the store.
        exclude_id: Id whose own slug does not count as a collision
            (the post being renamed).

    Returns:
        The first free candidate from :func:`candidate_slugs`.
    """
    taken = {slug for post_id, slug in existing.items() if post_id != exclude_id}
    for candidate in candidate_slugs(slugify(title)):
        if candidate not in taken:
            return candidate
    raise AssertionError("unreachable")  # pragma: no cover
