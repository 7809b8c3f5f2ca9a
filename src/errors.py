"""Error taxonomy shared by the stores, the adapter and the migration engine.

Only ``NotAuthenticatedError`` is meant to reach callers of the adapter.
Everything else is caught at a store or adapter boundary and turned into
an empty result, ``None`` or ``False``.
"""

from __future__ import annotations


class BlogstoreError(Exception):
    """Base error for the blogstore package."""


class NotAuthenticatedError(BlogstoreError):
    """A mutation was attempted without an authenticated caller."""


class BackendUnavailableError(BlogstoreError):
    """A storage or network fault prevented the operation."""


class RemoteRequestError(BackendUnavailableError):
    """The remote table API failed or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, code: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == "23505" or self.status_code == 409


class SlugConflictError(BlogstoreError):
    """Every slug candidate collided with a concurrent writer."""

    def __init__(self, base_slug: str, attempts: int) -> None:
        super().__init__(f"slug '{base_slug}' still conflicting after {attempts} attempts")
        self.base_slug = base_slug
        self.attempts = attempts


class ValidationFailure(BlogstoreError):
    """An import or backup payload is malformed at the top level."""
