"""Exception taxonomy for the spelling bee core.

Every error raised by a transition is recoverable: operations validate their
input before touching run state, so a rejected call leaves the contest exactly
as it was.
"""
from __future__ import annotations


class SpellingBeeError(Exception):
    """Base class for all core errors."""

    kind = "error"

    def __init__(self, message: str, *, kind: str | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(SpellingBeeError):
    """Caller input violates a precondition (too few competitors, unknown id, ...)."""

    kind = "validation"


class NotFoundError(SpellingBeeError):
    """Requested round snapshot or competition does not exist."""

    kind = "not_found"


class LoadFailure(SpellingBeeError):
    """Collaborator I/O failed while fetching competition data."""

    kind = "load_failure"

    def __init__(self, message: str, *, passkey: str | None = None, kind: str | None = None):
        super().__init__(message, kind=kind)
        self.passkey = passkey
