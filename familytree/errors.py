"""Error taxonomy for the relationship engine.

Mutations raise these; read-side resolution never does (inconsistent data is
tolerated and repaired in memory instead).
"""

from __future__ import annotations


class FamilyTreeError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(FamilyTreeError):
    status_code = 404

    def __init__(self, person_id: str) -> None:
        super().__init__(f"person not found: {person_id}")
        self.person_id = person_id


class InvalidRelationship(FamilyTreeError):
    """Self-referential operands, unknown relationship kind, or unknown field."""

    status_code = 400


class StorageFailure(FamilyTreeError):
    """The backend could not commit a batch. Never retried here."""

    status_code = 503
