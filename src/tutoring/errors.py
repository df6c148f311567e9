"""
Exception types raised by the tutoring engine.

Extraction and configuration never raise; everything here is raised at the
orchestration boundary or by the persistence and generation collaborators.
"""

from __future__ import annotations


class TutoringError(Exception):
    """Base class for all tutoring engine errors."""


class EmptyResponse(TutoringError):
    """Learner text was missing or blank."""

    def __init__(self, message: str = "Learner response is empty"):
        super().__init__(message)


class InvalidProfileState(TutoringError):
    """A stored learner profile violates a range invariant."""

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(f"Profile fields out of range: {', '.join(self.fields)}")


class GenerationUnavailable(TutoringError):
    """The text generation collaborator failed or returned nothing usable."""


class DialogueClosed(TutoringError):
    """An operation was requested on a dialogue whose status forbids it."""

    def __init__(self, dialogue_id: str, status: str, operation: str):
        self.dialogue_id = dialogue_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} dialogue {dialogue_id}: status is {status}")


class ProfileStoreError(TutoringError):
    """Profile persistence backend failed."""
