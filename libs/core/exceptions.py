"""Base exceptions for the domain layer."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when a record cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class PreconditionError(DomainError):
    """Raised when an operation is blocked by the current state of the stores."""


class InvalidSelection(DomainError):
    """Raised when a selection or insertion point cannot be used."""


class ImportValidationError(ValidationError):
    """Raised when a bulk import payload is structurally malformed."""


class NoAssignments(DomainError):
    """Condition returned (not raised) when an entity has no assigned blocks."""

    def __init__(self, entity_id: str, entity_name: str | None = None) -> None:
        self.entity_id = entity_id
        self.entity_name = entity_name
        super().__init__(f"No text blocks assigned to {entity_name or entity_id!r}")


# Alias to keep a generic name for error type hints
Error = DomainError

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "PreconditionError",
    "InvalidSelection",
    "ImportValidationError",
    "NoAssignments",
    "Error",
]
