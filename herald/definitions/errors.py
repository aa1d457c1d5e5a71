"""Errors raised by report definition management."""

from __future__ import annotations


class DefinitionError(Exception):
    """Base class for report definition errors."""


class DefinitionNotFoundError(DefinitionError):
    """Raised when an owner addresses a report definition that does not exist.

    Attributes
    ----------
    owner_id
        Owner the lookup was scoped to.
    report_id
        Identifier of the missing definition.

    """

    def __init__(self, owner_id: str, report_id: str) -> None:
        """Record the owner and report identifiers."""
        self.owner_id = owner_id
        self.report_id = report_id
        super().__init__(f"No report definition {report_id!r} for owner {owner_id!r}")


class InvalidDefinitionError(DefinitionError, ValueError):
    """Raised when report definition fields violate their invariants.

    Attributes
    ----------
    field
        Name of the offending field.
    reason
        Human-readable description of the violation.

    """

    def __init__(self, field: str, reason: str) -> None:
        """Record the offending field and reason."""
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    @classmethod
    def empty_topics(cls) -> InvalidDefinitionError:
        """Return an error for a topic list with no usable entries."""
        return cls("topics", "at least one non-empty topic is required")

    @classmethod
    def blank(cls, field: str) -> InvalidDefinitionError:
        """Return an error for a required text field left blank."""
        return cls(field, "must be non-empty")

    @classmethod
    def invalid_recipient(cls, value: str) -> InvalidDefinitionError:
        """Return an error for a malformed recipient address."""
        return cls("recipient", f"{value!r} is not an email address")
