"""
Service-desk exception hierarchy.

Every service raises one of these types; blueprints register handlers
against them once and get consistent HTTP status codes everywhere.

    NotFoundError           404  dangling reference (item, template, ticket, ...)
    SchemaConflictError     409  catalog edit would break an ownership/uniqueness invariant
    ValidationFailedError   400  one or more submitted values are invalid (complete list)
    UnauthorizedError       403  actor lacks the role or relationship to act
    InvalidTransitionError  409  the state machine rejects the requested move
    PersistenceError        503  infrastructure write failure (only retryable class)

Usage:
    from helpdesk.core.exceptions import NotFoundError, ValidationFailedError

    raise NotFoundError(resource="CatalogItem", resource_id=42)
    raise ValidationFailedError([FieldError("terminalId", "required", "...")])
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """One failing field in a ValidationFailedError."""

    field: str
    code: str
    message: str = ""

    def __str__(self) -> str:
        return f"{self.field}: {self.code}"

    def to_dict(self) -> dict:
        return {"field": self.field, "code": self.code, "message": self.message}


class NotFoundError(Exception):
    """Raised when a requested resource does not exist or is inactive.

    Args:
        resource: Human-readable model/entity name (e.g. "CatalogItem", "Ticket").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class SchemaConflictError(Exception):
    """Raised when an administrative catalog edit would violate a schema invariant.

    Covers duplicate field names within an owner, dual option sources,
    changing the type or required-ness of a field that already has answers,
    and deleting catalog rows that are still in use.

    Args:
        message: Human-readable explanation.
        field: Optional attribute that caused the conflict.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class ValidationFailedError(Exception):
    """Raised when submitted values fail validation.

    Always carries the complete list of failures — never just the first —
    so a form can highlight every problem at once.
    """

    def __init__(self, errors: list[FieldError], message: str = "Validation failed") -> None:
        self.errors = list(errors)
        super().__init__(f"{message}: " + ", ".join(str(e) for e in self.errors))

    @property
    def details(self) -> dict:
        return {"errors": [e.to_dict() for e in self.errors]}


class UnauthorizedError(Exception):
    """Raised when the actor lacks the role or relationship required to act.

    Args:
        actor_id: The acting user's id (None when unauthenticated).
        action: The attempted action (e.g. "approve", "transition:resolved").
        reason: Optional detail kept for logs and the HTTP response.
    """

    def __init__(self, actor_id: int | None, action: str, reason: str | None = None) -> None:
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        msg = f"User {actor_id} is not authorized to '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InvalidTransitionError(Exception):
    """Raised when a ticket status transition is not allowed from its current state."""

    def __init__(self, ticket_id: int, action: str, current: str, reason: str | None = None) -> None:
        msg = f"Cannot '{action}' ticket {ticket_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.ticket_id = ticket_id
        self.action = action
        self.current_status = current
        self.reason = reason


class PersistenceError(Exception):
    """Raised when an atomic multi-row write fails at the database layer.

    The unit of work has already rolled back; callers may retry.
    """
