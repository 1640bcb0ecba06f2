"""
Ticket Intake Orchestrator.

Turns a catalog submission into a persisted ticket:

    1. resolve item (+ template) and requester
    2. load the effective owner's active field definitions
    3. validate title, priority and every answer (all failures reported at once)
    4. decide whether a business approval gate applies
    5. write ticket + answers + approval + ``ticket_created`` event atomically

The approval decision is taken once here and stored on the ticket; later
changes to item or template flags never touch existing tickets.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.exceptions import (
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from helpdesk.models import db
from helpdesk.models.auth import User
from helpdesk.models.catalog import FieldDefinition
from helpdesk.models.ticket import (
    TICKET_PRIORITIES,
    BusinessApproval,
    Ticket,
    TicketFieldValue,
)
from helpdesk.services import catalog_service
from helpdesk.services.field_validation import validate_all
from helpdesk.services.helpers.unit_of_work import transaction
from helpdesk.services.ticket_events import publish, record_event
from helpdesk.services.ticket_lifecycle import load_for_update

logger = logging.getLogger(__name__)

CORRECTABLE_STATUSES = frozenset({"pending_approval", "open", "pending"})

_MAX_TITLE = 255
_MAX_IDEMPOTENCY_KEY = 100


def requires_business_approval(item, template) -> bool:
    """Approval gate: template flag, or either government flag on the item."""
    return bool(
        (template is not None and template.requires_business_approval)
        or item.requires_government_approval
        or item.is_government_related
    )


def _get_active_user(user_id: int) -> User:
    user = db.session.get(User, user_id) if user_id is not None else None
    if not user or not user.is_active:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def _find_replay(requester_id: int, idempotency_key: str | None) -> Ticket | None:
    if not idempotency_key:
        return None
    return Ticket.query.filter_by(
        created_by_id=requester_id, idempotency_key=idempotency_key
    ).first()


def _header_errors(title, description, priority, idempotency_key) -> list[FieldError]:
    errors = []
    if title is not None and not isinstance(title, str):
        errors.append(FieldError("title", "invalid_format", "Title must be a string"))
    elif not (title or "").strip():
        errors.append(FieldError("title", "required", "Title is required"))
    elif len(title.strip()) > _MAX_TITLE:
        errors.append(FieldError("title", "too_long", f"Must be at most {_MAX_TITLE} characters"))
    if description is not None and not isinstance(description, str):
        errors.append(FieldError("description", "invalid_format", "Description must be a string"))
    if not isinstance(priority, str):
        errors.append(FieldError("priority", "invalid_format", "Priority must be a string"))
    elif priority not in TICKET_PRIORITIES:
        errors.append(FieldError(
            "priority", "invalid_option", f"Must be one of {sorted(TICKET_PRIORITIES)}"
        ))
    if idempotency_key and len(idempotency_key) > _MAX_IDEMPOTENCY_KEY:
        errors.append(FieldError(
            "idempotency_key", "too_long", f"Must be at most {_MAX_IDEMPOTENCY_KEY} characters"
        ))
    return errors


def create_ticket(
    item_id: int,
    template_id: int | None,
    requester_id: int,
    title: str,
    description: str = "",
    priority: str = "medium",
    field_values: dict | None = None,
    idempotency_key: str | None = None,
    master_data=None,
) -> tuple[dict, bool]:
    """Validate a submission and persist the resulting ticket atomically.

    Args:
        item_id: Catalog item the request is raised against.
        template_id: Optional template of that item; its fields replace the item's.
        requester_id: Acting user (becomes ``created_by``).
        title, description, priority: Ticket header.
        field_values: Mapping of field_name → raw answer.
        idempotency_key: Client retry key, unique per requester.
        master_data: MasterDataSource for data_type-backed options.

    Returns:
        (ticket_dict, created). ``created`` is False when an earlier ticket
        with the same idempotency key was returned instead.

    Raises:
        NotFoundError: Item, template or requester missing or inactive.
        ValidationFailedError: Every failing header attribute and field.
        PersistenceError: The write failed and was rolled back.
    """
    if idempotency_key is not None and not isinstance(idempotency_key, str):
        raise ValidationFailedError([
            FieldError("idempotency_key", "invalid_format", "Idempotency key must be a string")
        ])
    idempotency_key = (idempotency_key or "").strip() or None
    replay = _find_replay(requester_id, idempotency_key)
    if replay is not None:
        logger.info("Ticket replayed id=%s key=%s", replay.id, idempotency_key)
        return replay.to_dict(include_values=True), False

    item = catalog_service.get_item(item_id, active_only=True)
    template = None
    if template_id is not None:
        template = catalog_service.get_template(template_id, active_only=True)
        if template.item_id != item.id:
            raise NotFoundError(resource="ItemTemplate", resource_id=template_id)
    requester = _get_active_user(requester_id)

    owner = catalog_service.effective_owner(item, template)
    definitions = catalog_service.list_field_definitions(owner)

    errors = _header_errors(title, description, priority, idempotency_key)
    try:
        answers = validate_all(definitions, field_values or {}, master_data)
    except ValidationFailedError as exc:
        errors.extend(exc.errors)
        answers = []
    if errors:
        logger.warning("Ticket rejected item=%s requester=%s errors=%s",
                       item.id, requester.id, [str(e) for e in errors])
        raise ValidationFailedError(errors)

    needs_approval = requires_business_approval(item, template)
    ticket = Ticket(
        item_id=item.id,
        template_id=template.id if template else None,
        created_by_id=requester.id,
        status="pending_approval" if needs_approval else "open",
        priority=priority,
        title=title.strip(),
        description=(description or "").strip(),
        root_cause=template.root_cause if template else None,
        issue_type=template.issue_type if template else None,
        requires_business_approval=needs_approval,
        idempotency_key=idempotency_key,
    )

    try:
        with transaction():
            db.session.add(ticket)
            for fd, value in answers:
                if value is not None:
                    ticket.field_values.append(
                        TicketFieldValue(field_definition_id=fd.id, value=value)
                    )
            if needs_approval:
                ticket.approval = BusinessApproval(approval_status="pending")
            db.session.flush()
            event = record_event(ticket, "ticket_created", requester.id, {
                "status": ticket.status,
                "item_id": item.id,
                "template_id": ticket.template_id,
                "requires_business_approval": needs_approval,
            })
    except IntegrityError:
        # Concurrent retry with the same key won the insert.
        winner = _find_replay(requester_id, idempotency_key)
        if winner is None:
            raise
        logger.info("Ticket replayed after race id=%s key=%s", winner.id, idempotency_key)
        return winner.to_dict(include_values=True), False

    publish([event])
    logger.info("Ticket created id=%s status=%s item=%s approval=%s",
                ticket.id, ticket.status, item.id, needs_approval)
    return ticket.to_dict(include_values=True), True


def get_ticket(ticket_id: int) -> Ticket:
    ticket = db.session.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    return ticket


def list_tickets(
    created_by: int | None = None,
    assigned_to: int | None = None,
    status: str | None = None,
):
    """Return a Ticket query filtered by requester, assignee and status (newest first)."""
    q = Ticket.query
    if created_by is not None:
        q = q.filter_by(created_by_id=created_by)
    if assigned_to is not None:
        q = q.filter_by(assigned_to_id=assigned_to)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Ticket.created_at.desc(), Ticket.id.desc())


def get_ticket_field_values(ticket_id: int) -> list[dict]:
    ticket = get_ticket(ticket_id)
    return [v.to_dict() for v in ticket.field_values]


def correct_field_values(ticket_id: int, actor: User, field_values: dict, master_data=None) -> dict:
    """Replace the answers to the submitted fields of an in-flight ticket.

    Only fields present in ``field_values`` are touched; each is re-validated
    against the definition the ticket was raised with. Existing rows are
    deleted and re-inserted, never updated in place. The approval gate is
    not re-evaluated.

    Raises:
        NotFoundError: Unknown ticket.
        InvalidTransitionError: Ticket is not pending_approval, open or pending,
            or another writer changed it first.
        UnauthorizedError: Actor is neither the requester nor an admin.
        ValidationFailedError: Unknown field names or invalid values.
    """
    ticket = load_for_update(ticket_id)
    if ticket.status not in CORRECTABLE_STATUSES:
        raise InvalidTransitionError(ticket.id, "correct", ticket.status)
    if actor.id != ticket.created_by_id and actor.role != "admin":
        raise UnauthorizedError(actor.id, "correct", "only the requester may correct answers")

    # A field the ticket already answered wins over a newer active namesake.
    owner = catalog_service.effective_owner(ticket.item, ticket.template)
    answered = {v.field_definition_id for v in ticket.field_values}
    definitions = {}
    for fd in FieldDefinition.query.filter_by(owner_type=owner.kind.value, owner_id=owner.id):
        if fd.id in answered or (fd.is_active and fd.field_name not in definitions):
            definitions[fd.field_name] = fd
    selected = []
    unknown = []
    for name in (field_values or {}):
        fd = definitions.get(name)
        if fd is None:
            unknown.append(FieldError(name, "invalid_option", "Unknown field"))
        else:
            selected.append(fd)
    if unknown:
        raise ValidationFailedError(unknown)
    if not selected:
        raise ValidationFailedError([FieldError("field_values", "required", "No field values given")])

    answers = validate_all(selected, field_values, master_data)
    touched = {fd.id for fd, _ in answers}
    status = ticket.status

    try:
        with transaction():
            # touching the row puts the correction under the version check
            ticket.updated_at = datetime.now(timezone.utc)
            for row in list(ticket.field_values):
                if row.field_definition_id in touched:
                    ticket.field_values.remove(row)
            db.session.flush()
            for fd, value in answers:
                if value is not None:
                    ticket.field_values.append(
                        TicketFieldValue(field_definition_id=fd.id, value=value)
                    )
            event = record_event(ticket, "field_values_corrected", actor.id, {
                "fields": sorted(fd.field_name for fd, _ in answers),
            })
    except StaleDataError:
        logger.warning("Ticket %s lost a concurrent update during 'correct'", ticket_id)
        raise InvalidTransitionError(
            ticket_id, "correct", status, "ticket was modified concurrently"
        ) from None

    publish([event])
    logger.info("Ticket answers corrected id=%s fields=%s", ticket.id, len(answers))
    return ticket.to_dict(include_values=True)
