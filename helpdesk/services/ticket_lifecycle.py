"""
Approval State Machine — ticket lifecycle transitions.

All moves go through TICKET_TRANSITIONS (see models/ticket.py). Checks run in
a fixed order so callers get a stable answer:

    1. ticket exists                → NotFoundError        (404)
    2. move is legal from status    → InvalidTransitionError (409)
    3. actor may perform the move   → UnauthorizedError    (403)

Each move is one unit of work: the ticket row is read with SELECT ... FOR
UPDATE and carries an optimistic ``version``; if another writer got there
first the flush raises StaleDataError, the work is rolled back and the caller
sees InvalidTransitionError.

Who may do what:
    approve / reject         the requester's manager (role manager|admin);
                             regulated items also need is_business_reviewer
    open → in_progress,
    in_progress ⇄ pending,
    in_progress → resolved   the assigned technician
    resolved → closed        the requester (confirmation) or an admin
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.exceptions import (
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from helpdesk.models import db
from helpdesk.models.auth import REVIEWER_ROLES, User
from helpdesk.models.ticket import (
    TICKET_STATUSES,
    BusinessApproval,
    Ticket,
    validate_ticket_transition,
)
from helpdesk.services.helpers.unit_of_work import transaction
from helpdesk.services.ticket_events import list_ticket_events as _list_events
from helpdesk.services.ticket_events import publish, record_event

logger = logging.getLogger(__name__)

TECHNICIAN_TRANSITIONS = frozenset({
    ("open", "in_progress"),
    ("in_progress", "pending"),
    ("pending", "in_progress"),
    ("in_progress", "resolved"),
})

ASSIGNABLE_STATUSES = frozenset({"open", "in_progress", "pending"})

_ASSIGNER_ROLES = frozenset({"manager", "admin"})


def _now():
    return datetime.now(timezone.utc)


def load_for_update(ticket_id: int) -> Ticket:
    """Fresh ticket row under SELECT ... FOR UPDATE (404 when missing)."""
    ticket = (
        Ticket.query.filter_by(id=ticket_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not ticket:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    return ticket


def _commit_move(ticket: Ticket, action: str, events_builder) -> list:
    """Run ``events_builder`` inside the unit of work; map a lost race to 409."""
    ticket_id, status = ticket.id, ticket.status
    try:
        with transaction():
            events = events_builder()
    except StaleDataError:
        logger.warning("Ticket %s lost a concurrent update during '%s'", ticket_id, action)
        raise InvalidTransitionError(
            ticket_id, action, status, "ticket was modified concurrently"
        ) from None
    publish(events)
    return events


# ── Authorization rules ──────────────────────────────────────────────────────

def can_review(actor: User, ticket: Ticket) -> bool:
    requester = ticket.created_by
    if actor is None or requester is None or requester.manager_id != actor.id:
        return False
    if actor.role not in REVIEWER_ROLES:
        return False
    if ticket.item.is_regulated and not actor.is_business_reviewer:
        return False
    return True


def _authorize_reviewer(actor: User, ticket: Ticket, action: str) -> None:
    if not can_review(actor, ticket):
        logger.warning("Approval denied ticket=%s actor=%s action=%s",
                       ticket.id, getattr(actor, "id", None), action)
        raise UnauthorizedError(
            getattr(actor, "id", None), action,
            "only the requester's manager (business reviewer for regulated items) may decide",
        )


def _authorize_transition(actor: User, ticket: Ticket, target: str) -> None:
    move = (ticket.status, target)
    if move in TECHNICIAN_TRANSITIONS:
        if actor.role == "technician" and ticket.assigned_to_id == actor.id:
            return
        reason = "only the assigned technician may work the ticket"
    elif move == ("resolved", "closed"):
        if actor.id == ticket.created_by_id or actor.role == "admin":
            return
        reason = "only the requester or an admin may close the ticket"
    else:
        reason = "transition is not user-initiated"
    raise UnauthorizedError(actor.id, f"transition:{target}", reason)


# ── Approval decisions ───────────────────────────────────────────────────────

def _decide(ticket_id: int, actor: User, decision: str, comments: str | None) -> dict:
    action = "approve" if decision == "approved" else "reject"
    target = "open" if decision == "approved" else "rejected"

    ticket = load_for_update(ticket_id)
    approval = ticket.approval
    if ticket.status != "pending_approval" or approval is None:
        raise InvalidTransitionError(ticket.id, action, ticket.status)
    if approval.approval_status != "pending":
        raise InvalidTransitionError(
            ticket.id, action, ticket.status, f"approval already {approval.approval_status}"
        )
    _authorize_reviewer(actor, ticket, action)

    previous = ticket.status

    def apply():
        approval.approval_status = decision
        approval.reviewer_id = actor.id
        approval.comments = comments
        approval.decided_at = _now()
        ticket.status = target
        return [
            record_event(ticket, "approval_decision", actor.id, {
                "decision": decision, "comments": comments,
            }),
            record_event(ticket, "status_changed", actor.id, {
                "from": previous, "to": target,
            }),
        ]

    _commit_move(ticket, action, apply)
    logger.info("Ticket %s id=%s by=%s", decision, ticket.id, actor.id)
    return ticket.to_dict()


def approve_ticket(ticket_id: int, actor: User, comments: str | None = None) -> dict:
    """Approve a pending_approval ticket; it moves to ``open``.

    Raises:
        NotFoundError, InvalidTransitionError, UnauthorizedError, PersistenceError
    """
    return _decide(ticket_id, actor, "approved", (comments or "").strip() or None)


def reject_ticket(ticket_id: int, actor: User, comments: str | None) -> dict:
    """Reject a pending_approval ticket; it moves to terminal ``rejected``.

    A rejection must explain itself: empty comments fail validation before
    the ticket is even loaded.
    """
    comments = (comments or "").strip()
    if not comments:
        raise ValidationFailedError([
            FieldError("comments", "required", "A rejection needs a comment")
        ])
    return _decide(ticket_id, actor, "rejected", comments)


# ── Work transitions ─────────────────────────────────────────────────────────

def transition_ticket(ticket_id: int, actor: User, target_status: str) -> dict:
    """Move a ticket along the technician/closure path.

    Approval moves (pending_approval → open | rejected) are not accepted
    here; use approve_ticket / reject_ticket.
    """
    ticket = load_for_update(ticket_id)
    if ticket.is_terminal:
        raise InvalidTransitionError(
            ticket.id, f"transition:{target_status}", ticket.status, "ticket is already final"
        )
    if target_status not in TICKET_STATUSES or not validate_ticket_transition(ticket.status, target_status):
        raise InvalidTransitionError(ticket.id, f"transition:{target_status}", ticket.status)
    if ticket.status == "pending_approval":
        raise InvalidTransitionError(
            ticket.id, f"transition:{target_status}", ticket.status,
            "approval decisions go through approve/reject",
        )
    _authorize_transition(actor, ticket, target_status)

    previous = ticket.status

    def apply():
        ticket.status = target_status
        if target_status == "resolved":
            ticket.resolved_at = _now()
        elif target_status == "closed":
            ticket.closed_at = _now()
        return [record_event(ticket, "status_changed", actor.id, {
            "from": previous, "to": target_status,
        })]

    _commit_move(ticket, f"transition:{target_status}", apply)
    logger.info("Ticket status changed id=%s %s → %s by=%s",
                ticket.id, previous, target_status, actor.id)
    return ticket.to_dict()


def assign_ticket(ticket_id: int, actor: User, technician_id: int) -> dict:
    """Assign a working ticket to an active technician.

    Managers and admins may assign anyone; a technician may only take the
    ticket for themselves.
    """
    ticket = load_for_update(ticket_id)
    if ticket.status not in ASSIGNABLE_STATUSES:
        raise InvalidTransitionError(ticket.id, "assign", ticket.status)
    if actor.role not in _ASSIGNER_ROLES and not (
        actor.role == "technician" and actor.id == technician_id
    ):
        raise UnauthorizedError(actor.id, "assign", "technicians may only self-assign")

    technician = db.session.get(User, technician_id) if technician_id is not None else None
    if not technician or not technician.is_active:
        raise NotFoundError(resource="User", resource_id=technician_id)
    if technician.role != "technician":
        raise ValidationFailedError([
            FieldError("technician_id", "invalid_option", "Assignee must be a technician")
        ])

    previous = ticket.assigned_to_id

    def apply():
        ticket.assigned_to_id = technician.id
        return [record_event(ticket, "ticket_assigned", actor.id, {
            "from": previous, "to": technician.id,
        })]

    _commit_move(ticket, "assign", apply)
    logger.info("Ticket assigned id=%s technician=%s by=%s", ticket.id, technician.id, actor.id)
    return ticket.to_dict()


# ── Queries ──────────────────────────────────────────────────────────────────

def list_pending_approvals(actor: User) -> list[dict]:
    """Tickets awaiting this actor's decision (their reports' pending requests)."""
    rows = (
        Ticket.query.join(User, Ticket.created_by_id == User.id)
        .filter(Ticket.status == "pending_approval", User.manager_id == actor.id)
        .order_by(Ticket.created_at, Ticket.id)
        .all()
    )
    return [t.to_dict() for t in rows if can_review(actor, t)]


def get_approval(ticket_id: int) -> BusinessApproval | None:
    ticket = db.session.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    return ticket.approval


def list_ticket_events(ticket_id: int) -> list[dict]:
    if not db.session.get(Ticket, ticket_id):
        raise NotFoundError(resource="Ticket", resource_id=ticket_id)
    return _list_events(ticket_id)
