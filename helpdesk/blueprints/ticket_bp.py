"""
Ticket intake and approval workflow.

Blueprint: ticket_bp
Prefix: /api/v1/tickets

Endpoints:
    POST  /tickets                        — submit a catalog request (201; 200 on idempotent replay)
    GET   /tickets                        — list (?mine, ?assigned_to_me, ?status, limit/offset)
    GET   /tickets/pending-approvals      — requests awaiting the caller's decision
    GET   /tickets/<id>                   — ticket with answers
    GET   /tickets/<id>/events            — outbox events for the ticket
    GET   /tickets/<id>/field-values      — stored answers
    PUT   /tickets/<id>/field-values      — correct answers while in flight
    POST  /tickets/<id>/approve           — manager approval
    POST  /tickets/<id>/reject            — manager rejection (comments required)
    POST  /tickets/<id>/transition        — technician / closure status moves
    POST  /tickets/<id>/assign            — assign to a technician

Every route requires an actor (401 otherwise). Service exceptions are mapped
to HTTP responses by the handlers registered below.
"""

import logging

from flask import Blueprint, jsonify, request

from helpdesk.blueprints import json_body, paginate_query
from helpdesk.core.exceptions import FieldError, ValidationFailedError
from helpdesk.middleware.actor_context import current_actor
from helpdesk.services import ticket_intake, ticket_lifecycle
from helpdesk.utils.errors import register_domain_error_handlers
from helpdesk.utils.helpers import parse_bool_arg

logger = logging.getLogger(__name__)

ticket_bp = Blueprint("tickets", __name__, url_prefix="/api/v1/tickets")
register_domain_error_handlers(ticket_bp)


def _int_field(data: dict, key: str, required: bool = True) -> int | None:
    raw = data.get(key)
    if raw in (None, ""):
        if required:
            raise ValidationFailedError([FieldError(key, "required", f"{key} is required")])
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailedError([
            FieldError(key, "invalid_format", f"{key} must be an integer")
        ]) from None


def _str_field(data: dict, key: str) -> str | None:
    raw = data.get(key)
    if raw is not None and not isinstance(raw, str):
        raise ValidationFailedError([
            FieldError(key, "invalid_format", f"{key} must be a string")
        ])
    return raw


# ── Intake ───────────────────────────────────────────────────────────────────

@ticket_bp.route("", methods=["POST"])
def create_ticket():
    """Submit a ticket against a catalog item (and optional template)."""
    actor = current_actor()
    data = json_body()
    field_values = data.get("field_values") or {}
    if not isinstance(field_values, dict):
        raise ValidationFailedError([
            FieldError("field_values", "invalid_format", "field_values must be an object")
        ])

    ticket, created = ticket_intake.create_ticket(
        item_id=_int_field(data, "item_id"),
        template_id=_int_field(data, "template_id", required=False),
        requester_id=actor.id,
        title=data.get("title") or "",
        description=data.get("description") or "",
        priority=data.get("priority") or "medium",
        field_values=field_values,
        idempotency_key=request.headers.get("Idempotency-Key") or data.get("idempotency_key"),
    )
    return jsonify(ticket), 201 if created else 200


@ticket_bp.route("", methods=["GET"])
def list_tickets():
    """List tickets. Non-admins only see their own or their assigned tickets."""
    actor = current_actor()
    created_by = None
    assigned_to = None
    if parse_bool_arg(request.args.get("mine")):
        created_by = actor.id
    if parse_bool_arg(request.args.get("assigned_to_me")):
        assigned_to = actor.id
    if actor.role not in ("admin", "manager") and created_by is None and assigned_to is None:
        if actor.role == "technician":
            assigned_to = actor.id
        else:
            created_by = actor.id

    query = ticket_intake.list_tickets(
        created_by=created_by,
        assigned_to=assigned_to,
        status=request.args.get("status"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [t.to_dict() for t in items], "total": total})


@ticket_bp.route("/pending-approvals", methods=["GET"])
def pending_approvals():
    actor = current_actor()
    items = ticket_lifecycle.list_pending_approvals(actor)
    return jsonify({"items": items, "total": len(items)})


@ticket_bp.route("/<int:ticket_id>", methods=["GET"])
def get_ticket(ticket_id):
    current_actor()
    ticket = ticket_intake.get_ticket(ticket_id)
    return jsonify(ticket.to_dict(include_values=True))


@ticket_bp.route("/<int:ticket_id>/events", methods=["GET"])
def ticket_events(ticket_id):
    current_actor()
    return jsonify({"items": ticket_lifecycle.list_ticket_events(ticket_id)})


@ticket_bp.route("/<int:ticket_id>/field-values", methods=["GET"])
def field_values(ticket_id):
    current_actor()
    return jsonify({"items": ticket_intake.get_ticket_field_values(ticket_id)})


@ticket_bp.route("/<int:ticket_id>/field-values", methods=["PUT"])
def correct_field_values(ticket_id):
    actor = current_actor()
    data = json_body()
    values = data.get("field_values", data)
    if not isinstance(values, dict):
        raise ValidationFailedError([
            FieldError("field_values", "invalid_format", "field_values must be an object")
        ])
    return jsonify(ticket_intake.correct_field_values(ticket_id, actor, values))


# ── Approval & workflow ──────────────────────────────────────────────────────

@ticket_bp.route("/<int:ticket_id>/approve", methods=["POST"])
def approve(ticket_id):
    actor = current_actor()
    data = json_body()
    return jsonify(ticket_lifecycle.approve_ticket(ticket_id, actor, _str_field(data, "comments")))


@ticket_bp.route("/<int:ticket_id>/reject", methods=["POST"])
def reject(ticket_id):
    actor = current_actor()
    data = json_body()
    return jsonify(ticket_lifecycle.reject_ticket(ticket_id, actor, _str_field(data, "comments")))


@ticket_bp.route("/<int:ticket_id>/transition", methods=["POST"])
def transition(ticket_id):
    actor = current_actor()
    data = json_body()
    key = "target_status" if "target_status" in data else "status"
    target = (_str_field(data, key) or "").strip()
    if not target:
        raise ValidationFailedError([
            FieldError("target_status", "required", "target_status is required")
        ])
    return jsonify(ticket_lifecycle.transition_ticket(ticket_id, actor, target))


@ticket_bp.route("/<int:ticket_id>/assign", methods=["POST"])
def assign(ticket_id):
    actor = current_actor()
    data = json_body()
    technician_id = _int_field(data, "technician_id")
    return jsonify(ticket_lifecycle.assign_ticket(ticket_id, actor, technician_id))
