"""
Service Desk — Ticket domain models.

Models:
    - Ticket: a submitted service request and its workflow status.
    - TicketFieldValue: one normalized answer per FieldDefinition.
    - BusinessApproval: manager sign-off record (1:1 when approval is required).
    - TicketEvent: append-only outbox of status-change events.

Ticket lifecycle (TICKET_TRANSITIONS):
    pending_approval → open | rejected
    open             → in_progress
    in_progress      → pending | resolved
    pending          → in_progress
    resolved         → closed
    rejected, closed → (terminal)
"""

from datetime import datetime, timezone

from helpdesk.models import db


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ─────────────────────────────────────────────────────────────────

TICKET_STATUSES = frozenset({
    "open",
    "pending_approval",
    "rejected",
    "in_progress",
    "pending",
    "resolved",
    "closed",
})

TERMINAL_STATUSES = frozenset({"rejected", "closed"})

TICKET_TRANSITIONS = {
    "pending_approval": ["open", "rejected"],
    "open":             ["in_progress"],
    "in_progress":      ["pending", "resolved"],
    "pending":          ["in_progress"],
    "resolved":         ["closed"],
    "rejected":         [],
    "closed":           [],
}

TICKET_PRIORITIES = frozenset({"low", "medium", "high", "urgent"})

TICKET_EVENT_TYPES = frozenset({
    "ticket_created",
    "approval_decision",
    "status_changed",
    "ticket_assigned",
    "field_values_corrected",
})


def validate_ticket_transition(old_status, new_status):
    """Return True if Ticket status transition is valid."""
    return new_status in TICKET_TRANSITIONS.get(old_status, [])


# ── Ticket ────────────────────────────────────────────────────────────────────

class Ticket(db.Model):
    """A submitted service request."""

    __tablename__ = "tickets"

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(
        db.Integer, db.ForeignKey("catalog_items.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    template_id = db.Column(
        db.Integer, db.ForeignKey("item_templates.id", ondelete="RESTRICT"), nullable=True
    )
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_to_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    priority = db.Column(db.String(10), nullable=False, default="medium")
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    root_cause = db.Column(db.String(100), nullable=True)
    issue_type = db.Column(db.String(100), nullable=True)
    requires_business_approval = db.Column(
        db.Boolean,
        nullable=False,
        default=False,
        comment="Computed once at intake from item/template flags; never recomputed",
    )
    idempotency_key = db.Column(db.String(100), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("created_by_id", "idempotency_key", name="uq_ticket_requester_idempotency"),
        db.CheckConstraint(
            "status IN ('open', 'pending_approval', 'rejected', 'in_progress', "
            "'pending', 'resolved', 'closed')",
            name="ck_ticket_status",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    item = db.relationship("CatalogItem")
    template = db.relationship("ItemTemplate")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    field_values = db.relationship(
        "TicketFieldValue",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketFieldValue.id",
    )
    approval = db.relationship(
        "BusinessApproval",
        back_populates="ticket",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self, include_values=False):
        d = {
            "id": self.id,
            "item_id": self.item_id,
            "template_id": self.template_id,
            "created_by_id": self.created_by_id,
            "assigned_to_id": self.assigned_to_id,
            "status": self.status,
            "priority": self.priority,
            "title": self.title,
            "description": self.description or "",
            "root_cause": self.root_cause,
            "issue_type": self.issue_type,
            "requires_business_approval": self.requires_business_approval,
            "approval": self.approval.to_dict() if self.approval else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }
        if include_values:
            d["field_values"] = [v.to_dict() for v in self.field_values]
        return d

    def __repr__(self):
        return f"<Ticket {self.id}: {self.status}>"


# ── Ticket Field Value ────────────────────────────────────────────────────────

class TicketFieldValue(db.Model):
    """Normalized answer to one FieldDefinition for one ticket.

    Rows are never updated in place: a correction deletes the old row and
    inserts a new one for the same field_definition_id in one transaction.
    """

    __tablename__ = "ticket_field_values"

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_definition_id = db.Column(
        db.Integer,
        db.ForeignKey("field_definitions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    value = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("ticket_id", "field_definition_id", name="uq_ticket_field_value"),
    )

    ticket = db.relationship("Ticket", back_populates="field_values")
    field_definition = db.relationship("FieldDefinition")

    def to_dict(self):
        fd = self.field_definition
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "field_definition_id": self.field_definition_id,
            "field_name": fd.field_name if fd else None,
            "field_label": (fd.field_label or fd.field_name) if fd else None,
            "field_type": fd.field_type if fd else None,
            "value": self.value,
        }


# ── Business Approval ─────────────────────────────────────────────────────────

class BusinessApproval(db.Model):
    """Manager sign-off governing a ticket that requires business approval."""

    __tablename__ = "business_approvals"

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    reviewer_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approval_status = db.Column(db.String(10), nullable=False, default="pending")
    comments = db.Column(db.Text, nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "approval_status IN ('pending', 'approved', 'rejected')",
            name="ck_business_approval_status",
        ),
    )

    ticket = db.relationship("Ticket", back_populates="approval")

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "reviewer_id": self.reviewer_id,
            "approval_status": self.approval_status,
            "comments": self.comments,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ── Ticket Event (outbox) ─────────────────────────────────────────────────────

class TicketEvent(db.Model):
    """Append-only status-change event, written in the same transaction as the change.

    Consumed by the notification / SLA collaborator; never updated or deleted.
    """

    __tablename__ = "ticket_events"

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type = db.Column(
        db.String(30),
        nullable=False,
        comment="ticket_created | approval_decision | status_changed | ticket_assigned | ...",
    )
    actor_id = db.Column(db.Integer, nullable=True)
    payload = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "event_type": self.event_type,
            "actor_id": self.actor_id,
            "payload": self.payload or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
