"""
Ticket event outbox.

Each status change writes a ``ticket_events`` row in the same transaction as
the change itself; the notification / SLA collaborator reads them back.
Once the transaction has committed, ``publish`` logs each event with
``event_type`` and ``ticket_id`` extras so the JSON log formatter forwards it
to the log aggregator. Rolled-back events are never logged.
"""

import logging

from helpdesk.models import db
from helpdesk.models.ticket import TICKET_EVENT_TYPES, TicketEvent

logger = logging.getLogger(__name__)


def record_event(ticket, event_type: str, actor_id: int | None, payload: dict | None = None) -> TicketEvent:
    """Stage an outbox event on the current session (the caller commits)."""
    if event_type not in TICKET_EVENT_TYPES:
        raise ValueError(f"Unknown ticket event type: {event_type}")
    event = TicketEvent(
        ticket_id=ticket.id,
        event_type=event_type,
        actor_id=actor_id,
        payload=payload or {},
    )
    db.session.add(event)
    return event


def publish(events) -> None:
    for event in events:
        logger.info(
            "Ticket event %s ticket=%s actor=%s",
            event.event_type,
            event.ticket_id,
            event.actor_id,
            extra={"event_type": event.event_type, "ticket_id": event.ticket_id},
        )


def list_ticket_events(ticket_id: int) -> list[dict]:
    rows = (
        TicketEvent.query.filter_by(ticket_id=ticket_id)
        .order_by(TicketEvent.created_at, TicketEvent.id)
        .all()
    )
    return [e.to_dict() for e in rows]
