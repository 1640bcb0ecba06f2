"""
Approval State Machine tests.

Scenario C (manager approval opens the ticket), scenario D (work moves are
refused while approval is pending), reviewer authorization, rejection, the
technician path through to closure, and the lost-race mapping.
"""

import pytest
from sqlalchemy import update

from factories import make_item, make_template
from helpdesk.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from helpdesk.models import db
from helpdesk.models.ticket import BusinessApproval, Ticket
from helpdesk.services import ticket_lifecycle
from helpdesk.services.ticket_intake import create_ticket
from helpdesk.services.ticket_lifecycle import (
    approve_ticket,
    assign_ticket,
    get_approval,
    list_pending_approvals,
    list_ticket_events,
    reject_ticket,
    transition_ticket,
)


def _raise(requester, item=None, needs_approval=True):
    item = item or make_item()
    template = make_template(item, requires_business_approval=needs_approval)
    ticket, _ = create_ticket(item.id, template.id, requester.id, "Access request", "", "medium", {})
    return ticket["id"]


def _status(ticket_id):
    db.session.expire_all()
    return db.session.get(Ticket, ticket_id).status


@pytest.fixture()
def pending_id(users):
    return _raise(users.requester)


@pytest.fixture()
def open_id(users):
    return _raise(users.requester, needs_approval=False)


@pytest.fixture()
def gov_item():
    return make_item(name="KASDA Access", is_government_related=True)


# ═════════════════════════════════════════════════════════════════════════════
# Approval decisions
# ═════════════════════════════════════════════════════════════════════════════


class TestApprove:
    def test_scenario_c_manager_approves(self, users, pending_id):
        ticket = approve_ticket(pending_id, users.manager, "ok")
        assert ticket["status"] == "open"
        approval = get_approval(pending_id)
        assert approval.approval_status == "approved"
        assert approval.reviewer_id == users.manager.id
        assert approval.comments == "ok"
        assert approval.decided_at is not None

    def test_blank_comment_is_stored_as_none(self, users, pending_id):
        approve_ticket(pending_id, users.manager, "   ")
        assert get_approval(pending_id).comments is None

    def test_other_manager_is_forbidden(self, users, pending_id):
        with pytest.raises(UnauthorizedError):
            approve_ticket(pending_id, users.outsider)
        assert _status(pending_id) == "pending_approval"

    def test_requester_cannot_approve_own_ticket(self, users, pending_id):
        with pytest.raises(UnauthorizedError):
            approve_ticket(pending_id, users.requester)

    def test_regulated_item_needs_business_reviewer(self, users, gov_item):
        # requester reports to a manager without the business-reviewer flag
        ticket_id = _raise(users.requester, item=gov_item)
        with pytest.raises(UnauthorizedError):
            approve_ticket(ticket_id, users.manager)
        gov_ticket = _raise(users.gov_requester, item=gov_item)
        assert approve_ticket(gov_ticket, users.reviewer)["status"] == "open"

    def test_second_decision_is_conflict(self, users, pending_id):
        approve_ticket(pending_id, users.manager)
        with pytest.raises(InvalidTransitionError):
            approve_ticket(pending_id, users.manager)
        with pytest.raises(InvalidTransitionError):
            reject_ticket(pending_id, users.manager, "too late")

    def test_ticket_without_approval_gate_is_conflict(self, users, open_id):
        with pytest.raises(InvalidTransitionError):
            approve_ticket(open_id, users.manager)

    def test_state_is_checked_before_authorization(self, users, open_id):
        with pytest.raises(InvalidTransitionError):
            approve_ticket(open_id, users.outsider)

    def test_unknown_ticket(self, users):
        with pytest.raises(NotFoundError):
            approve_ticket(999, users.manager)


class TestReject:
    def test_reject_is_terminal(self, users, pending_id):
        ticket = reject_ticket(pending_id, users.manager, "not justified")
        assert ticket["status"] == "rejected"
        assert get_approval(pending_id).approval_status == "rejected"
        with pytest.raises(InvalidTransitionError) as exc:
            transition_ticket(pending_id, users.admin, "open")
        assert "final" in str(exc.value)

    @pytest.mark.parametrize("comments", [None, "", "  "])
    def test_reject_requires_comments(self, users, pending_id, comments):
        with pytest.raises(ValidationFailedError) as exc:
            reject_ticket(pending_id, users.manager, comments)
        assert exc.value.errors[0].field == "comments"
        assert _status(pending_id) == "pending_approval"


# ═════════════════════════════════════════════════════════════════════════════
# Work transitions
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_scenario_d_resolve_while_pending_approval(self, users, pending_id):
        version_before = db.session.get(Ticket, pending_id).version
        with pytest.raises(InvalidTransitionError) as exc:
            transition_ticket(pending_id, users.technician, "resolved")
        assert exc.value.current_status == "pending_approval"
        assert _status(pending_id) == "pending_approval"
        assert db.session.get(Ticket, pending_id).version == version_before

    def test_approval_moves_are_not_transitions(self, users, pending_id):
        with pytest.raises(InvalidTransitionError):
            transition_ticket(pending_id, users.manager, "open")

    def test_unknown_target(self, users, open_id):
        with pytest.raises(InvalidTransitionError):
            transition_ticket(open_id, users.technician, "archived")

    def test_unassigned_technician_is_forbidden(self, users, open_id):
        with pytest.raises(UnauthorizedError):
            transition_ticket(open_id, users.technician, "in_progress")

    def test_full_technician_path(self, users, open_id):
        assign_ticket(open_id, users.manager, users.technician.id)
        assert transition_ticket(open_id, users.technician, "in_progress")["status"] == "in_progress"
        assert transition_ticket(open_id, users.technician, "pending")["status"] == "pending"
        transition_ticket(open_id, users.technician, "in_progress")
        resolved = transition_ticket(open_id, users.technician, "resolved")
        assert resolved["resolved_at"] is not None

        with pytest.raises(UnauthorizedError):
            transition_ticket(open_id, users.technician, "closed")
        closed = transition_ticket(open_id, users.requester, "closed")
        assert closed["status"] == "closed"
        assert closed["closed_at"] is not None

        with pytest.raises(InvalidTransitionError):
            transition_ticket(open_id, users.admin, "in_progress")

    def test_other_technician_cannot_work_ticket(self, users, open_id):
        assign_ticket(open_id, users.manager, users.technician.id)
        with pytest.raises(UnauthorizedError):
            transition_ticket(open_id, users.other_technician, "in_progress")

    def test_admin_may_close(self, users, open_id):
        ticket = db.session.get(Ticket, open_id)
        ticket.status = "resolved"
        db.session.commit()
        assert transition_ticket(open_id, users.admin, "closed")["status"] == "closed"


class TestAssign:
    def test_technician_self_assigns(self, users, open_id):
        ticket = assign_ticket(open_id, users.technician, users.technician.id)
        assert ticket["assigned_to_id"] == users.technician.id

    def test_technician_cannot_assign_others(self, users, open_id):
        with pytest.raises(UnauthorizedError):
            assign_ticket(open_id, users.technician, users.other_technician.id)

    def test_assignee_must_be_technician(self, users, open_id):
        with pytest.raises(ValidationFailedError):
            assign_ticket(open_id, users.manager, users.requester.id)

    def test_unknown_assignee(self, users, open_id):
        with pytest.raises(NotFoundError):
            assign_ticket(open_id, users.manager, 4040)

    def test_pending_approval_cannot_be_assigned(self, users, pending_id):
        with pytest.raises(InvalidTransitionError):
            assign_ticket(pending_id, users.manager, users.technician.id)


# ═════════════════════════════════════════════════════════════════════════════
# Concurrency, events and queries
# ═════════════════════════════════════════════════════════════════════════════


class TestConcurrentDecision:
    def test_lost_race_is_conflict_and_rolled_back(self, users, pending_id, monkeypatch):
        original = ticket_lifecycle._authorize_reviewer

        def _authorize_then_race(actor, ticket, action):
            original(actor, ticket, action)
            # Another writer commits its decision between our read and our write.
            db.session.execute(
                update(Ticket)
                .where(Ticket.id == ticket.id)
                .values(version=Ticket.version + 1, status="open")
                .execution_options(synchronize_session=False)
            )

        monkeypatch.setattr(ticket_lifecycle, "_authorize_reviewer", _authorize_then_race)
        with pytest.raises(InvalidTransitionError) as exc:
            approve_ticket(pending_id, users.manager)
        assert "concurrently" in str(exc.value)
        assert _status(pending_id) == "pending_approval"
        approval = BusinessApproval.query.filter_by(ticket_id=pending_id).one()
        assert approval.approval_status == "pending"
        assert approval.reviewer_id is None


class TestEventsAndQueries:
    def test_events_follow_every_move(self, users, pending_id):
        approve_ticket(pending_id, users.manager)
        assign_ticket(pending_id, users.manager, users.technician.id)
        transition_ticket(pending_id, users.technician, "in_progress")
        events = list_ticket_events(pending_id)
        assert [e["event_type"] for e in events] == [
            "ticket_created",
            "approval_decision",
            "status_changed",
            "ticket_assigned",
            "status_changed",
        ]
        assert events[2]["payload"] == {"from": "pending_approval", "to": "open"}
        assert events[-1]["actor_id"] == users.technician.id

    def test_failed_move_writes_no_event(self, users, pending_id):
        with pytest.raises(InvalidTransitionError):
            transition_ticket(pending_id, users.technician, "resolved")
        assert [e["event_type"] for e in list_ticket_events(pending_id)] == ["ticket_created"]

    def test_events_of_unknown_ticket(self):
        with pytest.raises(NotFoundError):
            list_ticket_events(999)

    def test_pending_approvals_are_scoped_to_reviewer(self, users, gov_item, pending_id):
        gov_id = _raise(users.gov_requester, item=gov_item)
        assert [t["id"] for t in list_pending_approvals(users.manager)] == [pending_id]
        assert [t["id"] for t in list_pending_approvals(users.reviewer)] == [gov_id]
        assert list_pending_approvals(users.outsider) == []

    def test_get_approval_of_ungated_ticket_is_none(self, open_id):
        assert get_approval(open_id) is None
