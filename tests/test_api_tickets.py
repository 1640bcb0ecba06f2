"""
Ticket API tests (HTTP level).

Status codes and error bodies for intake, corrections and the approval
workflow, identity resolution (X-User-Id in testing, Bearer JWT always),
and the Idempotency-Key header.
"""

import pytest

from factories import as_user, make_field, make_item, make_template
from helpdesk.models import db
from helpdesk.services.jwt_service import generate_access_token


@pytest.fixture()
def atm_item():
    item = make_item(name="ATM-Technical-Issue")
    make_field(item, "location", is_required=True, sort_order=1)
    make_field(item, "terminalId", is_required=True, sort_order=2)
    make_field(item, "problem", "dropdown", is_required=True, sort_order=3,
               options=[{"value": v, "label": v} for v in ("offline", "card_jam", "other")])
    return item


@pytest.fixture()
def gated_item():
    item = make_item(name="KASDA Access", is_government_related=True)
    make_template(item, requires_business_approval=False)
    return item


def _payload(item, **overrides):
    body = {
        "item_id": item.id,
        "title": "ATM at lobby is down",
        "priority": "high",
        "field_values": {"location": "Lobby", "terminalId": "ATM-001", "problem": "offline"},
    }
    body.update(overrides)
    return body


def _create(client, user, item, **overrides):
    res = client.post("/api/v1/tickets", json=_payload(item, **overrides), headers=as_user(user))
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ═════════════════════════════════════════════════════════════════════════════
# Identity
# ═════════════════════════════════════════════════════════════════════════════


class TestIdentity:
    def test_no_actor_is_401(self, client, atm_item):
        res = client.post("/api/v1/tickets", json=_payload(atm_item))
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_unknown_user_header_is_401(self, client):
        res = client.get("/api/v1/tickets", headers={"X-User-Id": "9999"})
        assert res.status_code == 401

    def test_bearer_token(self, client, users, atm_item):
        token = generate_access_token(users.requester.id, role="requester")
        res = client.post(
            "/api/v1/tickets", json=_payload(atm_item),
            headers={"Authorization": f"Bearer {token}"},
        )
        assert res.status_code == 201
        assert res.get_json()["created_by_id"] == users.requester.id

    def test_bad_token_is_401(self, client):
        res = client.get("/api/v1/tickets", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_user_header_ignored_when_auth_enabled(self, app, client, users, monkeypatch):
        monkeypatch.setitem(app.config, "API_AUTH_ENABLED", True)
        res = client.get("/api/v1/tickets", headers=as_user(users.requester))
        assert res.status_code == 401

    def test_health_needs_no_actor(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"


# ═════════════════════════════════════════════════════════════════════════════
# Intake
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateTicket:
    def test_created(self, client, users, atm_item):
        data = _create(client, users.requester, atm_item)
        assert data["status"] == "open"
        assert len(data["field_values"]) == 3

    def test_scenario_a_missing_terminal_id_is_400(self, client, users, atm_item):
        body = _payload(atm_item, field_values={"location": "Lobby", "problem": "offline"})
        res = client.post("/api/v1/tickets", json=body, headers=as_user(users.requester))
        assert res.status_code == 400
        data = res.get_json()
        assert data["code"] == "ERR_VALIDATION_FAILED"
        errors = data["details"]["errors"]
        assert [f"{e['field']}: {e['code']}" for e in errors] == ["terminalId: required"]

    def test_scenario_b_government_item_waits_for_approval(self, client, users, gated_item):
        template_id = gated_item.templates.first().id
        data = _create(client, users.gov_requester, gated_item,
                       template_id=template_id, field_values={})
        assert data["status"] == "pending_approval"
        assert data["approval"]["approval_status"] == "pending"

    def test_missing_item_id(self, client, users):
        res = client.post("/api/v1/tickets", json={"title": "x"}, headers=as_user(users.requester))
        assert res.status_code == 400
        assert res.get_json()["details"]["errors"][0]["field"] == "item_id"

    def test_non_numeric_item_id(self, client, users):
        res = client.post("/api/v1/tickets", json={"item_id": "abc", "title": "x"},
                          headers=as_user(users.requester))
        assert res.status_code == 400
        assert res.get_json()["details"]["errors"][0]["code"] == "invalid_format"

    def test_field_values_must_be_object(self, client, users, atm_item):
        res = client.post("/api/v1/tickets", json=_payload(atm_item, field_values=["a"]),
                          headers=as_user(users.requester))
        assert res.status_code == 400

    @pytest.mark.parametrize("field, value", [
        ("priority", ["high"]),
        ("title", 123),
        ("description", 5),
        ("idempotency_key", 7),
    ])
    def test_non_string_header_value_is_400(self, client, users, atm_item, field, value):
        res = client.post("/api/v1/tickets", json=_payload(atm_item, **{field: value}),
                          headers=as_user(users.requester))
        assert res.status_code == 400
        errors = res.get_json()["details"]["errors"]
        assert [(e["field"], e["code"]) for e in errors] == [(field, "invalid_format")]

    def test_huge_number_is_400_not_retryable(self, client, users):
        item = make_item(name="Cash difference")
        make_field(item, "amount", "number", is_required=True)
        body = {"item_id": item.id, "title": "Till short", "field_values": {"amount": "1e5000"}}
        res = client.post("/api/v1/tickets", json=body, headers=as_user(users.requester))
        assert res.status_code == 400
        errors = res.get_json()["details"]["errors"]
        assert [(e["field"], e["code"]) for e in errors] == [("amount", "out_of_range")]

    def test_item_in_inactive_catalog_is_404(self, client, users, atm_item):
        atm_item.catalog.is_active = False
        db.session.commit()
        res = client.post("/api/v1/tickets", json=_payload(atm_item), headers=as_user(users.requester))
        assert res.status_code == 404

    def test_unknown_item_is_404(self, client, users):
        res = client.post("/api/v1/tickets", json={"item_id": 999, "title": "x"},
                          headers=as_user(users.requester))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_non_json_body_is_415(self, client, users):
        res = client.post("/api/v1/tickets", data="title=x", content_type="text/plain",
                          headers=as_user(users.requester))
        assert res.status_code == 415

    def test_idempotency_key_header_replays(self, client, users, atm_item):
        headers = {**as_user(users.requester), "Idempotency-Key": "retry-42"}
        first = client.post("/api/v1/tickets", json=_payload(atm_item), headers=headers)
        second = client.post("/api/v1/tickets", json=_payload(atm_item), headers=headers)
        assert first.status_code == 201
        assert second.status_code == 200
        assert second.get_json()["id"] == first.get_json()["id"]


class TestReadTickets:
    def test_requester_sees_only_own_tickets(self, client, users, atm_item):
        mine = _create(client, users.requester, atm_item)
        _create(client, users.gov_requester, atm_item)
        res = client.get("/api/v1/tickets", headers=as_user(users.requester))
        data = res.get_json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == mine["id"]

    def test_admin_sees_all_and_filters_by_status(self, client, users, atm_item):
        _create(client, users.requester, atm_item)
        _create(client, users.gov_requester, atm_item)
        assert client.get("/api/v1/tickets", headers=as_user(users.admin)).get_json()["total"] == 2
        res = client.get("/api/v1/tickets?status=closed", headers=as_user(users.admin))
        assert res.get_json()["total"] == 0

    def test_get_ticket_with_values_and_events(self, client, users, atm_item):
        ticket = _create(client, users.requester, atm_item)
        res = client.get(f"/api/v1/tickets/{ticket['id']}", headers=as_user(users.requester))
        assert res.status_code == 200
        assert {v["field_name"] for v in res.get_json()["field_values"]} == {
            "location", "terminalId", "problem",
        }
        values = client.get(f"/api/v1/tickets/{ticket['id']}/field-values",
                            headers=as_user(users.requester))
        assert len(values.get_json()["items"]) == 3
        events = client.get(f"/api/v1/tickets/{ticket['id']}/events", headers=as_user(users.admin))
        assert [e["event_type"] for e in events.get_json()["items"]] == ["ticket_created"]

    def test_unknown_ticket_is_404(self, client, users):
        assert client.get("/api/v1/tickets/999", headers=as_user(users.admin)).status_code == 404

    def test_correct_field_values(self, client, users, atm_item):
        ticket = _create(client, users.requester, atm_item)
        res = client.put(
            f"/api/v1/tickets/{ticket['id']}/field-values",
            json={"field_values": {"terminalId": "ATM-777"}},
            headers=as_user(users.requester),
        )
        assert res.status_code == 200
        values = {v["field_name"]: v["value"] for v in res.get_json()["field_values"]}
        assert values["terminalId"] == "ATM-777"


# ═════════════════════════════════════════════════════════════════════════════
# Workflow
# ═════════════════════════════════════════════════════════════════════════════


class TestWorkflow:
    @pytest.fixture()
    def pending(self, client, users):
        item = make_item(name="Limit increase")
        template = make_template(item, requires_business_approval=True)
        return _create(client, users.requester, item, template_id=template.id, field_values={})

    def test_scenario_c_manager_approves(self, client, users, pending):
        res = client.post(f"/api/v1/tickets/{pending['id']}/approve",
                          json={"comments": "fine"}, headers=as_user(users.manager))
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "open"
        assert data["approval"]["approval_status"] == "approved"
        assert data["approval"]["reviewer_id"] == users.manager.id

    def test_scenario_d_transition_while_pending_is_409(self, client, users, pending):
        res = client.post(f"/api/v1/tickets/{pending['id']}/transition",
                          json={"target_status": "resolved"}, headers=as_user(users.technician))
        assert res.status_code == 409
        data = res.get_json()
        assert data["code"] == "ERR_CONFLICT_STATE"
        assert data["details"]["current_status"] == "pending_approval"
        after = client.get(f"/api/v1/tickets/{pending['id']}", headers=as_user(users.admin))
        assert after.get_json()["status"] == "pending_approval"

    def test_non_manager_approval_is_403(self, client, users, pending):
        res = client.post(f"/api/v1/tickets/{pending['id']}/approve",
                          json={}, headers=as_user(users.outsider))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_reject_without_comments_is_400(self, client, users, pending):
        res = client.post(f"/api/v1/tickets/{pending['id']}/reject",
                          json={}, headers=as_user(users.manager))
        assert res.status_code == 400

    def test_pending_approvals_listing(self, client, users, pending):
        res = client.get("/api/v1/tickets/pending-approvals", headers=as_user(users.manager))
        assert [t["id"] for t in res.get_json()["items"]] == [pending["id"]]

    @pytest.mark.parametrize("action, body", [
        ("transition", {"target_status": 5}),
        ("approve", {"comments": 7}),
        ("reject", {"comments": ["no"]}),
    ])
    def test_non_string_workflow_value_is_400(self, client, users, pending, action, body):
        res = client.post(f"/api/v1/tickets/{pending['id']}/{action}",
                          json=body, headers=as_user(users.manager))
        assert res.status_code == 400
        assert res.get_json()["details"]["errors"][0]["code"] == "invalid_format"
        after = client.get(f"/api/v1/tickets/{pending['id']}", headers=as_user(users.admin))
        assert after.get_json()["status"] == "pending_approval"

    def test_transition_requires_target(self, client, users, pending):
        res = client.post(f"/api/v1/tickets/{pending['id']}/transition",
                          json={}, headers=as_user(users.technician))
        assert res.status_code == 400

    def test_assign_and_work_to_closure(self, client, users, atm_item):
        ticket = _create(client, users.requester, atm_item)
        tid = ticket["id"]
        res = client.post(f"/api/v1/tickets/{tid}/assign",
                          json={"technician_id": users.technician.id}, headers=as_user(users.manager))
        assert res.status_code == 200
        for target in ("in_progress", "resolved"):
            res = client.post(f"/api/v1/tickets/{tid}/transition",
                              json={"target_status": target}, headers=as_user(users.technician))
            assert res.status_code == 200
        res = client.post(f"/api/v1/tickets/{tid}/transition",
                          json={"status": "closed"}, headers=as_user(users.requester))
        assert res.get_json()["status"] == "closed"

        assigned = client.get("/api/v1/tickets", headers=as_user(users.technician)).get_json()
        assert [t["id"] for t in assigned["items"]] == [tid]
