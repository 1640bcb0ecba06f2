"""
Demo data for local development (``flask seed-demo-catalog``).

Creates a small bank branch service desk: users with a reporting line,
branch / terminal master data, an ATM catalog with dynamic fields and a
government (KASDA) catalog whose item always goes through business approval.
Running it twice is a no-op.
"""

import logging

from helpdesk.models import db
from helpdesk.models.auth import User
from helpdesk.models.catalog import Catalog, FieldOwner
from helpdesk.models.master_data import MasterDataEntry
from helpdesk.services import catalog_service
from helpdesk.services.helpers.unit_of_work import transaction

logger = logging.getLogger(__name__)

DEMO_CATALOG_NAME = "ATM Services"

_USERS = [
    # username, role, manager username, business reviewer
    ("admin", "admin", None, True),
    ("branch.manager", "manager", None, True),
    ("it.technician", "technician", None, False),
    ("branch.staff", "requester", "branch.manager", False),
    ("kasda.user", "requester", "branch.manager", False),
]

_MASTER_DATA = {
    "branch": [
        ("BR-001", "Head Office", None),
        ("BR-014", "Kantor Cabang Utama", None),
        ("BR-027", "Kantor Cabang Pembantu Selatan", None),
    ],
    "terminal": [
        ("ATM-001", "ATM-001 Head Office Lobby", "BR-001"),
        ("ATM-014", "ATM-014 Cabang Utama", "BR-014"),
        ("ATM-027", "ATM-027 Cabang Selatan", "BR-027"),
    ],
}


def _seed_users() -> dict[str, User]:
    users = {}
    for username, role, _manager, reviewer in _USERS:
        user = User.query.filter_by(username=username).first()
        if user is None:
            user = User(
                username=username,
                full_name=username.replace(".", " ").title(),
                email=f"{username}@example.com",
                role=role,
                is_business_reviewer=reviewer,
            )
            db.session.add(user)
        users[username] = user
    db.session.flush()
    for username, _role, manager, _reviewer in _USERS:
        if manager:
            users[username].manager_id = users[manager].id
    return users


def _seed_master_data() -> int:
    added = 0
    for data_type, entries in _MASTER_DATA.items():
        for order, (code, name, parent) in enumerate(entries):
            if MasterDataEntry.query.filter_by(data_type=data_type, code=code).first():
                continue
            db.session.add(MasterDataEntry(
                data_type=data_type, code=code, display_name=name,
                parent_code=parent, sort_order=order,
            ))
            added += 1
    return added


def seed_demo_catalog() -> bool:
    """Seed users, master data and the demo catalogs.

    Returns:
        True when data was created, False when the demo catalog already existed.
    """
    if Catalog.query.filter_by(name=DEMO_CATALOG_NAME).first():
        logger.info("Demo catalog already present; nothing to seed")
        return False

    with transaction():
        _seed_users()
        added = _seed_master_data()
    logger.info("Seeded demo users and %s master data entries", added)

    atm = catalog_service.create_catalog({"name": DEMO_CATALOG_NAME, "service_type": "technical"})
    cash_jam = catalog_service.create_item(atm["id"], {
        "name": "ATM Cash Jam",
        "request_type": "incident",
        "description": "Cash dispenser jammed or card retained",
    })
    owner = FieldOwner.item(cash_jam["id"])
    catalog_service.create_field_definition({
        "field_name": "branch", "field_label": "Branch", "field_type": "dropdown",
        "data_type": "branch", "is_required": True, "sort_order": 1,
    }, owner=owner)
    catalog_service.create_field_definition({
        "field_name": "terminalId", "field_label": "Terminal", "field_type": "dropdown",
        "data_type": "terminal", "is_required": True, "sort_order": 2,
    }, owner=owner)
    catalog_service.create_field_definition({
        "field_name": "incidentDate", "field_label": "Incident date", "field_type": "date",
        "is_required": True, "sort_order": 3,
    }, owner=owner)
    catalog_service.create_field_definition({
        "field_name": "amount", "field_label": "Amount retained", "field_type": "number",
        "validation_rules": {"min": 0}, "sort_order": 4,
    }, owner=owner)

    kasda = catalog_service.create_catalog({"name": "KASDA", "service_type": "government"})
    user_mgmt = catalog_service.create_item(kasda["id"], {
        "name": "KASDA User Management",
        "is_government_related": True,
        "request_type": "service_request",
    })
    template = catalog_service.create_template(user_mgmt["id"], {
        "name": "New KASDA user", "requires_business_approval": True,
        "root_cause": "access", "issue_type": "user_registration",
    })
    towner = FieldOwner.template(template["id"])
    catalog_service.create_field_definition({
        "field_name": "employeeId", "field_label": "Employee ID", "field_type": "text",
        "is_required": True,
        "validation_rules": {"pattern": "[0-9]{6}", "patternMessage": "Six digits"},
    }, owner=towner)
    catalog_service.create_field_definition({
        "field_name": "accessLevel", "field_label": "Access level", "field_type": "radio",
        "options": [{"value": "viewer"}, {"value": "operator", "isDefault": True}],
        "default_value": "operator", "is_required": True,
    }, owner=towner)

    logger.info("Seeded demo catalogs %s and %s", atm["id"], kasda["id"])
    return True
