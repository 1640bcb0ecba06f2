"""initial_service_desk_schema

Creates the service desk tables:
  - users                 — identity mirror (role, reporting line, reviewer flag)
  - master_data_entries   — externally maintained option lists
  - service_catalogs, catalog_items, item_templates, field_definitions
  - tickets, ticket_field_values, business_approvals, ticket_events

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 5e1c0a9d2f41
Revises:
Create Date: 2026-10-19 09:12:44.310527
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1c0a9d2f41'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("username", sa.String(length=100), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="requester"),
            sa.Column("manager_id", sa.Integer(), nullable=True),
            sa.Column("unit_id", sa.Integer(), nullable=True),
            sa.Column("department_id", sa.Integer(), nullable=True),
            sa.Column("is_business_reviewer", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["manager_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("username"),
            sa.CheckConstraint(
                "role IN ('requester', 'technician', 'manager', 'admin')", name="ck_user_role"
            ),
        )
        op.create_index("ix_users_manager_id", "users", ["manager_id"])

    # ── Master data ───────────────────────────────────────────────────────
    if "master_data_entries" not in existing:
        op.create_table(
            "master_data_entries",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column(
                "data_type", sa.String(length=50), nullable=False,
                comment="branch | bank | terminal | application | menu | ...",
            ),
            sa.Column("code", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("parent_code", sa.String(length=100), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("data_type", "code", name="uq_master_data_type_code"),
        )
        op.create_index(
            "ix_master_data_type_active", "master_data_entries", ["data_type", "is_active"]
        )

    # ── Catalog hierarchy ─────────────────────────────────────────────────
    if "service_catalogs" not in existing:
        op.create_table(
            "service_catalogs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("service_type", sa.String(length=20), nullable=False, server_default="technical"),
            sa.Column("department_id", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "service_type IN ('business', 'technical', 'government')",
                name="ck_catalog_service_type",
            ),
        )
        op.create_index("ix_service_catalogs_department_id", "service_catalogs", ["department_id"])

    if "catalog_items" not in existing:
        op.create_table(
            "catalog_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("catalog_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_government_related", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "requires_government_approval", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column(
                "request_type", sa.String(length=30), nullable=False, server_default="service_request"
            ),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("sort_order", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["catalog_id"], ["service_catalogs.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_catalog_items_catalog_id", "catalog_items", ["catalog_id"])

    if "item_templates" not in existing:
        op.create_table(
            "item_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("item_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("template_type", sa.String(length=50), nullable=True),
            sa.Column(
                "requires_business_approval", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column("root_cause", sa.String(length=100), nullable=True),
            sa.Column("issue_type", sa.String(length=100), nullable=True),
            sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("sort_order", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["item_id"], ["catalog_items.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_item_templates_item_id", "item_templates", ["item_id"])

    if "field_definitions" not in existing:
        op.create_table(
            "field_definitions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("owner_type", sa.String(length=10), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("field_name", sa.String(length=100), nullable=False),
            sa.Column("field_label", sa.String(length=200), nullable=True),
            sa.Column("field_type", sa.String(length=20), nullable=False, server_default="text"),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("sort_order", sa.Integer(), nullable=True),
            sa.Column("placeholder", sa.String(length=200), nullable=True),
            sa.Column("default_value", sa.String(length=500), nullable=True),
            sa.Column("help_text", sa.Text(), nullable=True),
            sa.Column("validation_rules", sa.JSON(), nullable=True),
            sa.Column("options", sa.JSON(), nullable=True),
            sa.Column("data_type", sa.String(length=50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("owner_type IN ('item', 'template')", name="ck_field_owner_type"),
            sa.CheckConstraint(
                "options IS NULL OR data_type IS NULL", name="ck_field_single_options_source"
            ),
        )
        op.create_index("ix_field_owner", "field_definitions", ["owner_type", "owner_id"])
        op.create_index(
            "uq_field_owner_active_name",
            "field_definitions",
            ["owner_type", "owner_id", "field_name"],
            unique=True,
            postgresql_where=sa.text("is_active"),
            sqlite_where=sa.text("is_active"),
        )

    # ── Tickets ───────────────────────────────────────────────────────────
    if "tickets" not in existing:
        op.create_table(
            "tickets",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("item_id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=True),
            sa.Column("created_by_id", sa.Integer(), nullable=False),
            sa.Column("assigned_to_id", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("root_cause", sa.String(length=100), nullable=True),
            sa.Column("issue_type", sa.String(length=100), nullable=True),
            sa.Column(
                "requires_business_approval", sa.Boolean(), nullable=False,
                server_default=sa.false(),
                comment="Computed once at intake from item/template flags; never recomputed",
            ),
            sa.Column("idempotency_key", sa.String(length=100), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            *_timestamps(),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["item_id"], ["catalog_items.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["template_id"], ["item_templates.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["created_by_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "created_by_id", "idempotency_key", name="uq_ticket_requester_idempotency"
            ),
            sa.CheckConstraint(
                "status IN ('open', 'pending_approval', 'rejected', 'in_progress', "
                "'pending', 'resolved', 'closed')",
                name="ck_ticket_status",
            ),
        )
        op.create_index("ix_tickets_item_id", "tickets", ["item_id"])
        op.create_index("ix_tickets_created_by_id", "tickets", ["created_by_id"])
        op.create_index("ix_tickets_assigned_to_id", "tickets", ["assigned_to_id"])
        op.create_index("ix_tickets_status", "tickets", ["status"])

    if "ticket_field_values" not in existing:
        op.create_table(
            "ticket_field_values",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ticket_id", sa.Integer(), nullable=False),
            sa.Column("field_definition_id", sa.Integer(), nullable=False),
            sa.Column("value", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(
                ["field_definition_id"], ["field_definitions.id"], ondelete="RESTRICT"
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ticket_id", "field_definition_id", name="uq_ticket_field_value"),
        )
        op.create_index("ix_ticket_field_values_ticket_id", "ticket_field_values", ["ticket_id"])
        op.create_index(
            "ix_ticket_field_values_field_definition_id",
            "ticket_field_values",
            ["field_definition_id"],
        )

    if "business_approvals" not in existing:
        op.create_table(
            "business_approvals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ticket_id", sa.Integer(), nullable=False),
            sa.Column("reviewer_id", sa.Integer(), nullable=True),
            sa.Column("approval_status", sa.String(length=10), nullable=False, server_default="pending"),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("ticket_id"),
            sa.CheckConstraint(
                "approval_status IN ('pending', 'approved', 'rejected')",
                name="ck_business_approval_status",
            ),
        )

    if "ticket_events" not in existing:
        op.create_table(
            "ticket_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("ticket_id", sa.Integer(), nullable=False),
            sa.Column("event_type", sa.String(length=30), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["ticket_id"], ["tickets.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_ticket_events_ticket_id", "ticket_events", ["ticket_id"])
        op.create_index("ix_ticket_events_created_at", "ticket_events", ["created_at"])


def downgrade():
    for table in (
        "ticket_events",
        "business_approvals",
        "ticket_field_values",
        "tickets",
        "field_definitions",
        "item_templates",
        "catalog_items",
        "service_catalogs",
        "master_data_entries",
        "users",
    ):
        op.drop_table(table)
