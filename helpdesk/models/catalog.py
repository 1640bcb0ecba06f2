"""
Service Catalog schema models.

Hierarchy:
    Catalog → CatalogItem → (optional) ItemTemplate → FieldDefinition

A FieldDefinition is owned by exactly one CatalogItem *or* one ItemTemplate.
Ownership is stored as a tagged pair (owner_type, owner_id) — the same
polymorphic pattern used for entity references elsewhere — and the pair is
guarded by a CHECK constraint plus a per-owner unique field_name.

The options of a choice field come from *either* a static list stored inline
*or* a master-data ``data_type`` reference, never both (CHECK constraint).
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from helpdesk.models import db


def _utcnow():
    return datetime.now(timezone.utc)


# ── Constants ─────────────────────────────────────────────────────────────────

SERVICE_TYPES = frozenset({"business", "technical", "government"})

REQUEST_TYPES = frozenset({"service_request", "incident", "change_request"})


class FieldType(str, Enum):
    """Closed set of question types an administrator can attach to an item."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    DATETIME = "datetime"
    DROPDOWN = "dropdown"
    CHECKBOX = "checkbox"
    RADIO = "radio"

    @classmethod
    def values(cls) -> list[str]:
        return [m.value for m in cls]


CHOICE_FIELD_TYPES = frozenset({FieldType.DROPDOWN, FieldType.RADIO, FieldType.CHECKBOX})


class OwnerKind(str, Enum):
    ITEM = "item"
    TEMPLATE = "template"


@dataclass(frozen=True)
class FieldOwner:
    """Tagged reference to the owner of a FieldDefinition (item XOR template)."""

    kind: OwnerKind
    id: int

    @classmethod
    def item(cls, item_id: int) -> "FieldOwner":
        return cls(OwnerKind.ITEM, item_id)

    @classmethod
    def template(cls, template_id: int) -> "FieldOwner":
        return cls(OwnerKind.TEMPLATE, template_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


# ── Catalog ───────────────────────────────────────────────────────────────────

class Catalog(db.Model):
    """Top-level grouping of requestable service items."""

    __tablename__ = "service_catalogs"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    service_type = Column(
        String(20), nullable=False, default="technical"
    )  # business | technical | government
    department_id = Column(Integer, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "CatalogItem",
        back_populates="catalog",
        lazy="dynamic",
    )

    __table_args__ = (
        CheckConstraint(
            "service_type IN ('business', 'technical', 'government')",
            name="ck_catalog_service_type",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description or "",
            "service_type": self.service_type,
            "department_id": self.department_id,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ── Catalog Item ──────────────────────────────────────────────────────────────

class CatalogItem(db.Model):
    """A concrete request type a user can submit."""

    __tablename__ = "catalog_items"

    id = Column(Integer, primary_key=True)
    catalog_id = Column(
        Integer,
        ForeignKey("service_catalogs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    is_government_related = Column(Boolean, nullable=False, default=False)
    requires_government_approval = Column(Boolean, nullable=False, default=False)
    request_type = Column(String(30), nullable=False, default="service_request")
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    catalog = relationship("Catalog", back_populates="items")
    templates = relationship(
        "ItemTemplate",
        back_populates="item",
        lazy="dynamic",
    )

    @property
    def is_regulated(self) -> bool:
        """Government-related items need a designated business reviewer."""
        return bool(self.is_government_related or self.requires_government_approval)

    def to_dict(self):
        return {
            "id": self.id,
            "catalog_id": self.catalog_id,
            "name": self.name,
            "description": self.description or "",
            "is_government_related": self.is_government_related,
            "requires_government_approval": self.requires_government_approval,
            "request_type": self.request_type,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ── Item Template ─────────────────────────────────────────────────────────────

class ItemTemplate(db.Model):
    """Channel/variant-specific configuration of a CatalogItem."""

    __tablename__ = "item_templates"

    id = Column(Integer, primary_key=True)
    item_id = Column(
        Integer,
        ForeignKey("catalog_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name = Column(String(200), nullable=False)
    template_type = Column(String(50), default="standard")
    requires_business_approval = Column(Boolean, nullable=False, default=False)
    root_cause = Column(String(100), nullable=True)
    issue_type = Column(String(100), nullable=True)
    is_visible = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    item = relationship("CatalogItem", back_populates="templates")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "name": self.name,
            "template_type": self.template_type,
            "requires_business_approval": self.requires_business_approval,
            "root_cause": self.root_cause,
            "issue_type": self.issue_type,
            "is_visible": self.is_visible,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ── Field Definition ──────────────────────────────────────────────────────────

class FieldDefinition(db.Model):
    """One dynamic question attached to an item or a template."""

    __tablename__ = "field_definitions"

    id = Column(Integer, primary_key=True)
    owner_type = Column(String(10), nullable=False)  # item | template
    owner_id = Column(Integer, nullable=False)
    field_name = Column(String(100), nullable=False)
    field_label = Column(String(200), default="")
    field_type = Column(String(20), nullable=False, default=FieldType.TEXT.value)
    is_required = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, default=0)
    placeholder = Column(String(200), default="")
    default_value = Column(String(500), nullable=True)
    help_text = Column(Text, default="")
    validation_rules = Column(JSON, default=dict)  # {"maxLength": 50, "pattern": "..."}
    # Exactly one options source for choice fields; both NULL for free-form fields.
    options = Column(JSON(none_as_null=True), nullable=True)  # [{"value","label","isDefault"}]
    data_type = Column(String(50), nullable=True)  # master-data tag, e.g. "branch"
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # field_name is unique among the *active* definitions of an owner, so a
    # deprecated definition frees its machine key for the replacement.
    __table_args__ = (
        Index(
            "uq_field_owner_active_name",
            "owner_type",
            "owner_id",
            "field_name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        CheckConstraint("owner_type IN ('item', 'template')", name="ck_field_owner_type"),
        CheckConstraint(
            "options IS NULL OR data_type IS NULL",
            name="ck_field_single_options_source",
        ),
        Index("ix_field_owner", "owner_type", "owner_id"),
    )

    @property
    def owner(self) -> FieldOwner:
        return FieldOwner(OwnerKind(self.owner_type), self.owner_id)

    @owner.setter
    def owner(self, value: FieldOwner) -> None:
        self.owner_type = value.kind.value
        self.owner_id = value.id

    @property
    def type(self) -> FieldType:
        return FieldType(self.field_type)

    def to_dict(self):
        return {
            "id": self.id,
            "owner_type": self.owner_type,
            "owner_id": self.owner_id,
            "field_name": self.field_name,
            "field_label": self.field_label or self.field_name,
            "field_type": self.field_type,
            "is_required": self.is_required,
            "sort_order": self.sort_order,
            "placeholder": self.placeholder or "",
            "default_value": self.default_value,
            "help_text": self.help_text or "",
            "validation_rules": self.validation_rules or {},
            "options": self.options,
            "data_type": self.data_type,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
