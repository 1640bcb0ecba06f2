"""Master data reference lists (branches, banks, terminals, applications, menus)."""

from datetime import datetime, timezone

from helpdesk.models import db


class MasterDataEntry(db.Model):
    """One option of an externally maintained reference list.

    Rows are written by the master-data import tooling; the service desk
    only reads them (dropdown options for catalog fields).
    """

    __tablename__ = "master_data_entries"

    id = db.Column(db.Integer, primary_key=True)
    data_type = db.Column(
        db.String(50),
        nullable=False,
        comment="branch | bank | terminal | application | menu | ...",
    )
    code = db.Column(db.String(100), nullable=False)
    display_name = db.Column(db.String(255), nullable=False)
    extra = db.Column("metadata", db.JSON, default=dict)
    parent_code = db.Column(
        db.String(100),
        nullable=True,
        comment="Optional parent entry code (e.g. the branch of a terminal)",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("data_type", "code", name="uq_master_data_type_code"),
        db.Index("ix_master_data_type_active", "data_type", "is_active"),
    )

    def to_option(self) -> dict:
        return {
            "code": self.code,
            "displayName": self.display_name,
            "metadata": self.extra or {},
        }

    def to_dict(self):
        return {
            "id": self.id,
            "data_type": self.data_type,
            "code": self.code,
            "display_name": self.display_name,
            "metadata": self.extra or {},
            "parent_code": self.parent_code,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }

    def __repr__(self):
        return f"<MasterDataEntry {self.data_type}:{self.code}>"
