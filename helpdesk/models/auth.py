"""
Service Desk — user directory mirror.

Users are owned by the identity provider; this table mirrors the attributes
the approval workflow needs (role, reporting line, unit, reviewer flag).
"""

from datetime import datetime, timezone

from helpdesk.models import db

USER_ROLES = frozenset({"requester", "technician", "manager", "admin"})

REVIEWER_ROLES = frozenset({"manager", "admin"})


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False, unique=True)
    full_name = db.Column(db.String(200))
    email = db.Column(db.String(200))
    role = db.Column(db.String(20), nullable=False, default="requester")
    manager_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    unit_id = db.Column(db.Integer, nullable=True)
    department_id = db.Column(db.Integer, nullable=True)
    is_business_reviewer = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('requester', 'technician', 'manager', 'admin')",
            name="ck_user_role",
        ),
    )

    manager = db.relationship("User", remote_side=[id])

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "manager_id": self.manager_id,
            "unit_id": self.unit_id,
            "department_id": self.department_id,
            "is_business_reviewer": self.is_business_reviewer,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.username} ({self.role})>"
