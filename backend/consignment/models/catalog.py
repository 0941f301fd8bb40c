from __future__ import annotations

from ..extensions import db
from consignment.time_utils import to_utc_z


class Brand(db.Model):
    """Reference data: clothing/goods brand shown on item tags and receipts."""
    __tablename__ = "brands"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
        }


class Size(db.Model):
    """Reference data: size label (e.g. "RN", "P", "2 anos")."""
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    # Display ordering; sizes are not alphabetical
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class Partner(db.Model):
    """
    Supplier who consigns items and receives a share of each sale.

    commission_percent is the *current* rate only.
    Payments copy it at settlement time, so editing a partner never
    rewrites what is already owed.

    Partners are deactivated, never deleted, while items reference them.
    """
    __tablename__ = "partners"
    __table_args__ = (
        db.CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_partners_commission_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Login account (owned by the auth service)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True)

    commission_percent = db.Column(db.Numeric(5, 2), nullable=False, default=50)
    phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("partner", uselist=False, lazy=True))

    @property
    def name(self) -> str | None:
        return self.user.name if self.user else None

    @property
    def email(self) -> str | None:
        return self.user.email if self.user else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "commission_percent": float(self.commission_percent) if self.commission_percent is not None else None,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
