from __future__ import annotations

from ..extensions import db
from consignment.time_utils import to_utc_z


class Sale(db.Model):
    """
    Record of one item being sold for a specific amount.

    Created exactly once per settlement, together with its Payment.
    Never edited; a mistaken sale is reversed (deleted with its Payment).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_item_sold", "item_id", "sold_at"),
        db.CheckConstraint("sold_for_cents > 0", name="ck_sales_sold_for_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    sold_for_cents = db.Column(db.Integer, nullable=False)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # User attribution
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    item = db.relationship("Item", backref=db.backref("sales", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "sold_for_cents": self.sold_for_cents,
            "sold_at": to_utc_z(self.sold_at),
            "created_by_user_id": self.created_by_user_id,
        }


class Payment(db.Model):
    """
    Payout owed to a partner for one Sale.

    SNAPSHOT: partner_id and commission_percent are copied at settlement
    time. payout_cents = sold_for_cents * commission_percent / 100,
    rounded half-up to the cent, computed once and never recomputed.
    """
    __tablename__ = "partner_payments"
    __table_args__ = (
        db.Index("ix_partner_payments_partner_paid", "partner_id", "is_paid", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, unique=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=False, index=True)

    commission_percent = db.Column(db.Numeric(5, 2), nullable=False)
    payout_cents = db.Column(db.Integer, nullable=False)

    is_paid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    sale = db.relationship("Sale", backref=db.backref("payment", uselist=False, lazy=True))
    partner = db.relationship("Partner", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "partner_id": self.partner_id,
            "commission_percent": float(self.commission_percent),
            "payout_cents": self.payout_cents,
            "is_paid": self.is_paid,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
