from __future__ import annotations

from ..extensions import db
from consignment.time_utils import to_utc_z


ITEM_STATUS_AVAILABLE = "AVAILABLE"
ITEM_STATUS_SOLD = "SOLD"
ITEM_STATUSES = (ITEM_STATUS_AVAILABLE, ITEM_STATUS_SOLD)


class Item(db.Model):
    """
    A single consigned good, identified by the code on its tag.

    LIFECYCLE:
    - AVAILABLE -> SOLD only through settlement
    - SOLD -> AVAILABLE only through sale reversal
    - Never deleted once a Sale references it

    version_id makes two concurrent settlements of the same item collide
    at flush time instead of both succeeding.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_partner_status", "partner_id", "status"),
        db.CheckConstraint("cost_cents >= 0", name="ck_items_cost_nonnegative"),
        db.CheckConstraint("list_price_cents >= 0", name="ck_items_list_price_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tag_code = db.Column(db.String(64), nullable=False, unique=True)

    # Authoritative storage in cents
    cost_cents = db.Column(db.Integer, nullable=False)
    list_price_cents = db.Column(db.Integer, nullable=False)

    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=False, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=False)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ITEM_STATUS_AVAILABLE, index=True)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Opaque URIs handed out by the upload service
    photos = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    partner = db.relationship("Partner", backref=db.backref("items", lazy=True))
    brand = db.relationship("Brand")
    size = db.relationship("Size")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} tag_code={self.tag_code!r} status={self.status}>"

    @property
    def margin_cents(self) -> int:
        return self.list_price_cents - self.cost_cents

    @property
    def margin_percent(self) -> float:
        if not self.cost_cents:
            return 0.0
        return round(self.margin_cents / self.cost_cents * 100, 2)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tag_code": self.tag_code,
            "cost_cents": self.cost_cents,
            "list_price_cents": self.list_price_cents,
            "margin_cents": self.margin_cents,
            "margin_percent": self.margin_percent,
            "partner_id": self.partner_id,
            "partner_name": self.partner.name if self.partner else None,
            "brand_id": self.brand_id,
            "brand_name": self.brand.name if self.brand else None,
            "size_id": self.size_id,
            "size_name": self.size.name if self.size else None,
            "status": self.status,
            "entry_date": to_utc_z(self.entry_date),
            "photos": list(self.photos or []),
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
