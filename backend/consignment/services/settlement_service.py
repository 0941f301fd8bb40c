# Overview: Service-layer operations for settlements; creates and reverses Sale + Payment pairs.

"""
Settlement Service

A settlement is three writes that only make sense together:
1. a Sale for the item
2. a pending Payment with the partner's commission snapshot
3. the item flipped to SOLD

They commit as one transaction or not at all. A reader never sees a Sale
without its Payment, or a SOLD item without its Sale.

DESIGN PRINCIPLES:
- Commission percentage is copied from the Partner at settlement time.
  Later edits to the partner never change existing payouts.
- Batch settlement commits each row in its own transaction. A failed row
  is rolled back and reported; sibling rows are unaffected.
- Paid settlements are final and cannot be reversed.
- No automatic retries. A lost race on the same item surfaces as
  InvalidStateError ("already sold").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Item, Sale, Payment, Partner, Brand, Size
from ..access import Caller, scope_partner_id
from ..errors import ConsignmentError, NotFoundError, InvalidStateError, ValidationError
from ..validation import parse_cents, coerce_int
from consignment.time_utils import utcnow
from .concurrency import lock_for_update, atomic
from . import item_service


@dataclass
class BatchResult:
    created: list[Sale] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": [sale.to_dict() for sale in self.created],
            "failed": self.failed,
            "created_count": len(self.created),
            "failed_count": len(self.failed),
        }


def compute_payout_cents(sold_for_cents: int, commission_percent) -> int:
    """
    payout = sold_for * percent / 100, rounded half-up to the cent.

    Decimal arithmetic keeps the result exact before the single rounding step.
    """
    payout = Decimal(sold_for_cents) * Decimal(str(commission_percent)) / Decimal(100)
    return int(payout.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# SETTLEMENT
# =============================================================================

def _settle_locked(item_id: int, sold_for_cents: int, user_id: int | None) -> tuple[Sale, Payment]:
    """
    Writes for one settlement. Does not commit.

    Raises NotFoundError / InvalidStateError before any write is issued.
    """
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError(f"Item {item_id} not found")

    partner = db.session.get(Partner, item.partner_id)
    if not partner:
        raise NotFoundError(f"Partner {item.partner_id} not found")

    now = utcnow()

    sale = Sale(
        item_id=item.id,
        sold_for_cents=sold_for_cents,
        sold_at=now,
        created_by_user_id=user_id,
    )
    item_service.mark_sold(item.id)
    db.session.add(sale)
    db.session.flush()  # Get sale ID

    percent = partner.commission_percent
    payment = Payment(
        sale_id=sale.id,
        partner_id=partner.id,
        commission_percent=percent,
        payout_cents=compute_payout_cents(sold_for_cents, percent),
        is_paid=False,
        created_at=now,
    )
    db.session.add(payment)
    db.session.flush()

    return sale, payment


def settle_single(item_id: int, sold_for_cents, user_id: int | None = None) -> tuple[Sale, Payment]:
    """
    Sell one item.

    Args:
        item_id: Item being sold
        sold_for_cents: Amount the item was sold for (in cents, > 0)
        user_id: Staff user recording the sale (optional)

    Returns:
        (Sale, Payment) as committed

    Raises:
        ValidationError: sold_for_cents malformed
        NotFoundError: item (or its partner) does not exist
        InvalidStateError: item already sold, including a lost concurrent race
    """
    if item_id is None:
        raise ValidationError("item_id is required")
    item_id = coerce_int("item_id", item_id)
    sold_for_cents = parse_cents(sold_for_cents, key="sold_for_cents")

    with atomic(f"Item {item_id} already sold", immediate=True):
        sale, payment = _settle_locked(item_id, sold_for_cents, user_id)

    current_app.logger.info(
        "Settled item %s: sale=%s payment=%s payout_cents=%s",
        item_id, sale.id, payment.id, payment.payout_cents,
    )
    return sale, payment


def settle_batch(requests, user_id: int | None = None) -> BatchResult:
    """
    Sell many items, each row in its own transaction.

    Each request is {"item_id": int, "sold_for_cents": int}. Rows that fail
    validation, reference a missing item, hit an already-sold item, or raise
    anything unexpected are rolled back individually and reported in
    `failed`; every other row is committed.

    Raises:
        ValidationError: requests is not a non-empty list
    """
    if not isinstance(requests, list) or not requests:
        raise ValidationError("sales must be a non-empty list")

    result = BatchResult()

    for row in requests:
        item_id = row.get("item_id") if isinstance(row, dict) else None
        try:
            if not isinstance(row, dict) or item_id is None:
                raise ValidationError("item_id is required")
            row_item_id = coerce_int("item_id", item_id)
            sold_for_cents = parse_cents(row.get("sold_for_cents"), key="sold_for_cents")

            with atomic(f"Item {item_id} already sold", immediate=True):
                sale, _payment = _settle_locked(row_item_id, sold_for_cents, user_id)
            result.created.append(sale)
        except ConsignmentError as exc:
            current_app.logger.warning("Batch row for item %s rejected: %s", item_id, exc.message)
            result.failed.append({"item_id": item_id, "reason": exc.message, "kind": exc.kind})
        except Exception:
            current_app.logger.exception("Batch row for item %s failed unexpectedly", item_id)
            result.failed.append({"item_id": item_id, "reason": "Unexpected error", "kind": "Unexpected"})

    current_app.logger.info(
        "Batch settlement: %s created, %s failed",
        len(result.created), len(result.failed),
    )
    return result


# =============================================================================
# REVERSAL
# =============================================================================

def reverse_sale(sale_id: int) -> dict:
    """
    Undo an unpaid settlement: delete Payment and Sale, item back to AVAILABLE.

    Returns:
        {"sale_id": ..., "item_id": ...} of the reversed sale

    Raises:
        NotFoundError: sale does not exist
        InvalidStateError: the sale's payment was already paid
    """
    with atomic("Sale was modified concurrently", immediate=True):
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError(f"Sale {sale_id} not found")

        payment = lock_for_update(db.session.query(Payment).filter_by(sale_id=sale.id)).first()
        if payment and payment.is_paid:
            raise InvalidStateError("Cannot reverse a sale whose payment was already made")

        reversed_sale = {"sale_id": sale.id, "item_id": sale.item_id}

        if payment:
            db.session.delete(payment)
            db.session.flush()
        db.session.delete(sale)
        db.session.flush()
        item_service.mark_available(reversed_sale["item_id"])

    current_app.logger.info("Reversed sale %s (item %s)", reversed_sale["sale_id"], reversed_sale["item_id"])
    return reversed_sale


# =============================================================================
# QUERIES
# =============================================================================

def list_sales(caller: Caller, partner_id: int | None = None, paid: bool | None = None) -> list[Sale]:
    """Sales visible to caller, newest first, optionally filtered by payment state."""
    query = (
        db.session.query(Sale)
        .join(Item, Sale.item_id == Item.id)
        .outerjoin(Payment, Payment.sale_id == Sale.id)
    )

    scoped = scope_partner_id(caller, partner_id)
    if scoped is not None:
        query = query.filter(Item.partner_id == scoped)

    if paid is not None:
        query = query.filter(Payment.is_paid.is_(paid))

    return query.order_by(Sale.sold_at.desc(), Sale.id.desc()).all()


def sale_to_detail(sale: Sale) -> dict:
    """Sale with item, brand, size, partner and payment for listings."""
    item = sale.item
    brand = db.session.get(Brand, item.brand_id) if item else None
    size = db.session.get(Size, item.size_id) if item else None
    data = sale.to_dict()
    data["item"] = {
        "id": item.id,
        "tag_code": item.tag_code,
        "partner_id": item.partner_id,
        "partner_name": item.partner.name if item.partner else None,
        "brand_name": brand.name if brand else None,
        "size_name": size.name if size else None,
    } if item else None
    data["payment"] = sale.payment.to_dict() if sale.payment else None
    return data
