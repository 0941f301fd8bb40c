# Overview: Service-layer operations for partner payments; pending lists, payouts and receipts.

"""
Partner Payment Ledger

Every settlement leaves a pending Payment owed to the item's partner.
Staff pay partners periodically (usually several payments at once) and hand
them a receipt listing what was sold.

DESIGN PRINCIPLES:
- Payments are created only by the settlement service
- Amounts are never recomputed here; payout_cents is the settlement snapshot
- mark_paid is best effort: unknown ids are skipped, the count says how many
  rows were actually updated
- Receipts are read-only views
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Payment, Partner, Sale, Item
from ..access import Caller, ensure_partner_access, scope_partner_id
from ..errors import NotFoundError, ValidationError
from consignment.time_utils import utcnow, to_utc_z


# =============================================================================
# QUERIES
# =============================================================================

def list_pending(caller: Caller, partner_id: int) -> dict:
    """
    Unpaid payments owed to a partner, oldest first.

    Returns:
        {"payments": [Payment], "total_cents": int, "count": int}

    Raises:
        ForbiddenError: partner caller asking for another partner
    """
    ensure_partner_access(caller, partner_id)

    payments = (
        db.session.query(Payment)
        .filter(Payment.partner_id == partner_id, Payment.is_paid.is_(False))
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )

    return {
        "payments": payments,
        "total_cents": sum(p.payout_cents for p in payments),
        "count": len(payments),
    }


def list_payments(caller: Caller, partner_id: int | None = None, paid: bool | None = None) -> list[Payment]:
    """Payments visible to caller, newest first."""
    query = db.session.query(Payment)

    scoped = scope_partner_id(caller, partner_id)
    if scoped is not None:
        query = query.filter(Payment.partner_id == scoped)

    if paid is not None:
        query = query.filter(Payment.is_paid.is_(paid))

    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def payment_to_detail(payment: Payment) -> dict:
    """Payment with the sold item's tag, brand and size for listings."""
    sale = payment.sale
    item = sale.item if sale else None
    data = payment.to_dict()
    data["sale"] = sale.to_dict() if sale else None
    data["item"] = {
        "id": item.id,
        "tag_code": item.tag_code,
        "brand_name": item.brand.name if item.brand else None,
        "size_name": item.size.name if item.size else None,
    } if item else None
    return data


# =============================================================================
# PAYOUTS
# =============================================================================

def mark_paid(payment_ids: list[int], paid_at: datetime | None = None, notes: str | None = None) -> int:
    """
    Mark payments as paid in bulk.

    Args:
        payment_ids: Payments to mark (unknown ids are ignored)
        paid_at: When the partner was paid (default: now)
        notes: Free text; left unchanged when omitted

    Returns:
        Number of payments actually updated
    """
    if not payment_ids:
        raise ValidationError("payment_ids cannot be empty")

    values = {
        Payment.is_paid: True,
        Payment.paid_at: paid_at or utcnow(),
    }
    if notes is not None:
        values[Payment.notes] = notes

    try:
        updated = (
            db.session.query(Payment)
            .filter(Payment.id.in_(payment_ids))
            .update(values, synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Marked %s of %s payments as paid", updated, len(payment_ids))
    return updated


def update_notes(payment_id: int, notes: str | None) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFoundError(f"Payment {payment_id} not found")

    payment.notes = notes
    db.session.commit()
    return payment


# =============================================================================
# RECEIPTS
# =============================================================================

def build_receipt(caller: Caller, partner_id: int, payment_ids: list[int] | None = None) -> dict:
    """
    Receipt for a partner's payments (optionally only the given ids).

    Totals:
        total_paid_cents + total_pending_cents == total_cents

    Raises:
        ForbiddenError: partner caller asking for another partner
        NotFoundError: no payment matched
    """
    ensure_partner_access(caller, partner_id)

    query = db.session.query(Payment).filter(Payment.partner_id == partner_id)
    if payment_ids:
        query = query.filter(Payment.id.in_(payment_ids))

    payments = query.order_by(Payment.created_at.asc(), Payment.id.asc()).all()
    if not payments:
        raise NotFoundError("No payments found")

    partner = db.session.get(Partner, partner_id)

    total_paid = sum(p.payout_cents for p in payments if p.is_paid)
    total_pending = sum(p.payout_cents for p in payments if not p.is_paid)

    lines = []
    for p in payments:
        sale: Sale = p.sale
        item: Item = sale.item
        lines.append({
            "payment_id": p.id,
            "tag_code": item.tag_code,
            "brand_name": item.brand.name if item.brand else None,
            "size_name": item.size.name if item.size else None,
            "sold_at": to_utc_z(sale.sold_at),
            "sold_for_cents": sale.sold_for_cents,
            "commission_percent": float(p.commission_percent),
            "payout_cents": p.payout_cents,
            "is_paid": p.is_paid,
            "paid_at": to_utc_z(p.paid_at) if p.paid_at else None,
        })

    return {
        "partner": {
            "id": partner.id,
            "name": partner.name,
            "email": partner.email,
            "phone": partner.phone,
            "commission_percent": float(partner.commission_percent),
        },
        "payments": lines,
        "totals": {
            "total_paid_cents": total_paid,
            "total_pending_cents": total_pending,
            "total_cents": total_paid + total_pending,
            "item_count": len(payments),
        },
        "generated_at": to_utc_z(utcnow()),
    }
