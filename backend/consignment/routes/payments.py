# Overview: Flask API routes for partner payments; parses input and returns JSON responses.

# backend/consignment/routes/payments.py
"""
Partner Payment API Routes

DESIGN:
- Pending payouts per partner
- Bulk "mark as paid"
- Receipt generation

SECURITY:
- Partners may read only their own pending payments and receipts
- Marking paid and editing notes is ADMIN only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import payment_service
from ..errors import ConsignmentError, ValidationError, UNEXPECTED_ERROR_BODY
from ..validation import parse_bool_arg, parse_id_list, parse_optional_datetime, parse_optional_int
from ..decorators import require_auth, require_admin


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("/")
@require_auth
def list_payments_route():
    """
    List payments (newest first).

    Query params:
    - partner_id: Filter by partner (ignored for partner callers)
    - paid: true / false
    """
    try:
        payments = payment_service.list_payments(
            g.caller,
            partner_id=parse_optional_int(request.args.get("partner_id"), key="partner_id"),
            paid=parse_bool_arg(request.args.get("paid")),
        )
        return jsonify({"payments": [payment_service.payment_to_detail(p) for p in payments]}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@payments_bp.get("/pending/<int:partner_id>")
@require_auth
def list_pending_route(partner_id: int):
    """
    Pending payouts for a partner, oldest first.

    Returns:
    {
        "payments": [...],
        "total_cents": 4500,
        "count": 3
    }
    """
    try:
        pending = payment_service.list_pending(g.caller, partner_id)
        return jsonify({
            "payments": [payment_service.payment_to_detail(p) for p in pending["payments"]],
            "total_cents": pending["total_cents"],
            "count": pending["count"],
        }), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load pending payments")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@payments_bp.get("/receipt/<int:partner_id>")
@require_auth
def receipt_route(partner_id: int):
    """
    Receipt for a partner.

    Query params:
    - payment_ids: comma-separated ids to restrict the receipt (optional)
    """
    try:
        raw_ids = request.args.get("payment_ids")
        payment_ids = parse_id_list(raw_ids, key="payment_ids") if raw_ids else None

        receipt = payment_service.build_receipt(g.caller, partner_id, payment_ids)
        return jsonify(receipt), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build receipt")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


# =============================================================================
# PAYOUTS
# =============================================================================

@payments_bp.post("/mark-paid")
@require_auth
@require_admin
def mark_paid_route():
    """
    Mark payments as paid.

    Request body:
    {
        "payment_ids": [1, 2, 3],
        "paid_at": "2026-03-01T12:00:00Z",  (optional, default now)
        "notes": "PIX"  (optional)
    }

    Returns the number of payments updated. Unknown ids are skipped.
    """
    try:
        data = request.get_json(silent=True) or {}

        payment_ids = parse_id_list(data.get("payment_ids"), key="payment_ids")
        paid_at = parse_optional_datetime(data.get("paid_at"), key="paid_at")
        notes = data.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")

        count = payment_service.mark_paid(payment_ids, paid_at=paid_at, notes=notes)

        return jsonify({"message": "Payments marked as paid", "count": count}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark payments as paid")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@payments_bp.put("/<int:payment_id>")
@require_auth
@require_admin
def update_payment_notes_route(payment_id: int):
    """Replace the free-text notes of a payment."""
    try:
        data = request.get_json(silent=True) or {}
        notes = data.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")

        payment = payment_service.update_notes(payment_id, notes)
        return jsonify({"payment": payment.to_dict()}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update payment")
        return jsonify(UNEXPECTED_ERROR_BODY), 500
