# Overview: Flask API routes for settlements; parses input and returns JSON responses.

# backend/consignment/routes/sales.py
"""
Sales (settlement) API routes

SECURITY:
- Settling and reversing sales is ADMIN only
- Listing is open to partners, scoped to their own items
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import settlement_service
from ..errors import ConsignmentError, UNEXPECTED_ERROR_BODY
from ..validation import parse_bool_arg, parse_optional_int
from ..decorators import require_auth, require_admin


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("/")
@require_auth
def list_sales_route():
    """
    List sales with item and payment.

    Query params:
    - partner_id: Filter by partner (ignored for partner callers)
    - paid: true / false, filter by payment state
    """
    try:
        sales = settlement_service.list_sales(
            g.caller,
            partner_id=parse_optional_int(request.args.get("partner_id"), key="partner_id"),
            paid=parse_bool_arg(request.args.get("paid")),
        )
        return jsonify({"sales": [settlement_service.sale_to_detail(s) for s in sales]}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@sales_bp.post("/")
@require_auth
@require_admin
def settle_sale_route():
    """
    Record the sale of one item.

    Request body:
    {
        "item_id": 12,
        "sold_for_cents": 2000
    }

    Returns:
        201: {"sale": ..., "payment": ...}
        400: Invalid input or item already sold
        404: Item not found
    """
    try:
        data = request.get_json(silent=True) or {}

        sale, payment = settlement_service.settle_single(
            item_id=data.get("item_id"),
            sold_for_cents=data.get("sold_for_cents"),
            user_id=g.current_user.id,
        )

        return jsonify({"sale": sale.to_dict(), "payment": payment.to_dict()}), 201

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle sale")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@sales_bp.post("/batch")
@require_auth
@require_admin
def settle_batch_route():
    """
    Record many sales at once. Each row succeeds or fails on its own.

    Request body:
    {
        "sales": [
            {"item_id": 12, "sold_for_cents": 2000},
            {"item_id": 13, "sold_for_cents": 3500}
        ]
    }

    Returns 200 with created sales and per-row failures.
    """
    try:
        data = request.get_json(silent=True) or {}

        result = settlement_service.settle_batch(data.get("sales"), user_id=g.current_user.id)

        return jsonify(result.to_dict()), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to settle sales batch")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_admin
def reverse_sale_route(sale_id: int):
    """
    Reverse an unpaid sale: payment and sale removed, item back on sale.

    Returns:
        200: Reversal confirmation
        400: Payment already made
        404: Sale not found
    """
    try:
        reversed_sale = settlement_service.reverse_sale(sale_id)
        return jsonify({"message": "Sale reversed", **reversed_sale}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reverse sale")
        return jsonify(UNEXPECTED_ERROR_BODY), 500
