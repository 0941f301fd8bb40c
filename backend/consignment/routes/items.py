# Overview: Flask API routes for items; parses input and returns JSON responses.

# backend/consignment/routes/items.py
"""Item API routes with access-policy scoping"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import item_service
from ..errors import ConsignmentError, UNEXPECTED_ERROR_BODY
from ..validation import parse_optional_int
from ..decorators import require_auth, require_admin


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("/")
@require_auth
def list_items_route():
    """
    List items, newest entry first, with computed margin.

    Query params:
    - status: AVAILABLE | SOLD
    - partner_id: Filter by partner (ignored for partner callers)
    """
    try:
        items = item_service.list_items(
            g.caller,
            status=request.args.get("status"),
            partner_id=parse_optional_int(request.args.get("partner_id"), key="partner_id"),
        )
        return jsonify({"items": [i.to_dict() for i in items]}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list items")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@items_bp.get("/<int:item_id>")
@require_auth
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(g.caller, item_id)
        data = item.to_dict()
        data["sales"] = [
            {**s.to_dict(), "payment": s.payment.to_dict() if s.payment else None}
            for s in item.sales
        ]
        return jsonify({"item": data}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load item")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@items_bp.post("/")
@require_auth
@require_admin
def create_item_route():
    """
    Register a consigned item.

    Request body:
    {
        "tag_code": "MPM-0001",
        "cost_cents": 1000,
        "list_price_cents": 2000,
        "partner_id": 1,
        "brand_id": 1,
        "size_id": 1,
        "photos": ["/uploads/abc.jpg"],  (optional, URIs from the upload service)
        "notes": "..."  (optional)
    }
    """
    try:
        item = item_service.create_item(request.get_json(silent=True))
        return jsonify({"item": item.to_dict()}), 201

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@items_bp.put("/<int:item_id>")
@require_auth
@require_admin
def update_item_route(item_id: int):
    try:
        item = item_service.update_item(item_id, request.get_json(silent=True))
        return jsonify({"item": item.to_dict()}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update item")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@items_bp.delete("/<int:item_id>")
@require_auth
@require_admin
def delete_item_route(item_id: int):
    """Delete an item that was never sold."""
    try:
        item_service.delete_item(item_id)
        return jsonify({"message": "Item deleted"}), 200

    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete item")
        return jsonify(UNEXPECTED_ERROR_BODY), 500
