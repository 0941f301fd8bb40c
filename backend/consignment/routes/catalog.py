# Overview: Flask API routes for brands, sizes and partners.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import catalog_service, auth_service
from ..errors import ConsignmentError, UNEXPECTED_ERROR_BODY
from ..decorators import require_auth, require_admin


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "false").lower() == "true" and g.caller.is_admin


# =============================================================================
# BRANDS
# =============================================================================

@catalog_bp.get("/brands")
@require_auth
def list_brands_route():
    try:
        brands = catalog_service.list_brands(include_inactive=_include_inactive())
        return jsonify({"brands": [b.to_dict() for b in brands]}), 200
    except Exception:
        current_app.logger.exception("Failed to list brands")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.post("/brands")
@require_auth
@require_admin
def create_brand_route():
    try:
        brand = catalog_service.create_brand(request.get_json(silent=True))
        return jsonify({"brand": brand.to_dict()}), 201
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create brand")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.put("/brands/<int:brand_id>")
@require_auth
@require_admin
def update_brand_route(brand_id: int):
    try:
        brand = catalog_service.update_brand(brand_id, request.get_json(silent=True))
        return jsonify({"brand": brand.to_dict()}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update brand")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.delete("/brands/<int:brand_id>")
@require_auth
@require_admin
def delete_brand_route(brand_id: int):
    """Delete a brand no item uses. Brands in use can only be deactivated."""
    try:
        catalog_service.delete_brand(brand_id)
        return jsonify({"message": "Brand deleted"}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete brand")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


# =============================================================================
# SIZES
# =============================================================================

@catalog_bp.get("/sizes")
@require_auth
def list_sizes_route():
    try:
        sizes = catalog_service.list_sizes(include_inactive=_include_inactive())
        return jsonify({"sizes": [s.to_dict() for s in sizes]}), 200
    except Exception:
        current_app.logger.exception("Failed to list sizes")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.post("/sizes")
@require_auth
@require_admin
def create_size_route():
    try:
        size = catalog_service.create_size(request.get_json(silent=True))
        return jsonify({"size": size.to_dict()}), 201
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create size")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.put("/sizes/<int:size_id>")
@require_auth
@require_admin
def update_size_route(size_id: int):
    try:
        size = catalog_service.update_size(size_id, request.get_json(silent=True))
        return jsonify({"size": size.to_dict()}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update size")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.delete("/sizes/<int:size_id>")
@require_auth
@require_admin
def delete_size_route(size_id: int):
    """Delete a size no item uses. Sizes in use can only be deactivated."""
    try:
        catalog_service.delete_size(size_id)
        return jsonify({"message": "Size deleted"}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete size")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


# =============================================================================
# PARTNERS
# =============================================================================

@catalog_bp.get("/partners")
@require_auth
@require_admin
def list_partners_route():
    try:
        return jsonify({"partners": catalog_service.list_partners()}), 200
    except Exception:
        current_app.logger.exception("Failed to list partners")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.get("/partners/<int:partner_id>")
@require_auth
def get_partner_route(partner_id: int):
    try:
        partner = catalog_service.get_partner(g.caller, partner_id)
        return jsonify({"partner": partner.to_dict()}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load partner")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.post("/partners")
@require_auth
@require_admin
def create_partner_route():
    """
    Create a partner and its login account.

    Request body:
    {
        "name": "Maria",
        "email": "maria@example.com",
        "password": "secret1",
        "phone": "...",  (optional)
        "commission_percent": 50  (optional, default from config)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        partner = auth_service.create_partner_account(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            commission_percent=data.get("commission_percent"),
            phone=data.get("phone"),
            notes=data.get("notes"),
            default_percent=current_app.config["DEFAULT_COMMISSION_PERCENT"],
        )
        return jsonify({"partner": partner.to_dict()}), 201
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create partner")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.put("/partners/<int:partner_id>")
@require_auth
@require_admin
def update_partner_route(partner_id: int):
    try:
        partner = catalog_service.update_partner(partner_id, request.get_json(silent=True))
        return jsonify({"partner": partner.to_dict()}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update partner")
        return jsonify(UNEXPECTED_ERROR_BODY), 500


@catalog_bp.delete("/partners/<int:partner_id>")
@require_auth
@require_admin
def deactivate_partner_route(partner_id: int):
    """Deactivate (never delete) a partner."""
    try:
        partner = catalog_service.deactivate_partner(partner_id)
        return jsonify({"partner": partner.to_dict()}), 200
    except ConsignmentError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate partner")
        return jsonify(UNEXPECTED_ERROR_BODY), 500
