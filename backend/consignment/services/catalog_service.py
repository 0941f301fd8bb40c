# Overview: Service-layer operations for reference data (brands, sizes, partners).

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Brand, Size, Partner, Item
from ..access import Caller, ensure_partner_access
from ..errors import NotFoundError, InvalidStateError, ValidationError
from ..validation import ModelValidationPolicy, validate_payload


BRAND_POLICY = ModelValidationPolicy(writable_fields={"name", "is_active"}, required_on_create={"name"})
SIZE_POLICY = ModelValidationPolicy(writable_fields={"name", "sort_order", "is_active"}, required_on_create={"name"})
PARTNER_POLICY = ModelValidationPolicy(writable_fields={"commission_percent", "phone", "notes", "is_active"})


def _save(obj, duplicate_message: str):
    try:
        db.session.add(obj)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(duplicate_message)
    return obj


# =============================================================================
# BRANDS / SIZES
# =============================================================================

def list_brands(include_inactive: bool = False) -> list[Brand]:
    query = db.session.query(Brand)
    if not include_inactive:
        query = query.filter(Brand.is_active.is_(True))
    return query.order_by(Brand.name).all()


def create_brand(payload: dict) -> Brand:
    patch = validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=False)
    return _save(Brand(**patch), "Brand already exists")


def update_brand(brand_id: int, payload: dict) -> Brand:
    brand = db.session.get(Brand, brand_id)
    if not brand:
        raise NotFoundError(f"Brand {brand_id} not found")
    for key, value in validate_payload(model=Brand, payload=payload, policy=BRAND_POLICY, partial=True).items():
        setattr(brand, key, value)
    return _save(brand, "Brand already exists")


def delete_brand(brand_id: int) -> None:
    """Hard delete, allowed only while no item references the brand."""
    brand = db.session.get(Brand, brand_id)
    if not brand:
        raise NotFoundError(f"Brand {brand_id} not found")
    if db.session.query(Item.id).filter_by(brand_id=brand_id).first() is not None:
        raise InvalidStateError("Brand is used by items; deactivate it instead")

    db.session.delete(brand)
    db.session.commit()


def list_sizes(include_inactive: bool = False) -> list[Size]:
    query = db.session.query(Size)
    if not include_inactive:
        query = query.filter(Size.is_active.is_(True))
    return query.order_by(Size.sort_order, Size.name).all()


def create_size(payload: dict) -> Size:
    patch = validate_payload(model=Size, payload=payload, policy=SIZE_POLICY, partial=False)
    return _save(Size(**patch), "Size already exists")


def update_size(size_id: int, payload: dict) -> Size:
    size = db.session.get(Size, size_id)
    if not size:
        raise NotFoundError(f"Size {size_id} not found")
    for key, value in validate_payload(model=Size, payload=payload, policy=SIZE_POLICY, partial=True).items():
        setattr(size, key, value)
    return _save(size, "Size already exists")


def delete_size(size_id: int) -> None:
    """Hard delete, allowed only while no item references the size."""
    size = db.session.get(Size, size_id)
    if not size:
        raise NotFoundError(f"Size {size_id} not found")
    if db.session.query(Item.id).filter_by(size_id=size_id).first() is not None:
        raise InvalidStateError("Size is used by items; deactivate it instead")

    db.session.delete(size)
    db.session.commit()


# =============================================================================
# PARTNERS
# =============================================================================

def list_partners(include_inactive: bool = True) -> list[dict]:
    """Partners with their item counts, newest first."""
    counts = dict(
        db.session.query(Item.partner_id, func.count(Item.id)).group_by(Item.partner_id).all()
    )
    query = db.session.query(Partner)
    if not include_inactive:
        query = query.filter(Partner.is_active.is_(True))

    result = []
    for partner in query.order_by(Partner.created_at.desc(), Partner.id.desc()).all():
        data = partner.to_dict()
        data["item_count"] = counts.get(partner.id, 0)
        result.append(data)
    return result


def get_partner(caller: Caller, partner_id: int) -> Partner:
    ensure_partner_access(caller, partner_id)
    partner = db.session.get(Partner, partner_id)
    if not partner:
        raise NotFoundError(f"Partner {partner_id} not found")
    return partner


def update_partner(partner_id: int, payload: dict) -> Partner:
    """
    Edit partner terms. A new commission_percent applies to future
    settlements only; existing payments keep their snapshot.
    """
    partner = db.session.get(Partner, partner_id)
    if not partner:
        raise NotFoundError(f"Partner {partner_id} not found")

    patch = validate_payload(model=Partner, payload=payload, policy=PARTNER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(partner, key, value)
    db.session.commit()
    return partner


def deactivate_partner(partner_id: int) -> Partner:
    """Partners are never hard-deleted; their account stops logging in."""
    partner = db.session.get(Partner, partner_id)
    if not partner:
        raise NotFoundError(f"Partner {partner_id} not found")

    partner.is_active = False
    db.session.commit()
    return partner
