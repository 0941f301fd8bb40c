# Overview: Service-layer operations for items; owns the AVAILABLE/SOLD lifecycle.

"""
Item Lifecycle Service

Item status is the single source of truth for "can this be sold".
Only two transitions exist:
- AVAILABLE -> SOLD   (mark_sold, called by settlement)
- SOLD -> AVAILABLE   (mark_available, called by sale reversal)

mark_sold / mark_available never commit: they run inside the caller's
transaction so the status flip lands together with the Sale and Payment.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item, Sale, Partner, Brand, Size
from ..models.items import ITEM_STATUS_AVAILABLE, ITEM_STATUS_SOLD, ITEM_STATUSES
from ..access import Caller, ensure_partner_access, scope_partner_id
from ..errors import NotFoundError, InvalidStateError, ValidationError
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_item
from .concurrency import lock_for_update, atomic


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "tag_code", "cost_cents", "list_price_cents", "partner_id",
        "brand_id", "size_id", "entry_date", "photos", "notes",
    },
    required_on_create={
        "tag_code", "cost_cents", "list_price_cents", "partner_id", "brand_id", "size_id",
    },
)


# =============================================================================
# LIFECYCLE TRANSITIONS
# =============================================================================

def mark_sold(item_id: int) -> Item:
    """
    Flip an AVAILABLE item to SOLD.

    Raises:
        NotFoundError: item does not exist
        InvalidStateError: item is already SOLD
    """
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    if item.status == ITEM_STATUS_SOLD:
        raise InvalidStateError(f"Item {item_id} already sold")

    item.status = ITEM_STATUS_SOLD
    return item


def mark_available(item_id: int) -> Item:
    """Put an item back on sale. Used only by sale reversal."""
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError(f"Item {item_id} not found")

    item.status = ITEM_STATUS_AVAILABLE
    return item


def can_delete(item_id: int) -> bool:
    """True iff no Sale references the item."""
    return db.session.query(Sale.id).filter_by(item_id=item_id).first() is None


# =============================================================================
# QUERIES
# =============================================================================

def list_items(caller: Caller, status: str | None = None, partner_id: int | None = None) -> list[Item]:
    """Items visible to caller, newest entry first."""
    query = db.session.query(Item)

    if status:
        if status not in ITEM_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {list(ITEM_STATUSES)}")
        query = query.filter(Item.status == status)

    scoped = scope_partner_id(caller, partner_id)
    if scoped is not None:
        query = query.filter(Item.partner_id == scoped)

    return query.order_by(Item.entry_date.desc(), Item.id.desc()).all()


def get_item(caller: Caller, item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    ensure_partner_access(caller, item.partner_id)
    return item


# =============================================================================
# CRUD
# =============================================================================

def _check_references(patch: dict) -> None:
    if "partner_id" in patch:
        partner = db.session.get(Partner, patch["partner_id"])
        if not partner:
            raise NotFoundError(f"Partner {patch['partner_id']} not found")
        if not partner.is_active:
            raise ValidationError("Partner is not active")
    if "brand_id" in patch and not db.session.get(Brand, patch["brand_id"]):
        raise NotFoundError(f"Brand {patch['brand_id']} not found")
    if "size_id" in patch and not db.session.get(Size, patch["size_id"]):
        raise NotFoundError(f"Size {patch['size_id']} not found")


def _tag_taken(tag_code: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Item.id).filter(Item.tag_code == tag_code)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    return query.first() is not None


def _integrity_error(tag_code: str | None, exclude_id: int | None = None) -> ValidationError:
    # The session was rolled back, so this re-check sees committed rows only
    if tag_code is not None and _tag_taken(tag_code, exclude_id):
        return ValidationError("Tag code already exists")
    return ValidationError("Item violates a database constraint")


def create_item(payload: dict) -> Item:
    """Register a newly consigned item. New items always start AVAILABLE."""
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)
    _check_references(patch)
    if _tag_taken(patch["tag_code"]):
        raise ValidationError("Tag code already exists")

    item = Item(status=ITEM_STATUS_AVAILABLE, photos=patch.pop("photos", None) or [], **patch)
    try:
        with atomic():
            db.session.add(item)
    except IntegrityError:
        raise _integrity_error(patch.get("tag_code"))
    return item


def update_item(item_id: int, payload: dict) -> Item:
    """Edit item attributes. Status is not writable here."""
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)
    _check_references(patch)

    item = db.session.get(Item, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found")
    if "tag_code" in patch and _tag_taken(patch["tag_code"], exclude_id=item_id):
        raise ValidationError("Tag code already exists")

    try:
        with atomic("Item was modified concurrently"):
            for key, value in patch.items():
                setattr(item, key, value)
    except IntegrityError:
        raise _integrity_error(patch.get("tag_code"), exclude_id=item_id)
    return item


def delete_item(item_id: int) -> None:
    with atomic():
        item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
        if not item:
            raise NotFoundError(f"Item {item_id} not found")
        if not can_delete(item_id):
            raise InvalidStateError("Cannot delete an item that has been sold")
        db.session.delete(item)
