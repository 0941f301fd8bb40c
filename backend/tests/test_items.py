"""
Item lifecycle tests.

Verifies:
- New items start AVAILABLE with a computed margin
- Tag codes are unique
- Sold items cannot be deleted
- Lifecycle transitions guard against double sale
"""

import pytest

from consignment.models import Item
from consignment.errors import InvalidStateError, NotFoundError, ValidationError
from consignment.services import item_service, settlement_service


def _payload(partner, brand, size, **overrides):
    payload = {
        "tag_code": "MPM-0001",
        "cost_cents": 1000,
        "list_price_cents": 2500,
        "partner_id": partner.id,
        "brand_id": brand.id,
        "size_id": size.id,
    }
    payload.update(overrides)
    return payload


class TestMargin:

    def test_margin_from_cost_and_list_price(self, partner_a, make_item):
        item = make_item(partner_a, cost_cents=1000, list_price_cents=2500)
        assert item.margin_cents == 1500
        assert item.margin_percent == 150.0

    def test_zero_cost_margin_percent_is_zero(self, partner_a, make_item):
        item = make_item(partner_a, cost_cents=0, list_price_cents=2500)
        assert item.margin_cents == 2500
        assert item.margin_percent == 0.0


class TestCreateItem:

    def test_starts_available(self, db_session, partner_a, brand, size):
        item = item_service.create_item(_payload(partner_a, brand, size, photos=["/uploads/a.jpg"]))

        assert item.status == "AVAILABLE"
        assert item.photos == ["/uploads/a.jpg"]
        assert item.to_dict()["brand_name"] == "Tip Top"

    def test_status_not_writable(self, db_session, partner_a, brand, size):
        with pytest.raises(ValidationError):
            item_service.create_item(_payload(partner_a, brand, size, status="SOLD"))

    def test_duplicate_tag_code(self, db_session, partner_a, brand, size):
        item_service.create_item(_payload(partner_a, brand, size))

        with pytest.raises(ValidationError, match="Tag code"):
            item_service.create_item(_payload(partner_a, brand, size))

    def test_missing_required_fields(self, db_session, partner_a):
        with pytest.raises(ValidationError, match="Missing required fields"):
            item_service.create_item({"tag_code": "X", "partner_id": partner_a.id})

    def test_negative_price_rejected(self, db_session, partner_a, brand, size):
        with pytest.raises(ValidationError):
            item_service.create_item(_payload(partner_a, brand, size, cost_cents=-1))

    def test_unknown_partner(self, db_session, brand, size, partner_a):
        with pytest.raises(NotFoundError):
            item_service.create_item(_payload(partner_a, brand, size, partner_id=9999))

    def test_inactive_partner_rejected(self, db_session, partner_a, brand, size):
        from consignment.services import catalog_service
        catalog_service.deactivate_partner(partner_a.id)

        with pytest.raises(ValidationError):
            item_service.create_item(_payload(partner_a, brand, size))

    def test_other_constraint_failure_not_reported_as_tag(self, db_session, partner_a, brand, size, monkeypatch):
        monkeypatch.setattr(item_service, "_check_references", lambda patch: None)

        with pytest.raises(ValidationError) as excinfo:
            item_service.create_item(_payload(partner_a, brand, size, brand_id=9999))

        assert excinfo.value.message == "Item violates a database constraint"
        assert db_session.query(Item).count() == 0


class TestUpdateItem:

    def test_update_price(self, db_session, partner_a, make_item):
        item = make_item(partner_a)

        updated = item_service.update_item(item.id, {"list_price_cents": 3000, "notes": "small stain"})

        assert updated.list_price_cents == 3000
        assert updated.notes == "small stain"
        assert updated.version_id == 2

    def test_rename_to_taken_tag_rejected(self, db_session, partner_a, make_item):
        make_item(partner_a, tag_code="MPM-0001")
        other = make_item(partner_a, tag_code="MPM-0002")

        with pytest.raises(ValidationError, match="Tag code already exists"):
            item_service.update_item(other.id, {"tag_code": "MPM-0001"})

        assert db_session.get(Item, other.id).tag_code == "MPM-0002"

    def test_keeping_own_tag_is_allowed(self, db_session, partner_a, make_item):
        item = make_item(partner_a, tag_code="MPM-0001")

        updated = item_service.update_item(item.id, {"tag_code": "MPM-0001", "notes": "same tag"})

        assert updated.notes == "same tag"

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.update_item(9999, {"notes": "x"})


class TestDeleteItem:

    def test_delete_unsold(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        item_id = item.id

        item_service.delete_item(item_id)

        assert db_session.get(Item, item_id) is None

    def test_sold_item_cannot_be_deleted(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        settlement_service.settle_single(item.id, 2000)

        with pytest.raises(InvalidStateError):
            item_service.delete_item(item.id)

        assert db_session.get(Item, item.id) is not None

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.delete_item(9999)


class TestLifecycle:

    def test_mark_sold_twice(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        item_service.mark_sold(item.id)

        with pytest.raises(InvalidStateError):
            item_service.mark_sold(item.id)
        db_session.rollback()

    def test_mark_sold_missing(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.mark_sold(9999)

    def test_can_delete_tracks_sales(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        assert item_service.can_delete(item.id) is True
        settlement_service.settle_single(item.id, 2000)
        assert item_service.can_delete(item.id) is False

    def test_list_by_status(self, db_session, admin, partner_a, make_item):
        sold = make_item(partner_a)
        available = make_item(partner_a)
        settlement_service.settle_single(sold.id, 2000)

        assert [i.id for i in item_service.list_items(admin, status="SOLD")] == [sold.id]
        assert [i.id for i in item_service.list_items(admin, status="AVAILABLE")] == [available.id]

    def test_list_invalid_status(self, db_session, admin):
        with pytest.raises(ValidationError):
            item_service.list_items(admin, status="LOST")


class TestItemRoutes:

    def test_create_route(self, client, admin_headers, partner_a, brand, size):
        resp = client.post("/api/items/", json=_payload(partner_a, brand, size), headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["item"]["status"] == "AVAILABLE"
        assert resp.json["item"]["margin_cents"] == 1500

    def test_duplicate_tag_route(self, client, admin_headers, partner_a, brand, size):
        client.post("/api/items/", json=_payload(partner_a, brand, size), headers=admin_headers)
        resp = client.post("/api/items/", json=_payload(partner_a, brand, size), headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["kind"] == "Validation"

    def test_detail_includes_sales(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)
        settlement_service.settle_single(item.id, 2000)

        resp = client.get(f"/api/items/{item.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["item"]["status"] == "SOLD"
        assert resp.json["item"]["sales"][0]["payment"]["payout_cents"] == 1000

    def test_delete_sold_route(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)
        settlement_service.settle_single(item.id, 2000)

        resp = client.delete(f"/api/items/{item.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["kind"] == "InvalidState"

    @pytest.mark.parametrize("path", ["/api/items/", "/api/sales/", "/api/payments/"])
    def test_non_numeric_partner_filter_rejected(self, client, admin_headers, path):
        resp = client.get(f"{path}?partner_id=abc", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["kind"] == "Validation"
        assert "partner_id" in resp.json["error"]

    def test_blank_partner_filter_means_all(self, client, admin_headers, partner_a, partner_b, make_item):
        make_item(partner_a)
        make_item(partner_b)

        resp = client.get("/api/items/?partner_id=", headers=admin_headers)

        assert resp.status_code == 200
        assert len(resp.json["items"]) == 2

    def test_unknown_route_is_json_404(self, client, db_session):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.json["kind"] == "NotFound"
