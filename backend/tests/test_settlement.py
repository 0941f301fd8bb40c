"""
Settlement tests.

Verifies:
- Selling an item creates Sale + pending Payment and flips the item to SOLD
- Commission percentage is snapshotted at settlement time
- Payout rounding is half-up to the cent
- Batch settlement commits rows independently
- Reversal restores the item unless the payment was made
"""

import threading
from decimal import Decimal

import pytest
from sqlalchemy import text

from consignment import create_app
from consignment.extensions import db
from consignment.models import Brand, Size, Item, Sale, Payment
from consignment.errors import NotFoundError, InvalidStateError, ValidationError
from consignment.services import settlement_service, payment_service, catalog_service, auth_service
from consignment.services.concurrency import atomic


# =============================================================================
# PAYOUT ARITHMETIC
# =============================================================================


class TestComputePayout:

    @pytest.mark.parametrize(
        "sold_for,percent,expected",
        [
            (2000, Decimal("50"), 1000),
            (999, Decimal("33.33"), 333),
            (5, Decimal("50"), 3),
            (1000, Decimal("0"), 0),
            (1000, Decimal("100"), 1000),
            (1999, Decimal("40"), 800),
        ],
    )
    def test_half_up_rounding(self, sold_for, percent, expected):
        assert settlement_service.compute_payout_cents(sold_for, percent) == expected


# =============================================================================
# SINGLE SETTLEMENT
# =============================================================================


class TestSettleSingle:

    def test_creates_sale_and_pending_payment(self, db_session, admin_user, partner_a, make_item):
        item = make_item(partner_a, cost_cents=1000, list_price_cents=2000)

        sale, payment = settlement_service.settle_single(item.id, 2000, user_id=admin_user.id)

        assert sale.item_id == item.id
        assert sale.sold_for_cents == 2000
        assert sale.created_by_user_id == admin_user.id
        assert payment.sale_id == sale.id
        assert payment.partner_id == partner_a.id
        assert payment.commission_percent == Decimal("50.00")
        assert payment.payout_cents == 1000
        assert payment.is_paid is False
        assert payment.paid_at is None
        assert db_session.get(Item, item.id).status == "SOLD"

    def test_second_sale_of_same_item_rejected(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        settlement_service.settle_single(item.id, 2000)

        with pytest.raises(InvalidStateError):
            settlement_service.settle_single(item.id, 1500)

        assert db_session.query(Sale).filter_by(item_id=item.id).count() == 1
        assert db_session.query(Payment).count() == 1

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            settlement_service.settle_single(9999, 2000)
        assert db_session.query(Sale).count() == 0

    @pytest.mark.parametrize("amount", [0, -100, "abc", 10.5, None])
    def test_invalid_amount_leaves_item_available(self, db_session, partner_a, make_item, amount):
        item = make_item(partner_a)

        with pytest.raises(ValidationError):
            settlement_service.settle_single(item.id, amount)

        assert db_session.get(Item, item.id).status == "AVAILABLE"
        assert db_session.query(Sale).count() == 0

    def test_missing_item_id(self, db_session):
        with pytest.raises(ValidationError):
            settlement_service.settle_single(None, 2000)

    def test_commission_snapshot_survives_partner_edit(self, db_session, partner_a, make_item):
        first = make_item(partner_a)
        second = make_item(partner_a)

        _, payment_before = settlement_service.settle_single(first.id, 2000)
        catalog_service.update_partner(partner_a.id, {"commission_percent": 30})
        _, payment_after = settlement_service.settle_single(second.id, 2000)

        assert db_session.get(Payment, payment_before.id).commission_percent == Decimal("50.00")
        assert db_session.get(Payment, payment_before.id).payout_cents == 1000
        assert payment_after.commission_percent == Decimal("30.00")
        assert payment_after.payout_cents == 600

    def test_payout_uses_partner_percent(self, db_session, partner_b, make_item):
        item = make_item(partner_b)
        _, payment = settlement_service.settle_single(item.id, 1999)
        assert payment.payout_cents == 800

    def test_failure_mid_settlement_leaves_nothing_behind(self, db_session, partner_a, make_item, monkeypatch):
        item = make_item(partner_a)

        def boom(*args, **kwargs):
            raise RuntimeError("payout failed")

        # Sale row is already flushed when the payout is computed
        monkeypatch.setattr(settlement_service, "compute_payout_cents", boom)

        with pytest.raises(RuntimeError):
            settlement_service.settle_single(item.id, 2000)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(Payment).count() == 0
        assert db_session.get(Item, item.id).status == "AVAILABLE"

    def test_concurrent_sales_of_same_item_have_one_winner(self, db_session, tmp_path):
        race_app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.sqlite3'}",
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'BCRYPT_ROUNDS': 4,
        })

        with race_app.app_context():
            db.create_all()
            partner = auth_service.create_partner_account(
                name="Race Partner", email="race@parceiros.local", password="Secret123",
            )
            brand = Brand(name="Race")
            size = Size(name="M", sort_order=1)
            db.session.add_all([brand, size])
            db.session.commit()
            item = Item(
                tag_code="RACE-1", cost_cents=1000, list_price_cents=2000,
                partner_id=partner.id, brand_id=brand.id, size_id=size.id, photos=[],
            )
            db.session.add(item)
            db.session.commit()
            item_id = item.id
            db.session.remove()

        barrier = threading.Barrier(2, timeout=10)
        results = []

        def sell():
            with race_app.app_context():
                try:
                    barrier.wait()
                    settlement_service.settle_single(item_id, 2000)
                    results.append("ok")
                except InvalidStateError as exc:
                    results.append(type(exc).__name__)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=sell) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        with race_app.app_context():
            assert sorted(results) == ["InvalidStateError", "ok"]
            assert db.session.query(Sale).filter_by(item_id=item_id).count() == 1
            assert db.session.query(Payment).count() == 1
            assert db.session.get(Item, item_id).status == "SOLD"
            db.session.remove()
            db.engine.dispose()


# =============================================================================
# BATCH SETTLEMENT
# =============================================================================


class TestSettleBatch:

    def test_all_rows_succeed(self, db_session, partner_a, partner_b, make_item):
        items = [make_item(partner_a), make_item(partner_a), make_item(partner_b)]

        result = settlement_service.settle_batch(
            [{"item_id": i.id, "sold_for_cents": 2000} for i in items]
        )

        assert len(result.created) == 3
        assert result.failed == []
        assert db_session.query(Payment).count() == 3
        assert all(db_session.get(Item, i.id).status == "SOLD" for i in items)

    def test_partial_failure_keeps_good_rows(self, db_session, partner_a, make_item):
        good = make_item(partner_a)
        already_sold = make_item(partner_a)
        settlement_service.settle_single(already_sold.id, 1000)

        result = settlement_service.settle_batch([
            {"item_id": good.id, "sold_for_cents": 2000},
            {"item_id": already_sold.id, "sold_for_cents": 2000},
            {"item_id": 9999, "sold_for_cents": 2000},
            {"item_id": good.id, "sold_for_cents": 0},
        ])

        assert [s.item_id for s in result.created] == [good.id]
        assert len(result.failed) == 3
        kinds = {(f["item_id"], f["kind"]) for f in result.failed}
        assert (already_sold.id, "InvalidState") in kinds
        assert (9999, "NotFound") in kinds
        assert (good.id, "Validation") in kinds

        # One sale per item, never more
        assert db_session.query(Sale).count() == 2
        assert db_session.get(Item, good.id).status == "SOLD"

    def test_same_item_twice_in_one_batch(self, db_session, partner_a, make_item):
        item = make_item(partner_a)

        result = settlement_service.settle_batch([
            {"item_id": item.id, "sold_for_cents": 2000},
            {"item_id": item.id, "sold_for_cents": 2500},
        ])

        assert len(result.created) == 1
        assert result.failed[0]["kind"] == "InvalidState"
        assert db_session.query(Sale).filter_by(item_id=item.id).count() == 1

    def test_row_without_item_id(self, db_session, partner_a, make_item):
        item = make_item(partner_a)

        result = settlement_service.settle_batch([
            {"sold_for_cents": 2000},
            {"item_id": item.id, "sold_for_cents": 2000},
        ])

        assert len(result.created) == 1
        assert result.failed == [{"item_id": None, "reason": "item_id is required", "kind": "Validation"}]

    @pytest.mark.parametrize("payload", [None, [], {"item_id": 1}])
    def test_rejects_non_list(self, db_session, payload):
        with pytest.raises(ValidationError):
            settlement_service.settle_batch(payload)

    def test_result_dict_counts(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        result = settlement_service.settle_batch([
            {"item_id": item.id, "sold_for_cents": 2000},
            {"item_id": 9999, "sold_for_cents": 2000},
        ])
        data = result.to_dict()
        assert data["created_count"] == 1
        assert data["failed_count"] == 1
        assert data["created"][0]["item_id"] == item.id


# =============================================================================
# REVERSAL
# =============================================================================


class TestReverseSale:

    def test_reverse_unpaid_sale(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        sale, payment = settlement_service.settle_single(item.id, 2000)
        sale_id, payment_id = sale.id, payment.id

        result = settlement_service.reverse_sale(sale_id)

        assert result == {"sale_id": sale_id, "item_id": item.id}
        assert db_session.get(Sale, sale_id) is None
        assert db_session.get(Payment, payment_id) is None
        assert db_session.get(Item, item.id).status == "AVAILABLE"

    def test_item_can_be_sold_again_after_reversal(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        sale, _ = settlement_service.settle_single(item.id, 2000)
        settlement_service.reverse_sale(sale.id)

        _, payment = settlement_service.settle_single(item.id, 1800)
        assert payment.payout_cents == 900

    def test_paid_sale_cannot_be_reversed(self, db_session, partner_a, make_item):
        item = make_item(partner_a)
        sale, payment = settlement_service.settle_single(item.id, 2000)
        payment_service.mark_paid([payment.id])

        with pytest.raises(InvalidStateError):
            settlement_service.reverse_sale(sale.id)

        assert db_session.get(Sale, sale.id) is not None
        assert db_session.get(Item, item.id).status == "SOLD"
        kept = db_session.get(Payment, payment.id)
        assert kept is not None
        assert kept.is_paid is True

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            settlement_service.reverse_sale(9999)


# =============================================================================
# QUERIES
# =============================================================================


class TestListSales:

    def test_partner_sees_only_own_sales(self, db_session, admin, caller_a, partner_a, partner_b, make_item):
        own = make_item(partner_a)
        other = make_item(partner_b)
        settlement_service.settle_single(own.id, 2000)
        settlement_service.settle_single(other.id, 2000)

        assert len(settlement_service.list_sales(admin)) == 2
        visible = settlement_service.list_sales(caller_a, partner_id=partner_b.id)
        assert [s.item_id for s in visible] == [own.id]

    def test_filter_by_paid(self, db_session, admin, partner_a, make_item):
        first = make_item(partner_a)
        second = make_item(partner_a)
        _, paid = settlement_service.settle_single(first.id, 2000)
        settlement_service.settle_single(second.id, 2000)
        payment_service.mark_paid([paid.id])

        assert [s.item_id for s in settlement_service.list_sales(admin, paid=True)] == [first.id]
        assert [s.item_id for s in settlement_service.list_sales(admin, paid=False)] == [second.id]


# =============================================================================
# OPTIMISTIC LOCKING
# =============================================================================


class TestAtomic:

    def test_stale_version_reported_as_invalid_state(self, db_session, partner_a, make_item):
        item = make_item(partner_a)

        with pytest.raises(InvalidStateError, match="conflict"):
            with atomic("conflict"):
                loaded = db.session.get(Item, item.id)
                # Another writer bumps the row behind our back
                db.session.execute(
                    text("UPDATE items SET version_id = version_id + 1 WHERE id = :id"),
                    {"id": item.id},
                )
                loaded.status = "SOLD"

        assert db_session.get(Item, item.id).status == "AVAILABLE"

    def test_other_errors_roll_back_and_propagate(self, db_session, partner_a, make_item):
        item = make_item(partner_a)

        with pytest.raises(RuntimeError):
            with atomic():
                db.session.get(Item, item.id).notes = "changed"
                raise RuntimeError("boom")

        assert db_session.get(Item, item.id).notes is None


# =============================================================================
# HTTP
# =============================================================================


class TestSalesRoutes:

    def test_settle_route(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)

        resp = client.post("/api/sales/", json={"item_id": item.id, "sold_for_cents": 2000}, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["payment"]["payout_cents"] == 1000
        assert resp.json["payment"]["commission_percent"] == 50.0

    def test_settle_twice_returns_400(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)
        client.post("/api/sales/", json={"item_id": item.id, "sold_for_cents": 2000}, headers=admin_headers)

        resp = client.post("/api/sales/", json={"item_id": item.id, "sold_for_cents": 2000}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["kind"] == "InvalidState"

    def test_settle_missing_item_returns_404(self, client, admin_headers):
        resp = client.post("/api/sales/", json={"item_id": 9999, "sold_for_cents": 2000}, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["kind"] == "NotFound"

    def test_batch_route(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)

        resp = client.post(
            "/api/sales/batch",
            json={"sales": [
                {"item_id": item.id, "sold_for_cents": 2000},
                {"item_id": 9999, "sold_for_cents": 2000},
            ]},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert resp.json["created_count"] == 1
        assert resp.json["failed"][0]["item_id"] == 9999

    def test_reverse_route(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)
        created = client.post("/api/sales/", json={"item_id": item.id, "sold_for_cents": 2000}, headers=admin_headers)
        sale_id = created.json["sale"]["id"]

        resp = client.delete(f"/api/sales/{sale_id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["item_id"] == item.id

    def test_list_route_includes_item_and_payment(self, client, admin_headers, partner_a, make_item):
        item = make_item(partner_a)
        client.post("/api/sales/", json={"item_id": item.id, "sold_for_cents": 2000}, headers=admin_headers)

        resp = client.get("/api/sales/?paid=false", headers=admin_headers)

        assert resp.status_code == 200
        sale = resp.json["sales"][0]
        assert sale["item"]["tag_code"] == item.tag_code
        assert sale["item"]["partner_name"] == "Partner A"
        assert sale["payment"]["is_paid"] is False
