import json

import pytest

from app.models import Appointment, Coupon, CouponUsage, Sale
from conftest import TODAY


def body(response):
    return json.loads(response.data)


def cut_item(services, **overrides):
    item = {
        "item_type": "SERVICE",
        "service_id": services["cut"].id,
        "name": "Cut",
        "category": "cut",
        "duration": 60,
        "unit_price": 5500,
    }
    item.update(overrides)
    return item


@pytest.fixture
def settle(client, admin_headers):
    def _settle(**payload):
        payload.setdefault("sale_key", "sale-1")
        return client.post("/api/pos/sales", json=payload, headers=admin_headers)

    return _settle


@pytest.mark.settlement
class TestSettlement:
    """POST /api/pos/sales"""

    def test_simple_sale_with_inclusive_tax(self, settle, services):
        response = settle(
            items=[cut_item(services)],
            payments=[{"payment_method": "CASH", "amount": 5500}],
        )

        assert response.status_code == 201
        sale = body(response)["sale"]
        assert sale["sale_number"] == "SALE-20261020-001"
        assert sale["subtotal"] == 5500
        assert sale["total_amount"] == 5500
        assert sale["tax_rate"] == 10
        assert sale["tax_amount"] == 500
        assert sale["payment_method"] == "CASH"
        assert sale["sale_date"] == TODAY.isoformat()
        assert sale["sale_time"] == "08:00"

    def test_sale_numbers_increase_per_day(self, settle, services):
        payments = [{"payment_method": "CASH", "amount": 5500}]
        settle(sale_key="a", items=[cut_item(services)], payments=payments)
        second = body(settle(sale_key="b", items=[cut_item(services)], payments=payments))
        other_day = body(
            settle(
                sale_key="c",
                items=[cut_item(services)],
                payments=payments,
                sale_date="2026-10-21",
            )
        )

        assert second["sale"]["sale_number"] == "SALE-20261020-002"
        assert other_day["sale"]["sale_number"] == "SALE-20261021-001"

    def test_payment_mismatch_rejected(self, db, settle, services):
        response = settle(
            items=[cut_item(services)],
            payments=[{"payment_method": "CASH", "amount": 5000}],
        )
        assert response.status_code == 400
        assert "5000" in body(response)["message"]
        assert db.session.query(Sale).count() == 0

    def test_split_payments(self, settle, services):
        response = settle(
            items=[cut_item(services), {"item_type": "PRODUCT", "name": "Shampoo", "unit_price": 1100, "quantity": 2}],
            payments=[
                {"payment_method": "CARD", "amount": 5000},
                {"payment_method": "CASH", "amount": 2700},
            ],
        )
        assert response.status_code == 201
        sale = body(response)["sale"]
        assert sale["total_amount"] == 7700
        assert sale["tax_amount"] == 700
        assert sale["payment_method"] == "CARD"
        assert [p["amount"] for p in sale["payments"]] == [5000, 2700]
        assert sale["items"][1]["subtotal"] == 2200

    def test_store_discount(self, settle, services, discounts):
        response = settle(
            items=[cut_item(services)],
            discount_id=discounts["staff"].id,
            payments=[{"payment_method": "CASH", "amount": 4950}],
        )
        assert response.status_code == 201
        sale = body(response)["sale"]
        assert sale["discount_amount"] == 550
        assert sale["tax_amount"] == 450

    def test_inactive_store_discount(self, settle, services, discounts):
        response = settle(
            items=[cut_item(services)],
            discount_id=discounts["retired"].id,
            payments=[{"payment_method": "CASH", "amount": 5200}],
        )
        assert response.status_code == 404

    def test_manual_discount_cannot_exceed_subtotal(self, settle, services):
        response = settle(items=[cut_item(services)], discount_amount=6000, payments=[])
        assert response.status_code == 400

    def test_coupon_consumed_once(self, db, settle, services, coupons):
        response = settle(
            items=[cut_item(services)],
            customer_id=7,
            coupon_code="welcome20",
            payments=[{"payment_method": "CASH", "amount": 4400}],
        )

        assert response.status_code == 201
        sale = body(response)["sale"]
        assert sale["coupon_discount"] == 1100
        assert sale["coupon"]["code"] == "WELCOME20"
        assert sale["tax_amount"] == 400

        db.session.refresh(coupons["percent"])
        assert coupons["percent"].usage_count == 1
        usage = db.session.query(CouponUsage).one()
        assert usage.customer_id == 7
        assert usage.sale_id == sale["id"]

    def test_retry_with_same_key_is_idempotent(self, db, settle, services, coupons):
        payload = dict(
            sale_key="register-42",
            items=[cut_item(services)],
            customer_id=7,
            coupon_code="WELCOME20",
            payments=[{"payment_method": "CASH", "amount": 4400}],
        )
        first = settle(**payload)
        second = settle(**payload)

        assert first.status_code == 201
        assert second.status_code == 200
        assert body(second)["created"] is False
        assert body(second)["sale"]["id"] == body(first)["sale"]["id"]
        assert db.session.query(Sale).count() == 1
        assert db.session.query(CouponUsage).count() == 1
        db.session.refresh(coupons["percent"])
        assert coupons["percent"].usage_count == 1

    def test_single_use_coupon_rejected_on_second_sale(self, settle, services, coupons):
        payments = [{"payment_method": "CASH", "amount": 5000}]
        assert settle(sale_key="a", items=[cut_item(services)], coupon_code="ONCE", payments=payments).status_code == 201

        response = settle(sale_key="b", items=[cut_item(services)], coupon_code="ONCE", payments=payments)
        assert response.status_code == 400
        assert body(response)["reason"] == "usage_limit_reached"

    def test_guarded_increment_when_limit_reached_concurrently(
        self, db, monkeypatch, settings, clock, services, coupons
    ):
        from app.errors import CouponError
        from app.services import settlement
        from app.services.settlement import PaymentLine, SaleLine, SaleRequest, settle_sale

        real_validate = settlement.validate_coupon

        def validate_then_lose_race(session, *args, **kwargs):
            validation = real_validate(session, *args, **kwargs)
            # Another register uses the last slot after this one validated
            session.execute(
                Coupon.__table__.update()
                .where(Coupon.__table__.c.id == coupons["limited"].id)
                .values(usage_count=1)
            )
            return validation

        monkeypatch.setattr(settlement, "validate_coupon", validate_then_lose_race)
        request = SaleRequest(
            sale_key="race",
            lines=[SaleLine(name="Cut", unit_price=5500, service_id=services["cut"].id, category="cut")],
            payments=[PaymentLine("CASH", 5000)],
            coupon_code="ONCE",
        )

        with pytest.raises(CouponError) as excinfo:
            settle_sale(db.session, settings, clock, request)
        assert excinfo.value.reason == "usage_limit_reached"
        assert db.session.query(Sale).count() == 0
        assert db.session.query(CouponUsage).count() == 0

    def test_partial_coupon_on_matching_lines(self, settle, services, coupons):
        response = settle(
            items=[
                cut_item(services),
                {"item_type": "PRODUCT", "name": "Wax", "unit_price": 2000},
            ],
            coupon_code="CUT10",
            payments=[{"payment_method": "CASH", "amount": 6950}],
        )
        assert response.status_code == 201
        assert body(response)["sale"]["coupon_discount"] == 550

    def test_first_time_coupon_after_first_sale(self, settle, services, coupons):
        payments = [{"payment_method": "CASH", "amount": 4000}]
        first = settle(sale_key="a", customer_id=9, items=[cut_item(services)], coupon_code="FIRST", payments=payments)
        assert first.status_code == 201

        second = settle(sale_key="b", customer_id=9, items=[cut_item(services)], coupon_code="FIRST", payments=payments)
        assert body(second)["reason"] == "first_time_only"

    def test_fixed_coupon_can_zero_the_total(self, settle, services, coupons):
        response = settle(
            items=[{"item_type": "PRODUCT", "name": "Sample", "unit_price": 500}],
            coupon_code="FIXED1000",
        )
        assert response.status_code == 201
        sale = body(response)["sale"]
        assert sale["coupon_discount"] == 500
        assert sale["total_amount"] == 0
        assert sale["tax_amount"] == 0

    def test_linked_reservation_completed(self, db, settle, services, book):
        reservation = body(book([services["cut"].id], "10:00"))["reservation"]
        response = settle(
            reservation_id=reservation["id"],
            items=[cut_item(services)],
            payments=[{"payment_method": "CASH", "amount": 5500}],
        )

        assert response.status_code == 201
        assert db.session.get(Appointment, reservation["id"]).status == "COMPLETED"

    def test_cancelled_reservation_cannot_be_settled(self, client, settle, services, book):
        reservation = body(book([services["cut"].id], "10:00"))["reservation"]
        client.delete(f"/api/reservations/{reservation['id']}?customer_id=1")

        response = settle(
            reservation_id=reservation["id"],
            items=[cut_item(services)],
            payments=[{"payment_method": "CASH", "amount": 5500}],
        )
        assert response.status_code == 400

    def test_requires_admin_key(self, client, services):
        response = client.post("/api/pos/sales", json={"sale_key": "x", "items": []})
        assert response.status_code == 401

    def test_empty_items_rejected(self, settle, services):
        assert settle(items=[], payments=[]).status_code == 400


@pytest.mark.settlement
class TestSalesLookup:
    """Sale detail, listing and store discounts."""

    def test_get_sale(self, client, admin_headers, settle, services):
        sale = body(settle(items=[cut_item(services)], payments=[{"payment_method": "CASH", "amount": 5500}]))["sale"]

        response = client.get(f"/api/pos/sales/{sale['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert body(response)["sale"]["sale_number"] == sale["sale_number"]
        assert client.get("/api/pos/sales/999", headers=admin_headers).status_code == 404

    def test_list_sales_by_date(self, client, admin_headers, settle, services):
        payments = [{"payment_method": "CASH", "amount": 5500}]
        settle(sale_key="a", items=[cut_item(services)], payments=payments)
        settle(sale_key="b", items=[cut_item(services)], payments=payments, sale_date="2026-10-22")

        data = body(client.get("/api/pos/sales?from=2026-10-21", headers=admin_headers))
        assert [s["sale_key"] for s in data["sales"]] == ["b"]

    def test_list_active_discounts(self, client, admin_headers, discounts):
        data = body(client.get("/api/pos/discounts", headers=admin_headers))
        assert [d["name"] for d in data["discounts"]] == ["Staff 10%", "Loyalty 500"]
