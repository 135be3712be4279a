"""
Payment status tests: listing purchases and the Unpaid -> Paid transition.
"""

import pytest

from madeh.services import checkout_service, payment_service
from madeh.services.checkout_service import CartLine
from madeh.validation import NotFoundError, ValidationError


@pytest.fixture
def unpaid_purchase(cashier, hammer):
    return checkout_service.checkout(
        lines=[CartLine(hammer.id, 1)],
        created_by=cashier.id,
        payment_method="Bank Transfer",
        payment_status="Unpaid",
        customer_name="Otieno Builders",
        customer_id_number="A-778899",
    )


@pytest.fixture
def paid_purchase(cashier, nails):
    return checkout_service.checkout(lines=[CartLine(nails.id, 4)], created_by=cashier.id)


class TestMarkPaid:

    def test_unpaid_becomes_paid_and_keeps_customer(self, unpaid_purchase):
        purchase = payment_service.mark_paid(unpaid_purchase.id)
        assert purchase.payment_status == "Paid"
        assert purchase.customer_name == "Otieno Builders"
        assert purchase.customer_id_number == "A-778899"
        assert purchase.payment_method == "Bank Transfer"

    def test_paid_is_a_no_op(self, paid_purchase):
        before = paid_purchase.to_dict()
        purchase = payment_service.mark_paid(paid_purchase.id)
        assert purchase.to_dict() == before

    def test_missing_purchase(self, app):
        with pytest.raises(NotFoundError):
            payment_service.mark_paid(12345)

    def test_route(self, client, cashier_headers, unpaid_purchase):
        resp = client.post(f"/api/purchases/{unpaid_purchase.id}/mark-paid", headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.json["purchase"]["payment_status"] == "Paid"
        assert resp.json["purchase"]["items"][0]["quantity"] == 1

        # Marking again changes nothing
        again = client.post(f"/api/purchases/{unpaid_purchase.id}/mark-paid", headers=cashier_headers)
        assert again.status_code == 200
        assert again.json["purchase"]["payment_status"] == "Paid"

    def test_route_missing(self, client, cashier_headers):
        assert client.post("/api/purchases/999/mark-paid", headers=cashier_headers).status_code == 404


class TestListPurchases:

    def test_filter_by_status(self, client, cashier_headers, unpaid_purchase, paid_purchase):
        resp = client.get("/api/purchases?payment_status=Unpaid", headers=cashier_headers)
        assert [p["id"] for p in resp.json["items"]] == [unpaid_purchase.id]

        resp = client.get("/api/purchases", headers=cashier_headers)
        assert resp.json["count"] == 2
        # Newest first
        assert resp.json["items"][0]["id"] == paid_purchase.id

    def test_bad_status(self, client, cashier_headers):
        resp = client.get("/api/purchases?payment_status=Pending", headers=cashier_headers)
        assert resp.status_code == 400

    def test_service_rejects_bad_status(self, app):
        with pytest.raises(ValidationError):
            payment_service.list_purchases("Pending")

    def test_get_purchase_with_items(self, client, cashier_headers, paid_purchase, nails):
        resp = client.get(f"/api/purchases/{paid_purchase.id}", headers=cashier_headers)
        assert resp.status_code == 200
        purchase = resp.json["purchase"]
        assert purchase["total_amount_cents"] == 4 * 875
        assert purchase["items"] == [
            {
                "id": purchase["items"][0]["id"],
                "purchase_id": paid_purchase.id,
                "product_id": nails.id,
                "product_name": "Nails 2in (1kg)",
                "product_category": "Fasteners",
                "quantity": 4,
                "price_cents": 875,
                "line_total_cents": 3500,
                "created_at": purchase["items"][0]["created_at"],
            }
        ]

    def test_get_missing(self, client, cashier_headers):
        assert client.get("/api/purchases/999", headers=cashier_headers).status_code == 404
