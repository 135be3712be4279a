"""
Checkout tests.

Verifies:
- Purchase total equals sum(quantity * unit price) in cents
- Stock is decremented by exactly the purchased quantity
- Any shortfall rejects the whole cart and writes nothing
- Unpaid purchases require customer details
- Concurrency conflicts are retried
- Parallel checkouts on one product never sell more than its stock
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from madeh import create_app
from madeh.extensions import db
from madeh.models import Admin, Product, Purchase, PurchaseItem
from madeh.models.auth import ROLE_CASHIER
from madeh.services import checkout_service
from madeh.services.checkout_service import (
    CartLine,
    CheckoutError,
    InsufficientStockError,
    compute_total,
)
from madeh.services.concurrency import run_with_retry


def _counts(db_session):
    return db_session.query(Purchase).count(), db_session.query(PurchaseItem).count()


# =============================================================================
# TOTALS
# =============================================================================


class TestComputeTotal:

    def test_example_cart(self):
        assert compute_total([(2, 1599), (1, 875)]) == 4073

    def test_empty(self):
        assert compute_total([]) == 0


# =============================================================================
# SERVICE
# =============================================================================


class TestCheckoutService:

    def test_creates_purchase_items_and_decrements_stock(self, db_session, cashier, hammer, nails):
        purchase = checkout_service.checkout(
            lines=[CartLine(hammer.id, 2), CartLine(nails.id, 1)],
            created_by=cashier.id,
        )

        assert purchase.total_amount_cents == 4073
        assert purchase.payment_status == "Paid"
        assert purchase.payment_method == "Cash"
        assert purchase.created_by == cashier.id
        assert [(i.product_id, i.quantity, i.price_cents) for i in purchase.items] == [
            (hammer.id, 2, 1599),
            (nails.id, 1, 875),
        ]
        assert db_session.get(Product, hammer.id).stock == 18
        assert db_session.get(Product, nails.id).stock == 99

    def test_supplied_line_price_is_used(self, db_session, cashier, hammer):
        purchase = checkout_service.checkout(
            lines=[CartLine(hammer.id, 3, price_cents=1500)],
            created_by=cashier.id,
        )
        assert purchase.total_amount_cents == 4500
        assert purchase.items[0].price_cents == 1500

    def test_whole_stock_can_be_sold(self, db_session, cashier, cement):
        checkout_service.checkout(lines=[CartLine(cement.id, 3)], created_by=cashier.id)
        assert db_session.get(Product, cement.id).stock == 0

    def test_insufficient_stock_writes_nothing(self, db_session, cashier, hammer, cement):
        with pytest.raises(InsufficientStockError) as exc:
            checkout_service.checkout(
                lines=[CartLine(hammer.id, 1), CartLine(cement.id, 4)],
                created_by=cashier.id,
            )

        assert exc.value.status_code == 409
        assert exc.value.details["items"] == [{
            "product_id": cement.id,
            "name": "Cement 50kg",
            "requested_quantity": 4,
            "stock": 3,
        }]
        assert _counts(db_session) == (0, 0)
        assert db_session.get(Product, hammer.id).stock == 20
        assert db_session.get(Product, cement.id).stock == 3

    def test_repeated_product_lines_are_checked_together(self, db_session, cashier, cement):
        with pytest.raises(InsufficientStockError) as exc:
            checkout_service.checkout(
                lines=[CartLine(cement.id, 2), CartLine(cement.id, 2)],
                created_by=cashier.id,
            )
        assert exc.value.details["items"][0]["requested_quantity"] == 4
        assert _counts(db_session) == (0, 0)

    def test_unknown_product(self, db_session, cashier, hammer):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.checkout(
                lines=[CartLine(hammer.id, 1), CartLine(9999, 1)],
                created_by=cashier.id,
            )
        assert exc.value.details == {"product_ids": [9999]}
        assert db_session.get(Product, hammer.id).stock == 20

    def test_empty_cart(self, cashier):
        with pytest.raises(CheckoutError):
            checkout_service.checkout(lines=[], created_by=cashier.id)

    def test_unpaid_requires_customer(self, db_session, cashier, hammer):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.checkout(
                lines=[CartLine(hammer.id, 1)],
                created_by=cashier.id,
                payment_status="Unpaid",
                customer_name="  ",
            )
        assert exc.value.details["missing_fields"] == ["customer_name", "customer_id_number"]
        assert _counts(db_session) == (0, 0)

    def test_unpaid_with_customer(self, cashier, hammer):
        purchase = checkout_service.checkout(
            lines=[CartLine(hammer.id, 1)],
            created_by=cashier.id,
            payment_method="M-Pesa",
            payment_status="Unpaid",
            customer_name=" Jane Wanjiru ",
            customer_id_number="12345678",
        )
        assert purchase.payment_status == "Unpaid"
        assert purchase.customer_name == "Jane Wanjiru"

    def test_bad_payment_method(self, cashier, hammer):
        with pytest.raises(CheckoutError):
            checkout_service.checkout(
                lines=[CartLine(hammer.id, 1)],
                created_by=cashier.id,
                payment_method="Cheque",
            )


class TestParseCart:

    def test_parses_lines(self):
        lines = checkout_service.parse_cart([
            {"product_id": 1, "quantity": "2"},
            {"product_id": 2, "quantity": 1, "price_cents": 875},
        ])
        assert lines == [CartLine(1, 2), CartLine(2, 1, 875)]

    @pytest.mark.parametrize("items", [
        None,
        [],
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": 1, "quantity": -1}],
        [{"product_id": 1, "quantity": 1.5}],
        [{"product_id": 1, "quantity": 1, "price_cents": 0}],
        [{"quantity": 1}],
        ["not-a-line"],
    ])
    def test_rejects_bad_lines(self, items):
        with pytest.raises(CheckoutError):
            checkout_service.parse_cart(items)


class TestRetry:

    def test_stale_data_is_retried(self, app):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("row version changed")
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, app):
        def always_stale():
            raise StaleDataError("row version changed")

        with pytest.raises(StaleDataError):
            run_with_retry(always_stale, attempts=2, backoff_base=0)

    def test_checkout_sees_committed_stock_edit(self, db_session, cashier, hammer):
        # Another writer bumps the row version behind this session's back
        db_session.execute(
            Product.__table__.update()
            .where(Product.id == hammer.id)
            .values(stock=5, version_id=Product.version_id + 1)
        )
        db_session.commit()

        # Checkout reads the committed row, so 6 units are refused
        with pytest.raises(InsufficientStockError):
            checkout_service.checkout(lines=[CartLine(hammer.id, 6)], created_by=cashier.id)

        purchase = checkout_service.checkout(lines=[CartLine(hammer.id, 5)], created_by=cashier.id)
        assert purchase.total_amount_cents == 5 * 1599
        assert db_session.get(Product, hammer.id).stock == 0

    def test_stale_version_retries_whole_checkout(self, db_session, cashier, hammer, monkeypatch):
        real_check = checkout_service._check_stock
        calls = []

        def racing_check(products, requested):
            calls.append(1)
            if len(calls) == 1:
                # Row version moves under the loaded Product, so the stock write goes stale
                db_session.execute(
                    Product.__table__.update()
                    .where(Product.id == hammer.id)
                    .values(version_id=Product.version_id + 1)
                )
            real_check(products, requested)

        monkeypatch.setattr(checkout_service, "_check_stock", racing_check)

        purchase = checkout_service.checkout(lines=[CartLine(hammer.id, 4)], created_by=cashier.id)

        assert len(calls) == 2
        assert purchase.total_amount_cents == 4 * 1599
        assert _counts(db_session) == (1, 1)
        assert db_session.get(Product, hammer.id).stock == 16


# =============================================================================
# CONCURRENT CHECKOUTS
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database so threads get separate connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'madeh.sqlite3'}",
        'BCRYPT_ROUNDS': 4,
        'BACKUP_STORAGE_PATH': str(tmp_path / "backups"),
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


class TestConcurrentCheckout:

    def test_parallel_checkouts_never_oversell(self, file_app):
        admin = Admin(username="till", email="till@madeh.test", password_hash="x", role=ROLE_CASHIER)
        product = Product(name="Padlock", category="Security", price_cents=1200, stock=5)
        db.session.add_all([admin, product])
        db.session.commit()
        admin_id, product_id = admin.id, product.id
        db.session.remove()

        workers = 8
        barrier = threading.Barrier(workers)
        outcomes = []
        outcomes_lock = threading.Lock()

        def buy_one():
            with file_app.app_context():
                barrier.wait()
                try:
                    checkout_service.checkout(lines=[CartLine(product_id, 1)], created_by=admin_id)
                    outcome = "sold"
                except (InsufficientStockError, OperationalError, StaleDataError) as exc:
                    outcome = type(exc).__name__
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=buy_one) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert len(outcomes) == workers
        sold = outcomes.count("sold")
        assert 1 <= sold <= 5

        stock = db.session.get(Product, product_id).stock
        assert stock == 5 - sold
        assert _counts(db.session) == (sold, sold)


# =============================================================================
# ROUTE
# =============================================================================


class TestCheckoutRoute:

    def test_checkout(self, client, cashier_headers, hammer, nails):
        resp = client.post("/api/purchases", json={
            "items": [
                {"product_id": hammer.id, "quantity": 2, "price_cents": 1599},
                {"product_id": nails.id, "quantity": 1, "price_cents": 875},
            ],
            "payment_method": "Cash",
            "payment_status": "Paid",
        }, headers=cashier_headers)

        assert resp.status_code == 201
        purchase = resp.json["purchase"]
        assert purchase["total_amount_cents"] == 4073
        assert purchase["created_by_username"] == "cashier"
        assert [i["line_total_cents"] for i in purchase["items"]] == [3198, 875]
        assert purchase["items"][0]["product_name"] == "Claw Hammer"

    def test_insufficient_stock_is_409(self, client, cashier_headers, cement, db_session):
        resp = client.post("/api/purchases", json={
            "items": [{"product_id": cement.id, "quantity": 10}],
        }, headers=cashier_headers)

        assert resp.status_code == 409
        assert "Cement 50kg" in resp.json["error"]
        assert resp.json["details"]["items"][0]["stock"] == 3
        assert _counts(db_session) == (0, 0)

    def test_validation_is_400(self, client, cashier_headers, hammer):
        resp = client.post("/api/purchases", json={
            "items": [{"product_id": hammer.id, "quantity": 1}],
            "payment_status": "Unpaid",
        }, headers=cashier_headers)
        assert resp.status_code == 400

    def test_empty_cart_is_400(self, client, cashier_headers):
        resp = client.post("/api/purchases", json={"items": []}, headers=cashier_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Cart is empty"

    def test_requires_auth(self, client, hammer):
        resp = client.post("/api/purchases", json={"items": [{"product_id": hammer.id, "quantity": 1}]})
        assert resp.status_code == 401
