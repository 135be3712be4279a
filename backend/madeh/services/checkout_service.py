"""
Checkout Service - atomic purchase creation

A checkout validates every cart line against current stock, creates the
Purchase with its computed total, creates one PurchaseItem per line and
decrements stock, all inside one database transaction. Any shortfall
rejects the whole cart and nothing is written.

Concurrent checkouts on the same product are serialized by row locks
(SELECT ... FOR UPDATE where supported) and by the optimistic version
counter on Product: a stale write raises StaleDataError and the whole
operation is retried against fresh stock.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Iterable

from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, PAYMENT_METHODS, PAYMENT_STATUSES
from ..models.sales import PAYMENT_UNPAID
from ..validation import MAX_PRICE_CENTS, ValidationError, coerce_int
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Raised for checkout validation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(CheckoutError):
    """A cart line asks for more units than the product has in stock."""
    status_code = 409


@dataclass(frozen=True)
class CartLine:
    """A line in the in-memory cart. price_cents None means "current product price"."""
    product_id: int
    quantity: int
    price_cents: int | None = None


def compute_total(lines: Iterable[tuple[int, int]]) -> int:
    """Sum of quantity * unit price (cents) over (quantity, price_cents) pairs."""
    return sum(quantity * price_cents for quantity, price_cents in lines)


def parse_cart(items: Any) -> list[CartLine]:
    """
    Build CartLines from a JSON payload list of
    {"product_id": int, "quantity": int, "price_cents": int (optional)}.
    """
    if not isinstance(items, list) or not items:
        raise CheckoutError("Cart is empty")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise CheckoutError(f"Cart line {index + 1} must be an object")
        try:
            product_id = coerce_int("product_id", item.get("product_id"))
            quantity = coerce_int("quantity", item.get("quantity"))
            price = item.get("price_cents")
            price_cents = coerce_int("price_cents", price) if price is not None else None
        except ValidationError as e:
            raise CheckoutError(f"Cart line {index + 1}: {e}")

        if quantity <= 0:
            raise CheckoutError(f"Cart line {index + 1}: quantity must be > 0")
        if price_cents is not None and not 0 < price_cents <= MAX_PRICE_CENTS:
            raise CheckoutError(f"Cart line {index + 1}: price_cents must be > 0")

        lines.append(CartLine(product_id=product_id, quantity=quantity, price_cents=price_cents))
    return lines


def _clean_optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def validate_payment(
    payment_method: str,
    payment_status: str,
    customer_name: Any = None,
    customer_id_number: Any = None,
) -> tuple[str | None, str | None]:
    """
    Check enums and customer requirements; returns cleaned customer fields.

    Unpaid purchases need a customer name and ID number (who owes the money).
    """
    if payment_method not in PAYMENT_METHODS:
        raise CheckoutError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    if payment_status not in PAYMENT_STATUSES:
        raise CheckoutError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")

    name = _clean_optional(customer_name)
    id_number = _clean_optional(customer_id_number)

    if payment_status == PAYMENT_UNPAID:
        missing = [
            field for field, value in (("customer_name", name), ("customer_id_number", id_number))
            if not value
        ]
        if missing:
            raise CheckoutError(
                "Customer name and ID number are required for unpaid purchases",
                details={"missing_fields": missing},
            )

    return name, id_number


def _aggregate(lines: list[CartLine]) -> "OrderedDict[int, int]":
    totals: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


def _check_stock(products: dict[int, Product], requested: dict[int, int]) -> None:
    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "stock": product.stock,
            })

    if insufficient:
        names = ", ".join(item["name"] for item in insufficient)
        raise InsufficientStockError(
            f"Insufficient stock for product {names}",
            details={"items": insufficient},
        )


def checkout(
    *,
    lines: list[CartLine],
    created_by: int | None,
    payment_method: str = "Cash",
    payment_status: str = "Paid",
    customer_name: Any = None,
    customer_id_number: Any = None,
) -> Purchase:
    """
    Atomically record a purchase, its items and the stock decrements.

    Raises:
        CheckoutError: empty cart, unknown product, bad payment fields
        InsufficientStockError: any product short of stock (nothing is written)
    """
    if not lines:
        raise CheckoutError("Cart is empty")

    name, id_number = validate_payment(payment_method, payment_status, customer_name, customer_id_number)
    requested = _aggregate(lines)

    def _op():
        try:
            locked = lock_for_update(
                db.session.query(Product)
                .filter(Product.id.in_(list(requested.keys())))
                .order_by(Product.id.asc())
            ).all()
            products = {p.id: p for p in locked}

            missing = [pid for pid in requested if pid not in products]
            if missing:
                raise CheckoutError("Product not found", details={"product_ids": missing})

            _check_stock(products, requested)

            priced = [
                (line, line.price_cents if line.price_cents is not None else products[line.product_id].price_cents)
                for line in lines
            ]

            purchase = Purchase(
                total_amount_cents=compute_total((line.quantity, price) for line, price in priced),
                payment_status=payment_status,
                payment_method=payment_method,
                customer_name=name,
                customer_id_number=id_number,
                created_by=created_by,
            )
            db.session.add(purchase)
            db.session.flush()  # ensure purchase.id exists before items

            for line, price in priced:
                db.session.add(PurchaseItem(
                    purchase_id=purchase.id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price_cents=price,
                ))

            for product_id, qty in requested.items():
                products[product_id].stock -= qty

            db.session.commit()
            return purchase
        except CheckoutError:
            db.session.rollback()
            raise

    purchase = run_with_retry(_op)
    logger.info(
        "Purchase %s created by admin %s: %s cents, %s, %s",
        purchase.id, created_by, purchase.total_amount_cents, payment_method, payment_status,
    )
    return purchase
