from __future__ import annotations

from ..extensions import db
from madeh.time_utils import to_utc_z


PAYMENT_PAID = "Paid"
PAYMENT_UNPAID = "Unpaid"
PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_UNPAID)

PAYMENT_METHODS = ("Cash", "M-Pesa", "Bank Transfer")


class Purchase(db.Model):
    """
    One sale transaction, created once at checkout.

    Immutable after creation except for payment_status (Unpaid -> Paid).
    total_amount_cents always equals sum(quantity * price_cents) of its items.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_created", "payment_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PAID, index=True)
    payment_method = db.Column(db.String(32), nullable=False, default="Cash")

    # Required for Unpaid purchases (who owes the money)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_id_number = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("admins.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    creator = db.relationship("Admin")
    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        lazy=True,
        order_by="PurchaseItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "total_amount_cents": self.total_amount_cents,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "customer_name": self.customer_name,
            "customer_id_number": self.customer_id_number,
            "created_by": self.created_by,
            "created_by_username": self.creator.username if self.creator else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """One product line on a purchase; price_cents is the unit price at time of sale."""
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_category": self.product.category if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }
