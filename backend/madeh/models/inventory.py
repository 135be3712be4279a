from __future__ import annotations

from ..extensions import db
from madeh.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    Money is stored in cents (frontend may only format for display).
    `stock` is the current sellable quantity and must never go negative;
    checkout is the only writer that decrements it (see checkout_service).

    version_id is an optimistic lock: any ORM update bumps it, so a
    checkout racing an edit or another checkout raises StaleDataError and
    is retried against fresh stock.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "name"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, unique=True)
    category = db.Column(db.String(120), nullable=False, index=True)

    price_cents = db.Column(db.Integer, nullable=False)
    # Buying price
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "stock": self.stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
