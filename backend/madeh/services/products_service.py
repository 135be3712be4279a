# backend/madeh/services/products_service.py
"""
Products Service

Catalog reads and writes. Stock is edited here only as an absolute value
set by an admin; sales decrement it through checkout_service.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product, PurchaseItem
from ..validation import ConflictError, NotFoundError
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "category", "price_cents", "cost_cents", "stock"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def find_by_name(name: str, exclude_id: int | None = None) -> Product | None:
    """Case-insensitive name lookup (product names are unique ignoring case)."""
    query = db.session.query(Product).filter(db.func.lower(Product.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first()


def list_products(search: str | None = None, category: str | None = None) -> dict:
    """
    Catalog listing ordered by name.

    Args:
        search: case-insensitive substring matched against name or category
        category: exact category match

    Returns:
        Dict with 'items' and 'count'.
    """
    query = db.session.query(Product)

    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                db.func.lower(Product.name).like(pattern),
                db.func.lower(Product.category).like(pattern),
            )
        )

    if category:
        query = query.filter(Product.category == category)

    products = query.order_by(db.func.lower(Product.name).asc(), Product.id.asc()).all()
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


def list_categories() -> list[str]:
    rows = db.session.query(Product.category).distinct().order_by(Product.category.asc()).all()
    return [row[0] for row in rows]


def low_stock_products(threshold: int) -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.stock <= threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return [p.to_dict() for p in products]


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if not p:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If a product with the same name (ignoring case) exists
    """
    if find_by_name(patch["name"]):
        raise ConflictError("A product with this name already exists.")

    p = Product()
    apply_product_patch(p, patch)
    if p.cost_cents is None:
        p.cost_cents = 0
    if p.stock is None:
        p.stock = 0

    db.session.add(p)
    db.session.commit()
    logger.info("Created product id=%s name=%s", p.id, p.name)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update a product.

    Raises:
        NotFoundError: unknown product
        ConflictError: If the new name already exists
    """
    def _op():
        p = get_product(product_id)

        if "name" in patch and find_by_name(patch["name"], exclude_id=p.id):
            raise ConflictError("A product with this name already exists.")

        apply_product_patch(p, patch)
        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    """
    Delete a product.

    Products that appear on purchases are kept so sales history stays intact.

    Raises:
        NotFoundError: unknown product
        ConflictError: product has sales history
    """
    p = get_product(product_id)

    in_use = db.session.query(PurchaseItem.id).filter(PurchaseItem.product_id == p.id).first()
    if in_use:
        raise ConflictError("Product has sales history and cannot be deleted.")

    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product id=%s", product_id)
