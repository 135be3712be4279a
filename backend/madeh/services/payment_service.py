# Overview: Purchase lookups and the Unpaid -> Paid transition.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Purchase, PAYMENT_STATUSES
from ..models.sales import PAYMENT_PAID
from ..validation import NotFoundError, require_choice

logger = logging.getLogger(__name__)


def list_purchases(payment_status: str | None = None) -> list[dict]:
    """Purchases newest first, optionally filtered by payment status."""
    query = db.session.query(Purchase)
    if payment_status:
        require_choice("payment_status", payment_status, PAYMENT_STATUSES)
        query = query.filter(Purchase.payment_status == payment_status)
    purchases = query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()
    return [p.to_dict() for p in purchases]


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError("Purchase not found")
    return purchase


def mark_paid(purchase_id: int) -> Purchase:
    """
    Mark an Unpaid purchase as Paid.

    Already Paid purchases are returned unchanged. There is no way back to
    Unpaid, and customer fields are kept as recorded at checkout.
    """
    purchase = get_purchase(purchase_id)
    if purchase.payment_status == PAYMENT_PAID:
        return purchase

    purchase.payment_status = PAYMENT_PAID
    db.session.commit()
    logger.info("Purchase %s marked as paid", purchase.id)
    return purchase
