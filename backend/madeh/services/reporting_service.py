# Overview: Sales reporting and dashboard aggregates over purchases.

from __future__ import annotations

import csv
import io
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Purchase, PAYMENT_METHODS
from ..models.sales import PAYMENT_PAID, PAYMENT_UNPAID
from madeh.time_utils import utcnow, start_of_day, start_of_month
from .products_service import low_stock_products


DATE_FILTERS = ("all", "today", "month")
RECENT_PURCHASES_LIMIT = 5

SALES_CSV_COLUMNS = ("Purchase ID", "Date", "Total Amount", "Payment Method", "Payment Status")


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _since(date_filter: str, now: datetime) -> datetime | None:
    if date_filter == "today":
        return start_of_day(now)
    if date_filter == "month":
        return start_of_month(now)
    return None


def _round_half_up_div(total: int, count: int) -> int:
    if count == 0:
        return 0
    return (2 * total + count) // (2 * count)


def format_cents(cents: int) -> str:
    """1599 -> '15.99'"""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _paid_purchases(date_filter: str, payment_method: str, now: datetime | None):
    if date_filter not in DATE_FILTERS:
        raise ReportError(f"date_filter must be one of: {', '.join(DATE_FILTERS)}")
    if payment_method != "all" and payment_method not in PAYMENT_METHODS:
        raise ReportError(f"payment_method must be all or one of: {', '.join(PAYMENT_METHODS)}")

    query = db.session.query(Purchase).filter(Purchase.payment_status == PAYMENT_PAID)

    since = _since(date_filter, now or utcnow())
    if since is not None:
        query = query.filter(Purchase.created_at >= since)
    if payment_method != "all":
        query = query.filter(Purchase.payment_method == payment_method)

    return query.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()


def sales_report(
    *,
    date_filter: str = "all",
    payment_method: str = "all",
    now: datetime | None = None,
) -> dict:
    """
    Totals over Paid purchases in the selected period and payment method.

    Returns total_sales_cents, total_purchases, average_sale_cents (rounded
    half-up, 0 when there are no purchases) and the purchases newest first.
    """
    purchases = _paid_purchases(date_filter, payment_method, now)
    total = sum(p.total_amount_cents for p in purchases)

    return {
        "date_filter": date_filter,
        "payment_method": payment_method,
        "total_sales_cents": total,
        "total_purchases": len(purchases),
        "average_sale_cents": _round_half_up_div(total, len(purchases)),
        "purchases": [p.to_dict() for p in purchases],
    }


def export_sales_report_csv(
    *,
    date_filter: str = "all",
    payment_method: str = "all",
    now: datetime | None = None,
) -> str:
    purchases = _paid_purchases(date_filter, payment_method, now)

    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(SALES_CSV_COLUMNS)
    for p in purchases:
        writer.writerow([
            p.id,
            p.created_at.strftime("%d/%m/%Y") if p.created_at else "",
            format_cents(p.total_amount_cents),
            p.payment_method,
            p.payment_status,
        ])
    return out.getvalue()


def get_total_sales() -> int:
    """Sum of total_amount_cents over every Paid purchase."""
    total = (
        db.session.query(func.coalesce(func.sum(Purchase.total_amount_cents), 0))
        .filter(Purchase.payment_status == PAYMENT_PAID)
        .scalar()
    )
    return int(total or 0)


def dashboard_stats(*, low_stock_threshold: int) -> dict:
    total_products = db.session.query(func.count(Product.id)).scalar() or 0
    unpaid = (
        db.session.query(func.count(Purchase.id))
        .filter(Purchase.payment_status == PAYMENT_UNPAID)
        .scalar()
    ) or 0

    recent = (
        db.session.query(Purchase)
        .order_by(Purchase.created_at.desc(), Purchase.id.desc())
        .limit(RECENT_PURCHASES_LIMIT)
        .all()
    )

    return {
        "total_products": int(total_products),
        "total_sales_cents": get_total_sales(),
        "unpaid_purchases": int(unpaid),
        "recent_purchases": [p.to_dict() for p in recent],
        "low_stock_items": low_stock_products(low_stock_threshold),
        "low_stock_threshold": low_stock_threshold,
    }
