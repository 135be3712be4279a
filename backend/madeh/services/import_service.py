# Overview: Bulk product upload/update from CSV with a per-row report.

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ..extensions import db
from ..models import Product
from ..validation import ValidationError, MAX_PRICE_CENTS, MAX_STOCK
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

UPLOAD_REQUIRED_COLUMNS = ("Name", "Category", "Price", "Stock")
UPDATE_REQUIRED_COLUMNS = ("ID",)

# Header row is line 1, data rows start at 2
FIRST_DATA_ROW = 2

_WHOLE_NUMBER = re.compile(r"^\d+$")


@dataclass
class RowError:
    row: int
    field: str
    message: str
    value: str

    def to_dict(self) -> dict:
        return {"row": self.row, "field": self.field, "message": self.message, "value": self.value}


@dataclass
class ImportReport:
    success: int = 0
    errors: list[RowError] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)

    def rows_with_errors(self) -> set[int]:
        return {e.row for e in self.errors}

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "errors": [e.to_dict() for e in self.errors],
            "not_found": list(self.not_found),
        }


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_cents(value: Any) -> int:
    """Decimal money string -> cents. Raises ValueError on junk."""
    text = str(value).strip().replace("$", "").replace(",", "")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"not a number: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _parse_price(value: Any) -> int:
    cents = _to_cents(value)
    if cents <= 0 or cents > MAX_PRICE_CENTS:
        raise ValueError("out of range")
    return cents


def _parse_cost(value: Any) -> int:
    cents = _to_cents(value)
    if cents < 0 or cents > MAX_PRICE_CENTS:
        raise ValueError("out of range")
    return cents


def _parse_stock(value: Any) -> int:
    text = str(value).strip()
    if not _WHOLE_NUMBER.match(text):
        raise ValueError("not a whole number")
    stock = int(text)
    if stock > MAX_STOCK:
        raise ValueError("out of range")
    return stock


def read_csv_rows(csv_text: str, required_columns: tuple[str, ...]) -> list[dict[str, str]]:
    """
    Parse CSV text with a header row into dicts keyed by trimmed column name.

    Blank lines are skipped. Raises ValidationError if the header lacks a
    required column.
    """
    if csv_text is None:
        raise ValidationError("CSV file is required")
    stream = io.StringIO(csv_text.lstrip("\ufeff"))
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise ValidationError("CSV file is empty")

    headers = [(h or "").strip() for h in reader.fieldnames]
    missing = [c for c in required_columns if c not in headers]
    if missing:
        raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}")

    rows = []
    for raw in reader:
        row = {}
        for key, value in raw.items():
            if key is None:
                # Extra cells beyond the header
                continue
            row[key.strip()] = value if value is not None else ""
        rows.append(row)
    return rows


def _check_optional_fields(
    row: dict[str, str],
    row_num: int,
    report: ImportReport,
    check_category: bool = True,
) -> dict:
    """Validate the optional Price/Stock/Cost/Category cells present on a row."""
    values: dict = {}

    category = row.get("Category")
    if check_category and category is not None and category != "":
        if category.strip() == "":
            report.errors.append(RowError(row_num, "Category", "Category cannot be an empty string if provided", category))
        else:
            values["category"] = category.strip()

    price = row.get("Price")
    if price is not None and price.strip() != "":
        try:
            values["price_cents"] = _parse_price(price)
        except ValueError:
            report.errors.append(RowError(row_num, "Price", "Price must be a positive number", price))

    stock = row.get("Stock")
    if stock is not None and stock.strip() != "":
        try:
            values["stock"] = _parse_stock(stock)
        except ValueError:
            report.errors.append(RowError(row_num, "Stock", "Stock must be a whole number ≥ 0", stock))

    cost = row.get("Cost")
    if cost is not None and cost.strip() != "":
        try:
            values["cost_cents"] = _parse_cost(cost)
        except ValueError:
            report.errors.append(RowError(row_num, "Cost", "Cost must be a number ≥ 0", cost))

    return values


def validate_upload_rows(rows: list[dict[str, str]], existing_names: set[str]) -> tuple[ImportReport, list[dict]]:
    """
    Validate bulk-upload rows.

    Returns the report (errors only) and the normalized product dicts for
    rows without errors.
    """
    report = ImportReport()
    seen_names: set[str] = set()
    candidates: list[tuple[int, dict]] = []

    for index, row in enumerate(rows):
        row_num = index + FIRST_DATA_ROW
        errors_before = len(report.errors)
        raw_name = row.get("Name") or ""
        name = _to_text(raw_name)

        if not name:
            report.errors.append(RowError(row_num, "Name", "Name must not be empty", raw_name))
        else:
            key = name.lower()
            if key in existing_names:
                report.errors.append(RowError(row_num, "Name", "Product already exists in database", name))
            if key in seen_names:
                report.errors.append(RowError(row_num, "Name", "Duplicate product name within this file", name))

        raw_category = row.get("Category") or ""
        category = _to_text(raw_category)
        if not category:
            report.errors.append(RowError(row_num, "Category", "Category must not be empty", raw_category))

        raw_price = row.get("Price") or ""
        if not raw_price.strip():
            report.errors.append(RowError(row_num, "Price", "Price must be a positive number", raw_price))

        raw_stock = row.get("Stock") or ""
        if not raw_stock.strip():
            report.errors.append(RowError(row_num, "Stock", "Stock must be a whole number ≥ 0", raw_stock))

        values = _check_optional_fields(row, row_num, report, check_category=False)
        values["name"] = name
        values["category"] = category
        candidates.append((row_num, values))

        # Only a row that will be inserted claims its name
        if len(report.errors) == errors_before:
            seen_names.add(name.lower())

    bad_rows = report.rows_with_errors()
    valid = [values for row_num, values in candidates if row_num not in bad_rows]
    return report, valid


def bulk_upload_products(csv_text: str) -> ImportReport:
    """
    Create products from CSV columns Name, Category, Price, Stock (optional Cost).

    Invalid rows are reported and skipped; valid rows are inserted in one
    transaction, each exactly once.
    """
    rows = read_csv_rows(csv_text, UPLOAD_REQUIRED_COLUMNS)
    existing_names = {
        name.lower() for (name,) in db.session.query(Product.name).all()
    }

    report, valid = validate_upload_rows(rows, existing_names)

    if valid:
        for values in valid:
            db.session.add(Product(
                name=values["name"],
                category=values["category"],
                price_cents=values["price_cents"],
                cost_cents=values.get("cost_cents", 0),
                stock=values["stock"],
            ))
        db.session.commit()
        report.success = len(valid)

    logger.info("Bulk upload: %s inserted, %s row errors", report.success, len(report.errors))
    return report


def bulk_update_products(csv_text: str) -> ImportReport:
    """
    Update products from CSV column ID plus any of Name, Category, Price, Stock, Cost.

    Unknown or missing IDs are collected in not_found; rows with validation
    errors are skipped; rows with nothing to change are not counted.
    """
    rows = read_csv_rows(csv_text, UPDATE_REQUIRED_COLUMNS)

    def _op():
        report = ImportReport()
        products = {p.id: p for p in db.session.query(Product).all()}
        names = {p.name.lower(): p.id for p in products.values()}
        pending: list[tuple[Product, dict]] = []

        for index, row in enumerate(rows):
            row_num = index + FIRST_DATA_ROW
            raw_id = (row.get("ID") or "").strip()
            product = None
            if _WHOLE_NUMBER.match(raw_id):
                product = products.get(int(raw_id))
            if product is None:
                report.not_found.append(raw_id or f"Missing ID in row {row_num}")
                continue

            values = _check_optional_fields(row, row_num, report)

            name = _to_text(row.get("Name"))
            if name and name != product.name:
                owner = names.get(name.lower())
                if owner is not None and owner != product.id:
                    report.errors.append(RowError(row_num, "Name", "Another product already uses this name", name))
                else:
                    values["name"] = name

            if row_num in report.rows_with_errors():
                continue
            if values:
                if "name" in values:
                    names.pop(product.name.lower(), None)
                    names[values["name"].lower()] = product.id
                pending.append((product, values))

        for product, values in pending:
            for key, value in values.items():
                setattr(product, key, value)
        db.session.commit()
        report.success = len(pending)
        return report

    report = run_with_retry(_op)
    logger.info(
        "Bulk update: %s updated, %s row errors, %s not found",
        report.success, len(report.errors), len(report.not_found),
    )
    return report
