"""
Backup Service

Exports products, purchases and purchase items as one JSON document:

    {"createdAt": "<iso>", "data": {"products": [...], "purchases": [...], "purchase_items": [...]}}

Restore upserts rows by id (parents before children) in a single
transaction. Rows missing from the backup are left alone.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import DateTime, Integer
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Admin, Product, Purchase, PurchaseItem
from ..validation import ValidationError, coerce_column_value
from madeh.time_utils import utcnow, to_utc_iso

logger = logging.getLogger(__name__)

INVALID_FORMAT_MESSAGE = "Invalid backup file format."

# Dependency order: products and purchases before the items that reference them
BACKUP_TABLES = (
    ("products", Product),
    ("purchases", Purchase),
    ("purchase_items", PurchaseItem),
)

# Internal bookkeeping, not part of the backup format
EXCLUDED_COLUMNS = {"version_id"}

# Integer columns are stored as signed 64-bit values
MAX_INT64 = 2**63 - 1
MIN_INT64 = -(2**63)


def _columns(model) -> list:
    return [c for c in model.__table__.columns if c.key not in EXCLUDED_COLUMNS]


def _serialize_row(obj, columns) -> dict:
    row = {}
    for col in columns:
        value = getattr(obj, col.key)
        if isinstance(col.type, DateTime):
            value = to_utc_iso(value)
        row[col.key] = value
    return row


def build_backup() -> dict:
    """Snapshot every product, purchase and purchase item."""
    data = {}
    for key, model in BACKUP_TABLES:
        columns = _columns(model)
        rows = db.session.query(model).order_by(model.id.asc()).all()
        data[key] = [_serialize_row(obj, columns) for obj in rows]

    logger.info(
        "Built backup: %s products, %s purchases, %s purchase items",
        len(data["products"]), len(data["purchases"]), len(data["purchase_items"]),
    )
    return {"createdAt": to_utc_iso(utcnow()), "data": data}


def validate_backup(document: Any) -> dict:
    """Check the document shape; returns the inner data mapping."""
    if not isinstance(document, dict):
        raise ValidationError(INVALID_FORMAT_MESSAGE)
    data = document.get("data")
    if not isinstance(data, dict):
        raise ValidationError(INVALID_FORMAT_MESSAGE)

    for key, _model in BACKUP_TABLES:
        rows = data.get(key)
        if not isinstance(rows, list):
            raise ValidationError(INVALID_FORMAT_MESSAGE)
        for row in rows:
            if not isinstance(row, dict):
                raise ValidationError(INVALID_FORMAT_MESSAGE)
            row_id = row.get("id")
            if not isinstance(row_id, int) or isinstance(row_id, bool):
                raise ValidationError(f"{INVALID_FORMAT_MESSAGE} Every {key} row needs an integer id.")
    return data


def _row_values(row: dict, columns) -> dict:
    values = {}
    for col in columns:
        if col.key == "id" or col.key not in row:
            continue
        value = coerce_column_value(col, row[col.key])
        if isinstance(col.type, Integer) and value is not None and not MIN_INT64 <= value <= MAX_INT64:
            raise ValidationError(f"{col.key} is out of range")
        values[col.key] = value
    return values


def _drop_unknown_creators(rows: list[dict]) -> list[dict]:
    """Null out created_by for purchases whose admin no longer exists."""
    creator_ids = {row.get("created_by") for row in rows} - {None}
    if not creator_ids:
        return rows
    known = {
        admin_id for (admin_id,) in
        db.session.query(Admin.id).filter(Admin.id.in_([i for i in creator_ids if isinstance(i, int)]))
    }
    cleaned = []
    for row in rows:
        creator = row.get("created_by")
        if isinstance(creator, int) and creator not in known:
            logger.warning("Purchase %s references unknown admin %s; restoring without creator", row["id"], creator)
            row = {**row, "created_by": None}
        cleaned.append(row)
    return cleaned


def _upsert(model, rows: list[dict]) -> int:
    columns = _columns(model)
    for row in rows:
        values = _row_values(row, columns)
        obj = db.session.get(model, row["id"])
        if obj is None:
            obj = model(id=row["id"], **values)
            db.session.add(obj)
        else:
            for key, value in values.items():
                setattr(obj, key, value)
    # Flush per table so children see their parents
    db.session.flush()
    return len(rows)


def restore_backup(document: Any) -> dict:
    """
    Upsert every row of a backup document.

    Returns per-table row counts. Any failure rolls back the whole restore.

    Raises:
        ValidationError: malformed document or rows that violate constraints
    """
    data = validate_backup(document)

    counts = {}
    try:
        for key, model in BACKUP_TABLES:
            rows = data[key]
            if model is Purchase:
                rows = _drop_unknown_creators(rows)
            counts[key] = _upsert(model, rows)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Backup restore rejected: %s", exc.orig)
        raise ValidationError(f"Failed to restore {key}: {exc.orig}")
    except Exception:
        db.session.rollback()
        raise

    # Identity map may hold stale relationship collections
    db.session.expire_all()
    logger.info("Restored backup: %s", counts)
    return counts
