# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/madeh/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
- CSV bulk upload/update require IMPORT_PRODUCTS permission
"""
from flask import Blueprint, request, current_app

from ..services import products_service, import_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price_cents", "cost_cents", "stock"},
    required_on_create={"name", "category", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products ordered by name.

    Query params:
    - search: str (optional) - case-insensitive match on name or category
    - category: str (optional) - exact category
    """
    return products_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
    )


@products_bp.get("/categories")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_categories():
    return {"categories": products_service.list_categories()}


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_PRODUCTS")
def low_stock():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    items = products_service.low_stock_products(threshold)
    return {"items": items, "count": len(items), "threshold": threshold}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """Create a new product. Name must be unique ignoring case."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Partial update; only provided fields change."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return products_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Delete a product that has never been sold."""
    try:
        products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"message": "Product deleted"}, 200


def _read_csv_body() -> str | None:
    """CSV text from a multipart 'file' field, or the raw request body."""
    upload = request.files.get("file")
    raw = upload.read() if upload else request.get_data()
    if not raw:
        return None
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("CSV file must be UTF-8 encoded")


@products_bp.post("/bulk-upload")
@require_auth
@require_permission("IMPORT_PRODUCTS")
def bulk_upload_route():
    """
    Create products from CSV (Name, Category, Price, Stock, optional Cost).

    Returns {"success": int, "errors": [{row, field, message, value}], "not_found": []}.
    """
    try:
        csv_text = _read_csv_body()
        if csv_text is None:
            return {"error": "CSV file is required"}, 400
        report = import_service.bulk_upload_products(csv_text)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Bulk upload failed")
        return {"error": "Internal server error"}, 500

    return report.to_dict(), 200


@products_bp.post("/bulk-update")
@require_auth
@require_permission("IMPORT_PRODUCTS")
def bulk_update_route():
    """Update products from CSV keyed by ID."""
    try:
        csv_text = _read_csv_body()
        if csv_text is None:
            return {"error": "CSV file is required"}, 400
        report = import_service.bulk_update_products(csv_text)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Bulk update failed")
        return {"error": "Internal server error"}, 500

    return report.to_dict(), 200
