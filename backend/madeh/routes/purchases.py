# Overview: Flask API routes for purchases (checkout and payment status).

# backend/madeh/routes/purchases.py
"""Purchase API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import checkout_service, payment_service
from ..services.checkout_service import CheckoutError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
@require_permission("CREATE_PURCHASE")
def checkout_route():
    """
    Check out a cart as one purchase.

    Body:
        items: [{"product_id": int, "quantity": int, "price_cents": int (optional)}]
        payment_method: "Cash" | "M-Pesa" | "Bank Transfer"
        payment_status: "Paid" | "Unpaid"
        customer_name, customer_id_number: required when Unpaid

    Returns 201 with the purchase and its items, 400 on validation errors,
    409 when any product is short of stock (details.items lists them).
    """
    try:
        data = request.get_json(silent=True) or {}
        lines = checkout_service.parse_cart(data.get("items"))

        purchase = checkout_service.checkout(
            lines=lines,
            created_by=g.current_admin.id,
            payment_method=data.get("payment_method", "Cash"),
            payment_status=data.get("payment_status", "Paid"),
            customer_name=data.get("customer_name"),
            customer_id_number=data.get("customer_id_number"),
        )
        return jsonify({"purchase": purchase.to_dict(include_items=True)}), 201

    except CheckoutError as e:
        return jsonify({"error": str(e), "details": e.details}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to check out purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_purchases_route():
    """Query params: payment_status (optional) - Paid or Unpaid."""
    try:
        purchases = payment_service.list_purchases(request.args.get("payment_status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": purchases, "count": len(purchases)}), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_route(purchase_id: int):
    try:
        purchase = payment_service.get_purchase(purchase_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"purchase": purchase.to_dict(include_items=True)}), 200


@purchases_bp.post("/<int:purchase_id>/mark-paid")
@require_auth
@require_permission("MARK_PAID")
def mark_paid_route(purchase_id: int):
    try:
        purchase = payment_service.mark_paid(purchase_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to mark purchase paid")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"purchase": purchase.to_dict(include_items=True)}), 200
