from flask import Blueprint, jsonify, request, current_app, Response

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from madeh.time_utils import utcnow


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")
dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_permission("VIEW_DASHBOARD")
def dashboard():
    stats = reporting_service.dashboard_stats(
        low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
    )
    return jsonify(stats), 200


@reports_bp.get("/sales")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_report():
    try:
        report = reporting_service.sales_report(
            date_filter=request.args.get("date_filter", "all"),
            payment_method=request.args.get("payment_method", "all"),
        )
        return jsonify(report), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/sales.csv")
@require_auth
@require_permission("VIEW_REPORTS")
def sales_report_csv():
    try:
        body = reporting_service.export_sales_report_csv(
            date_filter=request.args.get("date_filter", "all"),
            payment_method=request.args.get("payment_method", "all"),
        )
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400

    filename = f"sales_report_{utcnow().date().isoformat()}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.get("/total-sales")
@require_auth
@require_permission("VIEW_REPORTS")
def total_sales():
    return jsonify({"total_sales_cents": reporting_service.get_total_sales()}), 200
