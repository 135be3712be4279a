"""
Sales report and dashboard tests.

Verifies:
- Only Paid purchases count towards sales totals
- date_filter (all/today/month) and payment_method filters
- Average sale rounds half-up, 0 for an empty period
- CSV export columns and formatting
- Dashboard counters
"""

from datetime import datetime

import pytest

from madeh.models import Purchase
from madeh.services import reporting_service
from madeh.services.reporting_service import ReportError, format_cents


NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def make_purchase(db_session, cashier):
    def _make(total_cents, created_at, status="Paid", method="Cash"):
        purchase = Purchase(
            total_amount_cents=total_cents,
            payment_status=status,
            payment_method=method,
            customer_name="Walk-in" if status == "Unpaid" else None,
            customer_id_number="000" if status == "Unpaid" else None,
            created_by=cashier.id,
            created_at=created_at,
        )
        db_session.add(purchase)
        db_session.commit()
        return purchase
    return _make


@pytest.fixture
def history(make_purchase):
    return {
        "today_cash": make_purchase(1000, datetime(2026, 3, 15, 8, 30), method="Cash"),
        "today_mpesa": make_purchase(2500, datetime(2026, 3, 15, 9, 45), method="M-Pesa"),
        "month_bank": make_purchase(4000, datetime(2026, 3, 2, 16, 0), method="Bank Transfer"),
        "last_month": make_purchase(7000, datetime(2026, 2, 20, 10, 0), method="Cash"),
        "unpaid_today": make_purchase(9999, datetime(2026, 3, 15, 10, 0), status="Unpaid"),
    }


class TestSalesReport:

    def test_all_time_counts_paid_only(self, history):
        report = reporting_service.sales_report(now=NOW)
        assert report["total_sales_cents"] == 14500
        assert report["total_purchases"] == 4
        assert report["average_sale_cents"] == 3625
        # Newest first
        assert [p["id"] for p in report["purchases"]] == [
            history["today_mpesa"].id,
            history["today_cash"].id,
            history["month_bank"].id,
            history["last_month"].id,
        ]

    def test_today(self, history):
        report = reporting_service.sales_report(date_filter="today", now=NOW)
        assert report["total_sales_cents"] == 3500
        assert report["total_purchases"] == 2

    def test_month(self, history):
        report = reporting_service.sales_report(date_filter="month", now=NOW)
        assert report["total_sales_cents"] == 7500
        assert report["total_purchases"] == 3
        assert report["average_sale_cents"] == 2500

    def test_payment_method(self, history):
        report = reporting_service.sales_report(payment_method="Cash", now=NOW)
        assert report["total_sales_cents"] == 8000
        assert {p["payment_method"] for p in report["purchases"]} == {"Cash"}

    def test_filters_combine(self, history):
        report = reporting_service.sales_report(date_filter="today", payment_method="M-Pesa", now=NOW)
        assert [p["id"] for p in report["purchases"]] == [history["today_mpesa"].id]

    def test_empty_period(self, app):
        report = reporting_service.sales_report(date_filter="today", now=NOW)
        assert report["total_sales_cents"] == 0
        assert report["total_purchases"] == 0
        assert report["average_sale_cents"] == 0
        assert report["purchases"] == []

    def test_average_rounds_half_up(self, make_purchase):
        make_purchase(100, datetime(2026, 3, 1))
        make_purchase(101, datetime(2026, 3, 2))
        assert reporting_service.sales_report(now=NOW)["average_sale_cents"] == 101

    @pytest.mark.parametrize("kwargs", [
        {"date_filter": "week"},
        {"payment_method": "Cheque"},
    ])
    def test_bad_filters(self, app, kwargs):
        with pytest.raises(ReportError):
            reporting_service.sales_report(**kwargs)


class TestSalesCsv:

    def test_columns_and_rows(self, history):
        body = reporting_service.export_sales_report_csv(date_filter="month", now=NOW)
        lines = body.splitlines()
        assert lines[0] == "Purchase ID,Date,Total Amount,Payment Method,Payment Status"
        assert lines[1:] == [
            f"{history['today_mpesa'].id},15/03/2026,25.00,M-Pesa,Paid",
            f"{history['today_cash'].id},15/03/2026,10.00,Cash,Paid",
            f"{history['month_bank'].id},02/03/2026,40.00,Bank Transfer,Paid",
        ]

    def test_header_only_when_empty(self, app):
        assert reporting_service.export_sales_report_csv() == (
            "Purchase ID,Date,Total Amount,Payment Method,Payment Status\n"
        )

    @pytest.mark.parametrize("cents,text", [(0, "0.00"), (5, "0.05"), (1599, "15.99"), (85000, "850.00")])
    def test_format_cents(self, cents, text):
        assert format_cents(cents) == text


class TestReportRoutes:

    def test_sales(self, client, admin_headers, history):
        resp = client.get("/api/reports/sales?payment_method=Bank%20Transfer", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["total_sales_cents"] == 4000
        assert resp.json["payment_method"] == "Bank Transfer"

    def test_bad_filter_is_400(self, client, admin_headers):
        resp = client.get("/api/reports/sales?date_filter=year", headers=admin_headers)
        assert resp.status_code == 400

    def test_csv_download(self, client, admin_headers, history):
        resp = client.get("/api/reports/sales.csv", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment; filename=sales_report_" in resp.headers["Content-Disposition"]
        assert len(resp.get_data(as_text=True).splitlines()) == 5

    def test_total_sales(self, client, admin_headers, history):
        resp = client.get("/api/reports/total-sales", headers=admin_headers)
        assert resp.json == {"total_sales_cents": 14500}

    def test_cashier_cannot_view_reports(self, client, cashier_headers):
        resp = client.get("/api/reports/sales", headers=cashier_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "VIEW_REPORTS"


class TestDashboard:

    def test_stats(self, client, cashier_headers, history, hammer, cement):
        resp = client.get("/api/dashboard", headers=cashier_headers)
        assert resp.status_code == 200
        stats = resp.json
        assert stats["total_products"] == 2
        assert stats["total_sales_cents"] == 14500
        assert stats["unpaid_purchases"] == 1
        assert len(stats["recent_purchases"]) == 5
        assert stats["recent_purchases"][0]["id"] == history["unpaid_today"].id
        assert [p["id"] for p in stats["low_stock_items"]] == [cement.id]
        assert stats["low_stock_threshold"] == 10

    def test_recent_purchases_are_capped(self, make_purchase, app):
        for day in range(1, 8):
            make_purchase(100, datetime(2026, 3, day))
        stats = reporting_service.dashboard_stats(low_stock_threshold=10)
        assert len(stats["recent_purchases"]) == reporting_service.RECENT_PURCHASES_LIMIT
        assert stats["recent_purchases"][0]["created_at"] == "2026-03-07T00:00:00Z"

    def test_requires_auth(self, client):
        assert client.get("/api/dashboard").status_code == 401
