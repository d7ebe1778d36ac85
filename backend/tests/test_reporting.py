"""Monthly stock and financial report tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from fluxa.extensions import db
from fluxa.models import ProductStatus, Sale
from reportlab.pdfgen import canvas

from fluxa.services import report_pdf, reporting_service, sales_service
from fluxa.services.reporting_service import ReportError


def _sell(product_id, quantity, when: datetime):
    sale = sales_service.create_sale([{"productId": product_id, "quantity": quantity}])
    db.session.query(Sale).filter_by(id=sale.id).update({"created_at": when})
    db.session.commit()
    return sale


class TestStockFinancialReport:

    def test_financials_for_month(self, make_product):
        p = make_product(quantity=20, sale_price="25.00", purchase_price="10.00")

        _sell(p.id, 2, datetime(2025, 3, 1, 0, 0, 0))
        _sell(p.id, 1, datetime(2025, 3, 31, 23, 59, 59))
        _sell(p.id, 5, datetime(2025, 4, 1, 0, 0, 0))  # next month

        report = reporting_service.stock_financial_report(2025, 3)

        assert report["period"] == "03/2025"
        assert report["start"] == "2025-03-01T00:00:00Z"
        assert report["financials"] == {
            "total_revenue": "75.00",
            "total_cost_of_goods": "30.00",
            "gross_profit": "45.00",
            "total_sales_count": 2,
        }
        assert len(report["sales"]) == 2
        assert report["sales"][0]["items"] == [{
            "product_id": p.id,
            "title": "Widget",
            "quantity_sold": 2,
            "price_per_unit": "25.00",
            "line_total": "50.00",
        }]

    def test_cost_uses_frozen_prices(self, product):
        _sell(product.id, 1, datetime(2025, 6, 10))
        product.purchase_price = Decimal("99.00")
        db.session.commit()

        report = reporting_service.stock_financial_report(2025, 6)
        assert report["financials"]["total_cost_of_goods"] == "10.00"

    def test_empty_month(self, db_session):
        report = reporting_service.stock_financial_report(2024, 2)
        assert report["financials"]["total_revenue"] == "0.00"
        assert report["financials"]["total_sales_count"] == 0
        assert report["stock"]["active_product_count"] == 0

    def test_stock_snapshot(self, make_product):
        make_product(title="Plenty", quantity=50, purchase_price="2.00")
        make_product(title="Few", quantity=3, purchase_price="4.00")
        make_product(title="None left", quantity=0, purchase_price="8.00")
        make_product(title="Gone", quantity=7, status=ProductStatus.DEACTIVATED)

        report = reporting_service.stock_financial_report(2025, 1, low_stock_threshold=10)

        assert report["stock"] == {
            "total_stock_value_cost": "112.00",
            "active_product_count": 3,
            "low_stock_count": 1,
            "out_of_stock_count": 1,
            "low_stock_threshold": 10,
        }
        assert [p["title"] for p in report["low_stock_products"]] == ["Few"]

    @pytest.mark.parametrize("year,month", [(2025, 0), (2025, 13), ("abc", 1), (0, 5)])
    def test_invalid_period(self, db_session, year, month):
        with pytest.raises(ReportError):
            reporting_service.stock_financial_report(year, month)


class TestReportRoute:

    def test_report(self, client, auth_headers, product):
        resp = client.get("/api/reports/stock-financial/2025/7", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json["period"] == "07/2025"
        assert resp.json["stock"]["active_product_count"] == 1

    def test_bad_month(self, client, auth_headers):
        assert client.get("/api/reports/stock-financial/2025/13", headers=auth_headers).status_code == 400

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/reports/stock-financial/2025/7").status_code == 401


# =============================================================================
# PDF rendering
# =============================================================================


def _report_with_sales(count: int) -> dict:
    return {
        "period": "02/2025",
        "financials": {
            "total_revenue": "1234.50",
            "total_cost_of_goods": "400.00",
            "gross_profit": "834.50",
            "total_sales_count": count,
        },
        "stock": {
            "total_stock_value_cost": "0.00",
            "active_product_count": 0,
            "low_stock_count": 0,
            "out_of_stock_count": 0,
            "low_stock_threshold": 10,
        },
        "sales": [
            {
                "id": i,
                "total_amount": "25.00",
                "created_at": "2025-02-10T14:30:00Z",
                "items": [{
                    "product_id": 1,
                    "title": "A product title well beyond thirty characters",
                    "quantity_sold": 1,
                    "price_per_unit": "25.00",
                    "line_total": "25.00",
                }],
            }
            for i in range(1, count + 1)
        ],
    }


class TestReportPdf:

    @pytest.mark.parametrize("value,expected", [
        ("0.00", "R$ 0,00"),
        ("25.5", "R$ 25,50"),
        ("1234567.89", "R$ 1.234.567,89"),
        ("-12.00", "R$ -12,00"),
    ])
    def test_brl(self, value, expected):
        assert report_pdf.brl(value) == expected

    def test_filename(self):
        assert report_pdf.report_filename({"period": "03/2025"}) == "Fluxa_Relatorio_Vendas_03-2025.pdf"

    def test_renders_pdf_document(self):
        pdf = report_pdf.render_stock_financial_pdf(_report_with_sales(1), generated_at=datetime(2025, 3, 1, 9, 0))
        assert pdf.startswith(b"%PDF")
        assert b"%%EOF" in pdf[-32:]

    @pytest.mark.parametrize("sales,expected_pages", [(0, 1), (3, 1), (15, 2), (30, 3)])
    def test_long_tables_continue_on_new_pages(self, monkeypatch, sales, expected_pages):
        pages = []
        original = canvas.Canvas.showPage

        def counting_show_page(self):
            pages.append(self.getPageNumber())
            return original(self)

        monkeypatch.setattr(canvas.Canvas, "showPage", counting_show_page)

        report_pdf.render_stock_financial_pdf(_report_with_sales(sales))

        assert len(pages) == expected_pages


class TestReportPdfRoute:

    def test_pdf_download(self, client, auth_headers, product):
        _sell(product.id, 2, datetime(2025, 7, 4, 12, 0, 0))

        resp = client.get("/api/reports/stock-financial/2025/7/pdf", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert "Fluxa_Relatorio_Vendas_07-2025.pdf" in resp.headers["Content-Disposition"]
        assert resp.data.startswith(b"%PDF")

    def test_pdf_bad_month(self, client, auth_headers):
        resp = client.get("/api/reports/stock-financial/2025/13/pdf", headers=auth_headers)
        assert resp.status_code == 400
        assert resp.is_json

    def test_pdf_requires_auth(self, client, db_session):
        assert client.get("/api/reports/stock-financial/2025/7/pdf").status_code == 401
