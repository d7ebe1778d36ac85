import io

from flask import Blueprint, jsonify, current_app, send_file

from ..decorators import require_auth
from ..services import reporting_service
from ..services.report_pdf import render_stock_financial_pdf, report_filename


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _build_report(year: int, month: int) -> dict:
    return reporting_service.stock_financial_report(
        year,
        month,
        low_stock_threshold=current_app.config.get(
            "LOW_STOCK_THRESHOLD", reporting_service.DEFAULT_LOW_STOCK_THRESHOLD
        ),
    )


@reports_bp.get("/stock-financial/<int:year>/<int:month>")
@require_auth
def stock_financial_report(year: int, month: int):
    try:
        return jsonify(_build_report(year, month)), 200
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/stock-financial/<int:year>/<int:month>/pdf")
@require_auth
def stock_financial_report_pdf(year: int, month: int):
    """Same report as a PDF, shown inline by browsers (Fluxa_Relatorio_Vendas_MM-YYYY.pdf)."""
    try:
        report = _build_report(year, month)
        pdf = render_stock_financial_pdf(report)
    except reporting_service.ReportError as exc:
        return jsonify({"error": str(exc)}), 400
    except Exception:
        current_app.logger.exception("Failed to render stock/financial report PDF")
        return jsonify({"error": "Internal server error", "message": "Could not generate the report."}), 500

    return send_file(
        io.BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=False,
        download_name=report_filename(report),
    )
