# Overview: Renders the monthly stock and financial report as a printable A4 PDF.

"""
PDF rendering for reporting_service.stock_financial_report.

Takes the report dict as-is (money values are the 2-decimal strings the JSON
report already carries) and lays it out in three sections: financial summary,
stock snapshot, and the sale lines of the period. Labels are in Portuguese,
matching the document the shop hands to its accountant.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from fluxa.time_utils import utcnow

logger = logging.getLogger(__name__)

MARGIN = 50
LINE_HEIGHT = 15
ROW_HEIGHT = 20
TITLE_MAX_CHARS = 30

# (x, width, align) per table column: sale/date, product, qty, unit price, line total
TABLE_COLUMNS = (
    (50, 90, "left"),
    (150, 140, "left"),
    (300, 40, "right"),
    (350, 90, "right"),
    (450, 90, "right"),
)


def report_filename(report: dict) -> str:
    return f"Fluxa_Relatorio_Vendas_{report['period'].replace('/', '-')}.pdf"


def brl(value) -> str:
    """Format a money value as Brazilian reais: 1234.5 -> 'R$ 1.234,50'."""
    formatted = f"{Decimal(value):,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


class _PageWriter:
    """Top-down cursor over a reportlab canvas that starts a new page when full."""

    def __init__(self, buffer):
        self.canvas = canvas.Canvas(buffer, pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - MARGIN

    def ensure_room(self, needed: float) -> None:
        if self.y - needed < MARGIN:
            self.canvas.showPage()
            self.y = self.height - MARGIN

    def line(self, text: str, *, size: int = 10, bold: bool = False,
             color=colors.black, align: str = "left") -> None:
        self.ensure_room(LINE_HEIGHT)
        c = self.canvas
        c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        c.setFillColor(color)
        if align == "center":
            c.drawCentredString(self.width / 2, self.y, text)
        else:
            c.drawString(MARGIN, self.y, text)
        c.setFillColor(colors.black)
        self.y -= size + 5

    def rule(self, weight: float = 1, color=colors.black) -> None:
        c = self.canvas
        c.setLineWidth(weight)
        c.setStrokeColor(color)
        c.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= 8

    def heading(self, text: str) -> None:
        self.ensure_room(3 * LINE_HEIGHT)
        self.line(text, size=12, bold=True)
        self.y += 8
        self.rule()

    def row(self, cells, *, size: int = 8, bold: bool = False) -> None:
        self.ensure_room(ROW_HEIGHT)
        c = self.canvas
        c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        for (x, width, align), cell in zip(TABLE_COLUMNS, cells):
            if align == "right":
                c.drawRightString(x + width, self.y, cell)
            else:
                c.drawString(x, self.y, cell)
        c.setLineWidth(0.5)
        c.setStrokeColor(colors.lightgrey)
        c.line(MARGIN, self.y - 5, self.width - MARGIN, self.y - 5)
        self.y -= ROW_HEIGHT

    def save(self) -> None:
        self.canvas.save()


def _header(page: _PageWriter, report: dict, generated_at: datetime) -> None:
    page.canvas.setTitle(f"Fluxa - Relatório {report['period']}")
    page.line("Fluxa ERP", size=18, bold=True, align="center")
    page.line("Relatório Mensal de Vendas e Estoque", size=14, align="center")
    page.line(f"Período de Referência: {report['period']}", align="center")
    page.line(f"Gerado em: {generated_at:%d/%m/%Y %H:%M} UTC", align="center")
    page.y -= 2 * LINE_HEIGHT


def _financials(page: _PageWriter, financials: dict) -> None:
    page.heading("Resumo Financeiro do Período")
    page.line(f"Receita Bruta: {brl(financials['total_revenue'])}")
    page.line(f"Custo dos Produtos Vendidos (CMV): {brl(financials['total_cost_of_goods'])}")
    page.line(f"Lucro Bruto: {brl(financials['gross_profit'])}", bold=True)
    page.line(f"Total de Vendas Realizadas: {financials['total_sales_count']} vendas")
    page.y -= 2 * LINE_HEIGHT


def _stock(page: _PageWriter, stock: dict) -> None:
    page.heading("Resumo de Estoque (Snapshot Atual)")
    page.line(f"Valor Total do Estoque (a Custo): {brl(stock['total_stock_value_cost'])}")
    page.line(f"Produtos Ativos: {stock['active_product_count']} itens")
    page.line(
        f"Produtos com Estoque Baixo (<= {stock['low_stock_threshold']}): {stock['low_stock_count']} itens",
        bold=True,
        color=colors.orange,
    )
    page.line(
        f"Produtos Fora de Estoque (<= 0): {stock['out_of_stock_count']} itens",
        bold=True,
        color=colors.red,
    )
    page.y -= 2 * LINE_HEIGHT


def _sales_table(page: _PageWriter, sales: list[dict]) -> None:
    page.heading("Itens Vendidos no Período")
    page.row(("NF / Data", "Produto", "Qtd", "Vlr. Unitário", "Vlr. Total"), size=9, bold=True)

    if not sales:
        page.line("Nenhuma venda registrada neste período.")
        return

    for sale in sales:
        created = datetime.fromisoformat(sale["created_at"].replace("Z", "+00:00"))
        page.row((f"Venda #{sale['id']} | {created:%d/%m/%Y %H:%M}",), bold=True)
        for item in sale.get("items", []):
            page.row((
                "",
                item["title"][:TITLE_MAX_CHARS],
                str(item["quantity_sold"]),
                brl(item["price_per_unit"]),
                brl(item["line_total"]),
            ))
        page.y -= 5


def render_stock_financial_pdf(report: dict, *, generated_at: datetime | None = None) -> bytes:
    """
    Render a stock_financial_report dict to PDF bytes.

    Long sale tables continue on new pages; every section heading keeps at
    least its first lines on the same page.
    """
    buffer = io.BytesIO()
    page = _PageWriter(buffer)

    _header(page, report, generated_at or utcnow())
    _financials(page, report["financials"])
    _stock(page, report["stock"])
    _sales_table(page, report["sales"])
    page.save()

    pdf = buffer.getvalue()
    logger.info(
        "Rendered stock/financial report %s: %d sales, %d bytes",
        report["period"], len(report["sales"]), len(pdf),
    )
    return pdf
