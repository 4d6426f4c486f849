"""
Monthly PDF Report

The document handed to the accountant. It shows declared figures only:
one line per day, a totals line, a short summary and a footer.
"""

import io
from datetime import datetime
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from till_ledger.formatting import FRENCH_MONTHS, format_amount, month_label
from till_ledger.models.ledger import LedgerRecord, MonthlyRecap


TABLE_HEADER = ["Jour", "CB", "ESP", "TR", "Dép.", "Total décl."]
FOOTER_BRAND = "Till Ledger"


class ReportGenerator:
    """Renders a month of ledger records as an A4 PDF."""

    def __init__(self, clock_now=None):
        self._now = clock_now or datetime.now

    @staticmethod
    def filename(year: int, month: int) -> str:
        """'Compta_Juin_2025.pdf'."""
        return f"Compta_{FRENCH_MONTHS[month - 1].capitalize()}_{year}.pdf"

    def _table_rows(self, records: list[LedgerRecord], recap: MonthlyRecap) -> list[list[str]]:
        rows = [TABLE_HEADER]
        for record in records:
            if not record.has_activity:
                continue
            rows.append([
                record.entry_date.strftime("%d/%m"),
                format_amount(record.card_declared),
                format_amount(record.cash_declared),
                format_amount(record.meal_voucher_declared),
                format_amount(record.expense_declared),
                format_amount(record.total_declared),
            ])
        rows.append([
            "TOTAL",
            format_amount(recap.card_declared),
            format_amount(recap.cash_declared),
            format_amount(recap.meal_voucher_declared),
            format_amount(recap.expense_declared),
            format_amount(recap.total_declared),
        ])
        return rows

    def render(
        self,
        year: int,
        month: int,
        records: list[LedgerRecord],
        recap: Optional[MonthlyRecap] = None,
    ) -> bytes:
        """Build the PDF and return its bytes."""
        recap = recap or MonthlyRecap.from_records(year, month, records)

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            title=f"Récapitulatif comptable {month_label(year, month)}",
            leftMargin=2 * cm,
            rightMargin=2 * cm,
        )
        styles = getSampleStyleSheet()
        elements = []

        elements.append(Paragraph("<b>Récapitulatif Comptable</b>", styles["Title"]))
        elements.append(Paragraph(month_label(year, month), styles["Heading2"]))
        elements.append(Spacer(1, 0.5 * cm))

        table = Table(self._table_rows(records, recap), hAlign="CENTER", repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2c3e50")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("ROWBACKGROUNDS", (0, 1), (-1, -2), [colors.white, colors.HexColor("#f4f6f7")]),
            ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#d5dbdb")),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ]))
        elements.append(table)
        elements.append(Spacer(1, 0.8 * cm))

        elements.append(Paragraph("<b>Résumé</b>", styles["Heading3"]))
        elements.append(Paragraph(f"Total CB : {format_amount(recap.card_declared)}", styles["Normal"]))
        elements.append(Paragraph(f"Total espèces : {format_amount(recap.cash_declared)}", styles["Normal"]))
        elements.append(Paragraph(f"Total TR : {format_amount(recap.meal_voucher_declared)}", styles["Normal"]))
        elements.append(Paragraph(f"Total dépenses : {format_amount(recap.expense_declared)}", styles["Normal"]))
        elements.append(Paragraph(
            f"<b>Total déclaré : {format_amount(recap.total_declared)}</b>", styles["Normal"]
        ))
        elements.append(Paragraph(f"Jours d'activité : {recap.days_filled}", styles["Normal"]))

        elements.append(Spacer(1, 1.2 * cm))
        generated = self._now().strftime("%d/%m/%Y %H:%M")
        elements.append(Paragraph(f"Généré le {generated} - {FOOTER_BRAND}", styles["Italic"]))

        doc.build(elements)
        return buffer.getvalue()
