"""Report rendering package."""

from till_ledger.services.report.pdf_report import ReportGenerator

__all__ = ["ReportGenerator"]
