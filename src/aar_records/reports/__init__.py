"""Printable report rendering."""

from aar_records.reports.html import render_report_html
from aar_records.reports.pdf import ReportGenerationError, generate_pdf, generate_pdf_async

__all__ = ["ReportGenerationError", "generate_pdf", "generate_pdf_async", "render_report_html"]
