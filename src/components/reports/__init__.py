"""Static HTML and PDF reports of differential expression workflows."""

from components.reports.base import ReportConfig, ReportSection
from components.reports.html import render_html_report
from components.reports.pdf import render_pdf_report

__all__ = ["ReportConfig", "ReportSection", "render_html_report", "render_pdf_report"]
