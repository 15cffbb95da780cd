from .layout import ReportData, layout_report

__all__ = ["ReportData", "layout_report"]
