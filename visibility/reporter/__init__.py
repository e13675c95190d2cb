"""
Reporter Module

CSV and TXT exports of report runs and mined opportunities.
"""

from .export import (
    OPPORTUNITY_COLUMNS,
    opportunity_rows,
    report_header,
    report_rows,
    transcript_lines,
    write_opportunities_csv,
    write_provider_report,
)

__all__ = [
    "OPPORTUNITY_COLUMNS",
    "opportunity_rows",
    "report_header",
    "report_rows",
    "transcript_lines",
    "write_opportunities_csv",
    "write_provider_report",
]
