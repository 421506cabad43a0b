"""
reports package for wraith

This package contains the renderers for scan results: plain terminal output
and JSON.
"""

from .console import format_console_report, format_finding, format_summary, print_console_report
from .json import finding_to_dict, generate_json_report

__all__ = [
    "format_console_report",
    "print_console_report",
    "format_finding",
    "format_summary",
    "finding_to_dict",
    "generate_json_report",
]
