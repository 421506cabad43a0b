"""
console.py - Plain terminal reporting for wraith

This module formats reported findings for a terminal: one block per finding
with each of its locations and the source snippet it points at, followed by
a summary of what was reported, ignored and suppressed.
"""

import os
import sys
from typing import Optional, TextIO

import click

from ..core.finding import Finding, Location, Severity
from ..core.registry import FindingRegistry

COLORS = {
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFORMATIONAL: "green",
    Severity.UNKNOWN: "white",
}


def colorize(text: str, color: str, bold: bool = False, use_color: Optional[bool] = None) -> str:
    """
    Apply color to text if color output is enabled

    Args:
        text: Text to colorize
        color: Foreground color name
        bold: Whether to also embolden the text
        use_color: Force color on or off; by default it is on unless
            ``NO_COLOR`` is set

    Returns:
        Colorized text or original text if color is disabled
    """
    if use_color is None:
        use_color = not os.environ.get("NO_COLOR")
    if not use_color:
        return text

    return click.style(text, fg=color, bold=bold or None)


def format_location(location: Location) -> str:
    """
    Format one location of a finding

    Args:
        location: Location to format

    Returns:
        ``path:line:column`` header, annotation and indented source snippet
    """
    start = location.concrete.location.start_point
    path = location.symbolic.key.presentation_path()
    marker = "-->" if location.symbolic.is_primary else "  -"

    formatted = f"  {marker} {path}:{start.row + 1}:{start.column + 1}"
    if location.symbolic.annotation:
        formatted += f": {location.symbolic.annotation}"
    formatted += "\n"

    for line in location.concrete.feature.splitlines():
        formatted += f"      | {line}\n"
    return formatted


def format_finding(finding: Finding, use_color: Optional[bool] = None) -> str:
    """
    Format a single finding for console output

    Args:
        finding: Finding to format
        use_color: Passed through to ``colorize``

    Returns:
        Formatted finding as string
    """
    severity = finding.severity
    formatted = (
        f"{colorize(severity.value, COLORS[severity], bold=True, use_color=use_color)}"
        f"[{finding.ident}]: {finding.desc}\n"
    )
    for location in finding.locations:
        formatted += format_location(location)
    formatted += f"  = confidence: {finding.confidence.value}, see {finding.url}\n"
    return formatted


def format_summary(results: FindingRegistry, use_color: Optional[bool] = None) -> str:
    """
    Format the run summary

    Args:
        results: Registry of classified findings
        use_color: Passed through to ``colorize``

    Returns:
        Summary line with per-severity counts
    """
    totals = f"{len(results.ignored)} ignored, {len(results.suppressed)} suppressed"
    if not results.findings:
        output = colorize("No findings to report.", "green", bold=True, use_color=use_color)
        output += f" ({totals})"
    else:
        counts = results.count_by_severity()
        by_severity = ", ".join(
            f"{counts[level.value]} {level.value}"
            for level in sorted(Severity, reverse=True)
            if counts[level.value]
        )
        output = colorize(
            f"{len(results.findings)} findings", "white", bold=True, use_color=use_color
        )
        output += f" ({by_severity}): {totals}"

    if results.errors:
        output += f", {len(results.errors)} rule errors"
    return output + "\n"


def format_console_report(
    results: FindingRegistry, show_summary: bool = True, use_color: Optional[bool] = None
) -> str:
    """
    Generate a complete console report

    Args:
        results: Registry of classified findings
        show_summary: Whether to include the summary line
        use_color: Passed through to ``colorize``

    Returns:
        Complete formatted report as string
    """
    output = "".join(
        format_finding(finding, use_color=use_color) + "\n" for finding in results.findings
    )
    if show_summary:
        output += format_summary(results, use_color=use_color)
    return output


def print_console_report(
    results: FindingRegistry,
    show_summary: bool = True,
    output_stream: Optional[TextIO] = None,
    use_color: Optional[bool] = None,
) -> None:
    report = format_console_report(results, show_summary=show_summary, use_color=use_color)

    if output_stream is None:
        output_stream = sys.stdout

    output_stream.write(report)
    output_stream.flush()
