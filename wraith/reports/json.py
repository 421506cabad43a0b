"""
json.py - JSON reporting for wraith

This module provides functionality for formatting scanning results as JSON,
suitable for machine processing or integration with other tools.
"""

import json
from typing import Any, Dict, List

from ..core.finding import Finding, Location
from ..core.registry import FindingRegistry
from ..utils.version import __version__


def location_to_dict(location: Location) -> Dict[str, Any]:
    """
    Convert a Location to a dictionary suitable for JSON serialization

    Args:
        location: Location to convert

    Returns:
        Dictionary with the symbolic route and the concrete span
    """
    concrete = location.concrete.location
    return {
        "symbolic": {
            "key": str(location.symbolic.key),
            "route": list(location.symbolic.route),
            "annotation": location.symbolic.annotation,
            "primary": location.symbolic.is_primary,
        },
        "concrete": {
            "start": {"row": concrete.start_point.row, "column": concrete.start_point.column},
            "end": {"row": concrete.end_point.row, "column": concrete.end_point.column},
            "offset_span": list(concrete.offset_span),
            "byte_span": list(concrete.byte_span),
            "feature": location.concrete.feature,
            "comments": [comment.text for comment in location.concrete.comments],
        },
    }


def finding_to_dict(finding: Finding) -> Dict[str, Any]:
    """
    Convert a Finding to a dictionary suitable for JSON serialization

    Args:
        finding: Finding to convert

    Returns:
        Dictionary representation of the finding
    """
    return {
        "ident": finding.ident,
        "desc": finding.desc,
        "url": finding.url,
        "determinations": {
            "severity": finding.severity.value,
            "confidence": finding.confidence.value,
            "persona": finding.persona.value,
        },
        "locations": [location_to_dict(location) for location in finding.locations],
        "ignored": finding.ignored,
    }


def generate_json_report(results: FindingRegistry) -> str:
    """
    Generate a JSON report of reported findings and run totals

    Args:
        results: Registry of classified findings

    Returns:
        JSON string representation of the report
    """
    findings_data: List[Dict[str, Any]] = [finding_to_dict(f) for f in results.findings]

    report: Dict[str, Any] = {
        "wraith_version": __version__,
        "findings": findings_data,
        "summary": {
            "reported": len(results.findings),
            "ignored": len(results.ignored),
            "suppressed": len(results.suppressed),
            "errors": [str(error) for error in results.errors],
            "severity_counts": results.count_by_severity(),
        },
    }

    return json.dumps(report, indent=2)
