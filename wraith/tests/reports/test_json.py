"""
test_json.py - Tests for JSON report generation
"""

import json

from wraith.core.registry import FindingRegistry, RuleExecutionError
from wraith.core.models import LocalKey
from wraith.reports.json import finding_to_dict, generate_json_report, location_to_dict
from wraith.utils.version import __version__


def test_location_to_dict(sample_results):
    """Test converting a location to a dictionary."""
    run = sample_results.findings[0].locations[1]
    data = location_to_dict(run)

    assert data["symbolic"] == {
        "key": "ci.yml",
        "route": ["jobs", "build", "steps", 0, "run"],
        "annotation": "expands here",
        "primary": True,
    }
    assert data["concrete"]["start"] == {"row": 6, "column": 8}
    assert data["concrete"]["feature"] == "run: echo ${{ github.event.issue.title }}"
    assert data["concrete"]["comments"] == []
    start, end = data["concrete"]["offset_span"]
    assert end - start == len(data["concrete"]["feature"])


def test_finding_to_dict(sample_results):
    """Test converting a finding to a dictionary."""
    data = finding_to_dict(sample_results.findings[0])

    assert data["ident"] == "template-injection"
    assert data["determinations"] == {
        "severity": "high",
        "confidence": "high",
        "persona": "regular",
    }
    assert len(data["locations"]) == 2
    assert data["ignored"] is False


def test_generate_json_report(sample_results):
    """Test generating a complete JSON report."""
    sample_results.record_error(
        RuleExecutionError("broken-rule", LocalKey(path="ci.yml"), ValueError("bad"))
    )
    report = json.loads(generate_json_report(sample_results))

    assert report["wraith_version"] == __version__
    assert [f["ident"] for f in report["findings"]] == ["template-injection"]
    assert report["summary"]["reported"] == 1
    assert report["summary"]["ignored"] == 1
    assert report["summary"]["suppressed"] == 1
    assert report["summary"]["errors"] == ["broken-rule failed on ci.yml: bad"]
    assert report["summary"]["severity_counts"]["high"] == 1


def test_generate_json_report_empty():
    """Test the report for a run with no findings."""
    report = json.loads(generate_json_report(FindingRegistry()))

    assert report["findings"] == []
    assert report["summary"]["reported"] == 0
    assert set(report["summary"]["severity_counts"].values()) == {0}
