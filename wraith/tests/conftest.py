"""
conftest.py - Pytest fixtures for wraith tests
"""

import tempfile
import textwrap
from pathlib import Path

import pytest

from wraith.core.finding import Confidence, FindingBuilder, Persona, Severity
from wraith.core.models import LocalKey, load_input
from wraith.core.registry import FindingRegistry
from wraith.rules.base import AuditState


@pytest.fixture
def temp_dir():
    """Create a temporary directory that is removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def load_workflow():
    """Build a workflow (or action, by filename) from inline YAML."""

    def _load(content, filename="ci.yml"):
        return load_input(LocalKey(path=filename), textwrap.dedent(content).lstrip("\n"))

    return _load


@pytest.fixture
def offline_state():
    return AuditState(offline=True)


@pytest.fixture
def sample_workflow_content():
    """Sample workflow without security issues."""
    return """\
name: Sample Workflow

on:
  push:
    branches: [main]

permissions:
  contents: read

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@8f4b7f84864484a7bf31766abe9204da3cbe65b3
        with:
          persist-credentials: false
      - name: Run tests
        run: pytest
"""


@pytest.fixture
def insecure_workflow_content():
    """Sample workflow with template injection and an unpinned action."""
    return """\
name: Insecure Workflow

on:
  pull_request_target:

jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/setup-python
      - name: Greet
        run: |
          echo "Title: ${{ github.event.pull_request.title }}"
"""


@pytest.fixture
def sample_workflow_file(temp_dir, sample_workflow_content):
    """Create a sample workflow file in a temporary directory."""
    workflows_dir = Path(temp_dir) / ".github" / "workflows"
    workflows_dir.mkdir(parents=True, exist_ok=True)

    workflow_file = workflows_dir / "sample.yml"
    workflow_file.write_text(sample_workflow_content)

    return str(workflow_file)


@pytest.fixture
def insecure_workflow_file(temp_dir, insecure_workflow_content):
    """Create an insecure workflow file in a temporary directory."""
    workflows_dir = Path(temp_dir) / ".github" / "workflows"
    workflows_dir.mkdir(parents=True, exist_ok=True)

    workflow_file = workflows_dir / "insecure.yml"
    workflow_file.write_text(insecure_workflow_content)

    return str(workflow_file)


@pytest.fixture
def sample_results(load_workflow):
    """Registry with one reported, one ignored and one suppressed finding."""
    workflow = load_workflow(
        """
        on: push
        jobs:
          build:
            runs-on: ubuntu-latest  # wraith: ignore[noisy-rule]
            steps:
              - name: Greet
                run: echo ${{ github.event.issue.title }}
        """
    )
    step = workflow.jobs()[0].steps()[0]
    root = workflow.location()

    reported = (
        FindingBuilder("template-injection", "code injection via template expansion", "docs")
        .severity(Severity.HIGH)
        .confidence(Confidence.HIGH)
        .add_location(step.location_with_name())
        .add_location(step.location().with_keys("run").primary().annotated("expands here"))
        .build(workflow.document)
    )
    ignored = (
        FindingBuilder("noisy-rule", "noise", "docs")
        .severity(Severity.LOW)
        .add_location(root.with_job("build").with_keys("runs-on").primary())
        .build(workflow.document)
    )
    suppressed = (
        FindingBuilder("pedantic-rule", "pedantry", "docs")
        .persona(Persona.AUDITOR)
        .add_location(root.with_job("build").primary())
        .build(workflow.document)
    )

    results = FindingRegistry()
    results.extend([reported, ignored, suppressed])
    return results
