"""
test_provenance.py - Tests for the impostor commit and ref confusion rules
"""

import pytest

from wraith.core.finding import Confidence, Severity
from wraith.core.models import parse_uses
from wraith.rules.base import AuditLoadError, AuditState
from wraith.rules.provenance import (
    ImpostorCommitRule,
    RefConfusionRule,
    _ProvenanceRule,
    commit_is_impostor,
    ref_is_confusable,
)
from wraith.utils.github_api import Branch, ComparisonStatus, Tag

TIP = "1111111111111111111111111111111111111111"
ANCESTOR = "2222222222222222222222222222222222222222"
IMPOSTOR = "3333333333333333333333333333333333333333"


class FakeGitHubClient:
    """In-memory stand-in for the REST client"""

    def __init__(self):
        self.branches = [Branch("main", TIP), Branch("v1", TIP)]
        self.tags = [Tag("v1", TIP), Tag("v2", TIP)]
        self.history = {ANCESTOR}
        self.comparisons = []

    def list_branches(self, owner, repo):
        return self.branches

    def list_tags(self, owner, repo):
        return self.tags

    def compare_commits(self, owner, repo, base, head):
        self.comparisons.append(base)
        if head in self.history:
            return ComparisonStatus.BEHIND
        return None


@pytest.fixture
def client():
    return FakeGitHubClient()


@pytest.fixture
def online_state(client):
    return AuditState(gh_token="token", client=client)


@pytest.mark.parametrize("rule_class", [ImpostorCommitRule, RefConfusionRule])
def test_rules_need_a_client(rule_class):
    """Test that network rules refuse to load offline or without a token."""
    with pytest.raises(AuditLoadError):
        rule_class(AuditState(offline=True, gh_token="token"))
    with pytest.raises(AuditLoadError):
        rule_class(AuditState())


def test_provenance_rules_must_define_flags(online_state):
    """Test that a provenance rule without a flags check can't be built."""

    class IncompleteRule(_ProvenanceRule):
        rule_id = "incomplete"

    with pytest.raises(TypeError):
        IncompleteRule(online_state)


def test_commit_is_impostor(client):
    """Test classification of commit-pinned references."""
    assert not commit_is_impostor(client, parse_uses(f"org/repo@{TIP}"))
    assert not commit_is_impostor(client, parse_uses(f"org/repo@{TIP.upper()}"))
    assert client.comparisons == []

    assert not commit_is_impostor(client, parse_uses(f"org/repo@{ANCESTOR}"))
    assert client.comparisons[0] == "refs/heads/main"

    client.comparisons = []
    assert commit_is_impostor(client, parse_uses(f"org/repo@{IMPOSTOR}"))
    assert client.comparisons == [
        "refs/heads/main",
        "refs/heads/v1",
        "refs/tags/v1",
        "refs/tags/v2",
    ]

    assert not commit_is_impostor(client, parse_uses("org/repo@v1"))


def test_ahead_or_diverged_is_impostor(client):
    """Test that only behind or identical comparisons vouch for a commit."""

    def compare(owner, repo, base, head):
        return ComparisonStatus.DIVERGED

    client.compare_commits = compare
    assert commit_is_impostor(client, parse_uses(f"org/repo@{ANCESTOR}"))


def test_ref_is_confusable(client):
    """Test detection of refs naming both a branch and a tag."""
    assert ref_is_confusable(client, parse_uses("org/repo@v1"))
    assert not ref_is_confusable(client, parse_uses("org/repo@v2"))
    assert not ref_is_confusable(client, parse_uses("org/repo@main"))
    assert not ref_is_confusable(client, parse_uses(f"org/repo@{TIP}"))
    assert not ref_is_confusable(client, parse_uses("org/repo"))


def test_impostor_commit_rule(online_state, load_workflow):
    """Test impostor commit findings on steps and reusable workflow calls."""
    workflow = load_workflow(
        f"""
        on: push
        jobs:
          build:
            runs-on: ubuntu-latest
            steps:
              - uses: org/repo@{IMPOSTOR}
              - uses: org/repo@{TIP}
              - uses: ./local
              - uses: docker://alpine
          call:
            uses: org/repo/.github/workflows/ci.yml@{IMPOSTOR}
        """
    )
    findings = ImpostorCommitRule(online_state).check(workflow)

    assert [f.primary_location.symbolic.route for f in findings] == [
        ("jobs", "build", "steps", 0, "uses"),
        ("jobs", "call", "uses"),
    ]
    assert all(f.severity == Severity.HIGH for f in findings)
    assert all(f.confidence == Confidence.HIGH for f in findings)


def test_ref_confusion_rule(online_state, load_workflow):
    """Test ref confusion findings on composite action steps."""
    action = load_workflow(
        """
        name: setup
        runs:
          using: composite
          steps:
            - uses: org/repo@v1
            - uses: org/repo@v2
        """,
        filename="action.yml",
    )
    (finding,) = RefConfusionRule(online_state).check(action)

    assert finding.ident == "ref-confusion"
    assert finding.severity == Severity.MEDIUM
    assert finding.primary_location.symbolic.route == ("runs", "steps", 0, "uses")
