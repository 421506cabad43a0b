"""
provenance.py - Rules that check where referenced actions come from

This module implements rules that need the GitHub API: detection of
"impostor" commits that live in a fork's network rather than the named
repository, and of refs that are ambiguous between a branch and a tag.
Both rules refuse to load when the run is offline or has no token.
"""

import logging
from abc import abstractmethod
from typing import List, Optional

from ..core.finding import Confidence, Finding, Severity, SymbolicLocation
from ..core.locate import Document
from ..core.models import CompositeStep, RepositoryUses, ReusableWorkflowCallJob, Step
from ..utils.github_api import ComparisonStatus, GitHubClient
from .base import AuditLoadError, AuditState, Rule

logger = logging.getLogger(__name__)

IMPOSTOR_ANNOTATION = "uses a commit that doesn't belong to the specified org/repo"
CONFUSABLE_ANNOTATION = "uses a ref that's provided by both the branch and tag namespaces"


def commit_is_impostor(client: GitHubClient, uses: RepositoryUses) -> bool:
    """
    Check whether a commit-pinned reference points outside its repository

    A commit belongs to the repository if it is the tip of some branch or
    tag, or if some branch or tag contains it in its history.

    Args:
        client: GitHub client
        uses: Reference pinned to a commit

    Returns:
        True if no branch or tag of the repository reaches the commit
    """
    commit = uses.commit_ref()
    if commit is None:
        return False

    branches = client.list_branches(uses.owner, uses.repo)
    tags = client.list_tags(uses.owner, uses.repo)

    commit = commit.lower()
    if any(item.commit_sha.lower() == commit for item in branches + tags):
        return False

    bases = [f"refs/heads/{branch.name}" for branch in branches]
    bases.extend(f"refs/tags/{tag.name}" for tag in tags)
    for base in bases:
        status = client.compare_commits(uses.owner, uses.repo, base, commit)
        if status in (ComparisonStatus.BEHIND, ComparisonStatus.IDENTICAL):
            return False

    logger.debug("%s is not reachable from any branch or tag", uses)
    return True


def ref_is_confusable(client: GitHubClient, uses: RepositoryUses) -> bool:
    """
    Check whether a symbolic ref names both a branch and a tag

    Args:
        client: GitHub client
        uses: Reference with a symbolic ref

    Returns:
        True if the ref is ambiguous
    """
    ref = uses.symbolic_ref()
    if ref is None:
        return False

    branches = {branch.name for branch in client.list_branches(uses.owner, uses.repo)}
    tags = {tag.name for tag in client.list_tags(uses.owner, uses.repo)}
    return ref in branches and ref in tags


class _ProvenanceRule(Rule):
    """Shared plumbing for rules that query the GitHub API about ``uses:`` clauses"""

    severity = Severity.UNKNOWN
    annotation = ""

    def __init__(self, state: AuditState) -> None:
        super().__init__(state)
        client = state.github_client()
        if client is None:
            raise AuditLoadError(f"{self.rule_id} requires a GitHub token and online mode")
        self.client = client

    @abstractmethod
    def flags(self, uses: RepositoryUses) -> bool:
        """Check whether a reference should be reported"""
        pass

    def _check_uses(
        self,
        uses: Optional[RepositoryUses],
        location: SymbolicLocation,
        document: Document,
    ) -> List[Finding]:
        if uses is None or not self.flags(uses):
            return []
        return [
            self.finding()
            .severity(self.severity)
            .confidence(Confidence.HIGH)
            .add_location(location.with_keys("uses").primary().annotated(self.annotation))
            .build(document)
        ]

    def check_step(self, step: Step) -> List[Finding]:
        uses = step.parsed_uses()
        if not isinstance(uses, RepositoryUses):
            return []
        return self._check_uses(uses, step.location(), step.document)

    def check_composite_step(self, step: CompositeStep) -> List[Finding]:
        uses = step.parsed_uses()
        if not isinstance(uses, RepositoryUses):
            return []
        return self._check_uses(uses, step.location(), step.document)

    def check_reusable_job(self, job: ReusableWorkflowCallJob) -> List[Finding]:
        return self._check_uses(job.parsed_uses(), job.location(), job.workflow.document)


class ImpostorCommitRule(_ProvenanceRule):
    """Rule to detect commits that don't belong to the repository they claim"""

    rule_id = "impostor-commit"
    description = "commit with no history in referenced repository"
    severity = Severity.HIGH
    annotation = IMPOSTOR_ANNOTATION

    def flags(self, uses: RepositoryUses) -> bool:
        return commit_is_impostor(self.client, uses)


class RefConfusionRule(_ProvenanceRule):
    """Rule to detect refs that resolve to both a branch and a tag"""

    rule_id = "ref-confusion"
    description = "git ref for action with ambiguous ref type"
    severity = Severity.MEDIUM
    annotation = CONFUSABLE_ANNOTATION

    def flags(self, uses: RepositoryUses) -> bool:
        return ref_is_confusable(self.client, uses)
