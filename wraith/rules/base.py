"""
base.py - Base class for wraith rules

This module provides the foundation for implementing rules in wraith. A rule
is constructed once per run and exposes entry points at several
granularities; the ``check`` dispatcher walks an input and calls each of
them, so a rule only overrides the ones it cares about.
"""

import logging
from abc import ABC
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.expr import ExplicitExpr, Expr, ExpressionError, parse
from ..core.finding import Finding, FindingBuilder
from ..core.models import (
    Action,
    AuditInput,
    CompositeStep,
    NormalJob,
    ReusableWorkflowCallJob,
    Step,
    Workflow,
)
from ..utils.github_api import GitHubClient

logger = logging.getLogger(__name__)

DOCS_URL = "docs/audits.md#{rule_id}"


class AuditLoadError(Exception):
    """Exception raised when a rule cannot run in the current configuration"""

    pass


def parse_expression(text: str) -> Optional[Expr]:
    """
    Parse an expression, logging and skipping it if it is malformed

    Args:
        text: Bare or ``${{ }}``-fenced expression text

    Returns:
        Expression tree, or None if the text does not parse
    """
    explicit = ExplicitExpr.from_curly(text)
    bare = explicit.as_bare() if explicit else text
    try:
        return parse(bare)
    except ExpressionError as e:
        logger.warning("couldn't parse expression %r: %s", bare, e)
        return None


@dataclass
class AuditState:
    """Run-wide settings handed to every rule at construction"""

    offline: bool = False
    gh_token: Optional[str] = None
    gh_hostname: str = "github.com"
    client: Optional[GitHubClient] = field(default=None, repr=False)

    def github_client(self) -> Optional[GitHubClient]:
        """
        Get the shared GitHub client

        Returns:
            Client, or None when the run is offline or has no token
        """
        if self.offline or not self.gh_token:
            return None
        if self.client is None:
            self.client = GitHubClient(token=self.gh_token, hostname=self.gh_hostname)
        return self.client


class Rule(ABC):
    """Base class for all wraith rules"""

    rule_id = ""
    description = ""
    category = "security"

    def __init__(self, state: AuditState) -> None:
        """
        Initialize a rule

        Args:
            state: Run-wide settings

        Raises:
            AuditLoadError: If the rule cannot run in this configuration
        """
        self.state = state
        self.enabled = True

    @property
    def url(self) -> str:
        return DOCS_URL.format(rule_id=self.rule_id)

    def finding(self) -> FindingBuilder:
        """
        Start a finding for this rule

        Returns:
            Builder pre-filled with the rule's identity
        """
        return FindingBuilder(self.rule_id, self.description, self.url)

    def check(self, audit_input: AuditInput) -> List[Finding]:
        """
        Run every entry point of this rule against an input

        Args:
            audit_input: Workflow or action to check

        Returns:
            List of findings
        """
        findings: List[Finding] = []

        if isinstance(audit_input, Workflow):
            findings.extend(self.check_workflow(audit_input))
        elif isinstance(audit_input, Action):
            findings.extend(self.check_action(audit_input))

        findings.extend(self.check_raw(audit_input))
        return findings

    def check_workflow(self, workflow: Workflow) -> List[Finding]:
        findings: List[Finding] = []
        for job in workflow.jobs():
            if isinstance(job, NormalJob):
                findings.extend(self.check_normal_job(job))
            elif isinstance(job, ReusableWorkflowCallJob):
                findings.extend(self.check_reusable_job(job))
        return findings

    def check_normal_job(self, job: NormalJob) -> List[Finding]:
        findings: List[Finding] = []
        for step in job.steps():
            findings.extend(self.check_step(step))
        return findings

    def check_reusable_job(self, job: ReusableWorkflowCallJob) -> List[Finding]:
        return []

    def check_step(self, step: Step) -> List[Finding]:
        return []

    def check_action(self, action: Action) -> List[Finding]:
        findings: List[Finding] = []
        for step in action.steps():
            findings.extend(self.check_composite_step(step))
        return findings

    def check_composite_step(self, step: CompositeStep) -> List[Finding]:
        return []

    def check_raw(self, audit_input: AuditInput) -> List[Finding]:
        """
        Check the raw source text of an input

        Args:
            audit_input: Workflow or action to check

        Returns:
            List of findings
        """
        return []
