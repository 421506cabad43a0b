"""
secrets.py - Rules for secret handling

This module implements rules that flag secrets being exposed more broadly
than needed: unredacted JSON-decoded secrets, the whole secrets context
serialized at once, secrets inherited wholesale by reusable workflows, and
secrets used by jobs that no deployment environment gates.
"""

from typing import Any, Callable, List

from ..core.expr import Expr, extract_expressions
from ..core.finding import Confidence, Finding, Location, Severity
from ..core.models import AuditInput, ReusableWorkflowCallJob, Step
from ..core.safety import contexts, secret_leakages, secrets_expansions
from .base import Rule, parse_expression


def _check_raw_expressions(
    rule: Rule,
    audit_input: AuditInput,
    matcher: Callable[[Expr], List[Any]],
    annotation: str,
) -> List[Finding]:
    findings = []
    for expr, span in extract_expressions(audit_input.source):
        parsed = parse_expression(expr.as_bare())
        if parsed is None:
            continue

        for _ in matcher(parsed):
            location = Location(
                symbolic=audit_input.location().annotated(annotation).primary(),
                concrete=audit_input.document.feature_from_span(span),
            )
            findings.append(
                rule.finding()
                .severity(Severity.MEDIUM)
                .confidence(Confidence.HIGH)
                .add_raw_location(location)
                .build(audit_input.document)
            )
    return findings


class UnredactedSecretsRule(Rule):
    """Rule to detect secrets decoded with ``fromJSON``, bypassing redaction"""

    rule_id = "unredacted-secrets"
    description = "leaked secret values"

    def check_raw(self, audit_input: AuditInput) -> List[Finding]:
        return _check_raw_expressions(
            self, audit_input, secret_leakages, "bypasses secret redaction"
        )


class OverprovisionedSecretsRule(Rule):
    """Rule to detect ``toJSON(secrets)``, which exposes every secret to the runner"""

    rule_id = "overprovisioned-secrets"
    description = "excessively provisioned secrets"

    def check_raw(self, audit_input: AuditInput) -> List[Finding]:
        return _check_raw_expressions(
            self,
            audit_input,
            secrets_expansions,
            "injects the entire secrets context into the runner",
        )


class SecretsInheritRule(Rule):
    """Rule to detect reusable workflow calls that inherit every secret"""

    rule_id = "secrets-inherit"
    description = "secrets unconditionally inherited by called workflow"

    def check_reusable_job(self, job: ReusableWorkflowCallJob) -> List[Finding]:
        if job.secrets != "inherit":
            return []

        return [
            self.finding()
            .severity(Severity.MEDIUM)
            .confidence(Confidence.HIGH)
            .add_location(job.location().with_keys("uses").primary().annotated("this reusable workflow"))
            .add_location(job.location().with_keys("secrets").annotated("inherits all parent secrets"))
            .build(job.workflow.document)
        ]


class SecretsOutsideEnvironmentRule(Rule):
    """Rule to detect secrets used by jobs without a deployment environment"""

    rule_id = "secrets-outside-environment"
    description = "secrets used without an environment to gate them"

    def _references_secrets(self, value: Any) -> bool:
        for expr, _ in extract_expressions(str(value)):
            parsed = parse_expression(expr.as_bare())
            if parsed is None:
                continue
            for context in contexts(parsed):
                lowered = context.lower()
                if lowered == "secrets.github_token":
                    continue
                if lowered == "secrets" or lowered.startswith(("secrets.", "secrets[")):
                    return True
        return False

    def check_step(self, step: Step) -> List[Finding]:
        if step.job.environment is not None:
            return []

        values = list(step.with_.values())
        if isinstance(step.env, dict):
            values.extend(step.env.values())
        elif step.env is not None:
            values.append(step.env)

        if not any(self._references_secrets(value) for value in values):
            return []

        return [
            self.finding()
            .severity(Severity.HIGH)
            .confidence(Confidence.HIGH)
            .add_location(step.location().primary().annotated("secret is used here"))
            .build(step.document)
        ]
