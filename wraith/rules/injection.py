"""
injection.py - Rules for attacker-controlled expression expansion

This module implements rules that look for expressions whose values an
attacker may control: template expansion into shell scripts and
github-script code, and ``contains(...)`` conditions that can be bypassed
with a substring.
"""

from typing import Any, List, Optional, Tuple, Union

from ..core.expr import extract_expressions
from ..core.finding import Confidence, Finding, Persona, Severity, SymbolicLocation
from ..core.models import CompositeStep, NormalJob, RepositoryUses, Step
from ..core.safety import context_matches, contexts, insecure_contains, is_literal_safe
from .base import Rule, parse_expression

# Contexts whose values are fixed by GitHub and cannot carry attacker input.
SAFE_CONTEXTS = [
    "github.event_name",
    "github.event.issue.number",
    "github.event.merge_group.base_sha",
    "github.event.number",
    "github.event.pull_request.number",
    "github.event.workflow_run.id",
    "github.repository",
    "github.repository_id",
    "github.repositoryUrl",
    "github.repository_owner",
    "github.repository_owner_id",
    "github.run_attempt",
    "github.run_id",
    "github.run_number",
    "github.sha",
    "github.token",
    "github.workspace",
    "runner.arch",
    "runner.debug",
    "runner.os",
]

USER_CONTROLLABLE_CONTEXTS = [
    "env.GITHUB_ACTOR",
    "env.GITHUB_BASE_REF",
    "env.GITHUB_HEAD_REF",
    "env.GITHUB_REF",
    "env.GITHUB_REF_NAME",
    "env.GITHUB_SHA",
    "env.GITHUB_TRIGGERING_ACTOR",
    "github.actor",
    "github.base_ref",
    "github.head_ref",
    "github.ref",
    "github.ref_name",
    "github.sha",
    "github.triggering_actor",
    "inputs.",
]

Injection = Tuple[str, Severity, Confidence, Persona]
AnyStep = Union[Step, CompositeStep]


class TemplateInjectionRule(Rule):
    """Rule to detect code injection via template expansion"""

    rule_id = "template-injection"
    description = "code injection via template expansion"

    def injectable_expressions(self, script: str, job: Optional[NormalJob]) -> List[Injection]:
        """
        Classify every expression expanded into a script

        Args:
            script: Script body containing ``${{ }}`` expressions
            job: Job the script runs in, if any; used to judge matrix contexts

        Returns:
            List of (expression or context, severity, confidence, persona)
        """
        found: List[Injection] = []
        for expr, _ in extract_expressions(script):
            parsed = parse_expression(expr.as_bare())
            if parsed is None:
                continue

            if is_literal_safe(parsed):
                found.append(
                    (expr.as_curly(), Severity.UNKNOWN, Confidence.UNKNOWN, Persona.PEDANTIC)
                )
                continue

            for context in contexts(parsed):
                lowered = context.lower()
                if lowered.startswith("secrets."):
                    continue
                if context_matches(context, SAFE_CONTEXTS):
                    continue
                if lowered.startswith("inputs."):
                    found.append((context, Severity.HIGH, Confidence.LOW, Persona.REGULAR))
                elif lowered.startswith("env."):
                    found.append((context, Severity.LOW, Confidence.HIGH, Persona.REGULAR))
                elif lowered.startswith("github.event.") or lowered == "github.ref_name":
                    found.append((context, Severity.HIGH, Confidence.HIGH, Persona.REGULAR))
                elif lowered == "matrix" or lowered.startswith(("matrix.", "matrix[")):
                    if job is None or job.matrix is None:
                        continue
                    if not job.matrix_is_static(context):
                        found.append((context, Severity.MEDIUM, Confidence.MEDIUM, Persona.REGULAR))
                else:
                    found.append(
                        (context, Severity.INFORMATIONAL, Confidence.LOW, Persona.REGULAR)
                    )

        return found

    def _script(self, step: AnyStep) -> Optional[Tuple[str, SymbolicLocation]]:
        uses = step.parsed_uses()
        if isinstance(uses, RepositoryUses):
            if uses.matches("actions/github-script") and "script" in step.with_:
                return str(step.with_["script"]), step.location().with_keys("with", "script")
            return None
        if step.run is not None:
            return step.run, step.location().with_keys("run")
        return None

    def _check(self, step: AnyStep, job: Optional[NormalJob]) -> List[Finding]:
        script = self._script(step)
        if script is None:
            return []
        text, script_location = script

        findings = []
        for expr, severity, confidence, persona in self.injectable_expressions(text, job):
            findings.append(
                self.finding()
                .severity(severity)
                .confidence(confidence)
                .persona(persona)
                .add_location(step.location_with_name())
                .add_location(
                    script_location.primary().annotated(
                        f"{expr} may expand into attacker-controllable code"
                    )
                )
                .build(step.document)
            )
        return findings

    def check_step(self, step: Step) -> List[Finding]:
        return self._check(step, step.job)

    def check_composite_step(self, step: CompositeStep) -> List[Finding]:
        return self._check(step, None)


class BypassableContainsRule(Rule):
    """Rule to detect ``contains(...)`` conditions that a substring can satisfy"""

    rule_id = "bypassable-contains-conditions"
    description = "bypassable contains conditions checks"

    def insecure_contains(self, condition: str) -> List[Tuple[Severity, str]]:
        """
        Find bypassable membership checks in a condition

        Args:
            condition: ``if:`` value, bare or fenced

        Returns:
            List of (severity, context) pairs
        """
        parsed = parse_expression(condition)
        if parsed is None:
            return []

        found = []
        for _, context in insecure_contains(parsed):
            if context_matches(context, USER_CONTROLLABLE_CONTEXTS):
                found.append((Severity.HIGH, context))
            else:
                found.append((Severity.INFORMATIONAL, context))
        return found

    def check_normal_job(self, job: NormalJob) -> List[Finding]:
        conditions: List[Tuple[Any, SymbolicLocation]] = [(job.if_, job.location())]
        conditions.extend((step.if_, step.location()) for step in job.steps())

        findings = []
        for condition, location in conditions:
            if not isinstance(condition, str):
                continue
            for severity, context in self.insecure_contains(condition):
                findings.append(
                    self.finding()
                    .severity(severity)
                    .confidence(Confidence.HIGH)
                    .add_location(
                        location.with_keys("if")
                        .primary()
                        .annotated(
                            f"contains(..) condition can be bypassed if attacker can control '{context}'"
                        )
                    )
                    .build(job.workflow.document)
                )
        return findings
