"""
security.py - Security rules for workflow configuration

This module implements rules covering credential persistence, token
permissions, insecure workflow commands, action pinning and publishing
credentials.
"""

from typing import Any, List, Optional, Tuple, Union

from ..core.expr import ExplicitExpr
from ..core.finding import Confidence, Finding, Persona, Severity, SymbolicLocation
from ..core.models import (
    CompositeStep,
    DockerUses,
    LocalUses,
    NormalJob,
    RepositoryUses,
    Step,
    Uses,
    Workflow,
)
from .base import Rule

KNOWN_PYTHON_TP_INDICES = [
    "https://upload.pypi.org/legacy/",
    "https://test.pypi.org/legacy/",
]

USES_MANUAL_CREDENTIAL = "uses a manually-configured credential instead of Trusted Publishing"


def split_patterns(paths: str) -> List[str]:
    """Split a multi-line ``path:`` input into its non-empty entries"""
    return [line.strip() for line in paths.splitlines() if line.strip()]


class ArtipackedRule(Rule):
    """Rule to detect credentials persisted by checkout and then uploaded as artifacts"""

    rule_id = "artipacked"
    description = "credential persistence through GitHub Actions artifacts"

    def dangerous_artifact_patterns(self, paths: str) -> List[str]:
        """
        Find upload paths that include the checked-out workspace

        Args:
            paths: ``path:`` input of an upload-artifact step

        Returns:
            The dangerous entries
        """
        patterns = []
        for path in split_patterns(paths):
            if path in (".", "./", "..", "../"):
                patterns.append(path)
                continue
            expr = ExplicitExpr.from_curly(path)
            if expr is not None and "github.workspace" in expr.as_bare():
                patterns.append(path)
        return patterns

    def check_normal_job(self, job: NormalJob) -> List[Finding]:
        checkouts: List[Tuple[Step, Persona]] = []
        uploads: List[Step] = []

        for step in job.steps():
            uses = step.parsed_uses()
            if not isinstance(uses, RepositoryUses):
                continue

            if uses.matches("actions/checkout"):
                persist = str(step.with_.get("persist-credentials", "")).lower()
                if persist == "false":
                    continue
                # An explicit `true` is probably deliberate.
                persona = Persona.AUDITOR if persist == "true" else Persona.REGULAR
                checkouts.append((step, persona))
            elif uses.matches("actions/upload-artifact"):
                path = step.with_.get("path")
                if isinstance(path, str) and self.dangerous_artifact_patterns(path):
                    uploads.append(step)

        findings = []
        if not uploads:
            for checkout, persona in checkouts:
                findings.append(
                    self.finding()
                    .severity(Severity.MEDIUM)
                    .confidence(Confidence.LOW)
                    .persona(persona)
                    .add_location(
                        checkout.location()
                        .primary()
                        .annotated("does not set persist-credentials: false")
                    )
                    .build(job.workflow.document)
                )
            return findings

        for checkout, persona in checkouts:
            for upload in uploads:
                if checkout.index >= upload.index:
                    continue
                findings.append(
                    self.finding()
                    .severity(Severity.HIGH)
                    .confidence(Confidence.HIGH)
                    .persona(persona)
                    .add_location(
                        checkout.location()
                        .primary()
                        .annotated("does not set persist-credentials: false")
                    )
                    .add_location(
                        upload.location().annotated("may leak the credentials persisted above")
                    )
                    .build(job.workflow.document)
                )
        return findings


class ExcessivePermissionsRule(Rule):
    """Rule to detect overly broad GITHUB_TOKEN permissions"""

    rule_id = "excessive-permissions"
    description = "overly broad workflow or job-level permissions"

    def check_permissions(
        self, permissions: Any, workflow_level: bool
    ) -> Optional[Tuple[Severity, Confidence, str]]:
        """
        Judge a ``permissions:`` value

        Args:
            permissions: The value, or None when the key is absent
            workflow_level: Whether this is the workflow's top-level block

        Returns:
            (severity, confidence, annotation), or None if acceptable
        """
        if permissions is None:
            if not workflow_level:
                return None
            return (
                Severity.MEDIUM,
                Confidence.LOW,
                "workflow uses default permissions, which may be excessive",
            )
        if permissions == "read-all":
            return (
                Severity.MEDIUM,
                Confidence.HIGH,
                "uses read-all permissions, which may grant read access to more resources "
                "than necessary",
            )
        if permissions == "write-all":
            return (
                Severity.HIGH,
                Confidence.HIGH,
                "uses write-all permissions, which grants destructive access to repository "
                "resources",
            )
        return None

    def check_workflow(self, workflow: Workflow) -> List[Finding]:
        findings = []

        location = workflow.location()
        if workflow.permissions is not None:
            location = location.with_keys("permissions")
        verdict = self.check_permissions(workflow.permissions, workflow_level=True)
        if verdict is not None:
            findings.append(self._finding(workflow, location, verdict))

        for job in workflow.jobs():
            if not isinstance(job, NormalJob) or job.permissions is None:
                continue
            verdict = self.check_permissions(job.permissions, workflow_level=False)
            if verdict is not None:
                findings.append(
                    self._finding(workflow, job.location().with_keys("permissions"), verdict)
                )

        return findings

    def _finding(
        self,
        workflow: Workflow,
        location: SymbolicLocation,
        verdict: Tuple[Severity, Confidence, str],
    ) -> Finding:
        severity, confidence, annotation = verdict
        return (
            self.finding()
            .severity(severity)
            .confidence(confidence)
            .add_location(location.primary().annotated(annotation))
            .build(workflow.document)
        )


class InsecureCommandsRule(Rule):
    """Rule to detect ACTIONS_ALLOW_UNSECURE_COMMANDS"""

    rule_id = "insecure-commands"
    description = "execution of insecure workflow commands is enabled"

    def has_insecure_commands_enabled(self, env: Any) -> bool:
        if not isinstance(env, dict):
            return False
        value = env.get("ACTIONS_ALLOW_UNSECURE_COMMANDS")
        if value is None:
            return False
        return str(value).strip().lower() not in ("", "false")

    def _check_env(self, env: Any, location: SymbolicLocation, workflow: Workflow) -> List[Finding]:
        if isinstance(env, str):
            return [
                self.finding()
                .severity(Severity.HIGH)
                .confidence(Confidence.LOW)
                .persona(Persona.AUDITOR)
                .add_location(
                    location.with_keys("env")
                    .primary()
                    .annotated("non-static environment may contain ACTIONS_ALLOW_UNSECURE_COMMANDS")
                )
                .build(workflow.document)
            ]
        if self.has_insecure_commands_enabled(env):
            return [
                self.finding()
                .severity(Severity.HIGH)
                .confidence(Confidence.HIGH)
                .add_location(
                    location.with_keys("env").primary().annotated("insecure commands enabled here")
                )
                .build(workflow.document)
            ]
        return []

    def check_workflow(self, workflow: Workflow) -> List[Finding]:
        findings = []
        if isinstance(workflow.env, dict):
            findings.extend(self._check_env(workflow.env, workflow.location(), workflow))

        for job in workflow.jobs():
            if not isinstance(job, NormalJob):
                continue
            if job.env is not None:
                findings.extend(self._check_env(job.env, job.location(), workflow))
            for step in job.steps():
                if step.env is not None:
                    findings.extend(self._check_env(step.env, step.location(), workflow))

        return findings


class UnpinnedUsesRule(Rule):
    """Rule to detect actions that are not pinned to a commit"""

    rule_id = "unpinned-uses"
    description = "unpinned action reference"

    def evaluate_pinning(self, uses: Uses) -> Optional[Tuple[str, Severity, Persona]]:
        """
        Judge how well a ``uses:`` clause is pinned

        Args:
            uses: Parsed clause

        Returns:
            (annotation, severity, persona), or None if pinned to a hash
        """
        if isinstance(uses, LocalUses):
            return None

        if isinstance(uses, DockerUses):
            unpinned, unhashed = uses.unpinned(), uses.unhashed()
        else:
            unpinned, unhashed = uses.git_ref is None, not uses.ref_is_commit()

        if unpinned:
            return (
                "action is not pinned to a tag, branch, or hash ref",
                Severity.MEDIUM,
                Persona.REGULAR,
            )
        if unhashed:
            return ("action is not pinned to a hash ref", Severity.LOW, Persona.PEDANTIC)
        return None

    def _check(self, step: Union[Step, CompositeStep]) -> List[Finding]:
        uses = step.parsed_uses()
        if uses is None:
            return []

        verdict = self.evaluate_pinning(uses)
        if verdict is None:
            return []

        annotation, severity, persona = verdict
        return [
            self.finding()
            .severity(severity)
            .confidence(Confidence.HIGH)
            .persona(persona)
            .add_location(step.location().with_keys("uses").primary().annotated(annotation))
            .build(step.document)
        ]

    def check_step(self, step: Step) -> List[Finding]:
        return self._check(step)

    def check_composite_step(self, step: CompositeStep) -> List[Finding]:
        return self._check(step)


class UseTrustedPublishingRule(Rule):
    """Rule to detect publishing steps that use long-lived credentials"""

    rule_id = "use-trusted-publishing"
    description = "prefer trusted publishing for authentication"

    def pypi_publish_uses_manual_credentials(self, with_: dict) -> bool:
        # Third-party indices don't support Trusted Publishing.
        has_manual_credential = "password" in with_
        repo_url = with_.get("repository-url", with_.get("repository_url"))
        if repo_url is None:
            return has_manual_credential
        return has_manual_credential and str(repo_url) in KNOWN_PYTHON_TP_INDICES

    def check_step(self, step: Step) -> List[Finding]:
        uses = step.parsed_uses()
        if not isinstance(uses, RepositoryUses):
            return []

        with_ = step.with_
        credential_location = step.location().annotated(USES_MANUAL_CREDENTIAL)
        if uses.matches("pypa/gh-action-pypi-publish"):
            if not self.pypi_publish_uses_manual_credentials(with_):
                return []
            credential_location = step.location().with_keys("with", "password").annotated(
                USES_MANUAL_CREDENTIAL
            )
        elif uses.matches("rubygems/release-gem"):
            if str(with_.get("setup-trusted-publisher", "true")).lower() == "true":
                return []
        elif uses.matches("rubygems/configure-rubygems-credential"):
            if "api-token" not in with_:
                return []
        else:
            return []

        return [
            self.finding()
            .severity(Severity.INFORMATIONAL)
            .confidence(Confidence.HIGH)
            .add_location(step.location().with_keys("uses").primary().annotated("this step"))
            .add_location(credential_location)
            .build(step.document)
        ]
