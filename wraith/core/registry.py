"""
registry.py - Input and finding registries

This module holds the collected inputs of a run and the aggregation of the
findings rules produce from them. Each finding is classified into exactly
one bucket: suppressed (meant for a more tolerant persona than the run's),
ignored (inline suppression, below a threshold, or ignored by the
configuration) or reported.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .finding import Confidence, Finding, Persona, Severity
from .models import AuditInput, InputKey

logger = logging.getLogger(__name__)

# Exit status is this base plus the rank of the highest reported severity.
EXIT_CODE_BASE = 10


class RuleExecutionError(Exception):
    """Exception recorded when a rule fails on a single input"""

    def __init__(self, rule_id: str, key: InputKey, cause: BaseException) -> None:
        super().__init__(f"{rule_id} failed on {key}: {cause}")
        self.rule_id = rule_id
        self.key = key
        self.cause = cause


class InputRegistry:
    """The inputs collected for a run, iterated in key order"""

    def __init__(self) -> None:
        self._inputs: Dict[InputKey, AuditInput] = {}

    def register_input(self, audit_input: AuditInput) -> bool:
        """
        Register an input, skipping keys that are already registered

        Args:
            audit_input: Loaded input

        Returns:
            True if the input was added
        """
        if audit_input.key in self._inputs:
            logger.warning("%s is already registered; skipping", audit_input.key)
            return False
        self._inputs[audit_input.key] = audit_input
        return True

    def get_input(self, key: InputKey) -> AuditInput:
        return self._inputs[key]

    def iter_inputs(self) -> Iterator[AuditInput]:
        for key in sorted(self._inputs, key=lambda k: k.sort_key()):
            yield self._inputs[key]

    def __len__(self) -> int:
        return len(self._inputs)

    def __contains__(self, key: Any) -> bool:
        return key in self._inputs


@dataclass(frozen=True)
class NullPolicy:
    """Never ignores anything; stands in when no configuration is loaded"""

    def ignores(self, finding: Finding) -> bool:
        return False


class FindingRegistry:
    """Collects findings and sorts them into reported, ignored and suppressed"""

    def __init__(
        self,
        persona: Persona = Persona.REGULAR,
        min_severity: Optional[Severity] = None,
        min_confidence: Optional[Confidence] = None,
        policy: Any = None,
    ) -> None:
        """
        Initialize the registry

        Args:
            persona: Most tolerant persona whose findings are reported
            min_severity: Findings below this severity are ignored
            min_confidence: Findings below this confidence are ignored
            policy: Object with an ``ignores(finding)`` method
        """
        self.persona = persona
        self.min_severity = min_severity
        self.min_confidence = min_confidence
        self.policy = policy or NullPolicy()

        self.findings: List[Finding] = []
        self.ignored: List[Finding] = []
        self.suppressed: List[Finding] = []
        self.errors: List[RuleExecutionError] = []
        self.highest_seen_severity: Optional[Severity] = None
        self._seen: Set[Tuple[Any, ...]] = set()

    def _is_ignored(self, finding: Finding) -> bool:
        if finding.ignored:
            return True
        if self.min_severity is not None and finding.severity < self.min_severity:
            return True
        if self.min_confidence is not None and finding.confidence < self.min_confidence:
            return True
        return bool(self.policy.ignores(finding))

    def add(self, finding: Finding) -> None:
        """
        Classify a single finding

        Repeated reports of the same finding (same rule and locations) are
        dropped.

        Args:
            finding: Finding to classify
        """
        fingerprint = finding.fingerprint()
        if fingerprint in self._seen:
            return
        self._seen.add(fingerprint)

        if finding.persona > self.persona:
            self.suppressed.append(finding)
        elif self._is_ignored(finding):
            self.ignored.append(finding)
        else:
            if self.highest_seen_severity is None or finding.severity > self.highest_seen_severity:
                self.highest_seen_severity = finding.severity
            self.findings.append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            self.add(finding)

    def record_error(self, error: RuleExecutionError) -> None:
        self.errors.append(error)

    def count_by_severity(self) -> Dict[str, int]:
        counts = {level.value: 0 for level in Severity}
        for finding in self.findings:
            counts[finding.severity.value] += 1
        return counts

    def exit_code(self) -> int:
        """
        Get the run's exit status

        Returns:
            0 when nothing is reported, otherwise 10 plus the rank of the
            highest reported severity (10 unknown through 14 high)
        """
        if self.highest_seen_severity is None:
            return 0
        return EXIT_CODE_BASE + self.highest_seen_severity.rank
