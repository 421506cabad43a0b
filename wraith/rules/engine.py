"""
engine.py - Rule engine for wraith

This module provides the rule engine that manages the audit rules and runs
them over every collected input, feeding their findings into a registry.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple, Type

from ..core.config import Config
from ..core.finding import Finding
from ..core.models import AuditInput
from ..core.registry import FindingRegistry, InputRegistry, RuleExecutionError
from .base import AuditLoadError, AuditState, Rule
from .injection import BypassableContainsRule, TemplateInjectionRule
from .provenance import ImpostorCommitRule, RefConfusionRule
from .secrets import (
    OverprovisionedSecretsRule,
    SecretsInheritRule,
    SecretsOutsideEnvironmentRule,
    UnredactedSecretsRule,
)
from .security import (
    ArtipackedRule,
    ExcessivePermissionsRule,
    InsecureCommandsRule,
    UnpinnedUsesRule,
    UseTrustedPublishingRule,
)

logger = logging.getLogger(__name__)

DEFAULT_RULES: List[Type[Rule]] = [
    ArtipackedRule,
    BypassableContainsRule,
    ExcessivePermissionsRule,
    ImpostorCommitRule,
    InsecureCommandsRule,
    OverprovisionedSecretsRule,
    RefConfusionRule,
    SecretsInheritRule,
    SecretsOutsideEnvironmentRule,
    TemplateInjectionRule,
    UnpinnedUsesRule,
    UnredactedSecretsRule,
    UseTrustedPublishingRule,
]

Outcome = Tuple[List[Finding], Optional[RuleExecutionError]]


class RuleEngine:
    """Engine for managing and running wraith rules"""

    def __init__(self, state: Optional[AuditState] = None, config: Optional[Config] = None) -> None:
        """
        Initialize the rule engine

        Args:
            state: Run-wide settings passed to each rule
            config: Loaded configuration; rules it disables are turned off
        """
        self.state = state or AuditState()
        self.config = config
        self.rules: List[Rule] = []

        self._register_default_rules()

        self._apply_config()

    def _register_default_rules(self) -> None:
        """Register the default set of rules, skipping those that cannot load"""
        for rule_class in DEFAULT_RULES:
            try:
                self.register_rule(rule_class(self.state))
            except AuditLoadError as e:
                logger.info("skipping %s: %s", rule_class.rule_id, e)

    def _apply_config(self) -> None:
        """Apply configuration to rules"""
        if self.config is None:
            return

        for rule in self.rules:
            if not self.config.is_rule_enabled(rule.rule_id):
                logger.debug("%s disabled by configuration", rule.rule_id)
                rule.enabled = False

    def register_rule(self, rule: Rule) -> None:
        """
        Register a rule

        Args:
            rule: Rule instance to register
        """
        self.rules.append(rule)

    def _run_one(self, rule: Rule, audit_input: AuditInput) -> Outcome:
        logger.debug("running %s on %s", rule.rule_id, audit_input.key)
        try:
            return rule.check(audit_input), None
        except Exception as e:
            logger.error("%s failed on %s: %s", rule.rule_id, audit_input.key, e)
            return [], RuleExecutionError(rule.rule_id, audit_input.key, e)

    def run(self, inputs: InputRegistry, results: FindingRegistry, workers: int = 1) -> None:
        """
        Run every enabled rule over every input

        Rules may run concurrently, but findings always reach the registry
        in input order, then rule order, so output is deterministic.

        Args:
            inputs: Collected inputs
            results: Registry that classifies the findings
            workers: Number of worker threads; 1 runs serially
        """
        rules = [rule for rule in self.rules if rule.enabled]
        pairs = [(rule, audit_input) for audit_input in inputs.iter_inputs() for rule in rules]

        if workers > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                outcomes = list(executor.map(lambda pair: self._run_one(*pair), pairs))
        else:
            outcomes = [self._run_one(rule, audit_input) for rule, audit_input in pairs]

        for findings, error in outcomes:
            if error is not None:
                results.record_error(error)
            results.extend(findings)


def create_rule_engine(
    state: Optional[AuditState] = None, config: Optional[Config] = None
) -> RuleEngine:
    """
    Create a rule engine with the specified configuration

    Args:
        state: Run-wide settings
        config: Loaded configuration

    Returns:
        Configured RuleEngine instance
    """
    return RuleEngine(state, config)
