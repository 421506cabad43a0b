"""
rules package for wraith

This package contains the audit rules and the rule engine that runs them over
collected workflows and actions.
"""

from .base import AuditLoadError, AuditState, Rule, parse_expression
from .engine import DEFAULT_RULES, RuleEngine, create_rule_engine
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

__all__ = [
    # Base classes
    "AuditLoadError",
    "AuditState",
    "Rule",
    "parse_expression",
    # Rule engine
    "DEFAULT_RULES",
    "RuleEngine",
    "create_rule_engine",
    # Expression rules
    "BypassableContainsRule",
    "TemplateInjectionRule",
    "OverprovisionedSecretsRule",
    "UnredactedSecretsRule",
    # Workflow rules
    "ArtipackedRule",
    "ExcessivePermissionsRule",
    "InsecureCommandsRule",
    "SecretsInheritRule",
    "SecretsOutsideEnvironmentRule",
    "UnpinnedUsesRule",
    "UseTrustedPublishingRule",
    # Network rules
    "ImpostorCommitRule",
    "RefConfusionRule",
]
