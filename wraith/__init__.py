"""
wraith - static analysis for GitHub Actions

Audits workflows and action definitions for template injection, leaked or
overprovisioned secrets, credential persistence, excessive permissions,
unpinned or impostor action references, and related anti-patterns. Findings
are anchored to exact source spans and can be suppressed inline with
``# wraith: ignore[<rule-id>]``.
"""

from .core import (
    CollectionError,
    Config,
    ConfigurationError,
    Finding,
    FindingRegistry,
    Persona,
    Severity,
    load_config,
    scan,
)
from .rules import AuditState, Rule, RuleEngine, create_rule_engine
from .utils.version import __version__, get_version, get_version_info

__all__ = [
    "__version__",
    "get_version",
    "get_version_info",
    "CollectionError",
    "Config",
    "ConfigurationError",
    "Finding",
    "FindingRegistry",
    "Persona",
    "Severity",
    "load_config",
    "scan",
    "AuditState",
    "Rule",
    "RuleEngine",
    "create_rule_engine",
    "main",
]


def main() -> None:
    """Main entry point for the wraith CLI tool"""
    from .cli import cli

    cli()
