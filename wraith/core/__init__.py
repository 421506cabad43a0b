"""
core package for wraith

This package contains the analysis substrate: the expression parser and its
safety folds, the location resolver, the finding model, input models and
registries, configuration, and the scanning pipeline.
"""

from .config import Config, ConfigurationError, load_config
from .expr import ExplicitExpr, ExpressionError, extract_expressions, parse
from .finding import (
    Confidence,
    Finding,
    FindingBuildError,
    FindingBuilder,
    Location,
    Persona,
    Severity,
    SymbolicLocation,
)
from .locate import Document, QueryError
from .models import Action, AuditInput, InputError, LocalKey, RemoteKey, Workflow, load_input
from .registry import FindingRegistry, InputRegistry, RuleExecutionError
from .scanner import CollectionError, collect_inputs, scan

__all__ = [
    # Expressions
    "ExplicitExpr",
    "ExpressionError",
    "extract_expressions",
    "parse",
    # Locations and findings
    "Document",
    "QueryError",
    "Confidence",
    "Finding",
    "FindingBuildError",
    "FindingBuilder",
    "Location",
    "Persona",
    "Severity",
    "SymbolicLocation",
    # Inputs
    "Action",
    "AuditInput",
    "InputError",
    "LocalKey",
    "RemoteKey",
    "Workflow",
    "load_input",
    # Pipeline
    "FindingRegistry",
    "InputRegistry",
    "RuleExecutionError",
    "CollectionError",
    "collect_inputs",
    "scan",
    # Configuration
    "Config",
    "ConfigurationError",
    "load_config",
]
