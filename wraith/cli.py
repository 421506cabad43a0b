"""
cli.py - Command-line interface for wraith

This module provides the command-line interface for the wraith tool,
allowing users to audit GitHub Actions workflows and actions for security
issues.
"""

import json
import logging
import sys
from typing import Optional, Tuple

import click

from .core.config import ConfigurationError, load_config
from .core.finding import (
    CONFIDENCE_LEVELS,
    PERSONA_LEVELS,
    SEVERITY_LEVELS,
    Confidence,
    Persona,
    Severity,
)
from .core.scanner import CollectionError, scan as run_scan
from .reports import generate_json_report, print_console_report
from .rules import DEFAULT_RULES, AuditState
from .rules.base import DOCS_URL
from .utils.github_api import GitHubAPIError
from .utils.version import __version__

OUTPUT_FORMATS = ["plain", "json"]

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(level: int = logging.WARNING) -> logging.Logger:
    """
    Configure the root logger to write to stderr

    Args:
        level: Logging level

    Returns:
        The root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    return root_logger


def _log_level(verbose: int, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """wraith - static analysis for GitHub Actions

    Finds security issues in workflows and action definitions.
    """


@cli.command()
@click.argument("inputs", nargs=-1, required=True)
@click.option(
    "--persona",
    type=click.Choice(PERSONA_LEVELS),
    default=Persona.REGULAR.value,
    help="Audience whose findings are reported",
)
@click.option("--pedantic", is_flag=True, help="Shorthand for --persona=pedantic")
@click.option(
    "--min-severity",
    type=click.Choice(SEVERITY_LEVELS),
    help="Ignore findings below this severity",
)
@click.option(
    "--min-confidence",
    type=click.Choice(CONFIDENCE_LEVELS),
    help="Ignore findings below this confidence",
)
@click.option("--offline", is_flag=True, help="Skip rules that need the network")
@click.option("--gh-token", envvar="GH_TOKEN", help="GitHub token for online rules")
@click.option("--gh-hostname", envvar="GH_HOST", default="github.com", help="GitHub host")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(OUTPUT_FORMATS),
    default="plain",
    help="Output format for results",
)
@click.option("--config", type=click.Path(), help="Path to YAML config file")
@click.option("--no-config", is_flag=True, help="Don't discover a config file")
@click.option("--no-exit-codes", is_flag=True, help="Exit 0 even when findings are reported")
@click.option("--workers", type=click.IntRange(min=1), default=1, help="Rule worker threads")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
def scan(
    inputs: Tuple[str, ...],
    persona: str,
    pedantic: bool,
    min_severity: Optional[str],
    min_confidence: Optional[str],
    offline: bool,
    gh_token: Optional[str],
    gh_hostname: str,
    output_format: str,
    config: Optional[str],
    no_config: bool,
    no_exit_codes: bool,
    workers: int,
    no_color: bool,
    verbose: int,
    quiet: bool,
) -> None:
    """Audit workflows and actions for security issues

    INPUTS: workflow or action files, directories, or owner/repo[@ref] slugs
    """
    setup_logging(_log_level(verbose, quiet))

    if pedantic:
        persona = Persona.PEDANTIC.value

    try:
        config_data = load_config(config, discover=not no_config)
    except ConfigurationError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)

    state = AuditState(offline=offline, gh_token=gh_token, gh_hostname=gh_hostname)
    try:
        results = run_scan(
            inputs,
            state=state,
            config=config_data,
            persona=Persona.from_str(persona),
            min_severity=Severity.from_str(min_severity) if min_severity else None,
            min_confidence=Confidence.from_str(min_confidence) if min_confidence else None,
            workers=workers,
        )
    except (CollectionError, GitHubAPIError) as e:
        click.echo(f"Error collecting inputs: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(generate_json_report(results))
    else:
        print_console_report(results, use_color=False if no_color else None)

    if not no_exit_codes:
        sys.exit(results.exit_code())


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
def rules(output_format: str) -> None:
    """List the available rules"""
    rules_list = [
        {
            "id": rule.rule_id,
            "description": rule.description,
            "category": rule.category,
            "url": DOCS_URL.format(rule_id=rule.rule_id),
        }
        for rule in DEFAULT_RULES
    ]

    if output_format == "json":
        click.echo(json.dumps(rules_list, indent=2))
        return

    for rule in rules_list:
        click.echo(f"{rule['id']}: {rule['description']}")
        click.echo(f"   {rule['url']}")
