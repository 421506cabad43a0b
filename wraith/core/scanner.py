"""
scanner.py - Input collection and the scanning pipeline

This module turns command-line inputs (files, directories and remote
``owner/repo[@ref]`` slugs) into a registry of loaded inputs, and runs the
rule engine over them.
"""

import logging
import os
import re
from typing import TYPE_CHECKING, Iterable, Optional

from ..utils.yaml_handler import find_action_files, find_github_workflow_files
from .config import Config
from .finding import Confidence, Persona, Severity
from .models import InputError, RemoteKey, load_input, load_input_file
from .registry import FindingRegistry, InputRegistry

if TYPE_CHECKING:
    from ..rules.base import AuditState

logger = logging.getLogger(__name__)

_SLUG = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)(?:@(?P<ref>.+))?$")


class CollectionError(Exception):
    """Exception raised when inputs cannot be collected"""

    pass


def _register_file(registry: InputRegistry, path: str, prefix: Optional[str] = None) -> None:
    try:
        registry.register_input(load_input_file(path, prefix))
    except InputError as e:
        logger.error("failed to load %s: %s", path, e)


def _collect_directory(registry: InputRegistry, directory: str) -> None:
    paths = find_github_workflow_files(directory) + find_action_files(directory)
    if not paths:
        logger.warning("no workflows or actions found under %s", directory)
    for path in paths:
        _register_file(registry, str(path), prefix=directory)


def _collect_remote(registry: InputRegistry, slug: str, state: "AuditState") -> None:
    match = _SLUG.match(slug)
    if match is None:
        raise CollectionError(f"{slug}: not a file, directory or owner/repo[@ref] slug")

    client = state.github_client()
    if client is None:
        raise CollectionError(f"{slug}: remote inputs need a GitHub token and online mode")

    owner, repo, ref = match.group("owner"), match.group("repo"), match.group("ref")
    for path, source in client.fetch_workflows(owner, repo, ref).items():
        key = RemoteKey(owner=owner, repo=repo, git_ref=ref, path=path)
        try:
            registry.register_input(load_input(key, source))
        except InputError as e:
            logger.error("failed to load %s: %s", key, e)


def collect_inputs(paths: Iterable[str], state: "AuditState") -> InputRegistry:
    """
    Collect and load every input named on the command line

    Inputs that fail to load are logged and skipped.

    Args:
        paths: Files, directories or ``owner/repo[@ref]`` slugs
        state: Run-wide settings; supplies the GitHub client for slugs

    Returns:
        Registry of loaded inputs

    Raises:
        CollectionError: If a slug cannot be fetched or nothing was collected
    """
    registry = InputRegistry()
    for path in paths:
        if os.path.isfile(path):
            _register_file(registry, path)
        elif os.path.isdir(path):
            _collect_directory(registry, path)
        else:
            _collect_remote(registry, path, state)

    if not len(registry):
        raise CollectionError("no inputs collected")

    logger.info("collected %d inputs", len(registry))
    return registry


def scan(
    paths: Iterable[str],
    state: Optional["AuditState"] = None,
    config: Optional[Config] = None,
    persona: Persona = Persona.REGULAR,
    min_severity: Optional[Severity] = None,
    min_confidence: Optional[Confidence] = None,
    workers: int = 1,
) -> FindingRegistry:
    """
    Collect inputs and audit them with every enabled rule

    Args:
        paths: Files, directories or ``owner/repo[@ref]`` slugs
        state: Run-wide settings
        config: Loaded configuration, used for disabled rules and ignores
        persona: Most tolerant persona whose findings are reported
        min_severity: Findings below this severity are ignored
        min_confidence: Findings below this confidence are ignored
        workers: Number of worker threads

    Returns:
        Registry with the classified findings
    """
    from ..rules.base import AuditState
    from ..rules.engine import create_rule_engine

    state = state or AuditState()
    inputs = collect_inputs(paths, state)
    results = FindingRegistry(
        persona=persona,
        min_severity=min_severity,
        min_confidence=min_confidence,
        policy=config,
    )
    create_rule_engine(state, config).run(inputs, results, workers=workers)
    return results
