"""
utils package for wraith

This package contains YAML handling, the GitHub REST client and version
information.
"""

from .github_api import Branch, ComparisonStatus, GitHubAPIError, GitHubClient, Tag
from .version import __version__, get_version, get_version_info
from .yaml_handler import (
    WorkflowLoader,
    compose_yaml,
    find_action_files,
    find_github_workflow_files,
    load_yaml,
)

__all__ = [
    "Branch",
    "ComparisonStatus",
    "GitHubAPIError",
    "GitHubClient",
    "Tag",
    "__version__",
    "get_version",
    "get_version_info",
    "WorkflowLoader",
    "compose_yaml",
    "find_action_files",
    "find_github_workflow_files",
    "load_yaml",
]
