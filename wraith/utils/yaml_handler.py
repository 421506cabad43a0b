"""
yaml_handler.py - Utilities for YAML processing

This module provides the YAML loading used throughout wraith: plain data
loading for the structural models, node composition for location
resolution, and discovery of workflow and action files on disk.
"""

import os
from collections.abc import Hashable
from pathlib import Path
from typing import Any, Dict, List, Optional, cast

import yaml
from yaml.constructor import ConstructorError
from yaml.nodes import MappingNode, Node, ScalarNode


class WorkflowLoader(yaml.SafeLoader):
    """Safe loader that keeps YAML 1.1 boolean words and mapping keys as strings"""

    def construct_mapping(self, node: Node, deep: bool = False) -> Dict[Any, Any]:
        """Use the source text of scalar keys, so ``0x10:`` stays ``"0x10"``"""
        if not isinstance(node, MappingNode):
            return cast(Dict[Any, Any], super().construct_mapping(node, deep=deep))

        self.flatten_mapping(node)
        mapping: Dict[Any, Any] = {}
        for key_node, value_node in node.value:
            if isinstance(key_node, ScalarNode):
                key = key_node.value
            else:
                key = self.construct_object(key_node, deep=deep)
                if not isinstance(key, Hashable):
                    raise ConstructorError(
                        "while constructing a mapping",
                        node.start_mark,
                        "found unhashable key",
                        key_node.start_mark,
                    )
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


# PyYAML follows YAML 1.1, which resolves plain ``on``, ``off``, ``yes`` and
# ``no`` (as well as ``true``/``false``) to booleans. Workflows use ``on`` as
# a key, so the implicit boolean resolver is removed and such scalars load as
# strings; rules compare against ``"true"``/``"false"`` accordingly.
WorkflowLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(content: str) -> Any:
    """
    Load YAML content into plain Python objects

    Args:
        content: YAML content as string

    Returns:
        Loaded data (usually a dictionary)

    Raises:
        yaml.YAMLError: If YAML parsing fails
    """
    return yaml.load(content, Loader=WorkflowLoader)


def compose_yaml(content: str) -> Optional[Node]:
    """
    Compose YAML content into a node tree with source marks

    Args:
        content: YAML content as string

    Returns:
        Root node, or None for an empty document

    Raises:
        yaml.YAMLError: If YAML parsing fails
    """
    return cast(Optional[Node], yaml.compose(content, Loader=WorkflowLoader))


def dump_yaml(obj: Any) -> str:
    """
    Dump an object back to YAML text

    Args:
        obj: Object to dump

    Returns:
        YAML string
    """
    return cast(str, yaml.safe_dump(obj, sort_keys=False, default_flow_style=False))


def find_yaml_files(directory: str, recursive: bool = True) -> List[Path]:
    """
    Find all YAML files in a directory

    Args:
        directory: Directory to search
        recursive: Whether to search recursively

    Returns:
        Sorted list of paths to YAML files
    """
    path = Path(directory)
    if not path.is_dir():
        return []

    pattern = "**/*.y*ml" if recursive else "*.y*ml"
    return sorted(p for p in path.glob(pattern) if p.suffix in (".yml", ".yaml"))


def find_github_workflow_files(repo_path: str) -> List[Path]:
    """
    Find GitHub Actions workflow files in a repository

    Args:
        repo_path: Path to repository

    Returns:
        Sorted list of paths to workflow files
    """
    return find_yaml_files(str(Path(repo_path) / ".github" / "workflows"), recursive=False)


def find_action_files(repo_path: str) -> List[Path]:
    """
    Find action definitions (``action.yml``/``action.yaml``) in a repository

    Hidden directories are skipped, except ``.github``.

    Args:
        repo_path: Path to repository

    Returns:
        Sorted list of paths to action definition files
    """
    found = []
    for root, dirs, files in os.walk(repo_path):
        dirs[:] = sorted(d for d in dirs if not d.startswith(".") or d == ".github")
        for name in files:
            if name in ("action.yml", "action.yaml"):
                found.append(Path(root) / name)
    return sorted(found)


def is_action_definition(yaml_content: Any) -> bool:
    """
    Check if YAML content is an action definition

    Args:
        yaml_content: Loaded YAML content

    Returns:
        True if the content has a ``runs`` section
    """
    return isinstance(yaml_content, dict) and isinstance(yaml_content.get("runs"), dict)
