"""
test_config.py - Tests for configuration loading and ignore policies
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from wraith.core.config import (
    DEFAULT_CONFIG,
    Config,
    ConfigurationError,
    IgnorePattern,
    get_config_paths,
    load_config,
    merge_configs,
    parse_ignore_pattern,
    validate_config,
)
from wraith.core.finding import FindingBuilder, SymbolicLocation
from wraith.core.models import LocalKey, load_input

SOURCE = """\
on: push
jobs:
  build:
    runs-on: ubuntu-latest
"""


@pytest.fixture
def finding():
    workflow = load_input(LocalKey(path=".github/workflows/ci.yml", prefix="."), SOURCE)
    return (
        FindingBuilder("template-injection", "desc", "url")
        .add_location(
            SymbolicLocation(key=workflow.key, route=("jobs", "build", "runs-on")).primary()
        )
        .build(workflow.document)
    )


def test_parse_ignore_pattern():
    """Test parsing of ignore entries."""
    assert parse_ignore_pattern("ci.yml") == IgnorePattern("ci.yml")
    assert parse_ignore_pattern("ci.yml:4") == IgnorePattern("ci.yml", 4)
    assert parse_ignore_pattern("ci.yml:4:5") == IgnorePattern("ci.yml", 4, 5)


@pytest.mark.parametrize("pattern", ["", ":4", "ci.yml:x", "ci.yml:0", "ci.yml:1:2:3"])
def test_parse_ignore_pattern_invalid(pattern):
    """Test that malformed ignore entries are rejected."""
    with pytest.raises(ConfigurationError):
        parse_ignore_pattern(pattern)


def test_ignore_pattern_matches(finding):
    """Test matching ignore entries against the primary location."""
    assert IgnorePattern("ci.yml").matches(finding)
    assert IgnorePattern("ci.yml", 4).matches(finding)
    assert IgnorePattern("ci.yml", 4, 5).matches(finding)
    assert not IgnorePattern("ci.yml", 3).matches(finding)
    assert not IgnorePattern("ci.yml", 4, 1).matches(finding)
    assert not IgnorePattern("other.yml").matches(finding)


def test_merge_configs():
    """Test recursive merging of configurations."""
    base = {"rules": {"a": {"disable": False}}}
    override = {"rules": {"a": {"disable": True}, "b": {"ignore": ["x.yml"]}}}

    merged = merge_configs(base, override)
    assert merged == {"rules": {"a": {"disable": True}, "b": {"ignore": ["x.yml"]}}}
    assert base == {"rules": {"a": {"disable": False}}}


@pytest.mark.parametrize(
    "config",
    [
        [],
        {"unknown": 1},
        {"rules": []},
        {"rules": ""},
        {"rules": {"a": "yes"}},
        {"rules": {"a": {"severity": "high"}}},
        {"rules": {"a": {"disable": "yes"}}},
        {"rules": {"a": {"ignore": "ci.yml"}}},
        {"rules": {"a": {"ignore": ["ci.yml:zero"]}}},
    ],
)
def test_validate_config_invalid(config):
    """Test that invalid configurations are rejected."""
    with pytest.raises(ConfigurationError):
        validate_config(config)


def test_validate_config_valid():
    """Test that valid configurations pass."""
    validate_config(DEFAULT_CONFIG)
    validate_config({"rules": {"a": None, "b": {"disable": True, "ignore": ["ci.yml:1:1"]}}})


def test_config_policy(finding):
    """Test the configuration as an ignore policy."""
    config = Config(
        {
            "rules": {
                "template-injection": {"ignore": ["ci.yml:4"]},
                "unpinned-uses": {"disable": True},
            }
        }
    )

    assert config.ignores(finding)
    assert not config.is_rule_enabled("unpinned-uses")
    assert config.is_rule_enabled("template-injection")
    assert not Config().ignores(finding)


def test_get_config_paths():
    """Test the discovery order."""
    paths = get_config_paths()
    names = [os.path.relpath(p, os.getcwd()) for p in paths[:6]]

    assert names == [
        "wraith.yml",
        "wraith.yaml",
        ".wraith.yml",
        ".wraith.yaml",
        os.path.join(".github", "wraith.yml"),
        os.path.join(".github", "wraith.yaml"),
    ]
    assert paths[-1].endswith(os.path.join(".config", "wraith", "config.yaml"))


def test_load_config_from_path(temp_dir):
    """Test loading an explicit configuration file."""
    path = Path(temp_dir) / "wraith.yml"
    path.write_text(yaml.safe_dump({"rules": {"artipacked": {"disable": True}}}))

    config = load_config(str(path))
    assert not config.is_rule_enabled("artipacked")


def test_load_config_errors(temp_dir):
    """Test missing and unparsable configuration files."""
    with pytest.raises(ConfigurationError):
        load_config(str(Path(temp_dir) / "missing.yml"))

    path = Path(temp_dir) / "broken.yml"
    path.write_text("rules: [unclosed")
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_load_config_discovery(temp_dir):
    """Test discovery in the working directory, and turning it off."""
    path = Path(temp_dir) / ".wraith.yml"
    path.write_text(yaml.safe_dump({"rules": {"artipacked": {"disable": True}}}))

    with patch("wraith.core.config.get_config_paths", return_value=[str(path)]):
        assert not load_config().is_rule_enabled("artipacked")
        assert load_config(discover=False).is_rule_enabled("artipacked")
