"""
test_security.py - Tests for workflow configuration security rules
"""

import pytest

from wraith.core.finding import Confidence, Persona, Severity
from wraith.core.models import parse_uses
from wraith.rules.security import (
    ArtipackedRule,
    ExcessivePermissionsRule,
    InsecureCommandsRule,
    UnpinnedUsesRule,
    UseTrustedPublishingRule,
    split_patterns,
)

SHA = "8f4b7f84864484a7bf31766abe9204da3cbe65b3"


class TestArtipacked:
    """Tests for credential persistence through artifacts"""

    def test_dangerous_artifact_patterns(self, offline_state):
        rule = ArtipackedRule(offline_state)
        paths = """
            .
            ./dist
            ${{ github.workspace }}
            ${{ runner.temp }}/out
            ../
        """
        assert split_patterns(paths)[1] == "./dist"
        assert rule.dangerous_artifact_patterns(paths) == [".", "${{ github.workspace }}", "../"]

    def test_checkout_without_upload(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            jobs:
              build:
                runs-on: ubuntu-latest
                steps:
                  - uses: actions/checkout@v4
                  - uses: actions/checkout@v4
                    with:
                      persist-credentials: true
                  - uses: actions/checkout@v4
                    with:
                      persist-credentials: false
            """
        )
        default, explicit = ArtipackedRule(offline_state).check(workflow)

        assert default.severity == Severity.MEDIUM
        assert default.confidence == Confidence.LOW
        assert default.persona == Persona.REGULAR
        assert explicit.persona == Persona.AUDITOR
        assert explicit.primary_location.symbolic.route == ("jobs", "build", "steps", 1)

    def test_checkout_then_upload(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            jobs:
              build:
                runs-on: ubuntu-latest
                steps:
                  - uses: actions/upload-artifact@v4
                    with:
                      path: .
                  - uses: actions/checkout@v4
                  - uses: actions/upload-artifact@v4
                    with:
                      path: |
                        dist/
                        ${{ github.workspace }}
            """
        )
        (finding,) = ArtipackedRule(offline_state).check(workflow)

        assert finding.severity == Severity.HIGH
        assert finding.confidence == Confidence.HIGH
        assert finding.primary_location.symbolic.route == ("jobs", "build", "steps", 1)
        assert finding.locations[1].symbolic.route == ("jobs", "build", "steps", 2)


class TestExcessivePermissions:
    """Tests for overly broad token permissions"""

    @pytest.mark.parametrize(
        "permissions,workflow_level,expected",
        [
            (None, True, (Severity.MEDIUM, Confidence.LOW)),
            (None, False, None),
            ("read-all", False, (Severity.MEDIUM, Confidence.HIGH)),
            ("write-all", True, (Severity.HIGH, Confidence.HIGH)),
            ({"contents": "read"}, True, None),
            ({}, True, None),
        ],
    )
    def test_check_permissions(self, offline_state, permissions, workflow_level, expected):
        verdict = ExcessivePermissionsRule(offline_state).check_permissions(
            permissions, workflow_level
        )
        if expected is None:
            assert verdict is None
        else:
            assert verdict[:2] == expected

    def test_default_permissions_located_at_root(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            jobs:
              build:
                runs-on: ubuntu-latest
                steps:
                  - run: make
            """
        )
        (finding,) = ExcessivePermissionsRule(offline_state).check(workflow)

        assert finding.primary_location.symbolic.route == ()
        assert finding.severity == Severity.MEDIUM

    def test_job_permissions(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            permissions: read-all
            jobs:
              build:
                runs-on: ubuntu-latest
                permissions: write-all
                steps:
                  - run: make
              test:
                runs-on: ubuntu-latest
                permissions:
                  contents: read
                steps:
                  - run: make test
            """
        )
        workflow_finding, job_finding = ExcessivePermissionsRule(offline_state).check(workflow)

        assert workflow_finding.primary_location.symbolic.route == ("permissions",)
        assert workflow_finding.severity == Severity.MEDIUM
        assert job_finding.primary_location.symbolic.route == ("jobs", "build", "permissions")
        assert job_finding.severity == Severity.HIGH


class TestInsecureCommands:
    """Tests for ACTIONS_ALLOW_UNSECURE_COMMANDS"""

    @pytest.mark.parametrize(
        "env,expected",
        [
            ({"ACTIONS_ALLOW_UNSECURE_COMMANDS": "true"}, True),
            ({"ACTIONS_ALLOW_UNSECURE_COMMANDS": "1"}, True),
            ({"ACTIONS_ALLOW_UNSECURE_COMMANDS": "false"}, False),
            ({"ACTIONS_ALLOW_UNSECURE_COMMANDS": ""}, False),
            ({"OTHER": "true"}, False),
            (None, False),
        ],
    )
    def test_has_insecure_commands_enabled(self, offline_state, env, expected):
        assert InsecureCommandsRule(offline_state).has_insecure_commands_enabled(env) is expected

    def test_findings_at_every_level(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            env:
              ACTIONS_ALLOW_UNSECURE_COMMANDS: true
            jobs:
              build:
                runs-on: ubuntu-latest
                env: ${{ fromJSON(needs.setup.outputs.env) }}
                steps:
                  - run: echo "::set-env name=FOO::bar"
                    env:
                      ACTIONS_ALLOW_UNSECURE_COMMANDS: yes
                  - run: echo safe
                    env:
                      ACTIONS_ALLOW_UNSECURE_COMMANDS: false
            """
        )
        findings = InsecureCommandsRule(offline_state).check(workflow)

        assert [f.primary_location.symbolic.route for f in findings] == [
            ("env",),
            ("jobs", "build", "env"),
            ("jobs", "build", "steps", 0, "env"),
        ]
        dynamic = findings[1]
        assert dynamic.confidence == Confidence.LOW
        assert dynamic.persona == Persona.AUDITOR
        assert findings[0].confidence == Confidence.HIGH


class TestUnpinnedUses:
    """Tests for action pinning"""

    @pytest.mark.parametrize(
        "uses,expected",
        [
            ("actions/checkout", (Severity.MEDIUM, Persona.REGULAR)),
            ("actions/checkout@v4", (Severity.LOW, Persona.PEDANTIC)),
            (f"actions/checkout@{SHA}", None),
            ("docker://alpine", (Severity.MEDIUM, Persona.REGULAR)),
            ("docker://alpine:3.19", (Severity.LOW, Persona.PEDANTIC)),
            ("docker://alpine@sha256:abcd", None),
            ("./.github/actions/setup", None),
        ],
    )
    def test_evaluate_pinning(self, offline_state, uses, expected):
        verdict = UnpinnedUsesRule(offline_state).evaluate_pinning(parse_uses(uses))
        if expected is None:
            assert verdict is None
        else:
            assert verdict[1:] == expected

    def test_findings(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: push
            jobs:
              build:
                runs-on: ubuntu-latest
                steps:
                  - uses: actions/setup-python
                  - uses: actions/checkout@v4
                  - run: make
            """
        )
        unpinned, tagged = UnpinnedUsesRule(offline_state).check(workflow)

        assert unpinned.primary_location.symbolic.route == ("jobs", "build", "steps", 0, "uses")
        assert unpinned.severity == Severity.MEDIUM
        assert tagged.persona == Persona.PEDANTIC

    def test_composite_action(self, offline_state, load_workflow):
        action = load_workflow(
            """
            name: setup
            runs:
              using: composite
              steps:
                - uses: actions/cache
            """,
            filename="action.yml",
        )
        (finding,) = UnpinnedUsesRule(offline_state).check(action)
        assert finding.primary_location.symbolic.route == ("runs", "steps", 0, "uses")


class TestUseTrustedPublishing:
    """Tests for long-lived publishing credentials"""

    @pytest.mark.parametrize(
        "with_,expected",
        [
            ({"password": "${{ secrets.PYPI }}"}, True),
            ({}, False),
            (
                {"password": "x", "repository-url": "https://test.pypi.org/legacy/"},
                True,
            ),
            (
                {"password": "x", "repository_url": "https://pypi.example.com/legacy/"},
                False,
            ),
        ],
    )
    def test_pypi_manual_credentials(self, offline_state, with_, expected):
        rule = UseTrustedPublishingRule(offline_state)
        assert rule.pypi_publish_uses_manual_credentials(with_) is expected

    def test_findings(self, offline_state, load_workflow):
        workflow = load_workflow(
            """
            on: release
            jobs:
              publish:
                runs-on: ubuntu-latest
                steps:
                  - uses: pypa/gh-action-pypi-publish@release/v1
                    with:
                      password: ${{ secrets.PYPI_TOKEN }}
                  - uses: pypa/gh-action-pypi-publish@release/v1
                  - uses: rubygems/release-gem@v1
                    with:
                      setup-trusted-publisher: false
                  - uses: rubygems/release-gem@v1
                  - uses: rubygems/configure-rubygems-credential@v1
                    with:
                      api-token: ${{ secrets.RUBYGEMS }}
            """
        )
        findings = UseTrustedPublishingRule(offline_state).check(workflow)

        assert [f.primary_location.symbolic.route for f in findings] == [
            ("jobs", "publish", "steps", 0, "uses"),
            ("jobs", "publish", "steps", 2, "uses"),
            ("jobs", "publish", "steps", 4, "uses"),
        ]
        assert findings[0].locations[1].symbolic.route == (
            "jobs",
            "publish",
            "steps",
            0,
            "with",
            "password",
        )
        assert all(f.severity == Severity.INFORMATIONAL for f in findings)
