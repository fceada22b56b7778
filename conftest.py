"""Shared pytest fixtures for nodeiam tests.

This module provides common fixtures used across test files:
- recording_template: Template builder that records what create_role registers
- node_role_yaml: Writes a node role config document to a temporary file
"""

import dataclasses
import pathlib
import typing

import pytest
import yaml

import nodeiam.role

# ============================================================================
# Template Builder Fixtures
# ============================================================================


@dataclasses.dataclass
class AttachedPolicy:
    name: str
    role_ref: str
    resources: str
    actions: list[str]


class RecordingTemplate:
    """Template builder that keeps every call in order instead of emitting resources.

    Role references are plain strings of the form "ref:<name>".
    """

    def __init__(self) -> None:
        self.resources: dict[str, nodeiam.role.RoleDefinition] = {}
        self.policies: list[AttachedPolicy] = []
        self.calls: list[str] = []

    def new_resource(self, name: str, resource: nodeiam.role.RoleDefinition) -> str:
        self.calls.append(f"new_resource:{name}")
        self.resources[name] = resource
        return f"ref:{name}"

    def attach_allow_policy(self, name: str, role_ref: str, resources: str, actions: list[str]) -> None:
        self.calls.append(f"attach_allow_policy:{name}")
        self.policies.append(AttachedPolicy(name=name, role_ref=role_ref, resources=resources, actions=actions))

    def policy(self, name: str) -> AttachedPolicy:
        return next(p for p in self.policies if p.name == name)

    @property
    def policy_names(self) -> list[str]:
        return [p.name for p in self.policies]


@pytest.fixture
def recording_template() -> RecordingTemplate:
    """Returns an empty RecordingTemplate.

    Usage:
        def test_something(recording_template):
            nodeiam.role.create_role(recording_template, cluster_iam, iam, managed=True, enable_ssm=False)
            assert recording_template.policy_names == [...]
    """
    return RecordingTemplate()


# ============================================================================
# Config Fixtures
# ============================================================================


@pytest.fixture
def node_role_yaml(tmp_path: pathlib.Path) -> typing.Callable[[dict[str, typing.Any]], pathlib.Path]:
    """Returns a function writing a NodeRole document with the given spec.

    Usage:
        def test_something(node_role_yaml):
            path = node_role_yaml({"managed": True})
            spec = nodeiam.config.load_node_role_spec(path)
    """

    def write(spec: dict[str, typing.Any], kind: str = "NodeRole", api_version: str = "nodeiam/v1") -> pathlib.Path:
        path = tmp_path / "node-role.yaml"
        path.write_text(yaml.safe_dump({"apiVersion": api_version, "kind": kind, "spec": spec}))
        return path

    return write
