from __future__ import annotations

import dataclasses
import typing

import pulumi

import nodeiam
import nodeiam.addon_policies
import nodeiam.managed_policies

if typing.TYPE_CHECKING:
    import nodeiam.config

RoleRef = typing.TypeVar("RoleRef")


class TemplateBuilder(typing.Protocol[RoleRef]):
    def new_resource(self, name: str, resource: RoleDefinition) -> RoleRef: ...

    def attach_allow_policy(self, name: str, role_ref: RoleRef, resources: str, actions: list[str]) -> None: ...


@dataclasses.dataclass(frozen=True)
class RoleDefinition:
    assume_role_policy_document: dict[str, typing.Any]
    managed_policy_arns: tuple[str, ...]
    path: str = "/"
    role_name: str | None = None
    permissions_boundary: str | None = None
    policies: tuple[nodeiam.addon_policies.PolicyStatement, ...] = ()


def make_assume_role_policy_document(
    service: str = "ec2",
    partition: str = nodeiam.DEFAULT_PARTITION,
) -> dict[str, typing.Any]:
    return {
        "Version": nodeiam.IAM_POLICY_VERSION,
        "Statement": [
            {
                "Action": ["sts:AssumeRole"],
                "Effect": "Allow",
                "Principal": {
                    "Service": [nodeiam.service_principal(service, partition)],
                },
            }
        ],
    }


def make_allow_policy_document(resources: str, actions: typing.Sequence[str]) -> dict[str, typing.Any]:
    return {
        "Version": nodeiam.IAM_POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Resource": resources,
                "Action": list(actions),
            }
        ],
    }


def make_role_definition(
    cluster_iam: nodeiam.config.ClusterIAMConfig,
    iam: nodeiam.config.NodeGroupIAMConfig,
    managed: bool,
    enable_ssm: bool,
    partition: str = nodeiam.DEFAULT_PARTITION,
) -> RoleDefinition:
    managed_policy_arns = nodeiam.managed_policies.make_managed_policies(
        cluster_iam, iam, managed, enable_ssm, partition
    )

    return RoleDefinition(
        assume_role_policy_document=make_assume_role_policy_document("ec2", partition),
        managed_policy_arns=tuple(managed_policy_arns),
        role_name=iam.instance_role_name or None,
        permissions_boundary=iam.instance_role_permissions_boundary or None,
        policies=tuple(nodeiam.addon_policies.synthesize_addon_policies(iam.with_addon_policies, partition)),
    )


def create_role(
    template: TemplateBuilder[RoleRef],
    cluster_iam: nodeiam.config.ClusterIAMConfig,
    iam: nodeiam.config.NodeGroupIAMConfig,
    managed: bool,
    enable_ssm: bool,
    partition: str = nodeiam.DEFAULT_PARTITION,
) -> RoleRef:
    """
    Create an IAM role with the policies required for worker nodes and their addons.

    Managed policies are resolved before anything is registered with the template, so a
    malformed attached ARN leaves the template untouched.

    :param template: Receives the role and one allow policy per addon statement
    :param cluster_iam: Cluster level IAM config
    :param iam: Node group IAM config
    :param managed: Whether the node group is an EKS managed node group
    :param enable_ssm: Whether nodes should be reachable through SSM
    :param partition: The AWS partition
    :return: The role reference returned by the template
    """
    definition = make_role_definition(cluster_iam, iam, managed, enable_ssm, partition)

    role_ref = template.new_resource(nodeiam.NODE_INSTANCE_ROLE_RESOURCE_NAME, definition)

    for statement in definition.policies:
        pulumi.log.debug(f"Attaching {statement.name} to {nodeiam.NODE_INSTANCE_ROLE_RESOURCE_NAME}")
        template.attach_allow_policy(statement.name, role_ref, statement.resources, list(statement.actions))

    return role_ref
