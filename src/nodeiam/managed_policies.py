from __future__ import annotations

import typing

import pulumi

import nodeiam
import nodeiam.arn
from nodeiam import ManagedPolicy, is_enabled

if typing.TYPE_CHECKING:
    import collections.abc

    import nodeiam.config


class PolicyNameSet:
    """
    Managed policy short names. Insertion and deletion are keyed by name and enumeration is
    always sorted, so callers never depend on hash iteration order.
    """

    def __init__(self, names: collections.abc.Iterable[str] = ()):
        self._names: dict[str, None] = {}
        self.insert(*names)

    def insert(self, *names: str) -> None:
        for name in names:
            self._names[str(name)] = None

    def delete(self, name: str) -> bool:
        if str(name) not in self._names:
            return False

        del self._names[str(name)]
        return True

    def sorted(self) -> list[str]:
        return sorted(self._names)

    def __contains__(self, name: object) -> bool:
        return str(name) in self._names

    def __len__(self) -> int:
        return len(self._names)


def default_policy_names(
    cluster_iam: nodeiam.config.ClusterIAMConfig,
    iam: nodeiam.config.NodeGroupIAMConfig,
    *,
    managed: bool,
    enable_ssm: bool,
) -> PolicyNameSet:
    names = PolicyNameSet()
    addons = iam.with_addon_policies

    if len(iam.attach_policy_arns) == 0:
        names.insert(*nodeiam.DEFAULT_NODE_POLICIES)
        if not is_enabled(cluster_iam.with_oidc):
            names.insert(ManagedPolicy.AMAZON_EKS_CNI_POLICY)
        if managed:
            # The managed nodegroup API requires this policy even though the power user policy
            # (attached when image builder is enabled) is a superset of it
            names.insert(ManagedPolicy.AMAZON_EC2_CONTAINER_REGISTRY_READ_ONLY)

    if enable_ssm:
        names.insert(ManagedPolicy.AMAZON_SSM_MANAGED_INSTANCE_CORE)

    if is_enabled(addons.image_builder):
        names.insert(ManagedPolicy.AMAZON_EC2_CONTAINER_REGISTRY_POWER_USER)
    elif not managed:
        # attached even when attach_policy_arns is given, self-managed nodes have always had it
        names.insert(ManagedPolicy.AMAZON_EC2_CONTAINER_REGISTRY_READ_ONLY)

    if is_enabled(addons.cloud_watch):
        names.insert(ManagedPolicy.CLOUD_WATCH_AGENT_SERVER_POLICY)

    return names


def make_managed_policies(
    cluster_iam: nodeiam.config.ClusterIAMConfig,
    iam: nodeiam.config.NodeGroupIAMConfig,
    managed: bool,
    enable_ssm: bool,
    partition: str = nodeiam.DEFAULT_PARTITION,
) -> list[str]:
    """
    Resolve the managed policy ARNs for a node instance role.

    Explicitly attached ARNs come first in the order given. They also override any default
    policy with the same resource name, so a custom AmazonEKS_CNI_Policy replaces the AWS one.
    The remaining defaults follow, sorted by name.

    :param cluster_iam: Cluster level IAM config (OIDC)
    :param iam: Node group IAM config
    :param managed: Whether the node group is an EKS managed node group
    :param enable_ssm: Whether to attach the SSM managed instance core policy
    :param partition: The AWS partition used to build default policy ARNs
    :return: the managed policy ARNs
    :raises nodeiam.arn.MalformedARNError: when an attached ARN has no resource name
    """
    names = default_policy_names(cluster_iam, iam, managed=managed, enable_ssm=enable_ssm)

    attached: list[str] = []
    for policy_arn in iam.attach_policy_arns:
        resource_name = nodeiam.arn.arn_resource_name(policy_arn)
        if names.delete(resource_name):
            pulumi.log.info(f"Attached policy {policy_arn} replaces default managed policy {resource_name}")
        if policy_arn not in attached:
            attached.append(policy_arn)

    policy_arns = attached + [nodeiam.arn.managed_policy_arn(name, partition) for name in names.sorted()]
    pulumi.log.debug(f"Resolved node role managed policies: {policy_arns}")
    return policy_arns
