from __future__ import annotations

import enum

DEFAULT_PARTITION = "aws"
IAM_POLICY_VERSION = "2012-10-17"
NODE_INSTANCE_ROLE_RESOURCE_NAME = "NodeInstanceRole"
WILDCARD = "*"


class ManagedPolicy(enum.StrEnum):
    AMAZON_EC2_CONTAINER_REGISTRY_POWER_USER = "AmazonEC2ContainerRegistryPowerUser"
    AMAZON_EC2_CONTAINER_REGISTRY_READ_ONLY = "AmazonEC2ContainerRegistryReadOnly"
    AMAZON_EKS_CNI_POLICY = "AmazonEKS_CNI_Policy"
    AMAZON_EKS_WORKER_NODE_POLICY = "AmazonEKSWorkerNodePolicy"
    AMAZON_SSM_MANAGED_INSTANCE_CORE = "AmazonSSMManagedInstanceCore"
    CLOUD_WATCH_AGENT_SERVER_POLICY = "CloudWatchAgentServerPolicy"


DEFAULT_NODE_POLICIES = (ManagedPolicy.AMAZON_EKS_WORKER_NODE_POLICY,)


# service principal domain per partition; anything not listed uses the commercial domain
SERVICE_PRINCIPAL_DOMAINS = {
    "aws": "amazonaws.com",
    "aws-cn": "amazonaws.com.cn",
    "aws-us-gov": "amazonaws.com",
}


def is_enabled(flag: bool | None) -> bool:
    """
    Addon flags are tri-state: enabled, disabled, or unset. Unset counts as disabled.

    :param flag: The flag value as loaded from config
    :return: True only when the flag is explicitly enabled
    """
    return flag is True


def service_principal(service: str, partition: str = DEFAULT_PARTITION) -> str:
    return f"{service}.{SERVICE_PRINCIPAL_DOMAINS.get(partition, SERVICE_PRINCIPAL_DOMAINS[DEFAULT_PARTITION])}"
