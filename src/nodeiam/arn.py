from __future__ import annotations

import dataclasses

import botocore.utils

from nodeiam import DEFAULT_PARTITION


class MalformedARNError(ValueError):
    def __init__(self, msg: str, arn: str):
        super().__init__(msg)
        self.arn = arn


@dataclasses.dataclass(frozen=True)
class ARN:
    partition: str
    service: str
    region: str
    account_id: str
    resource: str


def parse_arn(arn: str) -> ARN:
    """
    Split an ARN into its sections.

    :param arn: eg: arn:aws:iam::123456789012:policy/team/MyPolicy
    :return: the parsed ARN
    :raises MalformedARNError: when the input is not an ARN
    """
    if not arn.startswith("arn:"):
        msg = f"arn: invalid prefix: {arn!r}"
        raise MalformedARNError(msg, arn)

    try:
        parts = botocore.utils.ArnParser().parse_arn(arn)
    except ValueError as e:  # botocore raises InvalidArnException, a ValueError
        msg = f"arn: not enough sections: {arn!r}"
        raise MalformedARNError(msg, arn) from e

    return ARN(
        partition=parts["partition"],
        service=parts["service"],
        region=parts["region"],
        account_id=parts["account"],
        resource=parts["resource"],
    )


def arn_resource_name(arn: str) -> str:
    """
    Return everything in the ARN resource after the first forward-slash, eg: for
    arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy this is AmazonEKS_CNI_Policy.
    """
    resource = parse_arn(arn).resource
    start = resource.find("/")
    if start == -1 or start + 1 == len(resource):
        msg = f"failed to find ARN resource name: {resource} (in {arn!r})"
        raise MalformedARNError(msg, arn)

    return resource[start + 1 :]


def normalize_arn(arn: str) -> str:
    """
    Return the ARN with just the last element in the resource path preserved. If the input does
    not contain at least one forward-slash then the input is returned unmodified.

    Nodes using an existing instance role whose path is not "/" may fail to join the cluster, as
    the AWS IAM Authenticator does not recognize such ARNs in the aws-auth ConfigMap.

    See: https://docs.aws.amazon.com/eks/latest/userguide/troubleshooting.html#troubleshoot-container-runtime-network
    """
    parts = arn.split("/")
    if len(parts) <= 1:
        return arn

    return f"{parts[0]}/{parts[-1]}"


def partition_arn(suffix: str, partition: str = DEFAULT_PARTITION) -> str:
    # Example: route53:::hostedzone/* -> arn:aws:route53:::hostedzone/*
    return f"arn:{partition}:{suffix}"


def managed_policy_arn(name: str, partition: str = DEFAULT_PARTITION) -> str:
    return partition_arn(f"iam::aws:policy/{name}", partition)
