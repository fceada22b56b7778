import json
import typing

import pulumi
import pytest

import nodeiam.arn
import nodeiam.pulumi_resources.aws_node_role
import nodeiam.role
from nodeiam.config import ClusterIAMConfig, NodeGroupIAMAddonPolicies, NodeGroupIAMConfig, NodeRoleSpec


class NodeRoleMocks(pulumi.runtime.Mocks):
    def new_resource(self, args: pulumi.runtime.MockResourceArgs) -> tuple[str | None, dict[typing.Any, typing.Any]]:
        outputs = dict(args.inputs)
        if args.typ == "aws:iam/role:Role":
            outputs["arn"] = f"arn:aws:iam::123456789012:role/{args.name}"
        return args.name, outputs

    def call(  # type: ignore
        self, args: pulumi.runtime.MockCallArgs
    ) -> dict[typing.Any, typing.Any] | tuple[dict[typing.Any, typing.Any], list[tuple[str, str]] | None]:
        _ = args
        return {}


pulumi.runtime.set_mocks(NodeRoleMocks(), preview=False)


@pulumi.runtime.test
def test_node_instance_role() -> None:
    spec = NodeRoleSpec(
        iam=NodeGroupIAMConfig(
            instance_role_name="ng-1-role",
            with_addon_policies=NodeGroupIAMAddonPolicies(cert_manager=True, xray=True),
        ),
        managed=True,
    )
    node_role = nodeiam.pulumi_resources.aws_node_role.AWSNodeInstanceRole("ng-1", spec)

    assert node_role.role is not None
    assert list(node_role.role_policies) == [
        "PolicyCertManagerChangeSet",
        "PolicyCertManagerHostedZones",
        "PolicyCertManagerGetChange",
        "PolicyXRay",
    ]
    assert node_role.managed_policy_arns == [
        "arn:aws:iam::aws:policy/AmazonEC2ContainerRegistryReadOnly",
        "arn:aws:iam::aws:policy/AmazonEKSWorkerNodePolicy",
        "arn:aws:iam::aws:policy/AmazonEKS_CNI_Policy",
    ]

    def check_role(args):
        name, managed_policy_arns, assume_role_policy, arn = args
        assert name == "ng-1-role"
        assert managed_policy_arns == node_role.managed_policy_arns
        assert json.loads(assume_role_policy)["Statement"][0]["Principal"]["Service"] == ["ec2.amazonaws.com"]
        assert arn == "arn:aws:iam::123456789012:role/ng-1-NodeInstanceRole"

    def check_policy(args):
        name, policy, role = args
        assert name == "ng-1-PolicyCertManagerChangeSet"
        assert role == "ng-1-NodeInstanceRole"
        assert json.loads(policy) == {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Resource": "arn:aws:route53:::hostedzone/*",
                    "Action": ["route53:ChangeResourceRecordSets"],
                }
            ],
        }

    change_set = node_role.role_policies["PolicyCertManagerChangeSet"]
    return pulumi.Output.all(
        pulumi.Output.all(
            node_role.role.name,
            node_role.role.managed_policy_arns,
            node_role.role.assume_role_policy,
            node_role.instance_role_arn,
        ).apply(check_role),
        pulumi.Output.all(change_set.name, change_set.policy, change_set.role).apply(check_policy),
    )


@pulumi.runtime.test
def test_node_instance_role_with_instance_profile() -> None:
    node_role = nodeiam.pulumi_resources.aws_node_role.AWSNodeInstanceRole(
        "ng-2", NodeRoleSpec()
    ).with_instance_profile()

    assert node_role.instance_profile is not None

    def check(args):
        path, role = args
        assert path == "/"
        assert role == "ng-2-NodeInstanceRole"

    return pulumi.Output.all(node_role.instance_profile.path, node_role.instance_profile.role).apply(check)


@pulumi.runtime.test
def test_node_instance_role_existing_role() -> None:
    existing = "arn:aws:iam::123456789012:role/custom/path/ExistingRole"
    node_role = nodeiam.pulumi_resources.aws_node_role.AWSNodeInstanceRole(
        "ng-3",
        NodeRoleSpec(iam=NodeGroupIAMConfig(instance_role_arn=existing)),
    )

    assert node_role.role is None
    assert node_role.role_policies == {}

    with pytest.raises(ValueError, match="uses an existing instance role"):
        node_role.with_instance_profile()

    def check(arn):
        assert arn == "arn:aws:iam::123456789012:role/ExistingRole"

    return node_role.instance_role_arn.apply(check)


@pulumi.runtime.test
def test_node_instance_role_malformed_arn() -> None:
    spec = NodeRoleSpec(
        cluster_iam=ClusterIAMConfig(with_oidc=True),
        iam=NodeGroupIAMConfig(attach_policy_arns=("arn:aws:iam::123456789012:policy/",)),
    )
    with pytest.raises(nodeiam.arn.MalformedARNError):
        nodeiam.pulumi_resources.aws_node_role.AWSNodeInstanceRole("ng-4", spec)


@pulumi.runtime.test
def test_template_rejects_duplicate_policy_names() -> None:
    template = nodeiam.pulumi_resources.aws_node_role.PulumiNodeRoleTemplate("ng-5")
    definition = nodeiam.role.make_role_definition(
        ClusterIAMConfig(), NodeGroupIAMConfig(), managed=True, enable_ssm=False
    )
    role = template.new_resource("NodeInstanceRole", definition)
    template.attach_allow_policy("PolicyXRay", role, "*", ["xray:PutTraceSegments"])

    with pytest.raises(ValueError, match="already attached"):
        template.attach_allow_policy("PolicyXRay", role, "*", ["xray:PutTraceSegments"])

    with pytest.raises(ValueError, match="has no actions"):
        template.attach_allow_policy("PolicyEmpty", role, "*", [])
