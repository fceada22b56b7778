from __future__ import annotations

import dataclasses
import typing

import nodeiam
import nodeiam.arn
from nodeiam import WILDCARD, is_enabled

if typing.TYPE_CHECKING:
    import nodeiam.config

HOSTED_ZONE_RESOURCE = "route53:::hostedzone/*"
CHANGE_RESOURCE = "route53:::change/*"
SERVICE_ROLE_RESOURCE = "iam::*:role/aws-service-role/*"


@dataclasses.dataclass(frozen=True)
class PolicyStatement:
    name: str
    resources: str
    actions: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class StatementTemplate:
    """
    A named inline policy for an addon.

    :param resource: WILDCARD, or an ARN without the "arn:<partition>:" prefix
    :param extend_when: Optional addon flag; when it is enabled too, extra_actions are appended
    """

    name: str
    actions: tuple[str, ...]
    resource: str = WILDCARD
    extend_when: str | None = None
    extra_actions: tuple[str, ...] = ()

    def render(
        self,
        addons: nodeiam.config.NodeGroupIAMAddonPolicies,
        partition: str = nodeiam.DEFAULT_PARTITION,
    ) -> PolicyStatement:
        actions = self.actions
        if self.extend_when is not None and is_enabled(getattr(addons, self.extend_when)):
            actions += self.extra_actions

        resources = self.resource
        if resources != WILDCARD:
            resources = nodeiam.arn.partition_arn(resources, partition)

        return PolicyStatement(name=self.name, resources=resources, actions=actions)


@dataclasses.dataclass(frozen=True)
class AddonRule:
    addon: str
    statements: tuple[StatementTemplate, ...]
    unless: str | None = None

    def applies(self, addons: nodeiam.config.NodeGroupIAMAddonPolicies) -> bool:
        if not is_enabled(getattr(addons, self.addon)):
            return False
        return self.unless is None or not is_enabled(getattr(addons, self.unless))


APP_MESH_ACTIONS = (
    "servicediscovery:CreateService",
    "servicediscovery:DeleteService",
    "servicediscovery:GetService",
    "servicediscovery:GetInstance",
    "servicediscovery:RegisterInstance",
    "servicediscovery:DeregisterInstance",
    "servicediscovery:ListInstances",
    "servicediscovery:ListNamespaces",
    "servicediscovery:ListServices",
    "servicediscovery:GetInstancesHealthStatus",
    "servicediscovery:UpdateInstanceCustomHealthStatus",
    "servicediscovery:GetOperation",
    "route53:GetHealthCheck",
    "route53:CreateHealthCheck",
    "route53:UpdateHealthCheck",
    "route53:ChangeResourceRecordSets",
    "route53:DeleteHealthCheck",
)

# https://github.com/kubernetes-sigs/aws-load-balancer-controller/blob/main/docs/install/iam_policy.json
ALB_INGRESS_ACTIONS = (
    "acm:DescribeCertificate",
    "acm:ListCertificates",
    "acm:GetCertificate",
    "ec2:AuthorizeSecurityGroupIngress",
    "ec2:CreateSecurityGroup",
    "ec2:CreateTags",
    "ec2:DeleteTags",
    "ec2:DeleteSecurityGroup",
    "ec2:DescribeAccountAttributes",
    "ec2:DescribeAddresses",
    "ec2:DescribeInstances",
    "ec2:DescribeInstanceStatus",
    "ec2:DescribeInternetGateways",
    "ec2:DescribeNetworkInterfaces",
    "ec2:DescribeSecurityGroups",
    "ec2:DescribeSubnets",
    "ec2:DescribeTags",
    "ec2:DescribeVpcs",
    "ec2:ModifyInstanceAttribute",
    "ec2:ModifyNetworkInterfaceAttribute",
    "ec2:RevokeSecurityGroupIngress",
    "elasticloadbalancing:AddListenerCertificates",
    "elasticloadbalancing:AddTags",
    "elasticloadbalancing:CreateListener",
    "elasticloadbalancing:CreateLoadBalancer",
    "elasticloadbalancing:CreateRule",
    "elasticloadbalancing:CreateTargetGroup",
    "elasticloadbalancing:DeleteListener",
    "elasticloadbalancing:DeleteLoadBalancer",
    "elasticloadbalancing:DeleteRule",
    "elasticloadbalancing:DeleteTargetGroup",
    "elasticloadbalancing:DeregisterTargets",
    "elasticloadbalancing:DescribeListenerCertificates",
    "elasticloadbalancing:DescribeListeners",
    "elasticloadbalancing:DescribeLoadBalancers",
    "elasticloadbalancing:DescribeLoadBalancerAttributes",
    "elasticloadbalancing:DescribeRules",
    "elasticloadbalancing:DescribeSSLPolicies",
    "elasticloadbalancing:DescribeTags",
    "elasticloadbalancing:DescribeTargetGroups",
    "elasticloadbalancing:DescribeTargetGroupAttributes",
    "elasticloadbalancing:DescribeTargetHealth",
    "elasticloadbalancing:ModifyListener",
    "elasticloadbalancing:ModifyLoadBalancerAttributes",
    "elasticloadbalancing:ModifyRule",
    "elasticloadbalancing:ModifyTargetGroup",
    "elasticloadbalancing:ModifyTargetGroupAttributes",
    "elasticloadbalancing:RegisterTargets",
    "elasticloadbalancing:RemoveListenerCertificates",
    "elasticloadbalancing:RemoveTags",
    "elasticloadbalancing:SetIpAddressType",
    "elasticloadbalancing:SetSecurityGroups",
    "elasticloadbalancing:SetSubnets",
    "elasticloadbalancing:SetWebACL",
    "iam:CreateServiceLinkedRole",
    "iam:GetServerCertificate",
    "iam:ListServerCertificates",
    "waf-regional:GetWebACLForResource",
    "waf-regional:GetWebACL",
    "waf-regional:AssociateWebACL",
    "waf-regional:DisassociateWebACL",
    "tag:GetResources",
    "tag:TagResources",
    "waf:GetWebACL",
    "wafv2:GetWebACL",
    "wafv2:GetWebACLForResource",
    "wafv2:AssociateWebACL",
    "wafv2:DisassociateWebACL",
    "shield:DescribeProtection",
    "shield:GetSubscriptionState",
    "shield:DeleteProtection",
    "shield:CreateProtection",
    "shield:DescribeSubscription",
    "shield:ListProtections",
)

# Evaluated in order. Statement names must be unique across the whole table since every
# statement ends up as an inline policy on the same role.
ADDON_POLICY_RULES: tuple[AddonRule, ...] = (
    AddonRule(
        addon="auto_scaler",
        statements=(
            StatementTemplate(
                name="PolicyAutoScaling",
                actions=(
                    "autoscaling:DescribeAutoScalingGroups",
                    "autoscaling:DescribeAutoScalingInstances",
                    "autoscaling:DescribeLaunchConfigurations",
                    "autoscaling:DescribeTags",
                    "autoscaling:SetDesiredCapacity",
                    "autoscaling:TerminateInstanceInAutoScalingGroup",
                    "ec2:DescribeLaunchTemplateVersions",
                ),
            ),
        ),
    ),
    AddonRule(
        addon="cert_manager",
        statements=(
            StatementTemplate(
                name="PolicyCertManagerChangeSet",
                resource=HOSTED_ZONE_RESOURCE,
                actions=("route53:ChangeResourceRecordSets",),
            ),
            StatementTemplate(
                name="PolicyCertManagerHostedZones",
                actions=(
                    "route53:ListResourceRecordSets",
                    "route53:ListHostedZonesByName",
                ),
                # covers what external-dns needs, so its own policies are skipped
                extend_when="external_dns",
                extra_actions=(
                    "route53:ListHostedZones",
                    "route53:ListTagsForResource",
                ),
            ),
            StatementTemplate(
                name="PolicyCertManagerGetChange",
                resource=CHANGE_RESOURCE,
                actions=("route53:GetChange",),
            ),
        ),
    ),
    AddonRule(
        addon="external_dns",
        unless="cert_manager",
        statements=(
            StatementTemplate(
                name="PolicyExternalDNSChangeSet",
                resource=HOSTED_ZONE_RESOURCE,
                actions=("route53:ChangeResourceRecordSets",),
            ),
            StatementTemplate(
                name="PolicyExternalDNSHostedZones",
                actions=(
                    "route53:ListHostedZones",
                    "route53:ListResourceRecordSets",
                    "route53:ListTagsForResource",
                ),
            ),
        ),
    ),
    AddonRule(
        addon="app_mesh",
        statements=(StatementTemplate(name="PolicyAppMesh", actions=(*APP_MESH_ACTIONS, "appmesh:*")),),
    ),
    AddonRule(
        addon="app_mesh_preview",
        statements=(StatementTemplate(name="PolicyAppMeshPreview", actions=(*APP_MESH_ACTIONS, "appmesh-preview:*")),),
    ),
    AddonRule(
        addon="ebs",
        statements=(
            StatementTemplate(
                name="PolicyEBS",
                actions=(
                    "ec2:AttachVolume",
                    "ec2:CreateSnapshot",
                    "ec2:CreateTags",
                    "ec2:CreateVolume",
                    "ec2:DeleteSnapshot",
                    "ec2:DeleteTags",
                    "ec2:DeleteVolume",
                    "ec2:DescribeAvailabilityZones",
                    "ec2:DescribeInstances",
                    "ec2:DescribeSnapshots",
                    "ec2:DescribeTags",
                    "ec2:DescribeVolumes",
                    "ec2:DescribeVolumesModifications",
                    "ec2:DetachVolume",
                    "ec2:ModifyVolume",
                ),
            ),
        ),
    ),
    AddonRule(
        addon="efs",
        statements=(
            StatementTemplate(name="PolicyEFS", actions=("elasticfilesystem:*",)),
            StatementTemplate(
                name="PolicyEFSEC2",
                actions=(
                    "ec2:DescribeSubnets",
                    "ec2:CreateNetworkInterface",
                    "ec2:DescribeNetworkInterfaces",
                    "ec2:DeleteNetworkInterface",
                    "ec2:ModifyNetworkInterfaceAttribute",
                    "ec2:DescribeNetworkInterfaceAttribute",
                ),
            ),
        ),
    ),
    AddonRule(
        addon="fsx",
        statements=(
            StatementTemplate(name="PolicyFSX", actions=("fsx:*",)),
            StatementTemplate(
                name="PolicyServiceLinkRole",
                resource=SERVICE_ROLE_RESOURCE,
                actions=(
                    "iam:CreateServiceLinkedRole",
                    "iam:AttachRolePolicy",
                    "iam:PutRolePolicy",
                ),
            ),
        ),
    ),
    AddonRule(
        addon="alb_ingress",
        statements=(StatementTemplate(name="PolicyALBIngress", actions=ALB_INGRESS_ACTIONS),),
    ),
    AddonRule(
        addon="xray",
        statements=(
            StatementTemplate(
                name="PolicyXRay",
                actions=(
                    "xray:PutTraceSegments",
                    "xray:PutTelemetryRecords",
                    "xray:GetSamplingRules",
                    "xray:GetSamplingTargets",
                    "xray:GetSamplingStatisticSummaries",
                ),
            ),
        ),
    ),
)


def synthesize_addon_policies(
    addons: nodeiam.config.NodeGroupIAMAddonPolicies,
    partition: str = nodeiam.DEFAULT_PARTITION,
    rules: tuple[AddonRule, ...] = ADDON_POLICY_RULES,
) -> list[PolicyStatement]:
    return [
        template.render(addons, partition) for rule in rules if rule.applies(addons) for template in rule.statements
    ]
