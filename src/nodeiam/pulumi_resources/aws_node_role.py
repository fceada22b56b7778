from __future__ import annotations

import json

import pulumi
import pulumi_aws as aws

import nodeiam
import nodeiam.arn
import nodeiam.config
import nodeiam.role


class PulumiNodeRoleTemplate:
    """
    Emit node role definitions as pulumi_aws resources.

    :param prefix: Prefix for pulumi resource names and inline policy names, eg: the node group name
    :param opts: Optional. Resource options applied to the role; policies are parented to the role
    """

    def __init__(self, prefix: str, opts: pulumi.ResourceOptions | None = None):
        if opts is None:
            opts = pulumi.ResourceOptions()

        self.prefix = prefix
        self.opts = opts
        self.definitions: dict[str, nodeiam.role.RoleDefinition] = {}
        self.role_policies: dict[str, aws.iam.RolePolicy] = {}

    def new_resource(self, name: str, resource: nodeiam.role.RoleDefinition) -> aws.iam.Role:
        role = aws.iam.Role(
            f"{self.prefix}-{name}",
            aws.iam.RoleArgs(
                name=resource.role_name,
                path=resource.path,
                assume_role_policy=json.dumps(resource.assume_role_policy_document),
                managed_policy_arns=list(resource.managed_policy_arns),
                permissions_boundary=resource.permissions_boundary,
            ),
            opts=self.opts,
        )
        self.definitions[name] = resource
        return role

    def attach_allow_policy(self, name: str, role_ref: aws.iam.Role, resources: str, actions: list[str]) -> None:
        if name in self.role_policies:
            msg = f"inline policy {name!r} is already attached to {self.prefix}"
            raise ValueError(msg)

        if not actions:
            msg = f"inline policy {name!r} has no actions"
            raise ValueError(msg)

        self.role_policies[name] = aws.iam.RolePolicy(
            f"{self.prefix}-{name}",
            name=f"{self.prefix}-{name}",
            role=role_ref.id,
            policy=json.dumps(nodeiam.role.make_allow_policy_document(resources, actions)),
            opts=pulumi.ResourceOptions(parent=role_ref),
        )


class AWSNodeInstanceRole(pulumi.ComponentResource):
    """
    The IAM role for the instances of one EKS node group, with managed policies and addon
    inline policies attached.

    When the config names an existing instance_role_arn nothing is created, and instance_role_arn
    holds the normalized form of that ARN for use in the aws-auth ConfigMap.

    Example usage:
      ```
      spec = nodeiam.config.load_node_role_spec(pathlib.Path("node-role.yaml"))
      node_role = AWSNodeInstanceRole("ng-1", spec).with_instance_profile()
      ```

    :param name: The name of the node group the role is for
    :param spec: The node role config
    :param opts: Optional. Resource options
    """

    name: str
    spec: nodeiam.config.NodeRoleSpec

    role: aws.iam.Role | None
    role_policies: dict[str, aws.iam.RolePolicy]
    managed_policy_arns: list[str]
    instance_profile: aws.iam.InstanceProfile | None
    instance_role_arn: pulumi.Output[str]

    def __init__(
        self,
        name: str,
        spec: nodeiam.config.NodeRoleSpec,
        *args,
        **kwargs,
    ):
        super().__init__(f"nodeiam:{self.__class__.__name__}", name, *args, **kwargs)

        self.name = name
        self.spec = spec
        self.role = None
        self.role_policies = {}
        self.managed_policy_arns = []
        self.instance_profile = None

        if spec.iam.instance_role_arn != "":
            pulumi.log.info(f"Using existing instance role {spec.iam.instance_role_arn} for node group {name}")
            self.instance_role_arn = pulumi.Output.from_input(nodeiam.arn.normalize_arn(spec.iam.instance_role_arn))
            self.register_outputs({"instance_role_arn": self.instance_role_arn})
            return

        template = PulumiNodeRoleTemplate(name, opts=pulumi.ResourceOptions(parent=self))
        self.role = nodeiam.role.create_role(
            template,
            spec.cluster_iam,
            spec.iam,
            spec.managed,
            spec.enable_ssm,
            spec.partition,
        )
        self.role_policies = template.role_policies
        self.managed_policy_arns = list(
            template.definitions[nodeiam.NODE_INSTANCE_ROLE_RESOURCE_NAME].managed_policy_arns
        )
        self.instance_role_arn = self.role.arn

        self.register_outputs({"instance_role_arn": self.instance_role_arn})

    def with_instance_profile(self):
        """
        Create an instance profile for the role. Self-managed node groups launch instances with
        it; managed node groups get one from EKS.

        :return: The AWSNodeInstanceRole component resource
        """
        if self.role is None:
            msg = f"node group {self.name} uses an existing instance role, no instance profile is created for it"
            raise ValueError(msg)

        self.instance_profile = aws.iam.InstanceProfile(
            f"{self.name}-{nodeiam.NODE_INSTANCE_ROLE_RESOURCE_NAME}-profile",
            path="/",
            role=self.role.id,
            opts=pulumi.ResourceOptions(parent=self.role),
        )
        return self
