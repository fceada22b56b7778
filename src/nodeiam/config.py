from __future__ import annotations

import copy
import dataclasses
import typing
import warnings

import deepmerge
import yaml

import nodeiam

if typing.TYPE_CHECKING:
    import pathlib

API_VERSION = "nodeiam/v1"
KIND = "NodeRole"


@dataclasses.dataclass(frozen=True)
class ClusterIAMConfig:
    with_oidc: bool | None = None

    def __post_init__(self) -> None:
        if self.with_oidc is not None and not isinstance(self.with_oidc, bool):
            msg = f"cluster iam 'with_oidc' must be true, false or unset, got {self.with_oidc!r}"
            raise ValueError(msg)


@dataclasses.dataclass(frozen=True)
class NodeGroupIAMAddonPolicies:
    """Tri-state addon flags. None means the flag was never set, which is treated as disabled."""

    image_builder: bool | None = None
    auto_scaler: bool | None = None
    external_dns: bool | None = None
    cert_manager: bool | None = None
    app_mesh: bool | None = None
    app_mesh_preview: bool | None = None
    ebs: bool | None = None
    fsx: bool | None = None
    efs: bool | None = None
    alb_ingress: bool | None = None
    xray: bool | None = None
    cloud_watch: bool | None = None

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if value is not None and not isinstance(value, bool):
                msg = f"addon policy {field.name!r} must be true, false or unset, got {value!r}"
                raise ValueError(msg)


@dataclasses.dataclass(frozen=True)
class NodeGroupIAMConfig:
    attach_policy_arns: tuple[str, ...] = ()
    instance_role_arn: str = ""
    instance_role_name: str = ""
    instance_role_permissions_boundary: str = ""
    with_addon_policies: NodeGroupIAMAddonPolicies = dataclasses.field(default_factory=NodeGroupIAMAddonPolicies)

    def __post_init__(self) -> None:
        if isinstance(self.attach_policy_arns, str):
            msg = f"attach_policy_arns must be a list of ARNs, got {self.attach_policy_arns!r}"
            raise ValueError(msg)
        # lists from yaml are stored as tuples to keep the config hashable and immutable
        # null in yaml is an empty list
        object.__setattr__(self, "attach_policy_arns", tuple(self.attach_policy_arns or ()))


@dataclasses.dataclass(frozen=True)
class NodeRoleSpec:
    cluster_iam: ClusterIAMConfig = dataclasses.field(default_factory=ClusterIAMConfig)
    iam: NodeGroupIAMConfig = dataclasses.field(default_factory=NodeGroupIAMConfig)
    managed: bool = False
    enable_ssm: bool = False
    partition: str = nodeiam.DEFAULT_PARTITION

    def __post_init__(self) -> None:
        for name in ("managed", "enable_ssm"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                msg = f"'{name}' must be true or false, got {value!r}"
                raise ValueError(msg)


DEFAULT_SPEC: dict[str, typing.Any] = {
    "cluster_iam": {},
    "iam": {
        "attach_policy_arns": [],
        "with_addon_policies": {},
    },
    "managed": False,
    "enable_ssm": False,
    "partition": nodeiam.DEFAULT_PARTITION,
}


def _snake_case_keys(d: dict[str, typing.Any]) -> dict[str, typing.Any]:
    return {key.replace("-", "_"): value for key, value in d.items()}


def load_node_role_spec_dict(cfg_dict: dict[str, typing.Any]) -> NodeRoleSpec:
    if cfg_dict.get("kind") != KIND or cfg_dict.get("apiVersion") != API_VERSION:
        msg = f"mismatched node role config kind={cfg_dict.get('kind')!r} apiVersion={cfg_dict.get('apiVersion')!r}"
        raise ValueError(msg)

    spec = copy.deepcopy(DEFAULT_SPEC)
    deepmerge.always_merger.merge(
        spec,
        _snake_case_keys(copy.deepcopy(cfg_dict.get("spec") or {})),
    )

    iam_spec = _snake_case_keys(spec.pop("iam") or {})
    addons_spec = _snake_case_keys(iam_spec.pop("with_addon_policies", None) or {})

    if iam_spec.get("instance_role_arn") and iam_spec.get("instance_role_name"):
        warnings.warn(
            "'instance_role_name' is ignored when 'instance_role_arn' is set",
            stacklevel=2,
        )

    iam_spec["with_addon_policies"] = NodeGroupIAMAddonPolicies(**addons_spec)
    spec["iam"] = NodeGroupIAMConfig(**iam_spec)
    spec["cluster_iam"] = ClusterIAMConfig(**_snake_case_keys(spec.pop("cluster_iam") or {}))

    return NodeRoleSpec(**spec)


def load_node_role_spec(path: pathlib.Path) -> NodeRoleSpec:
    return load_node_role_spec_dict(yaml.safe_load(path.read_text()))
