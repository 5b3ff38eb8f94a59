"""
Effective build options per build project type.
"""

from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING, Any, Dict, Optional

from pipeline_compiler.actions.base import BuildProjectType
from pipeline_compiler.schema.models import BuildEnvironment, BuildOptions

if TYPE_CHECKING:
    from shared.config import PipelineSettings


DEFAULT_BUILD_IMAGE = "aws/codebuild/standard:5.0"
DEFAULT_COMPUTE_TYPE = "BUILD_GENERAL1_SMALL"


def default_build_options() -> BuildOptions:
    return BuildOptions(
        build_environment=BuildEnvironment(
            build_image=DEFAULT_BUILD_IMAGE,
            compute_type=DEFAULT_COMPUTE_TYPE,
        )
    )


def merge_build_options(*options: Optional[BuildOptions]) -> BuildOptions:
    """
    Merge partial build options left to right. Later scalar values win when
    set, environment variables and build specs are merged, policy
    statements and network settings accumulate.
    """

    merged = BuildOptions()
    for current in options:
        if current is None:
            continue
        merged = BuildOptions(
            build_environment=merge_build_environments(merged.build_environment, current.build_environment),
            role_policy=[*merged.role_policy, *current.role_policy],
            partial_build_spec=merge_build_specs(merged.partial_build_spec, current.partial_build_spec),
            vpc_id=current.vpc_id or merged.vpc_id,
            subnet_ids=current.subnet_ids or merged.subnet_ids,
            security_group_ids=current.security_group_ids or merged.security_group_ids,
        )
    return merged


def merge_build_environments(
    base: Optional[BuildEnvironment], override: Optional[BuildEnvironment]
) -> Optional[BuildEnvironment]:
    if base is None:
        return override
    if override is None:
        return base
    return BuildEnvironment(
        build_image=override.build_image or base.build_image,
        compute_type=override.compute_type or base.compute_type,
        privileged=override.privileged if override.privileged is not None else base.privileged,
        environment_variables={**base.environment_variables, **override.environment_variables},
    )


def merge_build_specs(
    base: Optional[Dict[str, Any]], override: Optional[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    if base is None:
        return deepcopy(override)
    if override is None:
        return deepcopy(base)
    return _deep_merge(deepcopy(base), override)


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            target[key] = _deep_merge(existing, value)
        elif isinstance(existing, list) and isinstance(value, list):
            target[key] = [*existing, *deepcopy(value)]
        else:
            target[key] = deepcopy(value)
    return target


def build_defaults_for(project_type: BuildProjectType, settings: PipelineSettings) -> BuildOptions:
    type_based = {
        BuildProjectType.synth: None,
        BuildProjectType.assets: settings.asset_publishing_build_defaults,
        BuildProjectType.self_mutate: settings.self_mutation_build_defaults,
        BuildProjectType.step: None,
    }
    return merge_build_options(
        default_build_options(),
        settings.build_defaults,
        type_based[project_type],
    )
