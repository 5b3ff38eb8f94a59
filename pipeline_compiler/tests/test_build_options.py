from __future__ import annotations

from pipeline_compiler.actions.base import BuildProjectType
from pipeline_compiler.actions.build_options import (
    DEFAULT_BUILD_IMAGE,
    build_defaults_for,
    merge_build_options,
    merge_build_specs,
)
from pipeline_compiler.schema.models import BuildEnvironment, BuildOptions, PolicyStatementSpec


def test_later_options_override_scalars_and_merge_variables() -> None:
    merged = merge_build_options(
        BuildOptions(
            build_environment=BuildEnvironment(compute_type="SMALL", environment_variables={"A": "1", "B": "1"}),
            vpc_id="vpc-base",
        ),
        None,
        BuildOptions(
            build_environment=BuildEnvironment(compute_type="LARGE", environment_variables={"B": "2"}),
        ),
    )

    assert merged.build_environment.compute_type == "LARGE"
    assert merged.build_environment.environment_variables == {"A": "1", "B": "2"}
    assert merged.vpc_id == "vpc-base"


def test_policy_statements_accumulate() -> None:
    first = PolicyStatementSpec(actions=["s3:GetObject"])
    second = PolicyStatementSpec(actions=["ecr:GetAuthorizationToken"])

    merged = merge_build_options(BuildOptions(role_policy=[first]), BuildOptions(role_policy=[second]))

    assert merged.role_policy == [first, second]


def test_build_specs_deep_merge_and_concatenate_lists() -> None:
    base = {"phases": {"install": {"commands": ["npm ci"]}}, "cache": {"paths": ["node_modules"]}}
    override = {"phases": {"install": {"commands": ["pip install -r requirements.txt"]}}}

    merged = merge_build_specs(base, override)

    assert merged["phases"]["install"]["commands"] == ["npm ci", "pip install -r requirements.txt"]
    assert merged["cache"] == {"paths": ["node_modules"]}
    assert base["phases"]["install"]["commands"] == ["npm ci"]


def test_type_specific_defaults_apply_on_top_of_global_ones(settings_factory) -> None:
    settings = settings_factory(
        build_defaults=BuildOptions(build_environment=BuildEnvironment(compute_type="MEDIUM")),
        asset_publishing_build_defaults=BuildOptions(vpc_id="vpc-assets"),
    )

    assets = build_defaults_for(BuildProjectType.assets, settings)
    synth = build_defaults_for(BuildProjectType.synth, settings)

    assert assets.vpc_id == "vpc-assets"
    assert assets.build_environment.compute_type == "MEDIUM"
    assert assets.build_environment.build_image == DEFAULT_BUILD_IMAGE
    assert synth.vpc_id is None
