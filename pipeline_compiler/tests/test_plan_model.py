from __future__ import annotations

import pytest

from pipeline_compiler.credentials import DockerCredentialUsage, RegistryCredential
from pipeline_compiler.errors import StructuralError
from pipeline_compiler.plan.artifacts import MAX_ARTIFACT_NAME_LENGTH, ArtifactMap, sanitize_artifact_name
from pipeline_compiler.plan.identity import Identity, LazyList, PolicyStatement
from pipeline_compiler.plan.pipeline import Action, ArtifactStore, DeliveryPipeline, Stage
from pipeline_compiler.schema.models import FileSet


def _action(name: str, run_order: int = 1) -> Action:
    return Action(name=name, run_order=run_order, stage_name="Build", category="build")


def test_stage_does_not_limit_action_count() -> None:
    stage = Stage("Build")
    for n in range(60):
        stage.add_action(_action(f"a{n}"))

    assert len(stage.actions) == 60


def test_stage_rejects_duplicate_names_and_bad_run_orders() -> None:
    stage = Stage("Build")
    stage.add_action(_action("a"))

    with pytest.raises(StructuralError, match="Duplicate"):
        stage.add_action(_action("a", run_order=2))
    with pytest.raises(StructuralError, match="run order"):
        stage.add_action(_action("b", run_order=0))


def test_pipeline_rejects_duplicate_stage_names() -> None:
    pipeline = DeliveryPipeline(name="Demo", artifact_store=ArtifactStore("artifacts"))
    pipeline.add_stage("Build")

    with pytest.raises(StructuralError):
        pipeline.add_stage("Build")
    assert pipeline.stage("Build").name == "Build"


def test_lazy_resources_reflect_later_insertions() -> None:
    roles: list[str] = []
    identity = Identity("PublishRole")
    identity.add_to_policy(PolicyStatement(actions=["sts:AssumeRole"], resources=LazyList(lambda: sorted(roles))))

    roles.extend(["roleB", "roleA"])

    statement = identity.policy_document()["Statement"][0]
    assert statement["Resource"] == ["roleA", "roleB"]


def test_frozen_identity_drops_grants() -> None:
    identity = Identity("FileRole")
    identity.add_to_policy(PolicyStatement(actions=["s3:GetObject"]))
    frozen = identity.without_policy_updates()

    assert frozen.add_to_policy(PolicyStatement(actions=["s3:PutObject"])) is False
    assert not frozen.mutable
    assert frozen.name == "FileRole"
    assert [s.actions for s in identity.statements] == [["s3:GetObject"]]


def test_frozen_identity_exposes_the_identity_it_wraps() -> None:
    identity = Identity("DockerRole")
    frozen = identity.without_policy_updates()

    assert identity.inner is identity
    assert frozen.inner is identity
    frozen.inner.name = "DockerRole2"
    assert frozen.name == "DockerRole2"


def test_artifact_store_grant_targets_bucket() -> None:
    identity = Identity("BuildRole")

    assert ArtifactStore("artifacts").grant_read(identity) is True
    assert identity.statements[0].resources == ["arn:aws:s3:::artifacts", "arn:aws:s3:::artifacts/*"]


def test_artifact_map_reuses_artifact_per_file_set() -> None:
    artifacts = ArtifactMap()
    source = FileSet(id="Source", producer="GitHub")

    first = artifacts.to_pipeline(source)
    second = artifacts.to_pipeline(FileSet(id="Source", producer="GitHub"))

    assert first is second
    assert first.name == "GitHub_Source"
    assert first.at_path("template.json") == "GitHub_Source::template.json"


def test_artifact_names_stay_unique_after_sanitizing() -> None:
    artifacts = ArtifactMap()

    first = artifacts.to_pipeline(FileSet(id="a.b"))
    second = artifacts.to_pipeline(FileSet(id="a_b"))

    assert first.name == "a_b"
    assert second.name == "a_b2"


def test_long_artifact_names_are_truncated_with_fingerprint() -> None:
    name = sanitize_artifact_name("x" * 150)

    assert len(name) == MAX_ARTIFACT_NAME_LENGTH
    assert name != "x" * MAX_ARTIFACT_NAME_LENGTH
    assert sanitize_artifact_name("x" * 150) == name


def test_registry_credential_records_only_applied_grants() -> None:
    credential = RegistryCredential(
        "registry.example.com",
        secret_arn="arn:aws:secretsmanager:eu-west-1:111111111111:secret:registry",
        usages=[DockerCredentialUsage.asset_publishing],
    )
    mutable = Identity("DockerRole")
    frozen = Identity("SynthRole").without_policy_updates()

    assert credential.grant_read(mutable, DockerCredentialUsage.asset_publishing) is True
    assert credential.grant_read(mutable, DockerCredentialUsage.synth) is False
    assert credential.grant_read(frozen, DockerCredentialUsage.asset_publishing) is False
    assert credential.grants == [("DockerRole", DockerCredentialUsage.asset_publishing)]
    assert mutable.statements[0].resources == [credential.secret_arn]
