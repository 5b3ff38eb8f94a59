from __future__ import annotations

import pytest

from pipeline_compiler.compiler.resource_cache import ResourceCache
from pipeline_compiler.credentials import DockerCredentialUsage, RegistryCredential
from pipeline_compiler.errors import PipelineCompilerError
from pipeline_compiler.plan.identity import PolicyStatement
from pipeline_compiler.plan.pipeline import ArtifactStore, DeliveryPipeline
from pipeline_compiler.schema.models import AssetType, BuildOptions


def _pipeline() -> DeliveryPipeline:
    return DeliveryPipeline(name="Demo", artifact_store=ArtifactStore("artifacts"))


def _assume_role_resources(document: dict) -> list[str]:
    for statement in document["Statement"]:
        if statement["Action"] == ["sts:AssumeRole"]:
            return statement["Resource"]
    raise AssertionError("no sts:AssumeRole statement")


def test_same_category_reuses_identity() -> None:
    cache = ResourceCache(_pipeline())

    first = cache.obtain(AssetType.file)
    second = cache.obtain("file")

    assert first is second
    assert first.identity.name == "FileRole"


def test_categories_get_distinct_identities() -> None:
    cache = ResourceCache(_pipeline())

    files = cache.obtain(AssetType.file)
    images = cache.obtain(AssetType.docker_image)

    assert files.identity is not images.identity
    assert images.identity.name == "DockerRole"
    assert set(cache.identities) == {"file", "docker-image"}


def test_assumable_roles_registered_after_creation_are_included() -> None:
    cache = ResourceCache(_pipeline())
    cache.register_assumable(AssetType.docker_image, ["roleA"])
    shared = cache.obtain(AssetType.docker_image)

    cache.register_assumable(AssetType.docker_image, ["roleB", None, "roleA"])

    assert cache.assumable(AssetType.docker_image) == frozenset({"roleA", "roleB"})
    assert _assume_role_resources(shared.identity.policy_document()) == ["roleA", "roleB"]


def test_shared_identity_is_frozen_after_creation() -> None:
    cache = ResourceCache(_pipeline())
    identity = cache.obtain(AssetType.file).identity
    before = len(identity.statements)

    assert identity.add_to_policy(PolicyStatement(actions=["s3:PutObject"])) is False
    assert len(identity.statements) == before


def test_docker_identity_receives_registry_credentials() -> None:
    credential = RegistryCredential("registry.example.com")
    cache = ResourceCache(_pipeline(), credentials=[credential])

    cache.obtain(AssetType.file)
    cache.obtain(AssetType.docker_image)

    assert credential.grants == [("DockerRole", DockerCredentialUsage.asset_publishing)]


def test_vpc_options_attach_dependable_policy() -> None:
    cache = ResourceCache(
        _pipeline(),
        asset_build_options=BuildOptions(vpc_id="vpc-1", subnet_ids=["subnet-1"]),
        account="111111111111",
        region="eu-west-1",
    )

    shared = cache.obtain(AssetType.file)

    assert shared.dependable is not None
    assert shared.dependable.name == "VpcPolicy"
    assert shared.identity.attached_policies == [shared.dependable]
    condition = shared.dependable.statements[0].conditions["StringEquals"]
    assert condition["ec2:Subnet"] == ["arn:${AWS::Partition}:ec2:eu-west-1:111111111111:subnet/subnet-1"]


def test_no_dependable_without_vpc() -> None:
    assert ResourceCache(_pipeline()).obtain(AssetType.file).dependable is None


def test_sealed_cache_rejects_new_work() -> None:
    cache = ResourceCache(_pipeline())
    existing = cache.obtain(AssetType.file)
    cache.seal()

    assert cache.obtain(AssetType.file) is existing
    with pytest.raises(PipelineCompilerError):
        cache.register_assumable(AssetType.file, ["roleA"])
    with pytest.raises(PipelineCompilerError):
        cache.obtain(AssetType.docker_image)


def test_assumable_views_are_read_only() -> None:
    cache = ResourceCache(_pipeline())
    cache.register_assumable(AssetType.file, ["roleA"])

    with pytest.raises(TypeError):
        cache.assumable_sets["file"] = frozenset()  # type: ignore[index]
