"""
Producer interface shared by every action type.

A producer receives a `ProduceContext` describing where its action goes
(stage, name, run order) and which shared compile-time services it may use,
adds its action(s) to the stage and reports how many run orders it consumed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from pipeline_compiler.credentials import DockerCredentialUsage
from pipeline_compiler.plan.artifacts import ArtifactMap, PipelineArtifact
from pipeline_compiler.plan.pipeline import BuildProject, DeliveryPipeline, Stage
from pipeline_compiler.schema.models import BuildOptions

if TYPE_CHECKING:
    from pipeline_compiler.compiler.resource_cache import ResourceCache


class BuildProjectType(str, Enum):
    synth = "synth"
    assets = "assets"
    self_mutate = "self-mutate"
    step = "step"


def docker_usage_for(project_type: BuildProjectType) -> Optional[DockerCredentialUsage]:
    if project_type == BuildProjectType.assets:
        return DockerCredentialUsage.asset_publishing
    if project_type == BuildProjectType.self_mutate:
        return DockerCredentialUsage.self_update
    if project_type == BuildProjectType.synth:
        return DockerCredentialUsage.synth
    return None


@dataclass(frozen=True)
class ProduceContext:
    pipeline: DeliveryPipeline
    stage: Stage
    action_name: str
    run_order: int
    artifacts: ArtifactMap
    resources: ResourceCache
    before_self_mutation: bool
    fallback_artifact: Optional[PipelineArtifact] = None
    # Only set when the node may turn into a build project
    build_defaults: Optional[BuildOptions] = None


@dataclass(frozen=True)
class ProduceResult:
    run_orders_consumed: int
    project: Optional[BuildProject] = None


@runtime_checkable
class ActionProducer(Protocol):
    def produce(self, context: ProduceContext) -> ProduceResult:
        ...


def is_action_producer(value: Any) -> bool:
    return callable(getattr(value, "produce", None))
