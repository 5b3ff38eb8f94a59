"""
Mutable state threaded through a single compile call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pipeline_compiler.compiler.resource_cache import ResourceCache
from pipeline_compiler.plan.artifacts import ArtifactMap, PipelineArtifact
from pipeline_compiler.plan.pipeline import BuildProject, DeliveryPipeline


class SelfMutationBarrier:
    """
    Tracks whether actions are still scheduled ahead of the pipeline's
    self-update. Starts armed when self-mutation is enabled and is cleared,
    for good, by the first self-update node.
    """

    def __init__(self, enabled: bool) -> None:
        self._before = bool(enabled)

    @property
    def before_self_mutation(self) -> bool:
        return self._before

    def clear(self) -> None:
        self._before = False

    def __bool__(self) -> bool:
        return self._before


@dataclass
class CompilerState:
    pipeline: DeliveryPipeline
    resources: ResourceCache
    barrier: SelfMutationBarrier
    artifacts: ArtifactMap = field(default_factory=ArtifactMap)
    fallback_artifact: Optional[PipelineArtifact] = None
    synth_project: Optional[BuildProject] = None

    def record_fallback(self, artifact: PipelineArtifact) -> bool:
        if self.fallback_artifact is not None:
            return False
        self.fallback_artifact = artifact
        return True
