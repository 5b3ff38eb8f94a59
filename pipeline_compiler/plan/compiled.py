"""
The finalized result of a compile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pipeline_compiler.errors import NotBuiltError
from pipeline_compiler.plan.artifacts import PipelineArtifact
from pipeline_compiler.plan.pipeline import Action, BuildProject, DeliveryPipeline, Stage


@dataclass(frozen=True)
class Plan:
    pipeline: DeliveryPipeline
    # Identity name -> rendered identity (policies resolved at finalization)
    identities: Mapping[str, Dict[str, Any]] = field(default_factory=dict)
    fallback_artifact: Optional[PipelineArtifact] = None
    synth: Optional[BuildProject] = None

    @property
    def stages(self) -> List[Stage]:
        return list(self.pipeline.stages)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.pipeline.stages]

    def stage(self, name: str) -> Stage:
        return self.pipeline.stage(name)

    def actions(self) -> List[Action]:
        return [action for stage in self.pipeline.stages for action in stage.actions]

    @property
    def synth_project(self) -> BuildProject:
        """
        The build project that performs the synth.
        """

        if self.synth is None:
            raise NotBuiltError("The pipeline does not contain a synth build step")
        return self.synth

    def as_dict(self) -> Dict[str, Any]:
        return {
            "pipeline": self.pipeline.as_dict(),
            "identities": dict(self.identities),
            "fallback_artifact": self.fallback_artifact.name if self.fallback_artifact else None,
            "synth_project": self.synth.name if self.synth else None,
        }
