"""
Output-side model of the delivery pipeline: stages, the actions inside them,
the build projects some actions run on and the artifact store they share.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pipeline_compiler.errors import StructuralError
from pipeline_compiler.plan.identity import Identity, Policy, PolicyStatement
from pipeline_compiler.schema.models import BuildEnvironment

GENERATED_BUCKET_PLACEHOLDER = "${ArtifactsBucket}"


@dataclass
class BuildProject:
    """
    Compute project backing a build action. Its role is the compute identity
    of the action.
    """

    name: str
    role: Identity
    environment: BuildEnvironment
    build_spec: Dict[str, Any]
    project_name: Optional[str] = None
    timeout_minutes: Optional[int] = None
    vpc_id: Optional[str] = None
    subnet_ids: List[str] = field(default_factory=list)
    security_group_ids: List[str] = field(default_factory=list)
    depends_on: List[Policy] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "project_name": self.project_name,
            "role": self.role.name,
            "environment": self.environment.model_dump(exclude_none=True),
            "build_spec": self.build_spec,
            "timeout_minutes": self.timeout_minutes,
            "vpc_id": self.vpc_id,
            "subnet_ids": list(self.subnet_ids),
            "security_group_ids": list(self.security_group_ids),
            "depends_on": [policy.name for policy in self.depends_on],
        }


@dataclass
class Action:
    name: str
    run_order: int
    stage_name: str
    category: str
    configuration: Dict[str, Any] = field(default_factory=dict)
    input_artifacts: List[str] = field(default_factory=list)
    output_artifacts: List[str] = field(default_factory=list)
    before_self_mutation: bool = False
    project: Optional[BuildProject] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "run_order": self.run_order,
            "category": self.category,
            "configuration": self.configuration,
            "input_artifacts": list(self.input_artifacts),
            "output_artifacts": list(self.output_artifacts),
            "before_self_mutation": self.before_self_mutation,
            "project": self.project.as_dict() if self.project else None,
        }


class Stage:
    """
    Ordered actions of one pipeline stage. Capacity is counted in leaf nodes
    when the stage groups are chunked, so a stage may end up holding more
    actions than leaves.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.actions: List[Action] = []

    def add_action(self, action: Action) -> Action:
        if action.run_order < 1:
            raise StructuralError(
                f"Action '{action.name}' in stage '{self.name}' has invalid run order {action.run_order}"
            )
        if any(existing.name == action.name for existing in self.actions):
            raise StructuralError(f"Duplicate action name '{action.name}' in stage '{self.name}'")
        self.actions.append(action)
        return action

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "actions": [action.as_dict() for action in self.actions],
        }

    def __repr__(self) -> str:
        return f"Stage({self.name!r}, actions={len(self.actions)})"


@dataclass
class ArtifactStore:
    # None lets the deployment generate the bucket
    bucket_name: Optional[str] = None

    @property
    def bucket_arn(self) -> str:
        return f"arn:aws:s3:::{self.bucket_name or GENERATED_BUCKET_PLACEHOLDER}"

    def grant_read(self, identity: Identity) -> bool:
        return identity.add_to_policy(
            PolicyStatement(
                actions=["s3:GetObject*", "s3:GetBucket*", "s3:List*"],
                resources=[self.bucket_arn, f"{self.bucket_arn}/*"],
            )
        )


class DeliveryPipeline:
    """
    Handle on the delivery-service pipeline being assembled.
    """

    def __init__(
        self,
        *,
        name: Optional[str],
        artifact_store: ArtifactStore,
        cross_account_keys: bool = False,
        restart_execution_on_update: bool = True,
    ) -> None:
        self.name = name
        self.artifact_store = artifact_store
        self.cross_account_keys = cross_account_keys
        self.restart_execution_on_update = restart_execution_on_update
        self.stages: List[Stage] = []

    def add_stage(self, stage_name: str) -> Stage:
        if any(stage.name == stage_name for stage in self.stages):
            raise StructuralError(f"Duplicate stage name '{stage_name}'")
        stage = Stage(stage_name)
        self.stages.append(stage)
        return stage

    def stage(self, stage_name: str) -> Stage:
        for stage in self.stages:
            if stage.name == stage_name:
                return stage
        raise KeyError(stage_name)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "cross_account_keys": self.cross_account_keys,
            "restart_execution_on_update": self.restart_execution_on_update,
            "artifact_bucket": self.artifact_store.bucket_name,
            "stages": [stage.as_dict() for stage in self.stages],
        }
