"""
Pydantic models describing the layered pipeline graph handed to the compiler.

The layering step (turning a dependency graph into ordered tranches) happens
upstream; these models only describe its result: an arena of graph nodes
addressed by key, and for every top-level container the ordered tranches of
schedulable leaves.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


JSONPrimitive = Union[str, int, float, bool, None]
JSONValue = Union[JSONPrimitive, Dict[str, Any], List[Any]]


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
    )


# -----------------------------
# File sets, assets and stacks
# -----------------------------
class FileSet(StrictModel):
    """
    A named set of files flowing between steps (source checkout, cloud
    assembly, build output, ...). Mapped onto pipeline artifacts at compile
    time.
    """

    id: str = Field(min_length=1)
    producer: Optional[str] = None


class AssetType(str, Enum):
    file = "file"
    docker_image = "docker-image"


class Asset(StrictModel):
    asset_id: str = Field(min_length=1)
    asset_type: AssetType
    asset_selector: str = Field(min_length=1)
    # Relative to the cloud assembly root
    asset_manifest_path: str = Field(min_length=1)
    asset_publishing_role_arn: Optional[str] = None


class StackRef(StrictModel):
    stack_name: str = Field(min_length=1)
    stack_artifact_id: str = Field(min_length=1)
    template_path: str = Field(min_length=1)
    region: Optional[str] = None
    account: Optional[str] = None
    assume_role_arn: Optional[str] = None
    execution_role_arn: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)


# -----------------------------
# Build options
# -----------------------------
class PolicyStatementSpec(StrictModel):
    actions: List[str] = Field(min_length=1)
    resources: List[str] = Field(default_factory=lambda: ["*"])
    conditions: Dict[str, Dict[str, JSONValue]] = Field(default_factory=dict)


class BuildEnvironment(StrictModel):
    build_image: Optional[str] = None
    compute_type: Optional[str] = None
    privileged: Optional[bool] = None
    environment_variables: Dict[str, str] = Field(default_factory=dict)


class BuildOptions(StrictModel):
    """
    Partial customization of a build project. Several of these are merged to
    get the effective options of a project (see `merge_build_options`).
    """

    build_environment: Optional[BuildEnvironment] = None
    role_policy: List[PolicyStatementSpec] = Field(default_factory=list)
    partial_build_spec: Optional[Dict[str, Any]] = None
    vpc_id: Optional[str] = None
    subnet_ids: List[str] = Field(default_factory=list)
    security_group_ids: List[str] = Field(default_factory=list)


# -----------------------------
# Steps
# -----------------------------
class ScriptStep(StrictModel):
    kind: Literal["script"] = "script"
    id: str = Field(min_length=1)
    commands: List[str] = Field(default_factory=list)
    install_commands: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    input: Optional[FileSet] = None
    additional_inputs: Dict[str, FileSet] = Field(default_factory=dict)
    primary_output: Optional[FileSet] = None


class BuildStep(ScriptStep):
    kind: Literal["build"] = "build"
    project_name: Optional[str] = None
    build_environment: Optional[BuildEnvironment] = None
    role_policy_statements: List[PolicyStatementSpec] = Field(default_factory=list)
    partial_build_spec: Optional[Dict[str, Any]] = None
    timeout_minutes: Optional[int] = Field(default=None, ge=5, le=480)


class ManualApprovalStep(StrictModel):
    kind: Literal["manual-approval"] = "manual-approval"
    id: str = Field(min_length=1)
    comment: Optional[str] = None


StepSpec = Annotated[
    Union[ScriptStep, BuildStep, ManualApprovalStep],
    Field(discriminator="kind"),
]

_STEP_ADAPTER: TypeAdapter = TypeAdapter(StepSpec)
_STEP_KINDS = {"script", "build", "manual-approval"}


# -----------------------------
# Node payloads
# -----------------------------
class GroupPayload(StrictModel):
    type: Literal["group"] = "group"


class StackGroupPayload(StrictModel):
    type: Literal["stack-group"] = "stack-group"


class SelfUpdatePayload(StrictModel):
    type: Literal["self-update"] = "self-update"


class PublishAssetsPayload(StrictModel):
    type: Literal["publish-assets"] = "publish-assets"
    assets: List[Asset] = Field(default_factory=list)


class PreparePayload(StrictModel):
    type: Literal["prepare"] = "prepare"
    stack: StackRef


class ExecutePayload(StrictModel):
    type: Literal["execute"] = "execute"
    stack: StackRef
    capture_outputs: bool = False


class StepPayload(StrictModel):
    type: Literal["step"] = "step"
    # Either one of the built-in step models, or any object implementing
    # `produce(context)` (see `pipeline_compiler.actions.base.ActionProducer`).
    step: Any
    is_build_step: bool = False

    @field_validator("step", mode="before")
    @classmethod
    def _coerce_builtin_step(cls, value: Any) -> Any:
        if isinstance(value, dict) and value.get("kind") in _STEP_KINDS:
            return _STEP_ADAPTER.validate_python(value)
        return value


NodePayload = Annotated[
    Union[
        GroupPayload,
        StackGroupPayload,
        SelfUpdatePayload,
        PublishAssetsPayload,
        PreparePayload,
        ExecutePayload,
        StepPayload,
    ],
    Field(discriminator="type"),
]


# -----------------------------
# Graph
# -----------------------------
class GraphNode(StrictModel):
    """
    One node of the arena. `parent` and `children` hold keys into
    `LayeredGraph.nodes`, never object references.
    """

    key: str = Field(min_length=1)
    id: str = Field(min_length=1)
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)
    data: Optional[NodePayload] = None

    @property
    def is_container(self) -> bool:
        return bool(self.children) or isinstance(self.data, (GroupPayload, StackGroupPayload))


class LayeredContainer(StrictModel):
    """
    A top-level container together with its leaves, already layered into
    ordered tranches by the upstream layering step.
    """

    node: str = Field(min_length=1)
    tranches: List[List[str]] = Field(default_factory=list)

    def sorted_leaves(self) -> List[List[str]]:
        return [list(tranche) for tranche in self.tranches]


class LayeredGraph(StrictModel):
    version: str = Field(default="1")
    root: str = Field(min_length=1)
    nodes: Dict[str, GraphNode] = Field(default_factory=dict)
    containers: List[LayeredContainer] = Field(default_factory=list)
    cloud_assembly_file_set: Optional[FileSet] = None
    meta: Dict[str, JSONValue] = Field(default_factory=dict)
