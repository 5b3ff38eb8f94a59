"""
Maps scheduled graph leaves onto action producers.

Only a handful of producers exist: build actions (script and build steps,
asset publishing and the self-update all run as builds), manual approvals,
change-set creation/execution, and steps that already know how to produce
their own action.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence

from pipeline_compiler.actions.approval import ManualApprovalProducer
from pipeline_compiler.actions.base import ActionProducer, BuildProjectType, is_action_producer
from pipeline_compiler.actions.build_factory import BuildFactory
from pipeline_compiler.actions.change_set import CreateChangeSetProducer, ExecuteChangeSetProducer
from pipeline_compiler.compiler.state import CompilerState
from pipeline_compiler.errors import StructuralError, UnsupportedStepError, ValidationError
from pipeline_compiler.schema.models import (
    Asset,
    AssetType,
    BuildEnvironment,
    BuildStep,
    ExecutePayload,
    FileSet,
    GraphNode,
    GroupPayload,
    ManualApprovalStep,
    PolicyStatementSpec,
    PreparePayload,
    PublishAssetsPayload,
    ScriptStep,
    SelfUpdatePayload,
    StackGroupPayload,
    StepPayload,
)

if TYPE_CHECKING:
    from shared.config import PipelineSettings

# Construct ids kept stable for backwards compatibility of deployed pipelines
SYNTH_PROJECT_ID = "CdkBuildProject"
SELF_MUTATION_PROJECT_ID = "SelfMutation"


def project_type_for(node: GraphNode) -> Optional[BuildProjectType]:
    data = node.data
    if isinstance(data, StepPayload):
        return BuildProjectType.synth if data.is_build_step else BuildProjectType.step
    if isinstance(data, PublishAssetsPayload):
        return BuildProjectType.assets
    if isinstance(data, SelfUpdatePayload):
        return BuildProjectType.self_mutate
    return None


def maybe_suffix(value: Optional[str], suffix: str) -> Optional[str]:
    return f"{value}{suffix}" if value else None


class ActionDispatcher:
    def __init__(
        self,
        settings: PipelineSettings,
        state: CompilerState,
        *,
        cloud_assembly: Optional[FileSet] = None,
    ) -> None:
        self.settings = settings
        self.state = state
        self.cloud_assembly = cloud_assembly

    def producer_for(self, node: GraphNode) -> ActionProducer:
        data = node.data
        if data is None or isinstance(data, (GroupPayload, StackGroupPayload)):
            kind = data.type if data is not None else "container"
            raise StructuralError(
                f"Unexpected container at scheduling time: node '{node.key}' ({kind})"
            )
        if isinstance(data, SelfUpdatePayload):
            return self._self_mutate_producer()
        if isinstance(data, PublishAssetsPayload):
            return self._publish_assets_producer(node, data.assets)
        if isinstance(data, PreparePayload):
            return CreateChangeSetProducer(
                data.stack,
                self.state.artifacts.to_pipeline(self._require_cloud_assembly(node)),
                pipeline_region=self.settings.pipeline_region,
                pipeline_account=self.settings.pipeline_account,
            )
        if isinstance(data, ExecutePayload):
            return ExecuteChangeSetProducer(
                data.stack,
                data.capture_outputs,
                pipeline_region=self.settings.pipeline_region,
                pipeline_account=self.settings.pipeline_account,
            )
        if isinstance(data, StepPayload):
            return self._producer_for_step(node, data)
        raise StructuralError(f"Unknown payload type '{type(data).__name__}' on node '{node.key}'")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _producer_for_step(self, node: GraphNode, data: StepPayload) -> ActionProducer:
        step = data.step

        # Steps that integrate with the delivery service themselves
        if is_action_producer(step):
            return step

        if isinstance(step, ScriptStep):
            construct_id = SYNTH_PROJECT_ID if project_type_for(node) == BuildProjectType.synth else step.id
            if isinstance(step, BuildStep):
                return BuildFactory.from_build_step(construct_id, step)
            return BuildFactory.from_script_step(construct_id, step)

        if isinstance(step, ManualApprovalStep):
            return ManualApprovalProducer(step)

        raise UnsupportedStepError(
            f"Deployment step '{_describe_step(step)}' on node '{node.key}' is not supported "
            "for this delivery service"
        )

    # ------------------------------------------------------------------
    # Self-mutation
    # ------------------------------------------------------------------
    def _self_mutate_producer(self) -> ActionProducer:
        settings = self.settings
        install_suffix = f"@{settings.cli_version}" if settings.cli_version else ""
        account = settings.pipeline_account or "${AWS::AccountId}"

        step = BuildStep(
            id="SelfMutate",
            project_name=maybe_suffix(settings.pipeline_name, "-selfupdate"),
            input=self.cloud_assembly,
            install_commands=[f"npm install -g aws-cdk{install_suffix}"],
            commands=[
                f"cdk -a {settings.embedded_assembly_path} deploy {settings.pipeline_stack_identifier} "
                "--require-approval=never --verbose"
            ],
            build_environment=BuildEnvironment(
                privileged=True if settings.pipeline_uses_docker_assets else None,
            ),
            role_policy_statements=[
                PolicyStatementSpec(
                    actions=["sts:AssumeRole"],
                    resources=[f"arn:*:iam::{account}:role/*"],
                    conditions={
                        "ForAnyValue:StringEquals": {
                            "iam:ResourceTag/aws-cdk:bootstrap-role": [
                                "image-publishing",
                                "file-publishing",
                                "deploy",
                            ],
                        },
                    },
                ),
                # Needed to check the status of the bootstrap stack on deploy
                PolicyStatementSpec(actions=["cloudformation:DescribeStacks"], resources=["*"]),
                PolicyStatementSpec(actions=["s3:ListBucket"], resources=["*"]),
            ],
        )
        return BuildFactory.from_build_step(SELF_MUTATION_PROJECT_ID, step)

    # ------------------------------------------------------------------
    # Asset publishing
    # ------------------------------------------------------------------
    def _publish_assets_producer(self, node: GraphNode, assets: Sequence[Asset]) -> ActionProducer:
        if not assets:
            raise ValidationError(f"Publishing node '{node.key}' does not contain any assets")

        asset_type = assets[0].asset_type
        if any(asset.asset_type != asset_type for asset in assets):
            kinds = sorted({asset.asset_type.value for asset in assets})
            raise ValidationError(
                f"All assets in a single publishing step must be of the same type "
                f"(node '{node.key}' mixes {', '.join(kinds)})"
            )

        resources = self.state.resources
        resources.register_assumable(asset_type, (asset.asset_publishing_role_arn for asset in assets))
        shared = resources.obtain(asset_type)

        install_suffix = f"@{self.settings.cli_version}" if self.settings.cli_version else ""
        commands: List[str] = [
            f'cdk-assets --path "{asset.asset_manifest_path}" --verbose publish "{asset.asset_selector}"'
            for asset in assets
        ]
        step = BuildStep(
            id=node.id,
            commands=commands,
            install_commands=[f"npm install -g cdk-assets{install_suffix}"],
            input=self.cloud_assembly,
            build_environment=BuildEnvironment(
                privileged=any(asset.asset_type == AssetType.docker_image for asset in assets),
            ),
        )
        return BuildFactory.from_build_step(
            node.id,
            step,
            role=shared.identity,
            additional_dependable=shared.dependable,
            # A single publisher per type can outgrow an inline build spec
            pass_build_spec_via_cloud_assembly=self.settings.single_publisher_per_asset_type,
        )

    def _require_cloud_assembly(self, node: GraphNode) -> FileSet:
        if self.cloud_assembly is None:
            raise ValidationError(
                f"Node '{node.key}' deploys a stack but the graph declares no cloud assembly file set"
            )
        return self.cloud_assembly


def _describe_step(step: object) -> str:
    step_id = getattr(step, "id", None)
    if step_id is None and isinstance(step, dict):
        step_id = step.get("id")
    return str(step_id) if step_id is not None else type(step).__name__
