"""
Producers for deploying a stack through a change set: one action creates
(or replaces) the change set, a later one executes it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pipeline_compiler.actions.base import ProduceContext, ProduceResult
from pipeline_compiler.plan.artifacts import PipelineArtifact
from pipeline_compiler.plan.pipeline import Action
from pipeline_compiler.schema.models import StackRef

CHANGE_SET_NAME = "PipelineChange"


def stack_variable_namespace(stack: StackRef) -> str:
    return stack.stack_artifact_id


def _target_environment(
    stack: StackRef, pipeline_region: Optional[str], pipeline_account: Optional[str]
) -> Dict[str, str]:
    # Region and account are only spelled out when they differ from the
    # pipeline's own environment.
    env: Dict[str, str] = {}
    if stack.region and stack.region != pipeline_region:
        env["region"] = stack.region
    if stack.account and stack.account != pipeline_account:
        env["account"] = stack.account
    return env


class CreateChangeSetProducer:
    def __init__(
        self,
        stack: StackRef,
        template_artifact: PipelineArtifact,
        *,
        pipeline_region: Optional[str] = None,
        pipeline_account: Optional[str] = None,
    ) -> None:
        self.stack = stack
        self.template_artifact = template_artifact
        self.pipeline_region = pipeline_region
        self.pipeline_account = pipeline_account

    def produce(self, context: ProduceContext) -> ProduceResult:
        stack = self.stack
        configuration: Dict[str, Any] = {
            "change_set_name": CHANGE_SET_NAME,
            "stack_name": stack.stack_name,
            "template_path": self.template_artifact.at_path(stack.template_path),
            "admin_permissions": True,
            "role_arn": stack.assume_role_arn,
            "deployment_role_arn": stack.execution_role_arn,
        }
        configuration.update(_target_environment(stack, self.pipeline_region, self.pipeline_account))
        if stack.tags:
            configuration["tags"] = dict(stack.tags)

        context.stage.add_action(
            Action(
                name=context.action_name,
                run_order=context.run_order,
                stage_name=context.stage.name,
                category="create-change-set",
                configuration=configuration,
                input_artifacts=[self.template_artifact.name],
                before_self_mutation=context.before_self_mutation,
            )
        )
        return ProduceResult(run_orders_consumed=1)


class ExecuteChangeSetProducer:
    def __init__(
        self,
        stack: StackRef,
        capture_outputs: bool,
        *,
        pipeline_region: Optional[str] = None,
        pipeline_account: Optional[str] = None,
    ) -> None:
        self.stack = stack
        self.capture_outputs = capture_outputs
        self.pipeline_region = pipeline_region
        self.pipeline_account = pipeline_account

    def produce(self, context: ProduceContext) -> ProduceResult:
        stack = self.stack
        configuration: Dict[str, Any] = {
            "change_set_name": CHANGE_SET_NAME,
            "stack_name": stack.stack_name,
            "role_arn": stack.assume_role_arn,
        }
        configuration.update(_target_environment(stack, self.pipeline_region, self.pipeline_account))
        if self.capture_outputs:
            configuration["variables_namespace"] = stack_variable_namespace(stack)

        context.stage.add_action(
            Action(
                name=context.action_name,
                run_order=context.run_order,
                stage_name=context.stage.name,
                category="execute-change-set",
                configuration=configuration,
                before_self_mutation=context.before_self_mutation,
            )
        )
        return ProduceResult(run_orders_consumed=1)
