from __future__ import annotations

from pipeline_compiler.actions.base import ProduceContext, ProduceResult
from pipeline_compiler.plan.pipeline import Action
from pipeline_compiler.schema.models import ManualApprovalStep


class ManualApprovalProducer:
    """Pauses the stage until someone approves; runs on no compute identity."""

    def __init__(self, step: ManualApprovalStep) -> None:
        self.step = step

    def produce(self, context: ProduceContext) -> ProduceResult:
        configuration = {}
        if self.step.comment:
            configuration["additional_information"] = self.step.comment
        context.stage.add_action(
            Action(
                name=context.action_name,
                run_order=context.run_order,
                stage_name=context.stage.name,
                category="manual-approval",
                configuration=configuration,
                before_self_mutation=context.before_self_mutation,
            )
        )
        return ProduceResult(run_orders_consumed=1)
