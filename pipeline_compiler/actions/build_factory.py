"""
Turns script and build steps into build actions backed by a build project.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from pipeline_compiler.actions.base import ProduceContext, ProduceResult
from pipeline_compiler.actions.build_options import merge_build_options, merge_build_specs
from pipeline_compiler.errors import ValidationError
from pipeline_compiler.plan.identity import BUILD_SERVICE_PRINCIPAL, Identity, Policy, PolicyStatement
from pipeline_compiler.plan.pipeline import Action, BuildProject
from pipeline_compiler.schema.models import BuildEnvironment, BuildOptions, BuildStep, ScriptStep


class BuildFactory:
    """
    Producer for a single build action.

    `construct_id` names the build project; it is kept stable for
    backwards compatibility and therefore not always equal to the step id.
    """

    def __init__(
        self,
        construct_id: str,
        step: Union[ScriptStep, BuildStep],
        *,
        role: Optional[Identity] = None,
        additional_dependable: Optional[Policy] = None,
        pass_build_spec_via_cloud_assembly: bool = False,
    ) -> None:
        self.construct_id = construct_id
        self.step = step
        self.role = role
        self.additional_dependable = additional_dependable
        self.pass_build_spec_via_cloud_assembly = pass_build_spec_via_cloud_assembly

    @classmethod
    def from_script_step(cls, construct_id: str, step: ScriptStep, **kwargs: Any) -> BuildFactory:
        return cls(construct_id, step, **kwargs)

    @classmethod
    def from_build_step(cls, construct_id: str, step: BuildStep, **kwargs: Any) -> BuildFactory:
        return cls(construct_id, step, **kwargs)

    def produce(self, context: ProduceContext) -> ProduceResult:
        step = self.step
        options = merge_build_options(context.build_defaults, self._step_options())

        input_artifact = (
            context.artifacts.to_pipeline(step.input) if step.input is not None else context.fallback_artifact
        )
        if input_artifact is None:
            raise ValidationError(
                f"Build action '{context.action_name}' in stage '{context.stage.name}' requires an input "
                "(and the pipeline does not have a source to fall back to)"
            )
        input_artifacts = [input_artifact.name]
        secondary_sources: Dict[str, str] = {}
        for directory, file_set in step.additional_inputs.items():
            artifact = context.artifacts.to_pipeline(file_set)
            input_artifacts.append(artifact.name)
            secondary_sources[artifact.name] = directory

        output_artifacts: List[str] = []
        if step.primary_output is not None:
            output_artifacts.append(context.artifacts.to_pipeline(step.primary_output).name)

        role = self.role or self._new_role(options.role_policy)
        context.pipeline.artifact_store.grant_read(role)

        project = BuildProject(
            name=self.construct_id,
            role=role,
            environment=options.build_environment or BuildEnvironment(),
            build_spec=self._build_spec(options, secondary_sources, bool(output_artifacts)),
            project_name=getattr(step, "project_name", None),
            timeout_minutes=getattr(step, "timeout_minutes", None),
            vpc_id=options.vpc_id,
            subnet_ids=list(options.subnet_ids),
            security_group_ids=list(options.security_group_ids),
            depends_on=[self.additional_dependable] if self.additional_dependable else [],
        )

        configuration: Dict[str, Any] = {"project": project.name}
        if self.pass_build_spec_via_cloud_assembly:
            configuration["build_spec_location"] = f"buildspec-{self.construct_id}.yaml"

        context.stage.add_action(
            Action(
                name=context.action_name,
                run_order=context.run_order,
                stage_name=context.stage.name,
                category="build",
                configuration=configuration,
                input_artifacts=input_artifacts,
                output_artifacts=output_artifacts,
                before_self_mutation=context.before_self_mutation,
                project=project,
            )
        )
        return ProduceResult(run_orders_consumed=1, project=project)

    def _step_options(self) -> BuildOptions:
        step = self.step
        if not isinstance(step, BuildStep):
            return BuildOptions()
        return BuildOptions(
            build_environment=step.build_environment,
            role_policy=list(step.role_policy_statements),
            partial_build_spec=step.partial_build_spec,
        )

    def _new_role(self, statements: Sequence) -> Identity:
        role = Identity(f"{self.construct_id}Role", assumed_by=[BUILD_SERVICE_PRINCIPAL])
        for spec in statements:
            role.add_to_policy(PolicyStatement.from_spec(spec))
        return role

    def _build_spec(
        self,
        options: BuildOptions,
        secondary_sources: Dict[str, str],
        has_output: bool,
    ) -> Dict[str, Any]:
        step = self.step
        phases: Dict[str, Any] = {}
        if step.install_commands:
            phases["install"] = {"commands": list(step.install_commands)}
        if step.commands:
            phases["build"] = {"commands": list(step.commands)}

        spec: Dict[str, Any] = {"version": "0.2", "phases": phases}
        if step.env:
            spec["env"] = {"variables": dict(step.env)}
        if secondary_sources:
            spec["secondary_sources"] = dict(secondary_sources)
        if has_output:
            spec["artifacts"] = {"files": ["**/*"]}
        return merge_build_specs(options.partial_build_spec, spec) or spec
