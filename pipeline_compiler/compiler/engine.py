"""
Stage 2 — Walk the layered graph and emit stages and actions.

Each top-level container becomes one stage, or several when its leaves do
not fit into a single stage. Inside a stage, tranches are laid out in order
and every leaf of a tranche shares one run order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Optional, Sequence

from pipeline_compiler.actions.base import (
    ProduceContext,
    ProduceResult,
    docker_usage_for,
    BuildProjectType,
)
from pipeline_compiler.actions.build_options import build_defaults_for
from pipeline_compiler.compiler.chunking import chunk_tranches
from pipeline_compiler.compiler.dispatch import ActionDispatcher, project_type_for
from pipeline_compiler.compiler.naming import action_name
from pipeline_compiler.compiler.resource_cache import ResourceCache
from pipeline_compiler.compiler.run_order import RunOrderAllocator
from pipeline_compiler.compiler.state import CompilerState, SelfMutationBarrier
from pipeline_compiler.credentials import RegistryCredential
from pipeline_compiler.errors import AlreadyBuiltError, NotBuiltError, StructuralError
from pipeline_compiler.graph.arena import GraphArena
from pipeline_compiler.plan.compiled import Plan
from pipeline_compiler.plan.identity import Identity
from pipeline_compiler.plan.pipeline import ArtifactStore, BuildProject, DeliveryPipeline
from pipeline_compiler.schema.models import (
    FileSet,
    GraphNode,
    LayeredContainer,
    LayeredGraph,
    SelfUpdatePayload,
    StepPayload,
)
from shared.logger import get_logger

if TYPE_CHECKING:
    from shared.config import PipelineSettings

logger = get_logger("pipeline_compiler.engine")

PostProcessHook = Callable[[GraphNode, ProduceResult], None]


class PipelineCompiler:
    """
    Compiles one layered graph into a `Plan`. An instance builds at most
    once; a second `build` call fails even if the first one did not succeed.
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        *,
        credentials: Sequence[RegistryCredential] = (),
        post_process_hooks: Sequence[PostProcessHook] = (),
    ) -> None:
        if settings is None:
            from shared.config import config as default_settings

            settings = default_settings
        self.settings = settings
        self.credentials = list(credentials)
        self.post_process_hooks = list(post_process_hooks)
        self._started = False
        self._plan: Optional[Plan] = None

    # ------------------------------------------------------------------
    # Build outputs
    # ------------------------------------------------------------------
    @property
    def plan(self) -> Plan:
        if self._plan is None:
            raise NotBuiltError("Call build() before reading the plan")
        return self._plan

    @property
    def pipeline(self) -> DeliveryPipeline:
        if self._plan is None:
            raise NotBuiltError("Pipeline not created yet")
        return self._plan.pipeline

    @property
    def synth_project(self) -> BuildProject:
        if self._plan is None:
            raise NotBuiltError("Call build() before reading the synth project")
        return self._plan.synth_project

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------
    def build(self, graph: LayeredGraph) -> Plan:
        if self._started:
            raise AlreadyBuiltError("Pipeline already created")
        self._started = True

        settings = self.settings
        arena = GraphArena(graph)
        pipeline = DeliveryPipeline(
            name=settings.pipeline_name,
            artifact_store=ArtifactStore(settings.artifact_bucket_name),
            cross_account_keys=settings.cross_account_keys,
            restart_execution_on_update=True,
        )
        resources = ResourceCache(
            pipeline,
            credentials=self.credentials,
            asset_build_options=build_defaults_for(BuildProjectType.assets, settings),
            account=settings.pipeline_account,
            region=settings.pipeline_region,
        )
        state = CompilerState(
            pipeline=pipeline,
            resources=resources,
            barrier=SelfMutationBarrier(settings.self_mutation),
        )
        dispatcher = ActionDispatcher(settings, state, cloud_assembly=graph.cloud_assembly_file_set)

        for container in graph.containers:
            self._stages_from_container(container, arena, state, dispatcher)

        plan = self._finalize(state)
        self._plan = plan
        logger.info(
            "Compiled pipeline '%s': %d stage(s), %d action(s)",
            settings.pipeline_name or "<generated>",
            len(plan.stages),
            len(plan.actions()),
        )
        return plan

    def _stages_from_container(
        self,
        container: LayeredContainer,
        arena: GraphArena,
        state: CompilerState,
        dispatcher: ActionDispatcher,
    ) -> None:
        top = arena.get(container.node)
        if not top.is_container:
            raise StructuralError(f"Top-level children must be graphs, got '{top.key}'")

        chunks = chunk_tranches(self.settings.stage_capacity, container.sorted_leaves())
        overflow = len(chunks) > 1
        if overflow:
            logger.info(
                "Container '%s' exceeds the stage capacity of %d; splitting into %d stages",
                top.id,
                self.settings.stage_capacity,
                len(chunks),
            )

        for index, tranches in enumerate(chunks, start=1):
            stage_name = f"{top.id}.{index}" if overflow else top.id
            stage = state.pipeline.add_stage(stage_name)
            logger.info("Created stage '%s'", stage_name)

            leaves = [key for tranche in tranches for key in tranche]
            shared_parent = arena.common_ancestor(leaves) if leaves else top.key

            allocator = RunOrderAllocator()
            for tranche in tranches:
                for key in tranche:
                    node = arena.get(key)
                    producer = dispatcher.producer_for(node)
                    project_type = project_type_for(node)
                    name = action_name(arena, key, shared_parent)
                    logger.debug(
                        "Scheduling '%s' in stage '%s' at run order %d", name, stage_name, allocator.current
                    )

                    result = producer.produce(
                        ProduceContext(
                            pipeline=state.pipeline,
                            stage=stage,
                            action_name=name,
                            run_order=allocator.current,
                            artifacts=state.artifacts,
                            resources=state.resources,
                            before_self_mutation=state.barrier.before_self_mutation,
                            fallback_artifact=state.fallback_artifact,
                            build_defaults=(
                                build_defaults_for(project_type, self.settings) if project_type else None
                            ),
                        )
                    )

                    if isinstance(node.data, SelfUpdatePayload):
                        state.barrier.clear()

                    self._post_process(node, result, project_type, state)
                    allocator.record(result.run_orders_consumed)
                allocator.advance()

    def _post_process(
        self,
        node: GraphNode,
        result: ProduceResult,
        project_type: Optional[BuildProjectType],
        state: CompilerState,
    ) -> None:
        if result.project is not None:
            usage = docker_usage_for(project_type or BuildProjectType.step)
            if usage is not None:
                for credential in self.credentials:
                    credential.grant_read(result.project.role, usage)

            if project_type == BuildProjectType.synth:
                state.synth_project = result.project

        if isinstance(node.data, StepPayload) and state.fallback_artifact is None:
            primary_output = getattr(node.data.step, "primary_output", None)
            if isinstance(primary_output, FileSet):
                state.record_fallback(state.artifacts.to_pipeline(primary_output))

        for hook in self.post_process_hooks:
            hook(node, result)

    def _finalize(self, state: CompilerState) -> Plan:
        state.resources.seal()

        identities: Dict[str, Identity] = {}
        for identity in state.resources.identities.values():
            _add_identity(identities, identity)
        for stage in state.pipeline.stages:
            for action in stage.actions:
                if action.project is not None:
                    _add_identity(identities, action.project.role)

        # Deferred resource lists are resolved exactly once, here.
        rendered = {name: identity.as_dict() for name, identity in identities.items()}
        return Plan(
            pipeline=state.pipeline,
            identities=rendered,
            fallback_artifact=state.fallback_artifact,
            synth=state.synth_project,
        )


__all__ = ["PipelineCompiler", "PostProcessHook"]


def _add_identity(identities: Dict[str, Identity], identity: Identity) -> None:
    # Shared identities show up once per consuming action; distinct
    # identities that happen to share a name get a numeric suffix, written
    # back so project role references match the rendered key.
    name = identity.name
    i = 1
    while name in identities:
        existing = identities[name]
        if existing.inner is identity.inner:
            return
        i += 1
        name = f"{identity.name}{i}"
    if name != identity.name:
        identity.inner.name = name
    identities[name] = identity
