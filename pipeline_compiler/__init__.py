"""
Public entrypoint for compiling layered deployment graphs into delivery pipelines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Sequence

from pipeline_compiler.compiler.engine import PipelineCompiler, PostProcessHook
from pipeline_compiler.compiler.parse import parse_layered_graph
from pipeline_compiler.credentials import DockerCredentialUsage, RegistryCredential
from pipeline_compiler.errors import (
    AlreadyBuiltError,
    GraphParseError,
    NotBuiltError,
    PipelineCompilerError,
    StructuralError,
    UnsupportedStepError,
    ValidationError,
)
from pipeline_compiler.graph.builder import LayeredGraphBuilder
from pipeline_compiler.plan.compiled import Plan

if TYPE_CHECKING:
    from shared.config import PipelineSettings


def compile_pipeline(
    payload: Any,
    settings: Optional[PipelineSettings] = None,
    *,
    credentials: Sequence[RegistryCredential] = (),
    post_process_hooks: Sequence[PostProcessHook] = (),
) -> Plan:
    """
    Compile a layered graph (model, JSON string or mapping) into a pipeline plan.
    """

    graph = parse_layered_graph(payload)
    compiler = PipelineCompiler(
        settings,
        credentials=credentials,
        post_process_hooks=post_process_hooks,
    )
    return compiler.build(graph)


__all__ = [
    "AlreadyBuiltError",
    "DockerCredentialUsage",
    "GraphParseError",
    "LayeredGraphBuilder",
    "NotBuiltError",
    "PipelineCompiler",
    "PipelineCompilerError",
    "Plan",
    "PostProcessHook",
    "RegistryCredential",
    "StructuralError",
    "UnsupportedStepError",
    "ValidationError",
    "compile_pipeline",
    "parse_layered_graph",
]
