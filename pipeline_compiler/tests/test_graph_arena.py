from __future__ import annotations

import pytest

from pipeline_compiler.compiler.naming import action_name, sanitize_name
from pipeline_compiler.errors import StructuralError
from pipeline_compiler.graph.arena import GraphArena
from pipeline_compiler.graph.builder import LayeredGraphBuilder
from pipeline_compiler.schema.models import GraphNode, LayeredGraph, ManualApprovalStep, StepPayload


def _approval(step_id: str) -> StepPayload:
    return StepPayload(step=ManualApprovalStep(id=step_id))


@pytest.fixture
def arena() -> GraphArena:
    builder = LayeredGraphBuilder("Pipeline")
    deploy = builder.add_container("Deploy")
    beta = builder.add_container("Beta", parent=deploy)
    prod = builder.add_container("Prod", parent=deploy)
    builder.add_leaf("Approve", _approval("Approve"), parent=beta)
    builder.add_leaf("Approve", _approval("Approve"), parent=prod)
    builder.add_leaf("Check Health!", _approval("check"), parent=prod)
    return GraphArena(builder.build())


def test_root_path_runs_from_root_to_node(arena: GraphArena) -> None:
    assert arena.root_path("Pipeline/Deploy/Beta/Approve") == [
        "Pipeline",
        "Pipeline/Deploy",
        "Pipeline/Deploy/Beta",
        "Pipeline/Deploy/Beta/Approve",
    ]


def test_common_ancestor_of_siblings_is_their_parent(arena: GraphArena) -> None:
    keys = ["Pipeline/Deploy/Prod/Approve", "Pipeline/Deploy/Prod/Check Health!"]

    assert arena.common_ancestor(keys) == "Pipeline/Deploy/Prod"


def test_common_ancestor_across_groups(arena: GraphArena) -> None:
    keys = ["Pipeline/Deploy/Beta/Approve", "Pipeline/Deploy/Prod/Approve"]

    assert arena.common_ancestor(keys) == "Pipeline/Deploy"


def test_common_ancestor_of_single_node_is_parent(arena: GraphArena) -> None:
    assert arena.common_ancestor(["Pipeline/Deploy/Beta/Approve"]) == "Pipeline/Deploy/Beta"


def test_common_ancestor_errors(arena: GraphArena) -> None:
    with pytest.raises(StructuralError):
        arena.common_ancestor([])
    with pytest.raises(StructuralError):
        arena.common_ancestor(["Pipeline"])


def test_action_names_join_ids_below_shared_parent(arena: GraphArena) -> None:
    assert action_name(arena, "Pipeline/Deploy/Beta/Approve", "Pipeline/Deploy") == "Beta.Approve"
    assert action_name(arena, "Pipeline/Deploy/Prod/Check Health!", "Pipeline/Deploy/Prod") == "Check_Health_"


def test_sanitize_name_keeps_allowed_characters() -> None:
    assert sanitize_name("my-app.v2@eu_west") == "my-app.v2@eu_west"
    assert sanitize_name("Deploy to prod/now") == "Deploy_to_prod_now"


def test_unknown_parent_is_rejected() -> None:
    graph = LayeredGraph(
        root="Pipeline",
        nodes={
            "Pipeline": GraphNode(key="Pipeline", id="Pipeline"),
            "Pipeline/Orphan": GraphNode(key="Pipeline/Orphan", id="Orphan", parent="Missing"),
        },
    )

    with pytest.raises(StructuralError, match="unknown parent"):
        GraphArena(graph)


def test_missing_root_is_rejected() -> None:
    with pytest.raises(StructuralError):
        GraphArena(LayeredGraph(root="Pipeline"))


def test_builder_rejects_duplicate_ids_under_same_parent() -> None:
    builder = LayeredGraphBuilder()
    builder.add_container("Build")

    with pytest.raises(StructuralError, match="Duplicate"):
        builder.add_container("Build")


def test_builder_links_children_to_parents() -> None:
    builder = LayeredGraphBuilder()
    stage = builder.add_container("Build")
    leaf = builder.add_leaf("Approve", _approval("Approve"), parent=stage)

    graph = builder.layer(stage, [[leaf]]).build()

    assert graph.nodes["Pipeline"].children == ["Pipeline/Build"]
    assert graph.nodes[stage].children == [leaf]
    assert graph.nodes[leaf].parent == stage
    assert graph.containers[0].sorted_leaves() == [[leaf]]
