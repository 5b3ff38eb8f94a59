from __future__ import annotations

import json

from click.testing import CliRunner

from cli.main import cli
from pipeline_compiler import LayeredGraphBuilder
from pipeline_compiler.schema.models import FileSet, ManualApprovalStep, ScriptStep, StepPayload


def _write_graph(tmp_path) -> str:
    builder = LayeredGraphBuilder()
    stage = builder.add_container("Build")
    synth = builder.add_leaf(
        "Synth",
        StepPayload(step=ScriptStep(id="Synth", commands=["npx cdk synth"], input=FileSet(id="Source"))),
        parent=stage,
    )
    approve = builder.add_leaf("Approve", StepPayload(step=ManualApprovalStep(id="Approve")), parent=stage)
    graph = builder.layer(stage, [[synth], [approve]]).build()

    path = tmp_path / "graph.json"
    path.write_text(graph.model_dump_json(), encoding="utf-8")
    return str(path)


def test_compile_json_output(tmp_path) -> None:
    result = CliRunner().invoke(
        cli,
        ["compile", _write_graph(tmp_path), "--format", "json", "--no-self-mutation", "--pipeline-name", "FromCli"],
    )

    assert result.exit_code == 0, result.output
    plan = json.loads(result.output)
    assert plan["pipeline"]["name"] == "FromCli"
    actions = plan["pipeline"]["stages"][0]["actions"]
    assert [(a["name"], a["run_order"]) for a in actions] == [("Synth", 1), ("Approve", 2)]
    assert not any(a["before_self_mutation"] for a in actions)


def test_compile_table_output(tmp_path) -> None:
    result = CliRunner().invoke(cli, ["compile", _write_graph(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Build" in result.output
    assert "manual-approval" in result.output


def test_compile_reports_invalid_graph(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text('{"root": "Pipeline", "nodes": {"Pipeline": {"key": "Other", "id": "Pipeline"}}}')

    result = CliRunner().invoke(cli, ["compile", str(path)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_compile_reports_undecodable_file(tmp_path) -> None:
    path = tmp_path / "latin1.json"
    path.write_bytes(b'{"root": "\xff\xfe"}')

    result = CliRunner().invoke(cli, ["compile", str(path)])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_compile_requires_existing_file(tmp_path) -> None:
    result = CliRunner().invoke(cli, ["compile", str(tmp_path / "missing.json")])

    assert result.exit_code != 0


def test_config_json_output() -> None:
    result = CliRunner().invoke(cli, ["config", "--format", "json"])

    assert result.exit_code == 0, result.output
    assert "stage_capacity" in result.output
