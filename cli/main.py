#!/usr/bin/env python3
"""
CLI for the pipeline compiler.

Usage:
    pipeline-compiler compile graph.json            # Print the compiled stages
    pipeline-compiler compile graph.json -f json    # Print the full plan as JSON
    pipeline-compiler config                        # Show the effective settings
"""
import json
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box
from rich.markup import escape

# Load .env before importing compiler modules
load_dotenv()

from pipeline_compiler import PipelineCompiler, PipelineCompilerError, parse_layered_graph  # noqa: E402
from shared.config import config as pipeline_config  # noqa: E402
from shared.logger import get_logger, set_log_level  # noqa: E402

console = Console()
logger = get_logger("cli.main")

# Global verbose flag
VERBOSE = False


@click.group()
@click.version_option(version="0.1.0", prog_name="pipeline-compiler")
@click.option('--verbose', '-v', is_flag=True, help='Show full error tracebacks and debug logs')
def cli(verbose: bool):
    """
    Compile layered deployment graphs into delivery pipelines.

    \b
    Commands:
      compile        - Compile a layered graph JSON file into stages and actions
      config         - Show the current configuration

    \b
    Examples:
      pipeline-compiler compile graph.json
      pipeline-compiler -v compile graph.json --format json
    """
    global VERBOSE
    VERBOSE = verbose


@cli.command(name="compile")
@click.argument('graph_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
@click.option('--no-self-mutation', is_flag=True, help='Compile without the self-update barrier')
@click.option('--pipeline-name', default=None, help='Override the configured pipeline name')
def compile_graph(graph_file: Path, fmt: str, no_self_mutation: bool, pipeline_name: Optional[str]):
    """
    Compile a layered graph into a delivery pipeline plan.

    GRAPH_FILE is a JSON document describing the layered graph.
    """
    overrides = {}
    if no_self_mutation:
        overrides["self_mutation"] = False
    if pipeline_name:
        overrides["pipeline_name"] = pipeline_name
    settings = pipeline_config.model_copy(update=overrides) if overrides else pipeline_config

    try:
        graph = parse_layered_graph(graph_file.read_bytes())
        set_log_level("DEBUG" if VERBOSE else settings.log_level)
        plan = PipelineCompiler(settings).build(graph)
    except PipelineCompilerError as e:
        logger.error("Compilation of %s failed: %s", graph_file, e)
        console.print(f"[bold red]❌ Error:[/bold red] {escape(str(e))}")
        if VERBOSE:
            console.print_exception()
        sys.exit(1)

    if fmt == 'json':
        click.echo(json.dumps(plan.as_dict(), indent=2, default=str))
        return

    console.print(Panel.fit(
        f"[bold cyan]Pipeline {settings.pipeline_name or '<generated>'}[/bold cyan]\n"
        f"[dim]{len(plan.stages)} stage(s), {len(plan.actions())} action(s)[/dim]",
        border_style="cyan"
    ))
    for stage in plan.stages:
        table = Table(title=stage.name, box=box.ROUNDED)
        table.add_column("Run order", justify="right")
        table.add_column("Action", style="cyan")
        table.add_column("Category")
        table.add_column("Inputs", style="dim")
        table.add_column("Outputs", style="dim")
        for action in stage.actions:
            name = action.name
            if action.before_self_mutation:
                name = f"{name} [yellow]⟲[/yellow]"
            table.add_row(
                str(action.run_order),
                name,
                action.category,
                ", ".join(action.input_artifacts),
                ", ".join(action.output_artifacts),
            )
        console.print(table)
        console.print()


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def config(fmt: str):
    """
    Show current configuration.

    Displays configuration values loaded from PIPELINE_* environment variables and .env file.
    """
    # Configuration sections to display
    sections = {
        "Pipeline": [
            "pipeline_name",
            "self_mutation",
            "cross_account_keys",
            "stage_capacity",
            "artifact_bucket_name",
            "pipeline_account",
            "pipeline_region",
            "pipeline_stack_identifier",
        ],
        "Assets & Self-mutation": [
            "cli_version",
            "pipeline_uses_docker_assets",
            "single_publisher_per_asset_type",
            "embedded_assembly_path",
        ],
        "Build Defaults": [
            "build_defaults",
            "asset_publishing_build_defaults",
            "self_mutation_build_defaults",
        ],
        "Logging": [
            "log_level",
        ],
    }

    if fmt == 'json':
        values = pipeline_config.model_dump(mode="json")
        output = {
            section: {attr: values.get(attr) for attr in attrs}
            for section, attrs in sections.items()
        }
        console.print(json.dumps(output, indent=2, default=str))
        return

    console.print(Panel.fit(
        "[bold cyan]Pipeline Compiler Configuration[/bold cyan]",
        border_style="cyan"
    ))

    for section, attrs in sections.items():
        table = Table(title=section, box=box.ROUNDED)
        table.add_column("Setting", style="cyan")
        table.add_column("Env Variable", style="dim")
        table.add_column("Value")
        table.add_column("Status", justify="center")

        for attr in attrs:
            value = getattr(pipeline_config, attr, None)
            if value is None:
                display_value = "[dim]not set[/dim]"
                status = "[yellow]○[/yellow]"
            elif hasattr(value, "model_dump_json"):
                display_value = escape(value.model_dump_json(exclude_defaults=True))
                status = "[green]●[/green]"
            else:
                display_value = escape(str(value))
                status = "[green]●[/green]"

            table.add_row(attr, f"PIPELINE_{attr.upper()}", display_value, status)

        console.print(table)
        console.print()


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
