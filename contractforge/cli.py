"""
contractforge CLI.

Command-line interface for generating, building, packaging and publishing the
server and client artifacts derived from the API contract.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import ContractForgeError
from .core.logging import setup_logging
from .core.types import BranchState

if TYPE_CHECKING:
    from .orchestration import PipelineResult

app = typer.Typer(
    name="contractforge",
    help="Contract-driven server/client artifact pipeline",
    add_completion=False,
)

console = Console()

ProjectDirOption = typer.Option(
    None,
    "--project-dir",
    "-C",
    help="Project root (defaults to CF_PROJECT_DIR or the current directory)",
    file_okay=False,
    dir_okay=True,
    resolve_path=True,
)
ForceOption = typer.Option(False, "--force", "-f", help="Ignore up-to-date checks and regenerate")
VerboseOption = typer.Option(False, "--verbose", help="Enable verbose logging")
NoPrefectOption = typer.Option(False, "--no-prefect", help="Run on the local scheduler without Prefect")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"contractforge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """contractforge: one contract, two published artifacts."""
    pass


def _load_config(
    project_dir: Optional[Path] = None,
    verbose: bool = False,
    no_prefect: bool = False,
) -> Config:
    config = get_config().model_copy(deep=True)
    if project_dir is not None:
        config.project.project_dir = project_dir
    if verbose:
        config.log_level = "DEBUG"
    if no_prefect:
        config.pipeline.use_prefect = False
    setup_logging(config)
    return config


def _report(result: PipelineResult) -> None:
    table = Table(title=f"contractforge {result.goal} (run {result.run_id})")
    table.add_column("Target", style="cyan")
    table.add_column("State")
    table.add_column("Failed stage")
    table.add_column("Artifact")
    table.add_column("Error", overflow="fold")

    for branch in result.branches.values():
        if branch.state == BranchState.FAILED:
            state = "[red]FAILED[/red]"
        elif branch.up_to_date and branch.state == BranchState.GENERATED:
            state = "[green]UP-TO-DATE[/green]"
        else:
            state = f"[green]{branch.state.value.upper()}[/green]"
        artifact = ""
        if branch.publication is not None:
            artifact = str(branch.publication.coordinate)
        elif branch.artifact is not None:
            artifact = branch.artifact.file_name
        table.add_row(branch.name, state, branch.failed_stage or "", artifact, escape(branch.error or ""))

    console.print(table)
    if result.version:
        console.print(f"[bold]Version:[/bold] {result.version}")
    duration = (result.completed_at - result.started_at).total_seconds()

    if result.success:
        console.print(f"\n[bold green]✓ {result.goal} completed in {duration:.1f}s[/bold green]")
    else:
        console.print(f"\n[bold red]✗ {result.goal} failed at {result.failed_stage}[/bold red]")
        console.print(f"Error: {escape(result.error or '')}")


def _run_goal(
    goal: str,
    project_dir: Optional[Path],
    force: bool,
    verbose: bool,
    no_prefect: bool,
) -> None:
    config = _load_config(project_dir, verbose, no_prefect)

    from .orchestration import run_build

    try:
        result = asyncio.run(run_build(config, goal=goal, force=force))
    except ContractForgeError as e:
        console.print(f"[bold red]✗ {goal} could not start:[/bold red] {escape(str(e))}")
        raise typer.Exit(2)

    _report(result)
    if not result.success:
        raise typer.Exit(1)


@app.command("generate-server")
def generate_server(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Generate the Spring server interfaces from the contract."""
    _run_goal("generate-server", project_dir, force, verbose, no_prefect)


@app.command("generate-client")
def generate_client(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Generate the Kotlin client from the contract."""
    _run_goal("generate-client", project_dir, force, verbose, no_prefect)


@app.command()
def build(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Generate and compile both bindings."""
    _run_goal("build", project_dir, force, verbose, no_prefect)


@app.command()
def package(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Produce both versioned archives."""
    _run_goal("package", project_dir, force, verbose, no_prefect)


@app.command()
def publish(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Package and upload both archives to the registry."""
    _run_goal("publish", project_dir, force, verbose, no_prefect)


@app.command()
def run(
    project_dir: Optional[Path] = ProjectDirOption,
    force: bool = ForceOption,
    verbose: bool = VerboseOption,
    no_prefect: bool = NoPrefectOption,
) -> None:
    """Run the complete pipeline (same as publish)."""
    console.print(Panel.fit(
        "[bold blue]contractforge[/bold blue]\n"
        "Contract → Server + Client → Registry",
        border_style="blue",
    ))
    _run_goal("publish", project_dir, force, verbose, no_prefect)


@app.command()
def version(
    project_dir: Optional[Path] = ProjectDirOption,
) -> None:
    """Print the version the next build would use."""
    config = _load_config(project_dir)

    from .orchestration import base_version
    from .services.versioning import GitHistoryReader, VersionResolver

    try:
        base = base_version(config)
    except ContractForgeError as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        raise typer.Exit(2)

    resolver = VersionResolver(
        GitHistoryReader(config.versioning.git_executable),
        prefix=config.versioning.tag_prefix,
        base=base,
    )
    resolved = asyncio.run(resolver.resolve(config.project.project_dir.resolve()))
    console.print(str(resolved))


@app.command("tasks")
def list_tasks(
    project_dir: Optional[Path] = ProjectDirOption,
) -> None:
    """List the build's tasks with their groups and dependencies."""
    config = _load_config(project_dir)

    from .orchestration import BuildPipeline, BuildServices

    try:
        graph = BuildPipeline(BuildServices.from_config(config)).build_graph()
    except ContractForgeError as e:
        console.print(f"[bold red]✗[/bold red] {escape(str(e))}")
        raise typer.Exit(2)

    table = Table(title="Tasks")
    table.add_column("Task", style="cyan")
    table.add_column("Group")
    table.add_column("Depends on")
    table.add_column("Description")
    for name in graph.order():
        node = graph.nodes[name]
        table.add_row(name, node.group, ", ".join(node.depends_on), node.description)
    console.print(table)


@app.command()
def contract(
    project_dir: Optional[Path] = ProjectDirOption,
) -> None:
    """Validate the contract and summarise its operations."""
    config = _load_config(project_dir)

    from .services.contract import SpecLoader

    loader = SpecLoader()
    try:
        loaded = loader.load(config.project.contract_file)
        document = loader.parse(loaded)
    except ContractForgeError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    table = Table(title=document.title or loaded.path.name)
    table.add_column("Operation", style="cyan")
    table.add_column("operationId")
    table.add_column("Tags")
    for op in document.operations:
        table.add_row(op.label, op.operation_id or "", ", ".join(op.tags))
    console.print(table)
    console.print(f"\n[bold]OpenAPI:[/bold] {document.openapi_version}")
    console.print(f"[bold]SHA-256:[/bold] {loaded.sha256}")


@app.command()
def config(
    project_dir: Optional[Path] = ProjectDirOption,
) -> None:
    """Show the current configuration."""
    cfg = _load_config(project_dir)

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Product", cfg.project.product_name)
    table.add_row("Group ID", cfg.project.group_id)
    table.add_row("Base Package", cfg.project.base_package)
    table.add_row("Contract", str(cfg.project.contract_file))
    table.add_row("Build Dir", str(cfg.project.build_path))
    table.add_row("Tag Prefix", cfg.versioning.tag_prefix)
    table.add_row("Base Version", cfg.versioning.base_version)
    table.add_row("Generator", cfg.generator.executable)
    table.add_row("Server Compiler", cfg.toolchain.server_command or "(stage sources)")
    table.add_row("Client Compiler", cfg.toolchain.client_command or "(stage sources)")
    table.add_row("Registry", f"{cfg.registry.name} ({cfg.registry.url})")
    table.add_row("Prefect", str(cfg.pipeline.use_prefect))

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  CF_CONTRACT_PATH, CF_PRODUCT_NAME, CF_GROUP_ID, CF_REGISTRY_URL")
    console.print(f"  {cfg.registry.username_env}, {cfg.registry.password_env}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
