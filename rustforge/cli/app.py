"""Main Typer application — detect, build and resolve commands.

Entry point: ``rustforge`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from rustforge import __version__
from rustforge.config import load_build_config
from rustforge.core.orchestrator import DEFAULT_CACHE_DIR, BuildContext, Orchestrator, detect
from rustforge.core.resolver import DependencyResolver
from rustforge.errors import RustforgeError
from rustforge.models.catalog import Catalog

# CNB convention: detect exits 100 when the buildpack does not apply
DETECT_FAIL_EXIT_CODE = 100

app = typer.Typer(
    name="rustforge",
    help="rustforge: cached Rust toolchain layers for container image builds.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _fail(exc: RustforgeError) -> NoReturn:
    console.print(f"[red]{type(exc).__name__}:[/red] {escape(str(exc))}", highlight=False)
    raise typer.Exit(code=1)


@app.command(name="version", help="Show the rustforge version.")
def version_cmd() -> None:
    console.print(f"rustforge {__version__}")


@app.command(name="detect", help="Report whether the buildpack applies.")
def detect_cmd() -> None:
    """Pass unless BP_RUSTUP_ENABLED is false."""
    try:
        result = detect(load_build_config())
    except RustforgeError as exc:
        _fail(exc)

    if not result.passed:
        console.print("[yellow]rustup is disabled[/yellow]")
        raise typer.Exit(code=DETECT_FAIL_EXIT_CODE)

    for plan in result.plans:
        console.print(f"provides: {', '.join(plan.provides)}")


@app.command(name="build", help="Contribute the rustup and Rust layers.")
def build_cmd(
    app_dir: Path = typer.Option(Path("."), "--app", "-a", help="Application source directory."),
    layers_dir: Path = typer.Option(..., "--layers", "-l", help="Layers root directory."),
    buildpack: Path = typer.Option(
        Path("buildpack.toml"), "--buildpack", "-b", help="Catalog of dependencies and options."
    ),
    stack: str = typer.Option(..., "--stack", "-s", envvar="CNB_STACK_ID", help="Stack (platform) id."),
    plan: list[str] = typer.Option(
        ["rustup", "rust"], "--plan", "-p", help="Build plan entries requested."
    ),
    cache_dir: Path = typer.Option(
        DEFAULT_CACHE_DIR, "--cache", help="Download cache directory."
    ),
) -> None:
    """Run the install pipeline and print the resulting layers."""
    try:
        config = load_build_config()
        _configure_logging(config.log_level)
        context = BuildContext(
            app_dir=app_dir,
            layers_dir=layers_dir,
            stack_id=stack,
            catalog=Catalog.from_toml(buildpack),
            plan_entries=plan,
            cache_dir=cache_dir,
        )
        result = Orchestrator(context, config).build()
    except RustforgeError as exc:
        _fail(exc)

    if result.unmet:
        console.print(f"[yellow]Unmet plan entries:[/yellow] {', '.join(result.unmet)}")
        return

    table = Table(title=f"Layers ({result.build_id})")
    table.add_column("Layer", style="cyan")
    table.add_column("State")
    table.add_column("Path", style="dim")
    for outcome in result.layers:
        style = "green" if outcome.state.value == "reused" else "yellow"
        table.add_row(outcome.name, f"[{style}]{outcome.state.value}[/{style}]", str(outcome.path))
    console.print(table)

    bom = Table(title="Bill of Materials")
    bom.add_column("Name", style="cyan")
    bom.add_column("Version", style="green")
    bom.add_column("PURL")
    for entry in result.bom:
        bom.add_row(entry.name, entry.version, entry.purl)
    console.print(bom)


@app.command(name="resolve", help="Show which catalog entry a build would use.")
def resolve_cmd(
    dependency_id: str = typer.Argument(..., help="Dependency id, e.g. rustup-init-gnu."),
    version: str = typer.Option("", "--version", "-v", help="Version constraint (default: latest)."),
    buildpack: Path = typer.Option(Path("buildpack.toml"), "--buildpack", "-b"),
    stack: str = typer.Option(..., "--stack", "-s", envvar="CNB_STACK_ID"),
) -> None:
    try:
        catalog = Catalog.from_toml(buildpack)
        descriptor = DependencyResolver(catalog.dependencies, stack).resolve(dependency_id, version)
    except RustforgeError as exc:
        _fail(exc)

    console.print(f"[bold]{descriptor.id}[/bold] {descriptor.version}")
    console.print(f"  uri:      {descriptor.uri}")
    console.print(f"  checksum: {descriptor.checksum_algorithm}:{descriptor.checksum}")
    console.print(f"  stacks:   {', '.join(sorted(descriptor.stacks))}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
