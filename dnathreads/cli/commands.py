"""CLI commands for dnathreads."""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from dnathreads import __version__, __logo__
from dnathreads.config.loader import get_config_path, load_config
from dnathreads.config.schema import Config
from dnathreads.lineage import LineageError, ThreadSession
from dnathreads.lineage.visualize import (
    format_branches,
    format_generation_detail,
    format_lineage_tree,
    format_log,
    format_path,
    format_stats,
    format_time_ago,
)

app = typer.Typer(
    name="dnathreads",
    help=f"{__logo__} dnathreads - generation lineage for AI-written code",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} dnathreads v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log engine activity to stderr"),
):
    """dnathreads - generation lineage for AI-written code."""
    config = load_config()
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else config.logging.level)


def _open_session(config: Config) -> ThreadSession:
    """Open the workspace ledger, or an in-memory session when persistence is off."""
    if not config.storage.persist:
        logger.info("Persistence disabled; using an in-memory session")
        return ThreadSession()
    return ThreadSession.open(config.workspace_path / "lineage")


@contextmanager
def _engine_errors() -> Iterator[None]:
    """Turn engine errors into a red message and exit code 1."""
    try:
        yield
    except LineageError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Lineage Commands
# ============================================================================


@app.command()
def add(
    file_name: str = typer.Argument(..., help="Logical file the snapshot belongs to"),
    code: str = typer.Option(None, "--code", "-c", help="Snapshot text"),
    code_file: Path = typer.Option(None, "--from", "-f", help="Read the snapshot from a file"),
    description: str = typer.Option(None, "--description", "-d", help="Provenance label"),
    tag: str = typer.Option(None, "--tag", "-t", help="Generation mode (default from config)"),
    parent: str = typer.Option(None, "--parent", "-p", help="Parent generation (default: current)"),
):
    """Record a new generation."""
    if (code is None) == (code_file is None):
        console.print("[red]Error: Must specify exactly one of --code or --from[/red]")
        raise typer.Exit(1)

    if code_file is not None:
        code = code_file.read_text(encoding="utf-8")

    config = load_config()
    with _engine_errors():
        session = _open_session(config)
        generation_id = session.add_generation(
            code,
            description or f"Code modification in {file_name}",
            tag or config.lineage.default_tag,
            file_name,
            parent,
        )

    console.print(f"[green]✓[/green] Added generation {generation_id}")


@app.command()
def rewind(
    generation_id: str = typer.Argument(..., help="Generation to check out"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the code to this file"),
):
    """Check out a generation without discarding anything."""
    with _engine_errors():
        session = _open_session(load_config())
        code = session.rewind_to(generation_id)

    if output is not None:
        output.write_text(code, encoding="utf-8")
        console.print(f"[green]✓[/green] Rewound to {generation_id}, code written to {output}")
    else:
        sys.stdout.write(code)


@app.command()
def fork(
    generation_id: str = typer.Argument(..., help="Generation to fork from"),
):
    """Create a branch at a generation (active when forked at the current one)."""
    with _engine_errors():
        session = _open_session(load_config())
        branch_id = session.fork_from(generation_id)
        branch = session.get_branch(branch_id)
        active = session.active_branch_id(branch.file_name) == branch_id

    console.print(f"[green]✓[/green] Created {branch.name} ({branch_id}) at {generation_id}")
    if not active:
        console.print(f"[dim]Run 'dnathreads switch {branch_id}' to check it out[/dim]")


@app.command()
def switch(
    branch_id: str = typer.Argument(..., help="Branch to activate"),
):
    """Activate a branch and check out its head."""
    with _engine_errors():
        session = _open_session(load_config())
        session.switch_branch(branch_id)
        branch = session.get_branch(branch_id)

    console.print(f"[green]✓[/green] Switched to {branch.name} at {branch.head_generation_id}")


@app.command()
def reject(
    generation_id: str = typer.Argument(..., help="Generation to flag"),
):
    """Flag a generation as rejected."""
    with _engine_errors():
        session = _open_session(load_config())
        session.mark_as_rejected(generation_id)

    console.print(f"[green]✓[/green] Marked {generation_id} as rejected")


@app.command()
def delete(
    generation_id: str = typer.Argument(..., help="Generation to remove"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove a generation; its children move up to its parent."""
    with _engine_errors():
        session = _open_session(load_config())
        generation = session.get(generation_id)

        if not yes and not typer.confirm(f"Delete {generation_id} ({generation.description})?"):
            raise typer.Exit()

        session.delete_generation(generation_id)
        current = session.current_generation_id(generation.file_name)

    console.print(f"[green]✓[/green] Deleted {generation_id}")
    if current is None:
        console.print(f"[yellow]{generation.file_name} has no current generation now[/yellow]")


# ============================================================================
# Query Commands
# ============================================================================


@app.command()
def show(
    generation_id: str = typer.Argument(..., help="Generation to preview"),
):
    """Preview a generation without checking it out."""
    config = load_config()
    with _engine_errors():
        session = _open_session(config)
        generation = session.get(generation_id)
        breadcrumb = format_path(session, generation_id)

    console.print(f"[dim]{breadcrumb}[/dim]")
    console.print(
        format_generation_detail(generation, config.lineage.preview_max_chars),
        markup=False,
        highlight=False,
    )


@app.command()
def log(
    generation_id: str = typer.Argument(..., help="Generation to start from"),
):
    """Show the ancestors of a generation."""
    with _engine_errors():
        session = _open_session(load_config())
        output = format_log(session, generation_id)

    console.print(output, markup=False, highlight=False)


@app.command()
def tree(
    file_name: str = typer.Argument(..., help="File whose lineage to show"),
    hide_rejected: bool = typer.Option(False, "--hide-rejected", help="Hide rejected generations"),
):
    """Show the generation tree of a file."""
    config = load_config()
    include_rejected = config.lineage.show_rejected and not hide_rejected

    with _engine_errors():
        session = _open_session(config)
        output = format_lineage_tree(session, file_name, include_rejected)

    console.print(output, markup=False, highlight=False)


@app.command()
def branches(
    file_name: str = typer.Argument(..., help="File whose branches to list"),
):
    """List the branches of a file."""
    with _engine_errors():
        session = _open_session(load_config())
        items = session.list_branches(file_name)
        active = session.active_branch_id(file_name)

    if not items:
        console.print(f"No branches for {file_name}.")
        return

    table = Table(title=f"Branches of {file_name}")
    table.add_column("", width=1)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Origin")
    table.add_column("Head")
    table.add_column("Created")

    for branch in items:
        marker = "*" if branch.id == active else ""
        head = "[dim]retired[/dim]" if branch.retired else branch.head_generation_id
        table.add_row(
            marker,
            branch.id,
            branch.name,
            branch.origin_generation_id or "",
            head,
            format_time_ago(branch.created_at),
        )

    console.print(table)


@app.command()
def stats(
    file_name: str = typer.Argument(None, help="Restrict to one file"),
):
    """Count generations per tag."""
    with _engine_errors():
        session = _open_session(load_config())
        output = format_stats(session, file_name)

    console.print(output)


# ============================================================================
# Status Commands
# ============================================================================


@app.command()
def status():
    """Show dnathreads status."""
    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} dnathreads Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")

    if not config.storage.persist:
        console.print("Workspace: [dim]persistence disabled[/dim]")
        return

    workspace = config.workspace_path
    console.print(f"Workspace: {workspace} {'[green]✓[/green]' if workspace.exists() else '[red]✗[/red]'}")

    with _engine_errors():
        session = _open_session(config)
        files = session.files()

        if not files:
            console.print("\nNo generations yet.")
            return

        table = Table(title="Files")
        table.add_column("File", style="cyan")
        table.add_column("Generations", justify="right")
        table.add_column("Branches", justify="right")
        table.add_column("Current")

        for file_name in files:
            current = session.current_generation(file_name)
            table.add_row(
                file_name,
                str(len(session.generations(file_name))),
                str(len(session.list_branches(file_name, include_retired=False))),
                f"{current.id} ({format_time_ago(current.created_at)})" if current else "[dim]none[/dim]",
            )

    console.print(table)


@app.command()
def check():
    """Verify the lineage invariants of the workspace."""
    with _engine_errors():
        session = _open_session(load_config())
        session.check_integrity()

    console.print("[green]✓[/green] Lineage is consistent")


# ============================================================================
# Config Commands
# ============================================================================

config_app = typer.Typer(help="Manage dnathreads configuration")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show():
    """Display current configuration."""
    config = load_config()
    config_path = get_config_path()

    console.print(f"[bold]Configuration:[/bold] {config_path}\n")

    console.print("[bold cyan]Storage:[/bold cyan]")
    console.print(f"  Workspace: {config.workspace_path}")
    console.print(f"  Persist: {'[green]✓[/green]' if config.storage.persist else '[dim]off[/dim]'}")

    console.print("\n[bold cyan]Lineage:[/bold cyan]")
    console.print(f"  Default tag: {config.lineage.default_tag}")
    console.print(f"  Preview max chars: {config.lineage.preview_max_chars:,}")
    console.print(f"  Show rejected: {config.lineage.show_rejected}")

    console.print(f"\n[bold cyan]Log level:[/bold cyan] {config.logging.level}")


if __name__ == "__main__":
    app()
