"""strata CLI — migrate, undo, status, generate."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import orjson
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from strata.cli.context import open_runner, run_async
from strata.config import settings
from strata.exceptions import MigrationFailed, StrataError
from strata.generator import create_migration
from strata.runner import MigrationRunner
from strata.types import RunResult, UnitState

console = Console()

app = typer.Typer(
    name="strata",
    help="strata -- ordered, ledger-tracked schema migrations for SQLite.",
    no_args_is_help=True,
)

DbOption = typer.Option(None, "--db", help="SQLite database file")
DirOption = typer.Option(None, "--dir", help="Migrations directory")


@app.callback()
def _configure(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )


async def _progress(name: str, old: UnitState, new: UnitState) -> None:
    if new == UnitState.APPLIED:
        console.print(f"  [green]up[/green]    {name}")
    elif old == UnitState.REVERTING and new == UnitState.LOADED:
        console.print(f"  [yellow]down[/yellow]  {name}")


def _run(db: Path | None, directory: Path | None, action) -> RunResult:
    async def _go() -> RunResult:
        async with open_runner(db, directory) as runner:
            runner.on_transition(_progress)
            return await action(runner)

    try:
        return run_async(_go())
    except MigrationFailed as e:
        console.print(f"[red]Migration {e.name} failed:[/red] {escape(repr(e.cause))}")
        if e.completed:
            console.print(f"[dim]Completed before failure: {', '.join(e.completed)}[/dim]")
        raise typer.Exit(code=1)
    except StrataError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


@app.command("migrate")
def migrate(
    to: Optional[str] = typer.Option(None, "--to", help="Stop after this migration"),
    db: Optional[Path] = DbOption,
    directory: Optional[Path] = DirOption,
):
    """Apply all pending migrations."""

    async def action(runner: MigrationRunner) -> RunResult:
        return await runner.migrate_up(to=to)

    result = _run(db, directory, action)
    if result.count:
        console.print(f"[green]Applied {result.count} migration(s)[/green]")
    else:
        console.print("[dim]No pending migrations.[/dim]")


@app.command("undo")
def undo(
    count: int = typer.Option(1, "--count", "-n", min=0, help="How many to revert"),
    all_: bool = typer.Option(False, "--all", help="Revert every applied migration"),
    to: Optional[str] = typer.Option(None, "--to", help="Revert everything applied after this"),
    db: Optional[Path] = DbOption,
    directory: Optional[Path] = DirOption,
):
    """Revert the most recently applied migrations."""

    async def action(runner: MigrationRunner) -> RunResult:
        return await runner.migrate_down(count=None if all_ else count, to=to)

    result = _run(db, directory, action)
    if result.count:
        console.print(f"[yellow]Reverted {result.count} migration(s)[/yellow]")
    else:
        console.print("[dim]Nothing to revert.[/dim]")


@app.command("status")
def status(
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
    db: Optional[Path] = DbOption,
    directory: Optional[Path] = DirOption,
):
    """Show applied and pending migrations."""

    async def _go():
        async with open_runner(db, directory) as runner:
            return await runner.status()

    try:
        statuses = run_async(_go())
    except StrataError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if as_json:
        payload = [s.model_dump(mode="json") for s in statuses]
        typer.echo(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
        return

    if not statuses:
        console.print("[dim]No migrations found.[/dim]")
        return

    table = Table(title="Migrations")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("State")
    table.add_column("Applied At", style="dim")
    for s in statuses:
        style = "green" if s.state == UnitState.APPLIED else "yellow"
        table.add_row(
            s.name,
            f"[{style}]{s.state.value}[/{style}]",
            s.applied_at.strftime("%Y-%m-%d %H:%M:%S") if s.applied_at else "",
        )
    console.print(table)


@app.command("generate")
def generate(
    label: str = typer.Argument(help="Short description, e.g. 'create users'"),
    directory: Optional[Path] = DirOption,
):
    """Create a new, empty migration file."""
    try:
        path = create_migration(directory or settings.migrations_dir, label)
    except (ValueError, FileExistsError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Created {path}[/green]")


@app.command("version")
def version_cmd():
    """Show strata version."""
    from strata import __version__
    console.print(f"strata v{__version__}")
