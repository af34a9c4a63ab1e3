"""
Run Management Commands.

One command per service operation, for inspecting and cleaning up runs
outside the full run lifecycle.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from classification_client.api.contracts import Run, RunStatus
from classification_client.cli.context import console, get_state, open_client, run_async
from classification_client.core.config import get_app_config

app = typer.Typer(help="Run management commands")

_STATUS_COLORS = {
    RunStatus.FINISHED: "green",
    RunStatus.FAILED: "red",
    RunStatus.CANCELED: "yellow",
    RunStatus.IN_PROGRESS: "cyan",
    RunStatus.NOT_STARTED: "cyan",
}


def _status_markup(status: RunStatus) -> str:
    color = _STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def _display_runs(runs: list[Run]) -> None:
    if not runs:
        console.print("[dim]No runs found.[/dim]")
        return

    table = Table(title="Runs", show_header=True)
    table.add_column("Run ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Model")
    table.add_column("Last Modified")

    for run in runs:
        table.add_row(
            escape(run.id),
            _status_markup(run.status),
            escape(run.model_version or "-"),
            run.last_modified_date_time.isoformat() if run.last_modified_date_time else "-",
        )
    console.print(table)


def _display_run(run: Run) -> None:
    table = Table(title=f"Run {escape(run.id)}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Status", _status_markup(run.status))
    table.add_row("Model version", escape(run.model_version or "-"))
    table.add_row("Elements", str(run.metadata.count_of_elements))
    table.add_row("Processed", str(run.metadata.count_of_processed))
    table.add_row("Issues", str(run.metadata.count_of_issues))
    if run.last_modified_date_time:
        table.add_row("Last modified", run.last_modified_date_time.isoformat())
    for name, link in (
        ("Project", run.links.project),
        ("Dataset", run.links.dataset),
        ("Change set", run.links.change_set),
    ):
        if link is not None:
            table.add_row(name, escape(link.href))
    console.print(table)


@app.command("list")
def list_runs(
    ctx: typer.Context,
    project_id: str = typer.Option(..., "--project-id", "-p", help="Project ID"),
) -> None:
    """
    List runs in a project.

    Examples:
        classify --access-token $TOKEN runs list -p <project>
    """
    state = get_state(ctx)

    async def _list() -> list[Run]:
        async with open_client(state) as client:
            return (await client.get_runs(project_id)).unwrap()

    _display_runs(run_async(_list()))


@app.command()
def show(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
) -> None:
    """Show details of a run."""
    state = get_state(ctx)

    async def _show() -> Run:
        async with open_client(state) as client:
            return (await client.get_run(run_id)).unwrap()

    _display_run(run_async(_show()))


@app.command()
def status(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
) -> None:
    """Show the current status of a run."""
    state = get_state(ctx)

    async def _status() -> RunStatus:
        async with open_client(state) as client:
            return (await client.get_run_status(run_id)).unwrap()

    console.print(_status_markup(run_async(_status())))


@app.command()
def results(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
) -> None:
    """List the result artifacts of a finished run."""
    state = get_state(ctx)

    async def _results() -> list[str]:
        async with open_client(state) as client:
            return [r.name for r in (await client.get_run_results(run_id)).unwrap()]

    names = run_async(_results())
    if not names:
        console.print("[dim]No results.[/dim]")
    for name in names:
        console.print(escape(name), highlight=False)


@app.command()
def download(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
    result_name: Optional[str] = typer.Argument(None, help="Result name (defaults to configured result)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File to write instead of stdout"),
) -> None:
    """
    Download a result artifact.

    Examples:
        classify --access-token $TOKEN runs download <run> -o result.json
    """
    state = get_state(ctx)
    name = result_name or get_app_config().application.runs.result_name

    async def _download() -> str | None:
        async with open_client(state) as client:
            return (await client.download_run_result(run_id, name)).unwrap()

    text = run_async(_download())
    if text is None:
        console.print(f"[yellow]Result '{escape(name)}' has no content.[/yellow]")
        return

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        console.print(f"Saved '{escape(name)}' to {escape(str(output))}", soft_wrap=True)
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def cancel(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
) -> None:
    """Request cancellation of a run."""
    state = get_state(ctx)

    async def _cancel() -> Run:
        async with open_client(state) as client:
            return (await client.cancel_run(run_id)).unwrap()

    run = run_async(_cancel())
    console.print(f"Cancellation requested. Status - {_status_markup(run.status)}")


@app.command()
def delete(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run ID"),
) -> None:
    """Delete a run."""
    state = get_state(ctx)

    async def _delete() -> None:
        async with open_client(state) as client:
            (await client.delete_run(run_id)).unwrap()

    run_async(_delete())
    console.print("Run deleted.")
