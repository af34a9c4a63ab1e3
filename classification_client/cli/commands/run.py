"""
Run Command.

Drives a full classification run: pick a model, create the run, poll
until it finishes or the wait budget is spent, fetch and hand off the
result, and clean up the run.
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from classification_client.cli.context import (
    CliState,
    console,
    get_state,
    notify,
    open_client,
    run_async,
)
from classification_client.core.config import get_app_config
from classification_client.services.lifecycle import LifecycleOutcome, ResultHandler, RunLifecycle


def run(
    ctx: typer.Context,
    project_id: str = typer.Option(..., "--project-id", "-p", help="Project ID"),
    dataset_id: str = typer.Option(..., "--dataset-id", "--imodel-id", "-i", help="Dataset (iModel) ID"),
    change_set_id: str = typer.Option(..., "--changeset-id", "-c", help="Change set ID"),
    history: bool = typer.Option(
        False, "--history", "--hist",
        help="Only display the project's existing runs and exit",
    ),
    delete_on_exit: bool = typer.Option(
        True, "--delete-on-exit/--keep-run",
        help="Delete the run after a successful exit",
    ),
    wait_for: Optional[int] = typer.Option(
        None, "--wait-for", "-w", min=0,
        help="How long to wait for the run to complete, in milliseconds",
    ),
    poll_interval: Optional[float] = typer.Option(
        None, "--poll-interval", min=0,
        help="Seconds between status checks",
    ),
    model_version: Optional[str] = typer.Option(
        None, "--model-version",
        help="Model version to run; defaults to the lowest available version",
    ),
    result_name: Optional[str] = typer.Option(None, "--result-name", help="Result artifact to download"),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", metavar="PATH",
        help="File to save the downloaded result to; a directory (or a path ending in /) saves it inside",
    ),
) -> None:
    """
    Create a classification run, wait for it, and fetch its result.

    Examples:
        classify --client-id my-app run -p <project> -i <dataset> -c <changeset>
        classify --access-token $TOKEN run -p P -i D -c C --hist
        classify --access-token $TOKEN run -p P -i D -c C -w 600000 -o out/
    """
    state = get_state(ctx)
    runs_config = get_app_config().application.runs
    name = result_name or runs_config.result_name

    lifecycle_options = {
        "poll_interval": poll_interval if poll_interval is not None else runs_config.poll_interval,
        "wait_for_ms": wait_for if wait_for is not None else runs_config.wait_for_ms,
        "result_name": name,
        "delete_on_exit": delete_on_exit,
        "result_handler": build_result_handler(name, output),
    }

    outcome = run_async(_run(
        state,
        project_id,
        dataset_id,
        change_set_id,
        history=history,
        model_version=model_version,
        lifecycle_options=lifecycle_options,
    ))
    _display_outcome(outcome, history)


async def _run(
    state: CliState,
    project_id: str,
    dataset_id: str,
    change_set_id: str,
    *,
    history: bool,
    model_version: str | None,
    lifecycle_options: dict,
) -> LifecycleOutcome:
    """Async implementation of run command."""
    async with open_client(state) as client:
        lifecycle = RunLifecycle(client, notify=notify, **lifecycle_options)
        return await lifecycle.execute(
            project_id,
            dataset_id,
            change_set_id,
            history_only=history,
            model_version=model_version,
        )


def result_target(output: str | Path, result_name: str) -> Path:
    """Where to save the result: inside output if it names a directory, else output itself."""
    path = Path(output)
    if str(output).endswith(("/", os.sep)) or path.is_dir():
        return path / result_name
    return path


def build_result_handler(result_name: str, output: str | Path | None) -> ResultHandler:
    """Save the result to output if given, otherwise print a summary of it."""

    async def handle(text: str) -> None:
        console.print("Started handling classification results.")
        if output is not None:
            target = result_target(output, result_name)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            console.print(f"Result saved to {escape(str(target))}", soft_wrap=True)
        else:
            console.print(summarize_result(text))
        console.print("Finished handling classification results.")

    return handle


def summarize_result(text: str) -> str:
    try:
        payload = json.loads(text)
    except ValueError:
        return f"Received {len(text)} characters of result text."

    if isinstance(payload, (list, dict)):
        return f"Received JSON result with {len(payload)} entries."
    return "Received JSON result."


def _display_outcome(outcome: LifecycleOutcome, history: bool) -> None:
    if history:
        if not outcome.history:
            console.print("[dim]No runs found in project.[/dim]")
        return

    if outcome.finished:
        console.print("[green]✓ Run completed successfully[/green]")
    else:
        status = outcome.status.value if outcome.status else "unknown"
        console.print(f"[yellow]Run did not finish (last status: {status})[/yellow]")
