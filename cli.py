#!/usr/bin/env python3
"""
Classification Run CLI.

Submits classification runs against a dataset change set, waits for them,
fetches their results, and manages existing runs.

Usage:
    python cli.py --help

    # Full run lifecycle (interactive sign-in)
    python cli.py --client-id <id> run -p <project> -i <dataset> -c <changeset>

    # Only list the project's runs
    python cli.py --client-id <id> run -p <project> -i <dataset> -c <changeset> --hist

    # Non-interactive, with a pre-acquired token
    python cli.py --access-token $TOKEN models
    python cli.py --access-token $TOKEN runs list -p <project>
    python cli.py --access-token $TOKEN runs download <run> -o result.json

Options:
    --verbose, -v     Enable verbose output (INFO level logging)
    --debug, -d       Enable debug mode (DEBUG level logging)
    --help            Show help message
"""

import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

# Add project root to path for absolute imports
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from classification_client.cli.commands import config_command, models_command, run_command, runs_app
from classification_client.cli.context import CliState
from classification_client.core.config import get_app_config, get_settings, validate_project_root
from classification_client.core.logging import get_logger, setup_logging

app = typer.Typer(
    name="classify",
    help="Classification Run CLI - create runs, wait for them, and fetch their results.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run")(run_command)
app.command("models")(models_command)
app.command("config")(config_command)
app.add_typer(runs_app, name="runs")


@app.callback()
def main(
    ctx: typer.Context,
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Authentication client id for interactive sign-in",
    ),
    issuer_url: Optional[str] = typer.Option(None, "--issuer-url", help="Identity issuer URL"),
    redirect_url: Optional[str] = typer.Option(None, "--redirect-url", help="Sign-in redirect URL"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Classification API base URL"),
    scopes: Optional[str] = typer.Option(None, "--scopes", help="Space-separated authorization scopes"),
    access_token: Optional[str] = typer.Option(
        None, "--access-token",
        help="Pre-acquired bearer token; skips interactive sign-in",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
) -> None:
    """
    Classification Run CLI.

    Either --client-id (browser sign-in) or --access-token is needed for
    commands that talk to the service.
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = None

    setup_logging(level=log_level)
    structlog.contextvars.bind_contextvars(source="cli")

    application = get_app_config().application
    secrets = get_settings()

    ctx.obj = CliState(
        api_url=api_url or application.api.base_url,
        issuer_url=issuer_url or application.auth.issuer_url,
        redirect_url=redirect_url or application.auth.redirect_url,
        scopes=scopes or application.auth.scopes,
        client_id=client_id or secrets.classify_client_id or None,
        access_token=access_token or secrets.classify_access_token or None,
    )

    get_logger(__name__).debug(
        "CLI invoked",
        command=ctx.invoked_subcommand,
        api_url=ctx.obj.api_url,
        log_level=log_level,
    )


if __name__ == "__main__":
    app()
