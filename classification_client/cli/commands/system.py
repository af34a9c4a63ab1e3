"""
System Commands.

Commands for model discovery and configuration display.
"""

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from classification_client.api.contracts import Model
from classification_client.cli.context import console, get_state, open_client, run_async
from classification_client.core.config import get_app_config
from classification_client.services.lifecycle import select_model_version


def models(ctx: typer.Context) -> None:
    """
    List available classification models.

    The model a new run would use is marked as default.
    """
    state = get_state(ctx)

    async def _models() -> list[Model]:
        async with open_client(state) as client:
            return (await client.get_models()).unwrap()

    available = run_async(_models())
    if not available:
        console.print("[yellow]No models available.[/yellow]")
        return

    default = select_model_version(available)

    table = Table(title="Models", show_header=True)
    table.add_column("Version", style="cyan")
    table.add_column("Last Modified")
    table.add_column("")

    for model in available:
        table.add_row(
            escape(model.version),
            model.last_modified_date_time.isoformat() if model.last_modified_date_time else "-",
            "[green]default[/green]" if model.version == default else "",
        )
    console.print(table)


def config(ctx: typer.Context) -> None:
    """
    Display configuration settings.

    Shows the effective connection settings and the loaded YAML.
    """
    state = get_state(ctx)
    application = get_app_config().application

    table = Table(title="Effective Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("API URL", escape(state.api_url))
    table.add_row("Issuer URL", escape(state.issuer_url))
    table.add_row("Redirect URL", escape(state.redirect_url))
    table.add_row("Scopes", escape(state.scopes))
    table.add_row("Client ID", escape(state.client_id or "-"))
    table.add_row("Access token", "set" if state.access_token else "not set")
    console.print(table)

    tree = Tree(f"[bold cyan]{escape(application.name)}[/bold cyan] {escape(application.version)}")
    for section in ("api", "auth", "runs"):
        branch = tree.add(f"[cyan]{section}[/cyan]")
        for key, value in getattr(application, section).model_dump().items():
            branch.add(f"[cyan]{key}[/cyan]: {escape(str(value))}")
    console.print(tree)
