"""
CLI Session Context.

Holds the global options resolved by the root callback and turns them
into a signed-in ClassificationClient. Also owns the one place where
command failures are reported and mapped to exit codes.
"""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from classification_client.api.client import ClassificationClient, ErrorPolicy
from classification_client.auth.tokens import (
    NativeAppAuthorization,
    StaticTokenProvider,
    TokenProvider,
)
from classification_client.core.config import get_app_config
from classification_client.core.exceptions import ApplicationError, AuthenticationError
from classification_client.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Global options after applying configuration defaults."""

    api_url: str
    issuer_url: str
    redirect_url: str
    scopes: str
    client_id: str | None = None
    access_token: str | None = None


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.obj
    if not isinstance(state, CliState):
        raise RuntimeError("CLI state missing; commands must run under the root app")
    return state


def build_token_provider(state: CliState) -> TokenProvider:
    """
    Pick the token source: a pre-acquired token wins over interactive
    sign-in.

    Raises:
        AuthenticationError: If neither a token nor a client id is set
    """
    if state.access_token:
        return StaticTokenProvider(state.access_token)
    if not state.client_id:
        raise AuthenticationError(
            "Provide --client-id for interactive sign-in or --access-token"
        )

    auth_config = get_app_config().application.auth
    return NativeAppAuthorization(
        issuer_url=state.issuer_url,
        client_id=state.client_id,
        redirect_url=state.redirect_url,
        scopes=state.scopes,
        sign_in_timeout=auth_config.sign_in_timeout,
        refresh_margin=auth_config.refresh_margin,
    )


def build_api_client(state: CliState, token_provider: TokenProvider) -> ClassificationClient:
    api_config = get_app_config().application.api
    return ClassificationClient(
        token_provider,
        state.api_url,
        accept=api_config.accept,
        error_policy=ErrorPolicy(api_config.error_policy),
        timeout=api_config.timeout,
    )


@asynccontextmanager
async def open_client(state: CliState) -> AsyncIterator[ClassificationClient]:
    """Sign in if needed and yield a ready client; close everything after."""
    token_provider = build_token_provider(state)
    try:
        if isinstance(token_provider, NativeAppAuthorization):
            await token_provider.sign_in()
        async with build_api_client(state, token_provider) as client:
            yield client
    finally:
        if isinstance(token_provider, NativeAppAuthorization):
            await token_provider.close()


def exit_with_error(exc: Exception) -> NoReturn:
    """Report a failure on stderr and exit with its numeric code (default -1)."""
    if isinstance(exc, ApplicationError):
        err_console.print(
            f"Error: {type(exc).__name__}: {exc.message}",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
        code = exc.error_number
    else:
        err_console.print(f"Unknown error: {exc}", markup=False, highlight=False, soft_wrap=True)
        code = None

    raise typer.Exit(code=code or -1)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a command coroutine; any failure ends the process via exit_with_error."""
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        log_with_source(
            logger, "cli", "error", "Command failed",
            error_type=type(e).__name__, error=str(e),
        )
        exit_with_error(e)


def notify(message: str) -> None:
    """Print a progress line from the run lifecycle."""
    console.print(escape(message), highlight=False, soft_wrap=True)
