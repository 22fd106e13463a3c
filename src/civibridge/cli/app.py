"""CLI app setup and common utilities.

This module creates the main Typer app and provides the shared helpers
every command uses: lazy orchestrator construction, JSON output and
uniform error reporting.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

import typer
from typer import Context, Typer

from civibridge.civicrm import build_orchestrator
from civibridge.civicrm.errors import CiviBridgeError
from civibridge.civicrm.orchestrator import RequestOrchestrator
from civibridge.config import config
from civibridge.connectors import TransportError

# Initialize Typer app
app = Typer(
    name="civibridge",
    help="CiviCRM API v4 connector: read, list, create, update and delete CRM records.",
)


class CLIState:
    """Shared state object for CLI commands.

    The orchestrator is built on first use so commands that fail argument
    parsing never need credentials.
    """

    def __init__(self):
        self.orchestrator: Optional[RequestOrchestrator] = None


def get_orchestrator(ctx: Context) -> RequestOrchestrator:
    """Get (building if needed) the orchestrator for this invocation.

    Raises:
        typer.Exit: If credentials are not configured.
    """
    state: CLIState = ctx.ensure_object(CLIState)
    if state.orchestrator is None:
        try:
            state.orchestrator = build_orchestrator()
        except ValueError as e:
            typer.echo(f"❌ Error: {e}", err=True)
            raise typer.Exit(1)
    return state.orchestrator


def emit(data: Any) -> None:
    """Print command output as JSON on stdout."""
    typer.echo(json.dumps(data, indent=2, default=str))


def run_or_exit(func: Callable[[], Any]) -> Any:
    """Run ``func``; report connector errors on stderr and exit 1."""
    try:
        return func()
    except (CiviBridgeError, TransportError, ValueError) as e:
        typer.echo(f"❌ {type(e).__name__}: {e}", err=True)
        details = getattr(e, "details", None)
        if details:
            typer.echo(f"   Details: {json.dumps(details, default=str)}", err=True)
        raise typer.Exit(1)


@app.callback()
def init_app(
    ctx: Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: CIVI_LOG_LEVEL or INFO)",
        envvar="CIVI_LOG_LEVEL",
    ),
):
    """Configure logging and shared state for all commands."""
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(CLIState)
