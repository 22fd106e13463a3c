"""Raw API and connection commands.

Commands:
- call:            Raw <Entity>/<Action> passthrough
- location-types:  Show the resolved location-type map
- option-values:   List option values as name/value choices
- test:            Check the configured credentials
"""

from __future__ import annotations

import typer
from typer import Context

from civibridge.cli.app import app, emit, get_orchestrator, run_or_exit
from civibridge.civicrm.models import CustomCallParams, Resource


@app.command(name="call")
def custom_call(
    ctx: Context,
    entity: str = typer.Argument(..., help="API4 entity, e.g. Contact, CustomValue, OptionValue"),
    action: str = typer.Argument(..., help="API4 action, e.g. get, getFields, create"),
    params: str = typer.Option('{"limit": 25}', "--params", "-p", help="Raw API4 params as a JSON object"),
):
    """Call any API4 entity/action with raw params.

    Examples:
        civibridge call Contact getFields --params '{}'
        civibridge call Tag get -p '{"select": ["name"], "limit": 5}'
    """
    orchestrator = get_orchestrator(ctx)
    custom = CustomCallParams(entity=entity, action=action, params_json=params)
    emit(run_or_exit(lambda: orchestrator.execute(Resource.CUSTOM_API, custom=custom)))


@app.command(name="location-types")
def location_types(
    ctx: Context,
    refresh: bool = typer.Option(False, "--refresh", help="Ignore the cache and fetch again"),
):
    """Show how location prefixes (``Home.email``) resolve."""
    resolver = get_orchestrator(ctx).resolver
    emit(run_or_exit(resolver.refresh if refresh else resolver.resolve_location_map))


@app.command(name="option-values")
def option_values(
    ctx: Context,
    limit: int = typer.Option(50, "--limit", "-n"),
):
    """List option values as ``{name, value}`` choices."""
    orchestrator = get_orchestrator(ctx)
    emit(run_or_exit(lambda: orchestrator.list_option_values(limit=limit)))


@app.command(name="test")
def test_connection(ctx: Context):
    """Check that the configured credentials can read contacts."""
    result = get_orchestrator(ctx).test_connection()
    emit(result)
    if result["status"] != "OK":
        raise typer.Exit(1)
