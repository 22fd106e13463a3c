"""Record commands for the fixed resources.

Commands:
- get:     Fetch one record by ID
- list:    Fetch many records (JSON where filter, limit or --all)
- create:  Create a record from key=value fields
- update:  Update a record from key=value fields
- delete:  Delete a record by ID
- run:     Run one operation over a JSON batch of records
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, Optional

import typer
from typer import Context

from civibridge.cli.app import app, emit, get_orchestrator, run_or_exit
from civibridge.civicrm.models import FieldPair, Operation, RecordParams, Resource

FIXED_RESOURCES = [r.value for r in Resource if r is not Resource.CUSTOM_API]


def _resource(value: str) -> Resource:
    if value not in FIXED_RESOURCES:
        typer.echo(f"❌ Unknown resource: {value}. Choose from: {', '.join(FIXED_RESOURCES)}", err=True)
        raise typer.Exit(1)
    return Resource(value)


def _fields(raw: List[str]) -> List[FieldPair]:
    try:
        return [FieldPair.parse(item) for item in raw]
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


def _run(ctx: Context, resource: str, operation: Operation, build: Callable[[], RecordParams]) -> None:
    orchestrator = get_orchestrator(ctx)
    emit(run_or_exit(lambda: orchestrator.execute(_resource(resource), operation, [build()])))


@app.command(name="get")
def get_record(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    record_id: int = typer.Argument(..., help="CiviCRM ID"),
):
    """Fetch one record by ID.

    Examples:
        civibridge get contact 42
    """
    _run(ctx, resource, Operation.GET, lambda: RecordParams(id=record_id))


@app.command(name="list")
def list_records(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    where: str = typer.Option("", "--where", "-w", help='API4 where clause as JSON, e.g. [["last_name","=","Doe"]]'),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum rows (ignored with --all)"),
    return_all: bool = typer.Option(False, "--all", help="Page through every matching row"),
    contact_type: Optional[str] = typer.Option(None, "--contact-type", "-t", help="Individual, Organization or Household"),
):
    """Fetch many records.

    Examples:
        civibridge list contact --contact-type Individual --limit 10
        civibridge list group --all
    """
    _run(
        ctx,
        resource,
        Operation.GET_MANY,
        lambda: RecordParams(where_json=where, limit=limit, return_all=return_all, contact_type=contact_type),
    )


def _write_params(
    record_id: Optional[int],
    field: Optional[List[str]],
    contact_type: Optional[str],
    email_location: str,
    phone_location: str,
    address_location: str,
    primary_email: bool,
    primary_phone: bool,
    primary_address: bool,
) -> RecordParams:
    return RecordParams(
        id=record_id,
        fields=_fields(field or []),
        contact_type=contact_type,
        email_location=email_location,
        phone_location=phone_location,
        address_location=address_location,
        is_primary_email=primary_email,
        is_primary_phone=primary_phone,
        is_primary_address=primary_address,
    )


@app.command(name="create")
def create_record(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    field: Optional[List[str]] = typer.Option(None, "--field", "-f", help="key=value (repeatable), e.g. -f first_name=Ada -f Home.email=ada@example.org"),
    contact_type: Optional[str] = typer.Option(None, "--contact-type", "-t"),
    email_location: str = typer.Option("Work", "--email-location"),
    phone_location: str = typer.Option("Work", "--phone-location"),
    address_location: str = typer.Option("Home", "--address-location"),
    primary_email: bool = typer.Option(True, "--primary-email/--no-primary-email"),
    primary_phone: bool = typer.Option(True, "--primary-phone/--no-primary-phone"),
    primary_address: bool = typer.Option(True, "--primary-address/--no-primary-address"),
):
    """Create a record.

    Examples:
        civibridge create contact -t Individual -f first_name=Ada -f email=ada@example.org
        civibridge create activity -f activity_type_id=1 -f subject=Call
    """
    _run(ctx, resource, Operation.CREATE, lambda: _write_params(
        None, field, contact_type, email_location, phone_location, address_location,
        primary_email, primary_phone, primary_address,
    ))


@app.command(name="update")
def update_record(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    record_id: int = typer.Argument(..., help="CiviCRM ID"),
    field: Optional[List[str]] = typer.Option(None, "--field", "-f", help="key=value (repeatable)"),
    contact_type: Optional[str] = typer.Option(None, "--contact-type", "-t"),
    email_location: str = typer.Option("Work", "--email-location"),
    phone_location: str = typer.Option("Work", "--phone-location"),
    address_location: str = typer.Option("Home", "--address-location"),
    primary_email: bool = typer.Option(True, "--primary-email/--no-primary-email"),
    primary_phone: bool = typer.Option(True, "--primary-phone/--no-primary-phone"),
    primary_address: bool = typer.Option(True, "--primary-address/--no-primary-address"),
):
    """Update a record.

    Examples:
        civibridge update contact 7 -f Home.phone=555-0100 -f Home.phone.phone_type_id=2
    """
    _run(ctx, resource, Operation.UPDATE, lambda: _write_params(
        record_id, field, contact_type, email_location, phone_location, address_location,
        primary_email, primary_phone, primary_address,
    ))


@app.command(name="delete")
def delete_record(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    record_id: int = typer.Argument(..., help="CiviCRM ID"),
):
    """Delete a record by ID."""
    _run(ctx, resource, Operation.DELETE, lambda: RecordParams(id=record_id))


@app.command(name="run")
def run_batch(
    ctx: Context,
    resource: str = typer.Argument(..., help="contact, membership, group, relationship or activity"),
    operation: str = typer.Argument(..., help="get, getMany, create, update or delete"),
    input_file: Path = typer.Option(..., "--input", "-i", help="JSON file holding a list of record parameter objects"),
    continue_on_fail: bool = typer.Option(False, "--continue-on-fail", help="Emit an error item and keep going when a record fails"),
):
    """Run one operation over a batch of records, in input order.

    Each record uses the host parameter names (``fields``, ``whereJson``,
    ``returnAll``, ``isPrimaryEmail``, ...).
    """
    try:
        records = json.loads(input_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        typer.echo(f"❌ Cannot read {input_file}: {e}", err=True)
        raise typer.Exit(1)
    if not isinstance(records, list):
        typer.echo("❌ Input must be a JSON list of records", err=True)
        raise typer.Exit(1)

    orchestrator = get_orchestrator(ctx)
    emit(
        run_or_exit(
            lambda: orchestrator.execute(
                _resource(resource), operation, records, continue_on_fail=continue_on_fail
            )
        )
    )
