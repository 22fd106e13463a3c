"""Request orchestration for the CiviCRM connector.

Sequences the API4 calls behind each operation:

- get:      ``Entity.get`` by ID (Contact adds chained Email/Phone/Address)
- getMany:  ``Entity.get`` with a user ``where``; ``return_all`` pages
            through the result set
- delete:   ``Entity.delete`` by ID, then a confirmation item
- create /
  update:   a pipeline of named steps

      write_core          Entity.create / Entity.update
      replace_primary     (Contact create) drop existing primary rows
      write_sub_entities  (Contact) create or upsert Email/Phone/Address
      refetch             Entity.get with the full read shape

- custom:   one raw ``<Entity>/<Action>`` call, response returned as-is

Calls are strictly sequential. Nothing is rolled back when a later step
fails; the TransportError raised carries ``step``, ``entity`` and
``record_id`` in its ``details`` so the partial state can be traced.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from civibridge.civicrm import queries
from civibridge.civicrm.errors import (
    CiviBridgeError,
    CreateFailedError,
    InvalidFilterError,
    InvalidParamsError,
    UnsupportedOperationError,
)
from civibridge.civicrm.fields import FieldRoot, RoutedFields, route_fields
from civibridge.civicrm.locations import LocationTypeResolver
from civibridge.civicrm.models import (
    CustomCallParams,
    DeleteConfirmation,
    Operation,
    RecordParams,
    Resource,
)
from civibridge.connectors import RemoteApiError, TransportError, call

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


class WriteStep(str, Enum):
    """Named steps of the create/update pipeline."""

    WRITE_CORE = "write_core"
    REPLACE_PRIMARY = "replace_primary"
    WRITE_SUB_ENTITIES = "write_sub_entities"
    REFETCH = "refetch"


@dataclass
class StepContext:
    """What is known about the record while the pipeline runs."""

    entity: str
    record_id: Optional[int] = None


# (buffer root, API4 entity, RecordParams primary flag attribute)
_SUB_ENTITY_PLAN = (
    (FieldRoot.EMAIL, "Email", "is_primary_email"),
    (FieldRoot.PHONE, "Phone", "is_primary_phone"),
    (FieldRoot.ADDRESS, "Address", "is_primary_address"),
)


class RequestOrchestrator:
    """Runs connector operations against one Transport."""

    def __init__(
        self,
        transport: Any,
        resolver: Optional[LocationTypeResolver] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        strict_delete: bool = False,
    ):
        """Initialize the orchestrator.

        Args:
            transport: Anything implementing the Transport protocol
            resolver: Location-type resolver (one is created if omitted)
            page_size: Rows per page for ``return_all`` reads
            strict_delete: Raise RemoteApiError when a delete response
                carries ``is_error`` instead of reporting success

        Raises:
            ValueError: If page_size is below 1
        """
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        self.transport = transport
        self.resolver = resolver or LocationTypeResolver(transport)
        self.page_size = page_size
        self.strict_delete = strict_delete

    def _call(self, entity: str, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return call(self.transport, entity, action, params)

    @contextmanager
    def _step(self, step: WriteStep, ctx: StepContext) -> Iterator[StepContext]:
        logger.debug(f"{ctx.entity} {ctx.record_id}: {step.value}")
        try:
            yield ctx
        except TransportError as e:
            e.details.update(
                {"step": step.value, "record_entity": ctx.entity, "record_id": ctx.record_id}
            )
            logger.error(f"{step.value} failed for {ctx.entity} {ctx.record_id}: {e}")
            raise

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, resource: Resource, params: RecordParams) -> Dict[str, Any]:
        """Fetch one entity by ID; empty dict when nothing matches."""
        entity_id = params.require_id()
        is_contact = resource == Resource.CONTACT
        response = self._call(resource.entity, "get", queries.get_params(entity_id, is_contact))
        return queries.first_row(response)

    def get_many(self, resource: Resource, params: RecordParams) -> List[Dict[str, Any]]:
        """Fetch rows matching the record's ``where`` JSON.

        Raises:
            InvalidFilterError: If ``where_json`` is not a JSON array
        """
        where = parse_where(params.where_json)
        is_contact = resource == Resource.CONTACT
        if is_contact and params.contact_type:
            where.append(["contact_type", "=", params.contact_type])

        entity = resource.entity
        if not params.return_all:
            response = self._call(entity, "get", queries.list_params(where, is_contact, params.limit))
            return queries.rows(response)

        results: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = queries.rows(
                self._call(
                    entity,
                    "get",
                    queries.list_params(where, is_contact, self.page_size, offset=offset),
                )
            )
            results.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        logger.debug(f"{entity}.get returned {len(results)} rows over {offset // self.page_size + 1} pages")
        return results

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(self, resource: Resource, params: RecordParams) -> Dict[str, Any]:
        """Delete one entity by ID and emit a confirmation item.

        Unless ``strict_delete`` is set the remote's ``is_error`` flag is
        not inspected.
        """
        entity_id = params.require_id()
        entity = resource.entity
        response = self._call(entity, "delete", {"where": queries.by_id(entity_id)})

        if self.strict_delete and response.get("is_error"):
            raise RemoteApiError(
                response.get("error_message") or f"{entity} {entity_id} was not deleted",
                connector_name="civicrm",
                error_code=response.get("error_code"),
                response=response,
            )

        return DeleteConfirmation(
            message=f"{entity} {entity_id} deleted",
            deleted_id=entity_id,
            api_response=response,
        ).model_dump()

    # =========================================================================
    # Create / Update
    # =========================================================================

    def create(self, resource: Resource, params: RecordParams) -> Dict[str, Any]:
        return self._write(resource, params, is_create=True)

    def update(self, resource: Resource, params: RecordParams) -> Dict[str, Any]:
        params.require_id()
        return self._write(resource, params, is_create=False)

    def route(self, resource: Resource, params: RecordParams) -> RoutedFields:
        """Build the payload buffers for one create/update record."""
        is_contact = resource == Resource.CONTACT
        location_map = self.resolver.resolve_location_map() if is_contact else {}
        routed = route_fields(
            params.fields,
            location_map,
            email_location=params.email_location,
            phone_location=params.phone_location,
            address_location=params.address_location,
            sub_entities=is_contact,
        )
        if is_contact and params.contact_type:
            routed.core_values["contact_type"] = params.contact_type
        return routed

    def _write(self, resource: Resource, params: RecordParams, is_create: bool) -> Dict[str, Any]:
        is_contact = resource == Resource.CONTACT
        routed = self.route(resource, params)
        ctx = StepContext(entity=resource.entity, record_id=params.id)

        with self._step(WriteStep.WRITE_CORE, ctx):
            ctx.record_id = self._write_core(ctx.entity, routed.core_values, ctx.record_id, is_create)

        if is_contact:
            if is_create:
                with self._step(WriteStep.REPLACE_PRIMARY, ctx):
                    self._replace_primary(ctx.record_id, routed, params)
            with self._step(WriteStep.WRITE_SUB_ENTITIES, ctx):
                self._write_sub_entities(ctx.record_id, routed, params, is_create)

        with self._step(WriteStep.REFETCH, ctx):
            response = self._call(ctx.entity, "get", queries.get_params(ctx.record_id, is_contact))
        return queries.first_row(response)

    def _write_core(
        self,
        entity: str,
        values: Dict[str, Any],
        record_id: Optional[int],
        is_create: bool,
    ) -> int:
        if is_create:
            response = self._call(entity, "create", {"values": values})
            new_id = queries.first_row(response).get("id")
            if not new_id:
                raise CreateFailedError(entity, response)
            logger.info(f"Created {entity} {new_id}")
            return new_id

        if not values:
            logger.debug(f"No core values for {entity} {record_id}, skipping update")
            return record_id
        self._call(entity, "update", {"values": values, "where": queries.by_id(record_id)})
        logger.info(f"Updated {entity} {record_id}")
        return record_id

    def _replace_primary(self, contact_id: int, routed: RoutedFields, params: RecordParams) -> None:
        """Drop the contact's primary rows that are about to be replaced."""
        for root, entity, flag in _SUB_ENTITY_PLAN:
            if routed.buffer_for(root) and getattr(params, flag):
                self._call(entity, "delete", {"where": queries.primary_rows_where(contact_id)})

    def _write_sub_entities(
        self,
        contact_id: int,
        routed: RoutedFields,
        params: RecordParams,
        is_create: bool,
    ) -> None:
        """Create, or upsert by location type, each non-empty sub-entity."""
        for root, entity, flag in _SUB_ENTITY_PLAN:
            data = routed.buffer_for(root)
            if not data:
                continue
            is_primary = getattr(params, flag)
            location = routed.location_for(root)

            existing_id = None
            if not is_create:
                existing = self._call(entity, "get", queries.location_lookup_params(contact_id, location))
                existing_id = queries.first_row(existing).get("id")

            if existing_id:
                self._call(
                    entity,
                    "update",
                    {
                        "values": {
                            "id": existing_id,
                            **data,
                            "contact_id": contact_id,
                            "is_primary": is_primary,
                        }
                    },
                )
            else:
                self._call(
                    entity,
                    "create",
                    {
                        "values": {
                            **data,
                            "contact_id": contact_id,
                            "is_primary": is_primary,
                            "location_type_id:name": location,
                        }
                    },
                )

    # =========================================================================
    # Passthrough and utilities
    # =========================================================================

    def custom_call(self, custom: CustomCallParams) -> Dict[str, Any]:
        """Issue ``<entity>/<action>`` with the user's params verbatim.

        Raises:
            InvalidParamsError: If ``params_json`` is not a JSON object
        """
        params = parse_params(custom.params_json)
        logger.info(f"Custom API call {custom.entity}.{custom.action}")
        return self._call(custom.entity, custom.action, params)

    def list_option_values(self, limit: int = 50) -> List[Dict[str, Any]]:
        """OptionValue rows as ``{name: label, value: id}`` choices."""
        response = self._call("OptionValue", "get", {"limit": limit, "select": ["id", "label"]})
        return [{"name": row.get("label"), "value": row.get("id")} for row in queries.rows(response)]

    def test_connection(self) -> Dict[str, str]:
        """Check that the credentials can read contacts."""
        try:
            response = self._call("Contact", "get", {"limit": 1})
        except TransportError as e:
            return {"status": "Error", "message": str(e)}
        if response.get("values") is not None:
            return {"status": "OK", "message": "Connection successful."}
        return {"status": "Error", "message": "Unexpected API response."}

    # =========================================================================
    # Batch execution
    # =========================================================================

    def _handler(self, operation: Operation) -> Callable[[Resource, RecordParams], Any]:
        return {
            Operation.GET: self.get,
            Operation.GET_MANY: self.get_many,
            Operation.CREATE: self.create,
            Operation.UPDATE: self.update,
            Operation.DELETE: self.delete,
        }[operation]

    def execute(
        self,
        resource: Union[Resource, str],
        operation: Union[Operation, str, None] = None,
        records: Iterable[Union[RecordParams, Dict[str, Any]]] = (),
        *,
        custom: Optional[CustomCallParams] = None,
        continue_on_fail: bool = False,
    ) -> List[Dict[str, Any]]:
        """Run one operation over a batch of records, in input order.

        ``get``/``create``/``update``/``delete`` emit one item per record,
        ``getMany`` one item per returned row. The custom passthrough runs
        once for the whole batch. A failing record aborts the batch unless
        ``continue_on_fail`` is set, in which case it yields an error item.
        """
        resource = Resource(resource)
        if resource == Resource.CUSTOM_API:
            return [self.custom_call(custom or CustomCallParams())]

        if operation is None:
            raise UnsupportedOperationError(resource.value, "")
        try:
            operation = Operation(operation)
        except ValueError:
            raise UnsupportedOperationError(resource.value, str(operation)) from None
        handler = self._handler(operation)

        out: List[Dict[str, Any]] = []
        for index, record in enumerate(records):
            logger.info(f"{operation.value} {resource.entity} (item {index})")
            try:
                params = record if isinstance(record, RecordParams) else RecordParams.model_validate(record)
                result = handler(resource, params)
            except (CiviBridgeError, TransportError, ValueError) as e:
                if not continue_on_fail:
                    raise
                logger.warning(f"Item {index} failed: {type(e).__name__}: {e}")
                out.append({"error": str(e), "error_type": type(e).__name__})
                continue

            if operation == Operation.GET_MANY:
                out.extend(result)
            else:
                out.append(result)
        return out


def parse_where(where_json: str) -> List[Any]:
    """Parse the getMany ``where`` clause; blank means no filter."""
    if not where_json or not where_json.strip():
        return []
    try:
        where = json.loads(where_json)
    except ValueError as e:
        raise InvalidFilterError(where_json, str(e)) from e
    if not isinstance(where, list):
        raise InvalidFilterError(where_json, "expected a JSON array")
    return where


def parse_params(params_json: str) -> Dict[str, Any]:
    """Parse custom call params; blank means ``{}``."""
    if not params_json or not params_json.strip():
        return {}
    try:
        params = json.loads(params_json)
    except ValueError as e:
        raise InvalidParamsError(params_json, str(e)) from e
    if not isinstance(params, dict):
        raise InvalidParamsError(params_json, "expected a JSON object")
    return params
