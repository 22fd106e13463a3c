"""Operation-surface models.

These are what the host hands the connector: which resource, which
operation, and the per-record parameters. Models are Pydantic so host
payloads (camelCase or snake_case) validate the same way.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from civibridge.config import Config


class Resource(str, Enum):
    """Resources the connector exposes."""

    CONTACT = "contact"
    MEMBERSHIP = "membership"
    GROUP = "group"
    RELATIONSHIP = "relationship"
    ACTIVITY = "activity"
    CUSTOM_API = "customApi"

    @property
    def entity(self) -> str:
        """API4 entity name (not defined for the custom passthrough)."""
        if self is Resource.CUSTOM_API:
            raise ValueError("customApi has no fixed entity")
        return ENTITY_MAP[self]


ENTITY_MAP: Dict[Resource, str] = {
    Resource.CONTACT: "Contact",
    Resource.MEMBERSHIP: "Membership",
    Resource.GROUP: "Group",
    Resource.RELATIONSHIP: "Relationship",
    Resource.ACTIVITY: "Activity",
}


class Operation(str, Enum):
    """Operations available on every fixed resource."""

    GET = "get"
    GET_MANY = "getMany"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ContactType(str, Enum):
    INDIVIDUAL = "Individual"
    ORGANIZATION = "Organization"
    HOUSEHOLD = "Household"


class FieldPair(BaseModel):
    """One user-authored ``(key, value)`` pair for create/update."""

    model_config = ConfigDict(populate_by_name=True)

    field_name: str = Field("", validation_alias=AliasChoices("field_name", "fieldName"))
    field_value: Any = Field("", validation_alias=AliasChoices("field_value", "fieldValue"))

    @classmethod
    def parse(cls, text: str) -> "FieldPair":
        """Build a pair from ``key=value`` text (value may contain ``=``)."""
        name, sep, value = text.partition("=")
        if not sep:
            raise ValueError(f"Expected key=value, got: {text!r}")
        return cls(field_name=name.strip(), field_value=value)


class RecordParams(BaseModel):
    """Per-record parameters for the fixed resources."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: Optional[int] = None
    fields: List[FieldPair] = Field(default_factory=list)
    contact_type: Optional[ContactType] = Field(
        None, validation_alias=AliasChoices("contact_type", "contactType")
    )

    # getMany
    where_json: str = Field("", validation_alias=AliasChoices("where_json", "whereJson"))
    limit: int = 100
    return_all: bool = Field(False, validation_alias=AliasChoices("return_all", "returnAll"))

    # Contact sub-entities
    email_location: str = Field("Work", validation_alias=AliasChoices("email_location", "emailLocation"))
    phone_location: str = Field("Work", validation_alias=AliasChoices("phone_location", "phoneLocation"))
    address_location: str = Field(
        "Home", validation_alias=AliasChoices("address_location", "addressLocation")
    )
    is_primary_email: bool = Field(
        True, validation_alias=AliasChoices("is_primary_email", "isPrimaryEmail")
    )
    is_primary_phone: bool = Field(
        True, validation_alias=AliasChoices("is_primary_phone", "isPrimaryPhone")
    )
    is_primary_address: bool = Field(
        True, validation_alias=AliasChoices("is_primary_address", "isPrimaryAddress")
    )

    @field_validator("contact_type", mode="before")
    @classmethod
    def _blank_contact_type(cls, v: Any) -> Any:
        return None if v == "" else v

    def require_id(self) -> int:
        if self.id is None:
            raise ValueError("An entity ID is required for this operation")
        return self.id


class CustomCallParams(BaseModel):
    """Parameters for the raw ``<Entity>/<Action>`` passthrough."""

    model_config = ConfigDict(populate_by_name=True)

    entity: str = Field("Contact", validation_alias=AliasChoices("entity", "customEntity"))
    action: str = Field("get", validation_alias=AliasChoices("action", "customAction"))
    params_json: str = Field(
        "", validation_alias=AliasChoices("params_json", "customParamsJson")
    )


class CiviCredentials(BaseModel):
    """Connection credentials.

    ``base_url``/``api_token`` are canonical; ``baseUrl``/``apiToken`` and
    ``url``/``apiKey`` are accepted as input aliases.
    """

    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field("", validation_alias=AliasChoices("base_url", "baseUrl", "url"))
    api_token: str = Field("", validation_alias=AliasChoices("api_token", "apiToken", "apiKey"))

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def from_config(cls, cfg: Config) -> "CiviCredentials":
        return cls(base_url=cfg.base_url, api_token=cfg.api_token)

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_token)


class DeleteConfirmation(BaseModel):
    """Output item emitted by ``delete``."""

    success: bool = True
    message: str
    deleted_id: int
    api_response: Dict[str, Any] = Field(default_factory=dict)
