"""Tests for operation models, configuration and wiring."""

import pytest
from pydantic import ValidationError

from civibridge.civicrm.factory import build_orchestrator, build_transport
from civibridge.civicrm.models import (
    CiviCredentials,
    CustomCallParams,
    DeleteConfirmation,
    FieldPair,
    Operation,
    RecordParams,
    Resource,
)
from civibridge.config import Config
from civibridge.connectors import Api4Transport

CONFIG_VARS = (
    "CIVI_BASE_URL",
    "CIVI_API_TOKEN",
    "CIVI_AUTH_HEADER",
    "CIVI_CONNECT_TIMEOUT",
    "CIVI_READ_TIMEOUT",
    "CIVI_MAX_RETRIES",
    "CIVI_PAGE_SIZE",
    "CIVI_STRICT_DELETE",
    "CIVI_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CIVI_* variable."""
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Models
# =============================================================================


class TestResource:
    """Tests for Resource and Operation."""

    def test_entities(self):
        """Resources map to API4 entity names."""
        assert Resource.CONTACT.entity == "Contact"
        assert Resource("relationship").entity == "Relationship"

    def test_custom_has_no_entity(self):
        """The passthrough has no fixed entity."""
        with pytest.raises(ValueError):
            Resource.CUSTOM_API.entity

    def test_operation_values(self):
        """Operation values match the host's names."""
        assert Operation("getMany") is Operation.GET_MANY


class TestFieldPair:
    """Tests for FieldPair."""

    def test_aliases(self):
        """fieldName/fieldValue are accepted."""
        pair = FieldPair.model_validate({"fieldName": "email", "fieldValue": "a@example.org"})
        assert pair.field_name == "email"
        assert pair.field_value == "a@example.org"

    def test_parse(self):
        """key=value text splits on the first equals sign."""
        pair = FieldPair.parse("custom_1=a=b")
        assert pair.field_name == "custom_1"
        assert pair.field_value == "a=b"

    def test_parse_without_equals(self):
        """Text without '=' is rejected."""
        with pytest.raises(ValueError):
            FieldPair.parse("first_name")


class TestRecordParams:
    """Tests for RecordParams."""

    def test_defaults(self):
        """Defaults match the host node's defaults."""
        params = RecordParams()
        assert params.limit == 100
        assert params.return_all is False
        assert params.email_location == "Work"
        assert params.phone_location == "Work"
        assert params.address_location == "Home"
        assert params.is_primary_email is True
        assert params.fields == []

    def test_camel_case(self):
        """Host-style names validate."""
        params = RecordParams.model_validate(
            {"whereJson": "[]", "returnAll": True, "addressLocation": "Billing", "isPrimaryPhone": False}
        )
        assert params.where_json == "[]"
        assert params.return_all is True
        assert params.address_location == "Billing"
        assert params.is_primary_phone is False

    def test_blank_contact_type(self):
        """An empty contact type means no filter."""
        assert RecordParams(contact_type="").contact_type is None
        assert RecordParams(contact_type="Household").contact_type == "Household"

    def test_bad_contact_type(self):
        """Unknown contact types are rejected."""
        with pytest.raises(ValidationError):
            RecordParams(contact_type="Robot")

    def test_require_id(self):
        """require_id() returns the ID or raises."""
        assert RecordParams(id=9).require_id() == 9
        with pytest.raises(ValueError):
            RecordParams().require_id()


class TestCustomCallParams:
    """Tests for CustomCallParams."""

    def test_defaults_and_aliases(self):
        """Defaults are Contact/get; host names are accepted."""
        assert CustomCallParams().entity == "Contact"
        custom = CustomCallParams.model_validate(
            {"customEntity": "Tag", "customAction": "create", "customParamsJson": "{}"}
        )
        assert (custom.entity, custom.action, custom.params_json) == ("Tag", "create", "{}")


class TestCiviCredentials:
    """Tests for CiviCredentials."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"base_url": "https://crm.example.org/", "api_token": "t"},
            {"baseUrl": "https://crm.example.org", "apiToken": "t"},
            {"url": "https://crm.example.org/", "apiKey": "t"},
        ],
    )
    def test_naming_variants(self, payload):
        """All credential naming variants are equivalent."""
        creds = CiviCredentials.model_validate(payload)
        assert creds.base_url == "https://crm.example.org"
        assert creds.api_token == "t"
        assert creds.is_configured()

    def test_not_configured(self):
        """Missing token means not configured."""
        assert not CiviCredentials(base_url="https://crm.example.org").is_configured()


class TestDeleteConfirmation:
    """Tests for DeleteConfirmation."""

    def test_dump(self):
        """The confirmation dumps to a plain item."""
        item = DeleteConfirmation(message="Contact 4 deleted", deleted_id=4).model_dump()
        assert item == {"success": True, "message": "Contact 4 deleted", "deleted_id": 4, "api_response": {}}


# =============================================================================
# Configuration
# =============================================================================


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, clean_env):
        """Unset variables fall back to defaults."""
        cfg = Config()
        assert cfg.base_url == ""
        assert cfg.auth_header == "X-Civi-Auth"
        assert cfg.max_retries == 0
        assert cfg.page_size == 500
        assert cfg.strict_delete is False
        assert cfg.log_level == "INFO"

    def test_from_environment(self, clean_env):
        """Variables override defaults."""
        clean_env.setenv("CIVI_BASE_URL", "https://crm.example.org")
        clean_env.setenv("CIVI_READ_TIMEOUT", "5")
        clean_env.setenv("CIVI_PAGE_SIZE", "100")
        clean_env.setenv("CIVI_STRICT_DELETE", "yes")

        cfg = Config()

        assert cfg.base_url == "https://crm.example.org"
        assert cfg.read_timeout == 5.0
        assert cfg.page_size == 100
        assert cfg.strict_delete is True


# =============================================================================
# Wiring
# =============================================================================


class TestFactory:
    """Tests for build_transport() and build_orchestrator()."""

    def test_build_transport(self, clean_env):
        """The transport carries credentials and policy."""
        clean_env.setenv("CIVI_AUTH_HEADER", "Authorization")
        clean_env.setenv("CIVI_CONNECT_TIMEOUT", "3")

        transport = build_transport(CiviCredentials(baseUrl="https://crm.example.org/", apiToken="tok"), Config())

        assert isinstance(transport, Api4Transport)
        assert transport.client.base_url == "https://crm.example.org"
        assert transport.client.auth.get_headers() == {"Authorization": "Bearer tok"}
        assert transport.client.policy.connect_timeout == 3.0

    def test_build_orchestrator_from_config(self, clean_env):
        """Credentials and orchestration settings come from the environment."""
        clean_env.setenv("CIVI_BASE_URL", "https://crm.example.org")
        clean_env.setenv("CIVI_API_TOKEN", "tok")
        clean_env.setenv("CIVI_PAGE_SIZE", "250")
        clean_env.setenv("CIVI_STRICT_DELETE", "1")

        orchestrator = build_orchestrator(cfg=Config())

        assert orchestrator.page_size == 250
        assert orchestrator.strict_delete is True
        assert orchestrator.resolver.transport is orchestrator.transport

    def test_missing_credentials(self, clean_env):
        """No credentials is a ValueError."""
        with pytest.raises(ValueError, match="CIVI_BASE_URL"):
            build_orchestrator(cfg=Config())

    def test_zero_page_size_rejected(self, clean_env):
        """CIVI_PAGE_SIZE=0 fails at wiring time."""
        clean_env.setenv("CIVI_BASE_URL", "https://crm.example.org")
        clean_env.setenv("CIVI_API_TOKEN", "tok")
        clean_env.setenv("CIVI_PAGE_SIZE", "0")

        with pytest.raises(ValueError, match="page_size"):
            build_orchestrator(cfg=Config())
