"""Wiring: credentials + config -> ready-to-use RequestOrchestrator.

Usage:
    # From environment / .env
    orchestrator = build_orchestrator()

    # Or explicit credentials (either naming variant)
    orchestrator = build_orchestrator(CiviCredentials(baseUrl=..., apiToken=...))

Environment:
    CIVI_BASE_URL, CIVI_API_TOKEN (required)
    CIVI_AUTH_HEADER, CIVI_CONNECT_TIMEOUT, CIVI_READ_TIMEOUT,
    CIVI_MAX_RETRIES, CIVI_PAGE_SIZE, CIVI_STRICT_DELETE (optional)
"""

import logging
from typing import Optional

from civibridge.civicrm.locations import LocationTypeResolver
from civibridge.civicrm.models import CiviCredentials
from civibridge.civicrm.orchestrator import RequestOrchestrator
from civibridge.config import Config, config
from civibridge.connectors import Api4Transport, ApiKeyAuth, HTTPClient, RequestPolicy

logger = logging.getLogger(__name__)


def build_transport(credentials: CiviCredentials, cfg: Optional[Config] = None) -> Api4Transport:
    """Create the httpx-backed API4 transport."""
    cfg = cfg or config
    auth = ApiKeyAuth(api_key=credentials.api_token, header_name=cfg.auth_header)
    policy = RequestPolicy(
        connect_timeout=cfg.connect_timeout,
        read_timeout=cfg.read_timeout,
        max_retries=cfg.max_retries,
    )
    return Api4Transport(HTTPClient(auth=auth, policy=policy, base_url=credentials.base_url))


def build_orchestrator(
    credentials: Optional[CiviCredentials] = None,
    cfg: Optional[Config] = None,
) -> RequestOrchestrator:
    """Create an orchestrator from explicit credentials or configuration.

    Raises:
        ValueError: If the base URL or API token is missing
    """
    cfg = cfg or config
    credentials = credentials or CiviCredentials.from_config(cfg)
    if not credentials.is_configured():
        raise ValueError(
            "CiviCRM credentials missing: set CIVI_BASE_URL and CIVI_API_TOKEN "
            "(or pass CiviCredentials explicitly)."
        )

    transport = build_transport(credentials, cfg)
    logger.debug(f"Connecting to {credentials.base_url}")
    return RequestOrchestrator(
        transport,
        resolver=LocationTypeResolver(transport),
        page_size=cfg.page_size,
        strict_delete=cfg.strict_delete,
    )
