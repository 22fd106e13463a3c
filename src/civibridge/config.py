"""Configuration and environment handling for civibridge."""

import os
from pathlib import Path

from dotenv import load_dotenv


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Central configuration object."""

    def __init__(self):
        # Load .env file if it exists
        self.project_root = Path(__file__).parent.parent.parent
        env_path = self.project_root / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        # Credentials
        self.base_url: str = os.getenv("CIVI_BASE_URL", "")
        self.api_token: str = os.getenv("CIVI_API_TOKEN", "")
        self.auth_header: str = os.getenv("CIVI_AUTH_HEADER", "X-Civi-Auth")

        # Transport
        self.connect_timeout: float = float(os.getenv("CIVI_CONNECT_TIMEOUT", "10"))
        self.read_timeout: float = float(os.getenv("CIVI_READ_TIMEOUT", "30"))
        self.max_retries: int = int(os.getenv("CIVI_MAX_RETRIES", "0"))

        # Orchestration
        self.page_size: int = int(os.getenv("CIVI_PAGE_SIZE", "500"))
        self.strict_delete: bool = _env_flag("CIVI_STRICT_DELETE")

        # Logging
        self.log_level: str = os.getenv("CIVI_LOG_LEVEL", "INFO")


# Global config instance
config = Config()
