"""
Environment configuration for the tournament finder service.

Values are read at request time rather than on import so that a missing
secret surfaces as a 500 on the request that needs it, not as a crash on
startup.
"""
import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """A required environment variable is missing.

    ``public_message`` is what the client sees; the variable names stay in
    the server log.
    """

    def __init__(self, missing, public_message: str = "API configuration error"):
        super().__init__(f"Missing configuration: {', '.join(missing)}")
        self.missing = list(missing)
        self.public_message = public_message


def get(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def api_base_url() -> Optional[str]:
    return get("API_BASE_URL") or get("NEXT_PUBLIC_API_BASE_URL")


def require(*names: str, public_message: str = "API configuration error") -> dict:
    values = {}
    missing = []
    for name in names:
        value = api_base_url() if name == "API_BASE_URL" else get(name)
        if value is None:
            missing.append(name)
        else:
            values[name] = value
    if missing:
        logger.error("%s not configured", ", ".join(missing))
        raise ConfigurationError(missing, public_message)
    return values


def cors_origins() -> list:
    raw = get("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
