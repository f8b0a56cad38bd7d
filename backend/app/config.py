"""
Environment configuration.

Values are loaded from a .env file once at import time and then read through
getter functions at call time, so a secret rotated in the environment (or
patched in tests) takes effect without re-importing anything.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# backend/templates, next to the app package
_DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_SUBJECT = "Intellex notification"
DEFAULT_PROVIDER_BASE_URL = "https://api.resend.com"
DEFAULT_WEBHOOK_TOLERANCE_SECONDS = 300
DEFAULT_DOWNSTREAM_TIMEOUT_SECONDS = 5.0
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 30
DEFAULT_PORT = 8700


def _get_str(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def _get_number(name: str, default, cast=int):
    """
    Read a numeric env var, falling back to ``default`` when it is unset or
    malformed. Malformed values are logged so a typo does not go unnoticed.
    """
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using default %r", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using default %r", name, raw, default)
        return default
    return value


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------

def get_api_secret() -> Optional[str]:
    """Shared secret callers must present in X-Communications-Secret."""
    return _get_str("COMMUNICATIONS_API_SECRET")


def get_webhook_secret() -> Optional[str]:
    """HMAC secret shared with the email provider for signed webhooks."""
    return _get_str("EMAIL_WEBHOOK_SECRET")


def get_provider_key() -> Optional[str]:
    return _get_str("EMAIL_PROVIDER_KEY")


def get_email_from() -> Optional[str]:
    return _get_str("EMAIL_FROM")


def get_downstream_secret() -> Optional[str]:
    """
    Secret attached to forwarded calls.

    Falls back to COMMUNICATIONS_API_SECRET, which is what the downstream API
    uses to authenticate this service when no dedicated secret is set.
    """
    return _get_str("DOWNSTREAM_API_SECRET") or get_api_secret()


# ---------------------------------------------------------------------------
# Endpoints and tuning
# ---------------------------------------------------------------------------

def get_provider_base_url() -> str:
    return (_get_str("EMAIL_PROVIDER_BASE_URL") or DEFAULT_PROVIDER_BASE_URL).rstrip("/")


def get_downstream_url() -> Optional[str]:
    url = _get_str("DOWNSTREAM_API_URL")
    return url.rstrip("/") if url else None


def get_downstream_timeout() -> float:
    return _get_number(
        "DOWNSTREAM_TIMEOUT_SECONDS", DEFAULT_DOWNSTREAM_TIMEOUT_SECONDS, cast=float
    )


def get_webhook_tolerance() -> int:
    return _get_number("EMAIL_WEBHOOK_TOLERANCE_SECONDS", DEFAULT_WEBHOOK_TOLERANCE_SECONDS)


def get_default_subject() -> str:
    return _get_str("EMAIL_DEFAULT_SUBJECT") or DEFAULT_SUBJECT


def get_templates_dir() -> Path:
    configured = _get_str("TEMPLATES_DIR")
    return Path(configured) if configured else _DEFAULT_TEMPLATES_DIR


def get_rate_limit_window() -> int:
    return _get_number("RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS)


def get_rate_limit_max_requests() -> int:
    return _get_number("RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS)


def get_port() -> int:
    return _get_number("PORT", DEFAULT_PORT)
