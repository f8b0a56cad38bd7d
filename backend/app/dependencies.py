"""
Process-wide singletons exposed as FastAPI dependencies.

The template registry is scanned once (on startup, or on first use when the
startup hook did not run) and never rescanned. The rate limiter holds the
only mutable state shared across requests. Tests swap either one through
app.dependency_overrides.
"""

import threading
from typing import Optional

from app.config import get_rate_limit_max_requests, get_rate_limit_window, get_templates_dir
from app.services.email_provider import (
    EmailProviderNotConfigured,
    ResendEmailProvider,
    get_email_provider,
)
from app.services.forwarder import DownstreamForwarder, get_forwarder
from app.services.rate_limiter import FixedWindowRateLimiter
from app.services.templates import TemplateRegistry, TemplateResolver

_lock = threading.Lock()
_resolver: Optional[TemplateResolver] = None
_rate_limiter: Optional[FixedWindowRateLimiter] = None


def get_template_resolver() -> TemplateResolver:
    global _resolver
    if _resolver is None:
        with _lock:
            if _resolver is None:
                _resolver = TemplateResolver(TemplateRegistry(get_templates_dir()))
    return _resolver


def get_rate_limiter() -> FixedWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        with _lock:
            if _rate_limiter is None:
                _rate_limiter = FixedWindowRateLimiter(
                    window_seconds=get_rate_limit_window(),
                    max_requests=get_rate_limit_max_requests(),
                )
    return _rate_limiter


def provide_email_provider() -> Optional[ResendEmailProvider]:
    """None when credentials are missing; the send route answers 503."""
    try:
        return get_email_provider()
    except EmailProviderNotConfigured:
        return None


def provide_forwarder() -> DownstreamForwarder:
    return get_forwarder()
