"""
Provider webhook normalizer.

Converts a provider-shaped delivery callback into a CanonicalEvent. Providers
disagree on where they put things, so each field is looked up through an
ordered list of dotted key paths and the first usable value wins:

  status      type, event, status  (optional "email." prefix, via _STATUS_ALIASES)
  message id  data.email_id, data.id, data.message_id, ... , id
  timestamp   data.created_at, data.timestamp, created_at, ... ; seconds or
              milliseconds (values above 10**12 are already milliseconds) or
              an ISO-8601 string; falls back to "now"

An unrecognized status yields None. The webhook caller is the provider, so
the endpoint still acknowledges the call and the event is dropped.
"""

import math
import time
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from app.models.provider_event import CanonicalEvent, EventStatus

DEFAULT_PROVIDER = "resend"

_STATUS_FIELDS = ("type", "event", "status")
_STATUS_PREFIX = "email."

_STATUS_ALIASES = {
    "queued": EventStatus.QUEUED,
    "sent": EventStatus.SENT,
    "failed": EventStatus.FAILED,
    "delivered": EventStatus.DELIVERED,
    "bounced": EventStatus.BOUNCED,
    "complaint": EventStatus.COMPLAINT,
    "complained": EventStatus.COMPLAINT,
    "dropped": EventStatus.DROPPED,
}

MESSAGE_ID_PATHS = (
    "data.email_id",
    "data.id",
    "data.message_id",
    "data.messageId",
    "email_id",
    "message_id",
    "messageId",
    "id",
)

TIMESTAMP_PATHS = (
    "data.created_at",
    "data.timestamp",
    "created_at",
    "timestamp",
    "event_timestamp",
)

# Anything numeric above this is taken as epoch milliseconds
_MILLISECONDS_THRESHOLD = 10 ** 12

_MISSING = object()


def get_path(payload: Any, path: str, default: Any = None) -> Any:
    """
    Look up a dotted key path in nested mappings.

    >>> get_path({"data": {"id": "x"}}, "data.id")
    'x'

    Returns ``default`` as soon as a segment is missing or the current value
    is not a mapping.
    """
    current = payload
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return default
    return current


def first_present(payload: Any, paths: Iterable[str], accept) -> Any:
    """Return the first value along ``paths`` that ``accept`` turns into non-None."""
    for path in paths:
        value = accept(get_path(payload, path))
        if value is not None:
            return value
    return None


def raw_status(payload: Mapping[str, Any]) -> Optional[str]:
    """The first non-empty status-like field, unmapped. Used for drop accounting."""
    for field in _STATUS_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_status(payload: Mapping[str, Any]) -> Optional[EventStatus]:
    for field in _STATUS_FIELDS:
        value = payload.get(field)
        if not isinstance(value, str):
            continue
        value = value.strip().lower()
        if value.startswith(_STATUS_PREFIX):
            value = value[len(_STATUS_PREFIX):]
        status = _STATUS_ALIASES.get(value)
        if status is not None:
            return status
    return None


def _as_message_id(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_message_id(payload: Mapping[str, Any]) -> Optional[str]:
    return first_present(payload, MESSAGE_ID_PATHS, _as_message_id)


def _as_timestamp_ms(value: Any) -> Optional[int]:
    # bool is an int subclass; True is not a timestamp
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value > _MILLISECONDS_THRESHOLD:
            scaled = value
        else:
            scaled = value * 1000
        # Huge floats overflow to inf once scaled
        if not math.isfinite(scaled):
            return None
        return int(scaled)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)
        except (ValueError, OverflowError):
            return None
    return None


def extract_timestamp_ms(payload: Mapping[str, Any], now_ms: Optional[int] = None) -> int:
    timestamp = first_present(payload, TIMESTAMP_PATHS, _as_timestamp_ms)
    if timestamp is not None:
        return timestamp
    return now_ms if now_ms is not None else int(time.time() * 1000)


def normalize_provider_event(
    payload: Any,
    provider: str = DEFAULT_PROVIDER,
    now_ms: Optional[int] = None,
) -> Optional[CanonicalEvent]:
    """
    Normalize a webhook body.

    Returns None when the body is not a mapping or carries no recognized
    status. Missing message ids are left unset.
    """
    if not isinstance(payload, Mapping):
        return None

    status = extract_status(payload)
    if status is None:
        return None

    return CanonicalEvent(
        provider=provider,
        message_id=extract_message_id(payload),
        status=status,
        timestamp_ms=extract_timestamp_ms(payload, now_ms),
        raw_payload=dict(payload),
    )
