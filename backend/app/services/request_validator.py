"""
Validation and normalization of inbound send requests.

validate_send_request() is the only producer of ValidatedSendRequest. It runs
the checks below in order and stops at the first failure:

  1. id        required, non-empty after trim, at most 120 characters
  2. channel   must be "email"
  3. template  normalized and checked against the template allowlist
  4. to        required, at most 320 characters, local@domain.tld shape
  5. subject   default applied when absent, at most 180 characters
  6. data      a JSON object whose compact serialization is <= 20000 bytes

The email check is syntactic only. It does not attempt RFC 5322 parsing and
says nothing about whether the mailbox exists.
"""

import json
import re
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from app.config import get_default_subject
from app.models.send import Channel, SendMetadata, ValidatedSendRequest
from app.services.templates import TemplateResolutionError, TemplateResolver

MAX_ID_LENGTH = 120
MAX_RECIPIENT_LENGTH = 320
MAX_SUBJECT_LENGTH = 180
MAX_DATA_BYTES = 20000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SendValidationError(ValueError):
    """A send request failed validation. The message is safe to return to callers."""


def _validate_id(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SendValidationError("id is required")
    value = value.strip()
    if len(value) > MAX_ID_LENGTH:
        raise SendValidationError(f"id must be at most {MAX_ID_LENGTH} characters")
    return value


def _validate_channel(value: Any) -> Channel:
    if value != Channel.EMAIL.value:
        label = value if isinstance(value, str) and value else "unknown"
        raise SendValidationError(f"Unsupported channel: {label}")
    return Channel.EMAIL


def _validate_recipient(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SendValidationError("to is required")
    value = value.strip()
    if len(value) > MAX_RECIPIENT_LENGTH:
        raise SendValidationError(f"to must be at most {MAX_RECIPIENT_LENGTH} characters")
    if not _EMAIL_RE.match(value):
        raise SendValidationError("to must be a valid email address")
    return value


def _validate_subject(value: Any) -> str:
    # Absent or empty string gets the placeholder; an explicit whitespace-only
    # subject is treated as a real override and rejected.
    if value is None or value == "":
        value = get_default_subject()
    if not isinstance(value, str):
        raise SendValidationError("subject must be a string")
    value = value.strip()
    if not value:
        raise SendValidationError("subject must not be blank")
    if len(value) > MAX_SUBJECT_LENGTH:
        raise SendValidationError(f"subject must be at most {MAX_SUBJECT_LENGTH} characters")
    return value


def serialized_size(data: Mapping[str, Any]) -> int:
    """Size in bytes of the compact UTF-8 JSON encoding of ``data``."""
    encoded = json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)
    return len(encoded.encode("utf-8"))


def _validate_data(value: Any) -> dict:
    if not isinstance(value, dict):
        raise SendValidationError("data must be an object")
    try:
        size = serialized_size(value)
    except (TypeError, ValueError):
        raise SendValidationError("data must be JSON serializable")
    if size > MAX_DATA_BYTES:
        raise SendValidationError(f"data must not exceed {MAX_DATA_BYTES} bytes")
    return value


def _validate_metadata(value: Any) -> Optional[SendMetadata]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise SendValidationError("metadata must be an object")
    try:
        return SendMetadata.model_validate(value)
    except ValidationError:
        raise SendValidationError("metadata fields must be strings")


def validate_send_request(raw: Any, resolver: TemplateResolver) -> ValidatedSendRequest:
    """
    Validate a loosely-typed send payload.

    Args:
        raw: The decoded JSON body (any type).
        resolver: Template resolver holding the startup allowlist.

    Returns:
        ValidatedSendRequest with every field normalized.

    Raises:
        SendValidationError: on the first violated constraint.
    """
    if not isinstance(raw, dict):
        raise SendValidationError("Request body must be a JSON object")

    request_id = _validate_id(raw.get("id"))
    channel = _validate_channel(raw.get("channel"))
    try:
        template_name = resolver.normalize(raw.get("template"))
    except TemplateResolutionError as exc:
        raise SendValidationError(str(exc)) from exc
    recipient = _validate_recipient(raw.get("to"))
    subject = _validate_subject(raw.get("subject"))
    data = _validate_data(raw.get("data"))
    metadata = _validate_metadata(raw.get("metadata"))

    return ValidatedSendRequest(
        id=request_id,
        channel=channel,
        template_name=template_name,
        recipient=recipient,
        subject=subject,
        data=data,
        metadata=metadata,
    )
