"""
Signed-webhook verification for the email provider.

The provider signs every callback with a header of the form

    resend-signature: t=<unix-seconds>,v1=<hex-hmac-sha256>

where the HMAC is computed over the exact bytes ``b"<t>." + raw_body`` using
the shared webhook secret. Verification checks the timestamp against a
symmetric tolerance window (replay protection) before comparing signatures
in constant time.

Everything here is pure: no I/O, no module state. ``sign`` exists so tests
and dev scripts can build valid headers.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional, Union

SIGNATURE_HEADER = "resend-signature"
SIGNATURE_VERSION = "v1"
DEFAULT_TOLERANCE_SECONDS = 300

_PAIR_SEPARATOR = ","
_KV_SEPARATOR = "="
_PAYLOAD_SEPARATOR = b"."

REASON_MISSING = "missing signature header"
REASON_TOLERANCE = "signature timestamp outside tolerance"
REASON_MISMATCH = "signature mismatch"


@dataclass(frozen=True)
class SignedPayload:
    """A parsed signature header."""

    timestamp: int
    signature: str


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: Optional[str] = None
    timestamp: Optional[int] = None


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def parse_signature_header(header_value: Optional[str]) -> Optional[SignedPayload]:
    """
    Parse ``t=<int>,v1=<hex>`` into a SignedPayload.

    Unknown keys are ignored. Returns None when either ``t`` or ``v1`` is
    missing or ``t`` is not an integer.
    """
    if not header_value:
        return None

    timestamp: Optional[int] = None
    signature: Optional[str] = None
    for part in header_value.split(_PAIR_SEPARATOR):
        part = part.strip()
        if not part or _KV_SEPARATOR not in part:
            continue
        key, _, value = part.partition(_KV_SEPARATOR)
        key, value = key.strip(), value.strip()
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                continue
        elif key == SIGNATURE_VERSION:
            signature = value

    if timestamp is None or not signature:
        return None
    return SignedPayload(timestamp=timestamp, signature=signature)


def compute_signature(secret: str, timestamp: int, payload: Union[str, bytes]) -> str:
    """Hex HMAC-SHA256 of ``b"<timestamp>." + payload`` keyed by ``secret``."""
    message = str(timestamp).encode("ascii") + _PAYLOAD_SEPARATOR + _to_bytes(payload)
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign(secret: str, timestamp: int, payload: Union[str, bytes]) -> str:
    """Build a complete signature header value for ``payload``."""
    signature = compute_signature(secret, timestamp, payload)
    return f"t={timestamp},{SIGNATURE_VERSION}={signature}"


def _constant_time_equal(expected: str, provided: str) -> bool:
    expected_bytes = expected.encode("utf-8")
    provided_bytes = provided.encode("utf-8")
    if len(expected_bytes) != len(provided_bytes):
        return False
    return hmac.compare_digest(expected_bytes, provided_bytes)


def verify(
    secret: str,
    header_value: Optional[str],
    raw_body: Union[str, bytes],
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Verify a signed webhook.

    Args:
        secret: Non-empty webhook secret. Callers must refuse the request
            themselves when no secret is configured.
        header_value: Raw value of the signature header (may be None).
        raw_body: Exact request body bytes as received.
        tolerance_seconds: Maximum allowed |now - t| in seconds.
        now: Current time in epoch seconds; defaults to ``time.time()``.

    Returns:
        VerificationResult with ``ok`` and, on failure, one of the
        ``REASON_*`` strings.
    """
    parsed = parse_signature_header(header_value)
    if parsed is None:
        return VerificationResult(ok=False, reason=REASON_MISSING)

    now_seconds = int(now if now is not None else time.time())
    if abs(now_seconds - parsed.timestamp) > tolerance_seconds:
        return VerificationResult(
            ok=False, reason=REASON_TOLERANCE, timestamp=parsed.timestamp
        )

    expected = compute_signature(secret, parsed.timestamp, raw_body)
    if not _constant_time_equal(expected, parsed.signature):
        return VerificationResult(
            ok=False, reason=REASON_MISMATCH, timestamp=parsed.timestamp
        )

    return VerificationResult(ok=True, timestamp=parsed.timestamp)
