"""
Unit tests for signed-webhook verification.

Headers are built with sign() so every case exercises the real HMAC path.
"""

import hashlib
import hmac

import pytest

from app.services.signature import (
    REASON_MISMATCH,
    REASON_MISSING,
    REASON_TOLERANCE,
    compute_signature,
    parse_signature_header,
    sign,
    verify,
)

SECRET = "test-secret"
PAYLOAD = b'{"event":"delivered"}'
TIMESTAMP = 1_700_000_000


# ---------------------------------------------------------------------------
# parse_signature_header
# ---------------------------------------------------------------------------

class TestParseSignatureHeader:

    def test_parses_timestamp_and_signature(self):
        parsed = parse_signature_header("t=1700000000,v1=abc123")
        assert parsed.timestamp == 1700000000
        assert parsed.signature == "abc123"

    def test_ignores_unknown_keys_and_whitespace(self):
        parsed = parse_signature_header(" v0=zzz , t=42 ,foo=bar, v1=deadbeef ")
        assert parsed.timestamp == 42
        assert parsed.signature == "deadbeef"

    @pytest.mark.parametrize("header", [
        None,
        "",
        "t=1700000000",
        "v1=abc123",
        "t=notanumber,v1=abc123",
        "t=1700000000,v1=",
        "garbage",
    ])
    def test_incomplete_headers_return_none(self, header):
        assert parse_signature_header(header) is None


# ---------------------------------------------------------------------------
# sign / compute_signature
# ---------------------------------------------------------------------------

class TestSign:

    def test_signature_is_hmac_over_timestamp_dot_body(self):
        expected = hmac.new(
            SECRET.encode(), b"1700000000." + PAYLOAD, hashlib.sha256
        ).hexdigest()
        assert compute_signature(SECRET, TIMESTAMP, PAYLOAD) == expected

    def test_str_and_bytes_payloads_sign_identically(self):
        assert compute_signature(SECRET, TIMESTAMP, PAYLOAD.decode()) == compute_signature(
            SECRET, TIMESTAMP, PAYLOAD
        )

    def test_header_format(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        assert header.startswith("t=1700000000,v1=")
        assert len(header.split("v1=")[1]) == 64


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------

class TestVerify:

    def test_accepts_valid_signature(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, PAYLOAD, tolerance_seconds=10, now=TIMESTAMP)
        assert result.ok is True
        assert result.reason is None
        assert result.timestamp == TIMESTAMP

    def test_rejects_signature_from_different_secret(self):
        header = sign("wrong-secret", TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, PAYLOAD, tolerance_seconds=10, now=TIMESTAMP)
        assert result.ok is False
        assert result.reason == REASON_MISMATCH

    def test_rejects_tampered_body(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, b'{"event":"bounced"}', now=TIMESTAMP)
        assert result.ok is False
        assert result.reason == REASON_MISMATCH

    def test_rejects_old_timestamp_even_with_correct_signature(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, PAYLOAD, tolerance_seconds=0, now=TIMESTAMP + 60)
        assert result.ok is False
        assert result.reason == REASON_TOLERANCE
        assert result.timestamp == TIMESTAMP

    def test_rejects_future_timestamp(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, PAYLOAD, tolerance_seconds=300, now=TIMESTAMP - 301)
        assert result.reason == REASON_TOLERANCE

    def test_accepts_timestamp_at_tolerance_edge(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        assert verify(SECRET, header, PAYLOAD, tolerance_seconds=300, now=TIMESTAMP + 300).ok
        assert verify(SECRET, header, PAYLOAD, tolerance_seconds=300, now=TIMESTAMP - 300).ok

    def test_default_tolerance_is_five_minutes(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        assert verify(SECRET, header, PAYLOAD, now=TIMESTAMP + 300).ok
        assert not verify(SECRET, header, PAYLOAD, now=TIMESTAMP + 301).ok

    def test_missing_header(self):
        result = verify(SECRET, None, PAYLOAD, now=TIMESTAMP)
        assert result.ok is False
        assert result.reason == REASON_MISSING

    def test_truncated_signature_is_mismatch(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)[:-2]
        result = verify(SECRET, header, PAYLOAD, now=TIMESTAMP)
        assert result.reason == REASON_MISMATCH

    def test_uses_wall_clock_when_now_omitted(self):
        header = sign(SECRET, TIMESTAMP, PAYLOAD)
        result = verify(SECRET, header, PAYLOAD)
        # 2023 timestamp is far outside the default window today
        assert result.reason == REASON_TOLERANCE
