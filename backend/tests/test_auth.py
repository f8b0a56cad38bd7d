"""
Unit tests for the send-endpoint gates.
Calls the dependencies directly, like FastAPI would.
"""

import os
from unittest.mock import Mock, patch

import pytest
from fastapi import HTTPException

from app.auth import enforce_rate_limit, verify_communications_secret
from app.services.rate_limiter import FixedWindowRateLimiter


def _request(host="203.0.113.7"):
    return Mock(client=Mock(host=host))


class TestVerifyCommunicationsSecret:

    @pytest.mark.asyncio
    async def test_matching_secret_passes(self):
        with patch.dict(os.environ, {"COMMUNICATIONS_API_SECRET": "s3cret"}):
            assert await verify_communications_secret("s3cret") is None

    @pytest.mark.asyncio
    async def test_missing_secret_raises_401(self):
        with patch.dict(os.environ, {"COMMUNICATIONS_API_SECRET": "s3cret"}):
            with pytest.raises(HTTPException) as exc_info:
                await verify_communications_secret(None)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_secret_raises_401_without_leaking(self, caplog):
        with patch.dict(os.environ, {"COMMUNICATIONS_API_SECRET": "s3cret"}):
            with pytest.raises(HTTPException) as exc_info:
                await verify_communications_secret("guess")

        assert exc_info.value.status_code == 401
        assert "s3cret" not in caplog.text
        assert "guess" not in caplog.text

    @pytest.mark.asyncio
    async def test_unconfigured_secret_fails_closed(self):
        with patch.dict(os.environ, {"COMMUNICATIONS_API_SECRET": ""}):
            with pytest.raises(HTTPException) as exc_info:
                await verify_communications_secret("anything")

        assert exc_info.value.status_code == 503
        assert "not configured" in exc_info.value.detail


class TestEnforceRateLimit:

    @pytest.mark.asyncio
    async def test_under_limit_passes(self):
        limiter = FixedWindowRateLimiter(max_requests=2)
        assert await enforce_rate_limit(_request(), None, limiter) is None

    @pytest.mark.asyncio
    async def test_over_limit_raises_429_with_retry_after(self):
        limiter = FixedWindowRateLimiter(max_requests=1)
        await enforce_rate_limit(_request(), None, limiter)

        with pytest.raises(HTTPException) as exc_info:
            await enforce_rate_limit(_request(), None, limiter)

        assert exc_info.value.status_code == 429
        assert "Retry-After" in exc_info.value.headers

    @pytest.mark.asyncio
    async def test_secret_holders_share_a_budget_across_addresses(self):
        limiter = FixedWindowRateLimiter(max_requests=1)
        await enforce_rate_limit(_request("198.51.100.1"), "s3cret", limiter)

        with pytest.raises(HTTPException):
            await enforce_rate_limit(_request("198.51.100.2"), "s3cret", limiter)

    @pytest.mark.asyncio
    async def test_missing_client_uses_unknown_key(self):
        limiter = FixedWindowRateLimiter(max_requests=1)
        await enforce_rate_limit(Mock(client=None), None, limiter)

        assert "ip:unknown" in limiter._windows
