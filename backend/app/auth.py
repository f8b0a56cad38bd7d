"""
Request gates for the send endpoint: rate limiting and shared-secret auth.

Both are FastAPI dependencies. The rate limit runs first so unauthenticated
traffic is throttled before any secret comparison or validation work.

Secrets are compared with hmac.compare_digest and never logged.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from app.config import get_api_secret
from app.dependencies import get_rate_limiter
from app.services.rate_limiter import FixedWindowRateLimiter, rate_limit_key

logger = logging.getLogger(__name__)


async def enforce_rate_limit(
    request: Request,
    x_communications_secret: Optional[str] = Header(None),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Count the request against its caller's budget.

    Raises:
        HTTPException: 429 with Retry-After when the budget is exhausted.
    """
    client_address = request.client.host if request.client else None
    key = rate_limit_key(x_communications_secret, client_address)
    decision = limiter.hit(key)
    if not decision.allowed:
        # Key may embed the secret, so log only the kind of key
        logger.warning(
            "Rate limit exceeded for %s caller",
            "secret-keyed" if x_communications_secret else "address-keyed",
        )
        raise HTTPException(
            status_code=429,
            detail="Too many requests",
            headers={"Retry-After": str(decision.retry_after)},
        )


async def verify_communications_secret(
    x_communications_secret: Optional[str] = Header(None),
) -> None:
    """
    Verify the X-Communications-Secret header.

    Fails closed: when COMMUNICATIONS_API_SECRET is not configured every
    request is refused with 503.

    Raises:
        HTTPException: 503 if unconfigured, 401 if missing or wrong.
    """
    expected = get_api_secret()
    if not expected:
        logger.error(
            "COMMUNICATIONS_API_SECRET is not configured; refusing send requests"
        )
        raise HTTPException(
            status_code=503, detail="COMMUNICATIONS_API_SECRET not configured"
        )

    provided = x_communications_secret or ""
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected send request with invalid or missing secret")
        raise HTTPException(status_code=401, detail="Invalid or missing secret")
