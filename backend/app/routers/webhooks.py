"""
Provider webhook router.

Endpoint:
  POST /webhooks/provider   - delivery-status callbacks (auth: resend-signature)

The signature is checked against the exact raw body. Once it passes, the
provider always gets 204: events that cannot be normalized are dropped (and
counted, see GET /health) and forwarding failures are only logged.

Environment variables
---------------------
EMAIL_WEBHOOK_SECRET              HMAC secret shared with the provider. When
                                  unset every webhook is refused with 503.
EMAIL_WEBHOOK_TOLERANCE_SECONDS   Allowed clock skew / replay window (default 300).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response

from app.config import get_webhook_secret, get_webhook_tolerance
from app.dependencies import provide_forwarder
from app.services import signature
from app.services.dispatcher import handle_provider_webhook
from app.services.email_provider import PROVIDER_NAME
from app.services.forwarder import DownstreamForwarder

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_webhook_signature(
    request: Request,
    resend_signature: Optional[str] = Header(None),
) -> bytes:
    """
    Verify the signature header and return the raw body it covers.

    Raises:
        HTTPException: 503 if EMAIL_WEBHOOK_SECRET is unset, 401 on any
        verification failure.
    """
    secret = get_webhook_secret()
    if not secret:
        logger.error("EMAIL_WEBHOOK_SECRET is not configured; refusing provider webhooks")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    raw_body = await request.body()
    result = signature.verify(
        secret,
        resend_signature,
        raw_body,
        tolerance_seconds=get_webhook_tolerance(),
    )
    if not result.ok:
        logger.warning("Rejected provider webhook: %s", result.reason)
        raise HTTPException(status_code=401, detail="Invalid webhook signature")
    return raw_body


@router.post("/webhooks/provider", status_code=204)
async def provider_webhook(
    raw_body: bytes = Depends(verify_webhook_signature),
    forwarder: DownstreamForwarder = Depends(provide_forwarder),
):
    await handle_provider_webhook(raw_body, forwarder, provider=PROVIDER_NAME)
    return Response(status_code=204)
