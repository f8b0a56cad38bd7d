"""
Send router.

Endpoint:
  POST /send   - validate and send one notification (auth: X-Communications-Secret)

Gate order: rate limit -> shared secret -> validation -> provider config.
Responses use the SendResponse wire format ({id, provider, status,
messageId?, error?}); gate failures use the usual {"detail": ...} body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from app.auth import enforce_rate_limit, verify_communications_secret
from app.dependencies import get_template_resolver, provide_email_provider, provide_forwarder
from app.models.send import SendResponse, SendStatus
from app.services.dispatcher import dispatch_send
from app.services.email_provider import PROVIDER_NAME, ResendEmailProvider
from app.services.forwarder import DownstreamForwarder
from app.services.request_validator import SendValidationError, validate_send_request
from app.services.templates import TemplateResolver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/send",
    dependencies=[Depends(enforce_rate_limit), Depends(verify_communications_secret)],
    response_model=SendResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def send_notification(
    request: Request,
    resolver: TemplateResolver = Depends(get_template_resolver),
    provider: Optional[ResendEmailProvider] = Depends(provide_email_provider),
    forwarder: DownstreamForwarder = Depends(provide_forwarder),
):
    """
    Validate the request body and send it through the email provider.

    Returns 200 with status "sent", or 500 with status "failed" when the
    provider (or the template read) fails. Either outcome is forwarded to the
    downstream API.
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")

    try:
        validated = validate_send_request(body, resolver)
    except SendValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if provider is None:
        logger.error("EMAIL_PROVIDER_KEY / EMAIL_FROM not configured; cannot send %s", validated.id)
        response = SendResponse(
            id=validated.id,
            provider=PROVIDER_NAME,
            status=SendStatus.FAILED,
            error="EMAIL_PROVIDER_KEY and EMAIL_FROM must be configured",
        )
        return JSONResponse(status_code=503, content=response.to_payload())

    response = await dispatch_send(validated, resolver, provider, forwarder)
    if response.status == SendStatus.FAILED:
        return JSONResponse(status_code=500, content=response.to_payload())
    return response
