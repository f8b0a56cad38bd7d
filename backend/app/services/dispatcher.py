"""
Send and webhook orchestration.

The routers run the gates (rate limit, shared secret, signature) and call in
here with trusted input:

  dispatch_send            validated request -> render -> provider send ->
                           forward outcome -> SendResponse
  handle_provider_webhook  verified raw body -> normalize -> forward event

Forwarding is best-effort in both paths; see app.services.forwarder.
"""

import json
import logging
import threading
import time
from collections import Counter
from typing import Dict, Optional

from fastapi.concurrency import run_in_threadpool

from app.models.provider_event import CanonicalEvent
from app.models.send import SendResponse, SendStatus, ValidatedSendRequest
from app.services.email_provider import EmailProviderError, ResendEmailProvider
from app.services.event_normalizer import normalize_provider_event, raw_status
from app.services.forwarder import DownstreamForwarder
from app.services.templates import TemplateResolutionError, TemplateResolver, load_template

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "<missing>"


class DroppedEventCounter:
    """Counts webhook events dropped for an unrecognized status, by raw status."""

    def __init__(self):
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def record(self, status: Optional[str]) -> None:
        with self._lock:
            self._counts[status or UNKNOWN_STATUS] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


dropped_events = DroppedEventCounter()


def _send_result_payload(request: ValidatedSendRequest, response: SendResponse) -> dict:
    payload = response.to_payload()
    payload.update(
        {
            "channel": request.channel.value,
            "template": request.template_name,
            "timestamp": int(time.time() * 1000),
        }
    )
    if request.metadata is not None:
        payload["metadata"] = request.metadata.model_dump(by_alias=True, exclude_none=True)
    return payload


async def dispatch_send(
    request: ValidatedSendRequest,
    resolver: TemplateResolver,
    provider: ResendEmailProvider,
    forwarder: DownstreamForwarder,
) -> SendResponse:
    """
    Render and send a validated request, then forward the outcome.

    Provider and template read failures become a failed SendResponse rather
    than an exception.
    """
    try:
        # Blocking file read; keep it off the event loop
        html = await run_in_threadpool(
            load_template, resolver, request.template_name, request.data
        )
        message_id = await provider.send(
            to=request.recipient, subject=request.subject, html=html
        )
        response = SendResponse(
            id=request.id,
            provider=provider.name,
            status=SendStatus.SENT,
            message_id=message_id,
        )
        logger.info("Sent %s via %s (message id %s)", request.id, provider.name, message_id)
    except (EmailProviderError, TemplateResolutionError, OSError) as exc:
        logger.warning("Send %s via %s failed: %s", request.id, provider.name, exc)
        response = SendResponse(
            id=request.id,
            provider=provider.name,
            status=SendStatus.FAILED,
            error=str(exc) or "Unknown error",
        )

    await forwarder.forward_send_result(_send_result_payload(request, response))
    return response


async def handle_provider_webhook(
    raw_body: bytes,
    forwarder: DownstreamForwarder,
    provider: str = "resend",
) -> Optional[CanonicalEvent]:
    """
    Normalize an already-verified webhook body and forward it.

    Returns the canonical event, or None when the body was dropped. Nothing
    here raises for bad input, including payloads the normalizer chokes on:
    the provider gets its acknowledgment either way.
    """
    try:
        payload = json.loads(raw_body or b"null")
    except ValueError:
        logger.info("Dropping %s webhook with non-JSON body", provider)
        dropped_events.record(None)
        return None

    status = raw_status(payload) if isinstance(payload, dict) else None
    try:
        event = normalize_provider_event(payload, provider=provider)
    except Exception:
        logger.exception("Dropping %s webhook that failed to normalize", provider)
        dropped_events.record(status)
        return None

    if event is None:
        dropped_events.record(status)
        logger.info("Dropping %s webhook with unrecognized status %r", provider, status)
        return None

    await forwarder.forward_event(event.to_payload())
    return event
