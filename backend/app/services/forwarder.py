"""
Best-effort forwarding of send outcomes and provider events to the
downstream API.

Two targets, each authenticated with X-Communications-Secret:

  POST {DOWNSTREAM_API_URL}/communications/send-results
  POST {DOWNSTREAM_API_URL}/communications/events

Every call is bounded by DOWNSTREAM_TIMEOUT_SECONDS as a total deadline over
the whole exchange, not only per read. Failures are logged as warnings and
never raised: a slow or broken downstream must not hold up the response to
the original caller.
"""

import asyncio
import logging
from typing import Optional

import httpx

from app.config import get_downstream_secret, get_downstream_timeout, get_downstream_url

logger = logging.getLogger(__name__)

SEND_RESULTS_PATH = "/communications/send-results"
EVENTS_PATH = "/communications/events"
SECRET_HEADER = "X-Communications-Secret"


class DownstreamForwarder:
    def __init__(
        self,
        base_url: Optional[str],
        secret: Optional[str],
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.secret = secret
        self.timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.secret)

    async def forward_send_result(self, payload: dict) -> bool:
        return await self._post(SEND_RESULTS_PATH, payload)

    async def forward_event(self, payload: dict) -> bool:
        return await self._post(EVENTS_PATH, payload)

    async def _post(self, path: str, payload: dict) -> bool:
        """POST ``payload``; returns True on a 2xx response, False otherwise."""
        if not self.enabled:
            logger.debug("Downstream forwarding disabled; skipping %s", path)
            return False

        url = f"{self.base_url}{path}"
        try:
            response = await asyncio.wait_for(
                self._send(url, payload), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Forward to %s timed out after %ss", url, self.timeout)
            return False
        except httpx.HTTPError as exc:
            logger.warning("Forward to %s failed: %s", url, exc)
            return False

        if response.status_code >= 400:
            logger.warning(
                "Forward to %s rejected with HTTP %s", url, response.status_code
            )
            return False
        return True

    async def _send(self, url: str, payload: dict) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            return await client.post(
                url, json=payload, headers={SECRET_HEADER: self.secret}
            )


def get_forwarder() -> DownstreamForwarder:
    return DownstreamForwarder(
        base_url=get_downstream_url(),
        secret=get_downstream_secret(),
        timeout=get_downstream_timeout(),
    )
