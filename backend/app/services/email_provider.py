"""
Email provider client (Resend).

A single bounded HTTP round trip per send: POST {base_url}/emails with
{from, to, subject, html} and bearer auth. Returns the provider's message id.

Environment variables
---------------------
EMAIL_PROVIDER_KEY        Resend API key (required).
EMAIL_FROM                Sender address (required).
EMAIL_PROVIDER_BASE_URL   Override the API base (default: https://api.resend.com).
DOWNSTREAM_TIMEOUT_SECONDS  Request timeout (default: 5).
"""

import logging
from typing import Optional

import httpx

from app.config import (
    get_downstream_timeout,
    get_email_from,
    get_provider_base_url,
    get_provider_key,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "resend"


class EmailProviderError(Exception):
    """The provider rejected the send or could not be reached."""


class EmailProviderNotConfigured(EmailProviderError):
    """EMAIL_PROVIDER_KEY or EMAIL_FROM is missing."""


class ResendEmailProvider:
    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        sender: str,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> Optional[str]:
        """
        Send one email.

        Returns:
            The provider message id (None if the provider omitted it).

        Raises:
            EmailProviderError: on network failure, timeout, or non-2xx status.
        """
        payload = {"from": self.sender, "to": to, "subject": subject, "html": html}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/emails", json=payload, headers=headers
                )
        except httpx.HTTPError as exc:
            raise EmailProviderError(f"Email provider request failed: {exc}") from exc

        if response.status_code >= 400:
            raise EmailProviderError(_error_message(response))

        try:
            body = response.json()
        except ValueError:
            body = {}
        message_id = body.get("id") if isinstance(body, dict) else None
        return message_id if isinstance(message_id, str) and message_id else None


def _error_message(response: httpx.Response) -> str:
    """Prefer the provider's own error message; fall back to the HTTP status."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return f"Email provider returned HTTP {response.status_code}"


def get_email_provider() -> ResendEmailProvider:
    """
    Build a provider client from the environment.

    Raises EmailProviderNotConfigured when the key or sender is missing, so
    sending is disabled rather than attempted without credentials.
    """
    api_key = get_provider_key()
    sender = get_email_from()
    if not api_key or not sender:
        raise EmailProviderNotConfigured(
            "EMAIL_PROVIDER_KEY and EMAIL_FROM must be configured"
        )
    return ResendEmailProvider(
        api_key=api_key,
        sender=sender,
        base_url=get_provider_base_url(),
        timeout=get_downstream_timeout(),
    )
