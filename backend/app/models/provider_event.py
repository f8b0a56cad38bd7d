"""
Provider-agnostic delivery event (see app.services.event_normalizer).

Only the normalizer knows about provider payload shapes; forwarding and
logging work exclusively with CanonicalEvent.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"
    BOUNCED = "bounced"
    COMPLAINT = "complaint"
    DROPPED = "dropped"


class CanonicalEvent(BaseModel):
    """Normalized delivery-status callback. Built per webhook call, never stored."""
    model_config = {"populate_by_name": True}

    provider: str
    message_id: Optional[str] = Field(default=None, alias="messageId")
    status: EventStatus
    timestamp_ms: int = Field(alias="timestampMs")
    raw_payload: Dict[str, Any] = Field(default_factory=dict, alias="rawPayload")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
