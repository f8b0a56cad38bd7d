"""
Pydantic models for the send endpoint.

Models:
  SendMetadata          - optional caller context carried to the send outcome
  ValidatedSendRequest  - trusted, normalized request produced by the validator
  SendResponse          - response body for POST /send
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Channel(str, Enum):
    EMAIL = "email"


class SendStatus(str, Enum):
    QUEUED = "queued"  # reserved for async delivery, never emitted today
    SENT = "sent"
    FAILED = "failed"


class SendMetadata(BaseModel):
    """Caller-supplied context. Unknown keys are kept and forwarded as-is."""
    model_config = {"extra": "allow", "populate_by_name": True}

    project_id: Optional[str] = Field(default=None, alias="projectId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    trace_id: Optional[str] = Field(default=None, alias="traceId")
    source: Optional[str] = None  # api | orchestrator | scheduler


class ValidatedSendRequest(BaseModel):
    """
    A send request that passed every check in the request validator.

    Only validate_send_request() builds these; the rest of the pipeline
    trusts every field.
    """
    model_config = {"frozen": True}

    id: str
    channel: Channel
    template_name: str
    recipient: str
    subject: str
    data: Dict[str, Any]
    metadata: Optional[SendMetadata] = None


class SendResponse(BaseModel):
    model_config = {"populate_by_name": True}

    id: str
    provider: str
    status: SendStatus
    message_id: Optional[str] = Field(default=None, alias="messageId")
    error: Optional[str] = None

    def to_payload(self) -> dict:
        """JSON body in the camelCase wire format, without unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
