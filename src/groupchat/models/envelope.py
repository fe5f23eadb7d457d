"""
Realtime envelope — every gateway message is wrapped the same way.
"""

from typing import Any, Optional
from pydantic import BaseModel


class ClientSource(BaseModel):
    role: str  # "user" | "system"
    user_id: Optional[str] = None
    device_id: Optional[str] = None


class EnvelopeMetadata(BaseModel):
    event_id: str
    request_id: Optional[str] = None
    timestamp: str
    source: ClientSource


class ChannelPayload(BaseModel):
    topic: Optional[str] = None
    data: Optional[Any] = None


class Envelope(BaseModel):
    metadata: EnvelopeMetadata
    type: str
    payload: ChannelPayload
