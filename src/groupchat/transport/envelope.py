"""
Envelope construction and parsing for the realtime gateway.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from groupchat.models.envelope import ChannelPayload, ClientSource, Envelope, EnvelopeMetadata


def build_envelope(
    event_type: str,
    data: Any,
    user_id: Optional[str],
    device_id: str,
    topic: Optional[str] = None,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build a C2S envelope as a dict ready for Socket.IO emit."""
    envelope = Envelope(
        metadata=EnvelopeMetadata(
            event_id=str(uuid.uuid4()),
            request_id=request_id or str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=ClientSource(role="user", user_id=user_id, device_id=device_id),
        ),
        type=event_type,
        payload=ChannelPayload(topic=topic, data=data),
    )
    return envelope.model_dump()


def parse_envelope(raw: Any) -> Optional[Envelope]:
    """Parse an S2C envelope. Returns None if invalid."""
    try:
        return Envelope.model_validate(raw)
    except PydanticValidationError:
        return None
