"""
Message rows as returned by the messages relation joined to sender profiles.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

MAX_CONTENT_LENGTH = 10_000


class SenderSummary(BaseModel):
    """The `profiles:sender_id(...)` embed on a message row."""
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False

    @field_validator("is_admin", mode="before")
    @classmethod
    def _null_is_false(cls, v: Any) -> Any:
        return bool(v)


class Message(BaseModel):
    id: str
    content: str
    sender_id: str
    created_at: datetime
    is_image: bool = False
    profiles: Optional[SenderSummary] = None

    @field_validator("id", "sender_id", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> Any:
        # bigint and uuid primary keys both come through as opaque strings
        return str(v) if v is not None else v

    @property
    def sender_name(self) -> str:
        if self.profiles and self.profiles.username:
            return self.profiles.username
        return "Unknown User"


class NewMessage(BaseModel):
    """Insert body for the messages relation; id and created_at are server-assigned."""
    content: str
    sender_id: str
    is_image: bool = False
