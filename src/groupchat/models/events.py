"""
Realtime gateway event names and change-feed payloads.
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class C2SEvent:
    CHANNEL_JOIN = "channel:join"
    CHANNEL_LEAVE = "channel:leave"
    PRESENCE_TRACK = "presence:track"


class S2CEvent:
    READY = "ready"
    POSTGRES_CHANGES = "postgres_changes"
    PRESENCE_SYNC = "presence:sync"
    PRESENCE_JOIN = "presence:join"
    PRESENCE_LEAVE = "presence:leave"
    CHANNEL_ERROR = "channel:error"


class ChangeType:
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class ChangeEvent(BaseModel):
    """postgres_changes payload.data"""
    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field("public", alias="schema")
    table: str
    eventType: str
    commit_timestamp: Optional[str] = None
    new: dict[str, Any] = {}
    old: dict[str, Any] = {}
