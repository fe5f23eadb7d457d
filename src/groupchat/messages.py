"""
Messages REST API — the shared room's rows, joined to sender profiles.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from groupchat.errors import StoreUnavailable
from groupchat.models.message import Message, NewMessage
from groupchat.transport.http import HttpClient

MESSAGES_PATH = "/rest/v1/messages"
HISTORY_SELECT = "*,profiles:sender_id(username,avatar_url,is_admin)"


class MessagesAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list(self) -> list[Message]:
        """Every message in the room, oldest first."""
        rows: list[dict[str, Any]] = await self._http.get(
            MESSAGES_PATH,
            params={"select": HISTORY_SELECT, "order": "created_at.asc"},
        ) or []
        try:
            return [Message.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            raise StoreUnavailable(f"Malformed message row: {e.errors()[0]['msg']}") from e

    async def insert(self, message: NewMessage) -> None:
        """Single insert; the row comes back through the change feed, not here."""
        await self._http.post(
            MESSAGES_PATH,
            message.model_dump(),
            headers={"Prefer": "return=minimal"},
        )
