"""
Friendship rows — one row per (user_id, friend_id) request.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

PENDING = "pending"
ACCEPTED = "accepted"


class Friendship(BaseModel):
    id: Optional[str] = None
    user_id: str
    friend_id: str
    status: str = PENDING
    created_at: Optional[datetime] = None

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED
