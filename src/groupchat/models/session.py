"""
Auth session models.
"""

from typing import Any, Optional
from pydantic import BaseModel


class Identity(BaseModel):
    """The authenticated subject plus its custom claims."""
    user_id: str
    email: Optional[str] = None
    claims: dict[str, Any] = {}

    @property
    def username(self) -> Optional[str]:
        return self.claims.get("username")


class Session(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    identity: Identity
