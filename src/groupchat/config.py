"""
Client settings — backend URL, anon key and refresh cadence.
"""

import os
from typing import Optional

from pydantic import BaseModel

from groupchat.errors import GroupChatError

URL_ENV = "GROUPCHAT_URL"
ANON_KEY_ENV = "GROUPCHAT_ANON_KEY"

DEFAULT_REFRESH_INTERVAL_S = 1.0
DEFAULT_READY_TIMEOUT_S = 15.0


class Settings(BaseModel):
    url: str
    anon_key: str
    refresh_interval_s: float = DEFAULT_REFRESH_INTERVAL_S
    ready_timeout: float = DEFAULT_READY_TIMEOUT_S

    @classmethod
    def from_env(cls, url: Optional[str] = None, anon_key: Optional[str] = None) -> "Settings":
        """Explicit arguments win over GROUPCHAT_URL / GROUPCHAT_ANON_KEY."""
        url = url or os.environ.get(URL_ENV)
        anon_key = anon_key or os.environ.get(ANON_KEY_ENV)
        if not url or not anon_key:
            raise GroupChatError(
                "config_error",
                f"Missing backend settings: set {URL_ENV} and {ANON_KEY_ENV}",
            )
        return cls(url=url.rstrip("/"), anon_key=anon_key)
