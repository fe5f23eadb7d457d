"""
Profiles REST API and the theme catalogue.
"""

from __future__ import annotations

from typing import Any, Optional

from groupchat.auth import Auth, validate_username
from groupchat.errors import ValidationError
from groupchat.models.profile import Profile, Theme, ThemeColors
from groupchat.storage import AVATARS, FileInput, StorageAPI
from groupchat.transport.http import HttpClient

PROFILES_PATH = "/rest/v1/profiles"

THEMES: dict[str, Theme] = {
    "dark": Theme(key="dark", name="Dark", colors=ThemeColors(
        background="hsl(235, 24%, 19%)", foreground="hsl(0, 0%, 98%)",
        primary="hsl(252, 78%, 60%)", secondary="hsl(220, 13%, 13%)", accent="hsl(220, 13%, 23%)",
    )),
    "midnight": Theme(key="midnight", name="Midnight", colors=ThemeColors(
        background="hsl(260, 60%, 10%)", foreground="hsl(0, 0%, 98%)",
        primary="hsl(250, 80%, 70%)", secondary="hsl(240, 20%, 20%)", accent="hsl(270, 50%, 30%)",
    )),
    "dracula": Theme(key="dracula", name="Dracula", colors=ThemeColors(
        background="hsl(23, 55%, 12%)", foreground="hsl(0, 0%, 98%)",
        primary="hsl(330, 100%, 70%)", secondary="hsl(250, 20%, 20%)", accent="hsl(300, 50%, 30%)",
    )),
    "synthwave": Theme(key="synthwave", name="Synthwave", colors=ThemeColors(
        background="hsl(255, 5%, 11%)", foreground="hsl(0, 0%, 98%)",
        primary="hsl(220, 100%, 70%)", secondary="hsl(240, 20%, 20%)", accent="hsl(300, 80%, 60%)",
    )),
    "retro-green": Theme(key="retro-green", name="Retro Green", colors=ThemeColors(
        background="hsl(120, 30%, 10%)", foreground="hsl(0, 0%, 98%)",
        primary="hsl(140, 100%, 60%)", secondary="hsl(120, 20%, 20%)", accent="hsl(160, 60%, 30%)",
    )),
}


def get_theme(name: str) -> Theme:
    try:
        return THEMES[name]
    except KeyError:
        raise ValidationError(f"Unknown theme {name!r}; choose one of {', '.join(THEMES)}") from None


class ProfilesAPI:
    def __init__(self, http: HttpClient, auth: Auth, storage: StorageAPI):
        self._http = http
        self._auth = auth
        self._storage = storage

    async def get(self, user_id: str) -> Optional[Profile]:
        rows = await self._http.get(PROFILES_PATH, params={"select": "*", "id": f"eq.{user_id}"})
        return Profile.model_validate(rows[0]) if rows else None

    async def get_current(self) -> Optional[Profile]:
        identity = self._auth.current
        if identity is None:
            return None
        return await self.get(identity.user_id)

    async def list(self) -> list[Profile]:
        """All profiles, ordered by username."""
        rows = await self._http.get(PROFILES_PATH, params={"select": "*", "order": "username"}) or []
        return [Profile.model_validate(row) for row in rows]

    async def update(
        self,
        *,
        username: Optional[str] = None,
        theme: Optional[str] = None,
        avatar_url: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Optional[Profile]:
        """Patch the current user's profile. Only the given fields change."""
        identity = self._auth.require()
        changes: dict[str, Any] = {}
        if username is not None:
            changes["username"] = validate_username(username)
        if theme is not None:
            changes["theme"] = get_theme(theme).key
        if avatar_url is not None:
            changes["avatar_url"] = avatar_url
        if status is not None:
            changes["status"] = status
        if not changes:
            raise ValidationError("Nothing to update")
        rows = await self._http.patch(
            PROFILES_PATH,
            changes,
            params={"id": f"eq.{identity.user_id}"},
            headers={"Prefer": "return=representation"},
        )
        return Profile.model_validate(rows[0]) if rows else None

    async def upload_avatar(self, file: FileInput, filename: Optional[str] = None) -> Optional[Profile]:
        identity = self._auth.require()
        url = await self._storage.upload(identity.user_id, file, scope=AVATARS, filename=filename)
        return await self.update(avatar_url=url)
