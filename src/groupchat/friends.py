"""
Friends REST API — request/accept bookkeeping and username search.
"""

from __future__ import annotations

from groupchat.auth import Auth
from groupchat.errors import ValidationError
from groupchat.models.friend import ACCEPTED, PENDING, Friendship
from groupchat.models.profile import Profile
from groupchat.transport.http import HttpClient

FRIENDS_PATH = "/rest/v1/friends"
PROFILES_PATH = "/rest/v1/profiles"
MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 10


class FriendsAPI:
    def __init__(self, http: HttpClient, auth: Auth):
        self._http = http
        self._auth = auth

    async def list(self) -> list[Friendship]:
        """Rows the current user created, pending or accepted."""
        identity = self._auth.require()
        rows = await self._http.get(FRIENDS_PATH, params={"select": "*", "user_id": f"eq.{identity.user_id}"})
        return [Friendship.model_validate(row) for row in rows or []]

    async def pending(self) -> list[Friendship]:
        """Incoming requests waiting for the current user to accept."""
        identity = self._auth.require()
        rows = await self._http.get(FRIENDS_PATH, params={
            "select": "*",
            "friend_id": f"eq.{identity.user_id}",
            "status": f"eq.{PENDING}",
        })
        return [Friendship.model_validate(row) for row in rows or []]

    async def search(self, term: str) -> list[Profile]:
        """Case-insensitive username search, excluding self and existing friends."""
        term = term.strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []
        identity = self._auth.require()
        excluded = [identity.user_id] + [f.friend_id for f in await self.list()]
        rows = await self._http.get(PROFILES_PATH, params={
            "select": "*",
            "username": f"ilike.*{term}*",
            "id": f"not.in.({','.join(excluded)})",
            "limit": str(SEARCH_LIMIT),
        })
        return [Profile.model_validate(row) for row in rows or []]

    async def send_request(self, friend_id: str) -> None:
        identity = self._auth.require()
        if friend_id == identity.user_id:
            raise ValidationError("You cannot add yourself as a friend")
        # the (user_id, friend_id) unique constraint surfaces as a 409 -> ValidationError
        await self._http.post(
            FRIENDS_PATH,
            {"user_id": identity.user_id, "friend_id": friend_id, "status": PENDING},
            headers={"Prefer": "return=minimal"},
        )

    async def accept(self, requester_id: str) -> None:
        identity = self._auth.require()
        await self._http.patch(
            FRIENDS_PATH,
            {"status": ACCEPTED},
            params={"user_id": f"eq.{requester_id}", "friend_id": f"eq.{identity.user_id}"},
            headers={"Prefer": "return=minimal"},
        )
