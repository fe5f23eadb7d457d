"""Profiles, themes and friend requests."""

import pytest

from groupchat.errors import Unauthorized, ValidationError
from groupchat.profiles import THEMES, get_theme


def test_theme_catalogue():
    assert list(THEMES) == ["dark", "midnight", "dracula", "synthwave", "retro-green"]
    assert get_theme("retro-green").name == "Retro Green"
    with pytest.raises(ValidationError):
        get_theme("solarized")


class TestProfiles:

    @pytest.mark.asyncio
    async def test_get_current(self, profiles):
        p = await profiles.get_current()
        assert p.username == "alice"
        assert p.theme == "dark"
        assert p.is_admin is False

    @pytest.mark.asyncio
    async def test_get_current_signed_out(self, profiles, auth):
        await auth.sign_out()
        assert await profiles.get_current() is None

    @pytest.mark.asyncio
    async def test_list_ordered_by_username(self, profiles, backend):
        backend.add_profile("u0", "aaron")
        assert [p.username for p in await profiles.list()] == ["aaron", "alice", "bob"]

    @pytest.mark.asyncio
    async def test_update(self, profiles, backend):
        p = await profiles.update(username=" alicia ", theme="dracula", status="busy")
        assert p.username == "alicia"
        assert backend.profiles["u1"]["theme"] == "dracula"
        assert backend.profiles["u1"]["status"] == "busy"
        assert backend.requests[-1].url.params["id"] == "eq.u1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{"theme": "neon"}, {"username": "a"}, {}])
    async def test_update_validation(self, profiles, backend, kwargs):
        with pytest.raises(ValidationError):
            await profiles.update(**kwargs)
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_upload_avatar(self, profiles, backend):
        p = await profiles.upload_avatar(b"img", filename="me.png")
        assert "/storage/v1/object/public/avatars/u1/" in p.avatar_url
        assert any(key.startswith("avatars/u1/") for key in backend.objects)


class TestFriends:

    @pytest.mark.asyncio
    async def test_send_and_accept(self, friends, backend, auth):
        await friends.send_request("u2")
        assert backend.friends == [{"user_id": "u1", "friend_id": "u2", "status": "pending"}]
        rows = await friends.list()
        assert [(f.friend_id, f.accepted) for f in rows] == [("u2", False)]

        auth.restore("token-u2", "u2")
        pending = await friends.pending()
        assert [f.user_id for f in pending] == ["u1"]
        await friends.accept("u1")
        assert backend.friends[0]["status"] == "accepted"
        assert await friends.pending() == []

    @pytest.mark.asyncio
    async def test_duplicate_request_rejected(self, friends):
        await friends.send_request("u2")
        with pytest.raises(ValidationError) as exc:
            await friends.send_request("u2")
        assert exc.value.code == "conflict"

    @pytest.mark.asyncio
    async def test_cannot_befriend_self(self, friends, backend):
        with pytest.raises(ValidationError):
            await friends.send_request("u1")
        assert backend.friends == []

    @pytest.mark.asyncio
    async def test_search_excludes_self_and_friends(self, friends, backend):
        backend.add_profile("u3", "bobby")
        backend.add_profile("u4", "Bobcat")
        await friends.send_request("u3")
        found = await friends.search("BOB")
        assert sorted(p.username for p in found) == ["Bobcat", "bob"]
        assert backend.requests[-1].url.params["limit"] == "10"

    @pytest.mark.asyncio
    async def test_short_search_term(self, friends, backend):
        assert await friends.search("b") == []
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_requires_session(self, friends, auth):
        await auth.sign_out()
        with pytest.raises(Unauthorized):
            await friends.send_request("u2")
