"""Shared fakes: an in-memory backend behind httpx.MockTransport and a fake realtime gateway."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
import pytest

from groupchat.auth import Auth
from groupchat.errors import ConnectionError
from groupchat.friends import FriendsAPI
from groupchat.messages import MessagesAPI
from groupchat.profiles import ProfilesAPI
from groupchat.storage import StorageAPI
from groupchat.sync import ConversationSync
from groupchat.transport.http import HttpClient

BASE_URL = "https://chat.example.test"
ANON_KEY = "anon-key"
T0 = datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc)


class FakeBackend:
    """Just enough of the REST, storage and auth surface for the SDK."""

    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, Any]] = []
        self.friends: list[dict[str, Any]] = []
        self.objects: dict[str, bytes] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_status: Optional[int] = None
        self.fail_uploads = False
        self._next_id = 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # helpers -------------------------------------------------------------

    def add_profile(self, user_id: str, username: str, **extra: Any) -> None:
        self.profiles[user_id] = {"id": user_id, "username": username, "theme": "dark",
                                  "avatar_url": None, "is_admin": False, **extra}

    def add_message(self, sender_id: str, content: str, at: Optional[datetime] = None,
                    is_image: bool = False) -> dict[str, Any]:
        row = {
            "id": self._next_id,
            "content": content,
            "sender_id": sender_id,
            "is_image": is_image,
            "created_at": (at or T0 + timedelta(seconds=self._next_id)).isoformat(),
        }
        self._next_id += 1
        self.messages.append(row)
        return row

    def mutations(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method != "GET" and r.url.path == path]

    # routing -------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status:
            return httpx.Response(self.fail_status, text="backend down")
        path = request.url.path
        if path == "/rest/v1/messages":
            return self._messages(request)
        if path == "/rest/v1/profiles":
            return self._profiles(request)
        if path == "/rest/v1/friends":
            return self._friends(request)
        if path.startswith("/storage/v1/object/"):
            return self._storage(request)
        if path.startswith("/auth/v1/"):
            return self._auth(request)
        return httpx.Response(404, text="no route")

    def _messages(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            rows = []
            for m in self.messages:
                p = self.profiles.get(m["sender_id"])
                embed = {k: p[k] for k in ("username", "avatar_url", "is_admin")} if p else None
                rows.append({**m, "profiles": embed})
            return httpx.Response(200, json=rows)
        body = json.loads(request.content)
        self.add_message(body["sender_id"], body["content"], is_image=body["is_image"])
        return httpx.Response(201)

    def _profiles(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        if request.method == "GET":
            rows = list(self.profiles.values())
            if "id" in params and params["id"].startswith("eq."):
                rows = [r for r in rows if r["id"] == params["id"][3:]]
            if "username" in params:
                needle = params["username"][len("ilike."):].strip("*").lower()
                rows = [r for r in rows if needle in r["username"].lower()]
            if "id" in params and params["id"].startswith("not.in."):
                excluded = params["id"][len("not.in.("):-1].split(",")
                rows = [r for r in rows if r["id"] not in excluded]
            if params.get("order") == "username":
                rows.sort(key=lambda r: r["username"])
            return httpx.Response(200, json=rows[: int(params.get("limit", "1000"))])
        body = json.loads(request.content)
        if request.method == "POST":
            self.add_profile(body["id"], body["username"])
            return httpx.Response(201)
        user_id = params["id"][3:]
        self.profiles[user_id].update(body)
        return httpx.Response(200, json=[self.profiles[user_id]])

    def _friends(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params

        def matches(row: dict[str, Any]) -> bool:
            for col in ("user_id", "friend_id", "status"):
                if col in params and row[col] != params[col][3:]:
                    return False
            return True

        if request.method == "GET":
            return httpx.Response(200, json=[r for r in self.friends if matches(r)])
        body = json.loads(request.content)
        if request.method == "POST":
            if any(r["user_id"] == body["user_id"] and r["friend_id"] == body["friend_id"] for r in self.friends):
                return httpx.Response(409, json={"message": "duplicate key value violates unique constraint"})
            self.friends.append(body)
            return httpx.Response(201)
        for r in self.friends:
            if matches(r):
                r.update(body)
        return httpx.Response(204)

    def _storage(self, request: httpx.Request) -> httpx.Response:
        if self.fail_uploads:
            return httpx.Response(500, text="storage error")
        key = request.url.path[len("/storage/v1/object/"):]
        self.objects[key] = request.content
        return httpx.Response(200, json={"Key": key})

    def _auth(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/auth/v1/signup":
            body = json.loads(request.content)
            user_id = f"user-{len(self.users) + 1}"
            user = {"id": user_id, "email": body["email"], "user_metadata": body.get("data", {})}
            self.users[body["email"]] = {**user, "password": body["password"]}
            return httpx.Response(200, json={"access_token": f"token-{user_id}", "refresh_token": "r1", "user": user})
        if path == "/auth/v1/token":
            body = json.loads(request.content)
            if request.url.params["grant_type"] == "refresh_token":
                user = next(iter(self.users.values()))
                return httpx.Response(200, json={"access_token": "refreshed", "refresh_token": "r2",
                                                 "user": {k: v for k, v in user.items() if k != "password"}})
            user = self.users.get(body["email"])
            if not user or user["password"] != body["password"]:
                return httpx.Response(400, json={"error": "invalid_grant"})
            public = {k: v for k, v in user.items() if k != "password"}
            return httpx.Response(200, json={"access_token": f"token-{user['id']}", "user": public})
        if path == "/auth/v1/user":
            token = request.headers["Authorization"].split(" ", 1)[1]
            for user in self.users.values():
                if token == f"token-{user['id']}":
                    return httpx.Response(200, json={k: v for k, v in user.items() if k != "password"})
            return httpx.Response(401, json={"error": "invalid token"})
        if path == "/auth/v1/logout":
            return httpx.Response(204)
        return httpx.Response(404)


class FakeRealtime:
    """Stands in for RealtimeManager: records joins/emits and lets tests push events.

    Mirrors the manager's per-topic holders: `left` records a topic only
    once its last holder releases it.
    """

    def __init__(self) -> None:
        self.connected = True
        self.joined: list[tuple[str, dict[str, Any]]] = []
        self.left: list[str] = []
        self.emitted: list[tuple[str, Any, Optional[str]]] = []
        self.join_error: Optional[str] = None
        self._handlers: list[Callable[[str, dict[str, Any]], None]] = []
        self._disconnect_handlers: list[Callable[[str], None]] = []
        self._holders: dict[str, set[object]] = {}

    def add_event_handler(self, handler):
        self._handlers.append(handler)
        return lambda: self._handlers.remove(handler) if handler in self._handlers else None

    def add_disconnect_handler(self, handler):
        self._disconnect_handlers.append(handler)
        return lambda: self._disconnect_handlers.remove(handler) if handler in self._disconnect_handlers else None

    async def join(self, topic: str, holder: object, config: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        if self.join_error:
            raise ConnectionError(self.join_error)
        self.joined.append((topic, config or {}))
        self._holders.setdefault(topic, set()).add(holder)
        return {"status": "ok"}

    def leave(self, topic: str, holder: object) -> None:
        holders = self._holders.get(topic, set())
        if holder not in holders:
            return
        holders.discard(holder)
        if not holders:
            del self._holders[topic]
            self.left.append(topic)

    def emit(self, event_type: str, data: Any, topic: Optional[str] = None) -> None:
        self.emitted.append((event_type, data, topic))

    def push(self, event: str, topic: str, data: Any) -> None:
        raw = {"metadata": {"event_id": "e"}, "type": event, "payload": {"topic": topic, "data": data}}
        for handler in list(self._handlers):
            handler(event, raw)

    def drop(self, reason: str = "transport close") -> None:
        self.connected = False
        self._holders.clear()
        for handler in list(self._disconnect_handlers):
            handler(reason)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)


@pytest.fixture
def backend() -> FakeBackend:
    b = FakeBackend()
    b.add_profile("u1", "alice")
    b.add_profile("u2", "bob")
    return b


@pytest.fixture
def http(backend: FakeBackend) -> HttpClient:
    return HttpClient(BASE_URL, ANON_KEY, transport=backend.transport())


@pytest.fixture
def auth(http: HttpClient) -> Auth:
    a = Auth(http)
    a.restore("token-u1", "u1", claims={"username": "alice"})
    return a


@pytest.fixture
def realtime() -> FakeRealtime:
    return FakeRealtime()


@pytest.fixture
def storage(http: HttpClient) -> StorageAPI:
    return StorageAPI(http)


@pytest.fixture
def profiles(http: HttpClient, auth: Auth, storage: StorageAPI) -> ProfilesAPI:
    return ProfilesAPI(http, auth, storage)


@pytest.fixture
def friends(http: HttpClient, auth: Auth) -> FriendsAPI:
    return FriendsAPI(http, auth)


@pytest.fixture
def conversation(http: HttpClient, auth: Auth, storage: StorageAPI, realtime: FakeRealtime) -> ConversationSync:
    return ConversationSync(MessagesAPI(http), storage, auth, realtime=realtime, refresh_interval_s=None)
