"""
AsyncGroupChat / GroupChat — main SDK clients.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional

import httpx

from groupchat.auth import Auth
from groupchat.config import Settings
from groupchat.errors import ConnectionError
from groupchat.friends import FriendsAPI
from groupchat.messages import MessagesAPI
from groupchat.models.message import Message
from groupchat.presence import PresenceTracker
from groupchat.profiles import ProfilesAPI
from groupchat.storage import FileInput, StorageAPI
from groupchat.sync import ConversationSync
from groupchat.transport.http import HttpClient
from groupchat.transport.realtime import RealtimeManager

DEVICE_ID_FILE = Path.home() / ".groupchat" / "device_id"


def _get_or_create_device_id(provided: Optional[str] = None) -> str:
    if provided:
        return provided
    try:
        return DEVICE_ID_FILE.read_text().strip()
    except FileNotFoundError:
        device_id = str(uuid.uuid4())
        try:
            DEVICE_ID_FILE.parent.mkdir(parents=True, exist_ok=True)
            DEVICE_ID_FILE.write_text(device_id)
        except OSError:
            pass
        return device_id


class AsyncGroupChat:
    """Async group chat client (primary)."""

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        device_id: Optional[str] = None,
        transports: Optional[list[str]] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or Settings.from_env(url, anon_key)
        self._device_id = _get_or_create_device_id(device_id)
        self._transports = transports

        self.http = HttpClient(self.settings.url, self.settings.anon_key, transport=http_transport)
        self.auth = Auth(self.http)
        self.storage = StorageAPI(self.http)
        self.messages = MessagesAPI(self.http)
        self.profiles = ProfilesAPI(self.http, self.auth, self.storage)
        self.friends = FriendsAPI(self.http, self.auth)

        self._realtime: Optional[RealtimeManager] = None

    @property
    def connected(self) -> bool:
        return self._realtime is not None and self._realtime.connected

    @property
    def realtime(self) -> Optional[RealtimeManager]:
        return self._realtime

    async def connect(self) -> None:
        """Open the realtime gateway for the signed-in user."""
        session = self.auth.session
        if session is None:
            raise ConnectionError("Sign in before connecting to realtime.")
        self._realtime = RealtimeManager(
            base_url=self.settings.url,
            anon_key=self.settings.anon_key,
            token=session.access_token,
            user_id=session.identity.user_id,
            device_id=self._device_id,
            transports=self._transports,
            ready_timeout=self.settings.ready_timeout,
        )
        await self._realtime.connect()

    async def disconnect(self) -> None:
        if self._realtime:
            await self._realtime.disconnect()
            self._realtime = None

    async def close(self) -> None:
        await self.disconnect()
        await self.http.close()

    def conversation(self, refresh_interval_s: Optional[float] = None) -> ConversationSync:
        """A fresh synchronized view of the room. Use as `async with` to mount it."""
        return ConversationSync(
            self.messages,
            self.storage,
            self.auth,
            realtime=self._realtime,
            refresh_interval_s=self.settings.refresh_interval_s if refresh_interval_s is None else refresh_interval_s,
        )

    def presence(self) -> PresenceTracker:
        if self._realtime is None:
            raise ConnectionError("Not connected. Call connect() first.")
        return PresenceTracker(self._realtime, self.auth)

    async def __aenter__(self) -> "AsyncGroupChat":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


class GroupChat:
    """Sync wrapper around AsyncGroupChat. Runs the event loop internally."""

    def __init__(self, *args: Any, **kwargs: Any):
        self._async = AsyncGroupChat(*args, **kwargs)
        self._loop = asyncio.new_event_loop()
        self._conversation: Optional[ConversationSync] = None

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def auth(self) -> Auth:
        return self._async.auth

    @property
    def profiles(self) -> ProfilesAPI:
        return self._async.profiles

    @property
    def friends(self) -> FriendsAPI:
        return self._async.friends

    def sign_in(self, username: str, password: str) -> Any:
        return self._run(self._async.auth.sign_in(username, password))

    def sign_up(self, username: str, password: str) -> Any:
        return self._run(self._async.auth.sign_up(username, password))

    def sign_out(self) -> None:
        self._run(self._async.auth.sign_out())

    def _conv(self) -> ConversationSync:
        if self._conversation is None:
            self._conversation = self._async.conversation(refresh_interval_s=0)
        return self._conversation

    def load_history(self) -> list[Message]:
        return self._run(self._conv().load_history())

    def send(self, content: str, is_image: bool = False) -> None:
        self._run(self._conv().send(content, is_image=is_image))

    def upload_attachment(self, file: FileInput, scope: str = "message-images",
                          filename: Optional[str] = None) -> str:
        return self._run(self._conv().upload_attachment(file, scope=scope, filename=filename))

    def send_image(self, file: FileInput, filename: Optional[str] = None) -> Optional[str]:
        return self._run(self._conv().send_image(file, filename=filename))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
