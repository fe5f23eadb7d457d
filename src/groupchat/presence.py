"""
Presence tracking on the `online-users` channel.

State is a mapping of presence key -> list of metas. `presence:sync` replaces
it wholesale; `presence:join` / `presence:leave` add and remove metas (matched
by presence_ref). The online set is every user_id with a live meta.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from groupchat.auth import Auth
from groupchat.errors import ConnectionError
from groupchat.models.events import C2SEvent, S2CEvent
from groupchat.transport.realtime import RealtimeManager

logger = logging.getLogger(__name__)

PRESENCE_TOPIC = "online-users"
PRESENCE_KEY = "user"

PresenceListener = Callable[[frozenset[str]], None]


def _same_meta(a: dict[str, Any], b: dict[str, Any]) -> bool:
    ref = a.get("presence_ref")
    if ref is not None:
        return ref == b.get("presence_ref")
    return a == b


class PresenceTracker:
    def __init__(self, realtime: RealtimeManager, auth: Auth, topic: str = PRESENCE_TOPIC):
        self._realtime = realtime
        self._auth = auth
        self._topic = topic
        self._state: dict[str, list[dict[str, Any]]] = {}
        self._online: frozenset[str] = frozenset()
        self._listeners: list[PresenceListener] = []
        self._remove_handler: Optional[Callable[[], None]] = None

    @property
    def online_ids(self) -> frozenset[str]:
        return self._online

    def is_online(self, user_id: str) -> bool:
        return user_id in self._online

    def add_listener(self, listener: PresenceListener) -> Callable[[], None]:
        self._listeners.append(listener)
        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def _recompute(self) -> None:
        self._online = frozenset(
            str(meta["user_id"])
            for metas in self._state.values()
            for meta in metas
            if meta.get("user_id")
        )
        for listener in list(self._listeners):
            try:
                listener(self._online)
            except Exception:
                logger.exception("Presence listener failed")

    def _handle(self, event: str, raw: dict[str, Any]) -> None:
        payload = raw.get("payload") or {}
        if payload.get("topic") != self._topic:
            return
        data = payload.get("data") or {}

        if event == S2CEvent.PRESENCE_SYNC:
            state = data.get("state") or {}
            self._state = {key: list(metas) for key, metas in state.items()}
        elif event == S2CEvent.PRESENCE_JOIN:
            key = data.get("key", PRESENCE_KEY)
            current = self._state.setdefault(key, [])
            for meta in data.get("metas") or []:
                if not any(_same_meta(meta, m) for m in current):
                    current.append(meta)
        elif event == S2CEvent.PRESENCE_LEAVE:
            key = data.get("key", PRESENCE_KEY)
            left = data.get("metas") or []
            remaining = [m for m in self._state.get(key, []) if not any(_same_meta(l, m) for l in left)]
            if remaining:
                self._state[key] = remaining
            else:
                self._state.pop(key, None)
        else:
            return
        self._recompute()

    async def start(self) -> None:
        """Join the presence channel and announce the current user."""
        if self._remove_handler is not None:
            return
        self._remove_handler = self._realtime.add_event_handler(self._handle)
        try:
            await self._realtime.join(self._topic, self, {"presence": {"key": PRESENCE_KEY}})
        except ConnectionError:
            self._remove_handler()
            self._remove_handler = None
            raise
        identity = self._auth.current
        if identity is not None:
            self._realtime.emit(C2SEvent.PRESENCE_TRACK, {
                "user_id": identity.user_id,
                "online_at": datetime.now(timezone.utc).isoformat(),
            }, self._topic)
        logger.debug("Tracking presence on %s", self._topic)

    def stop(self) -> None:
        if self._remove_handler is None:
            return
        self._remove_handler()
        self._remove_handler = None
        self._realtime.leave(self._topic, self)
        self._state = {}
        self._recompute()

    async def __aenter__(self) -> "PresenceTracker":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.stop()
