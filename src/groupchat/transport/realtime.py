"""
Realtime gateway connection manager.

Connection: {url}/realtime/v1/socket.io/ with auth={apikey, token}.
Waits for `ready` event before resolving connect().
Channels are joined by topic; change-feed and presence events arrive wrapped
in the standard envelope and are fanned out to every registered handler.

Several holders (subscriptions, presence trackers) may share one topic.
`channel:leave` goes out only when the last holder of a topic releases it.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from groupchat.errors import ConnectionError
from groupchat.models.events import C2SEvent, S2CEvent
from groupchat.transport.envelope import build_envelope, parse_envelope

logger = logging.getLogger(__name__)

SOCKETIO_PATH = "/realtime/v1/socket.io/"
LIFECYCLE_EVENTS = ("connect", "disconnect", "connect_error", S2CEvent.READY)

EventHandler = Callable[[str, dict[str, Any]], None]


class RealtimeManager:
    def __init__(
        self,
        base_url: str,
        anon_key: str,
        token: str,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        transports: Optional[list[str]] = None,
        ready_timeout: float = 15.0,
    ):
        self._base_url = base_url
        self._anon_key = anon_key
        self._token = token
        self._user_id = user_id
        self._device_id = device_id or str(uuid.uuid4())
        self._transports = transports or ["websocket"]
        self._ready_timeout = ready_timeout
        self._sio: Optional[socketio.AsyncClient] = None
        self._connected = False
        self._event_handlers: list[EventHandler] = []
        self._disconnect_handlers: list[Callable[[str], None]] = []
        self._holders: dict[str, set[object]] = {}

    @property
    def connected(self) -> bool:
        return self._connected and self._sio is not None and self._sio.connected

    def holders(self, topic: str) -> int:
        return len(self._holders.get(topic, ()))

    def add_event_handler(self, handler: EventHandler) -> Callable[[], None]:
        """Add an event handler. Returns a cleanup function."""
        self._event_handlers.append(handler)
        def remove() -> None:
            try:
                self._event_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def add_disconnect_handler(self, handler: Callable[[str], None]) -> Callable[[], None]:
        """Called with the reason whenever a ready connection drops."""
        self._disconnect_handlers.append(handler)
        def remove() -> None:
            try:
                self._disconnect_handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def _dispatch(self, event: str, data: Any) -> None:
        if parse_envelope(data) is None:
            logger.debug("Dropping non-envelope %s event", event)
            return
        for handler in list(self._event_handlers):
            try:
                handler(event, data)
            except Exception:
                logger.exception("Realtime handler failed for %s", event)

    def _on_dropped(self, reason: str) -> None:
        if not self._connected:
            return
        self._connected = False
        # the gateway forgets channel membership with the socket
        self._holders.clear()
        logger.warning("Realtime gateway disconnected: %s", reason)
        for handler in list(self._disconnect_handlers):
            try:
                handler(reason)
            except Exception:
                logger.exception("Disconnect handler failed")

    async def connect(self) -> None:
        """Connect to the gateway and wait for `ready`."""
        if self.connected:
            return

        sio = socketio.AsyncClient()
        ready = asyncio.Event()

        @sio.on(S2CEvent.READY)
        async def on_ready(*_args: Any) -> None:
            self._connected = True
            ready.set()

        @sio.on("*")
        async def on_any(event: str, data: Any = None) -> None:
            if event not in LIFECYCLE_EVENTS:
                self._dispatch(event, data)

        @sio.event
        async def disconnect(reason: str = "") -> None:
            self._on_dropped(reason or "disconnected")

        self._sio = sio
        try:
            await sio.connect(
                self._base_url,
                auth={"apikey": self._anon_key, "token": self._token},
                transports=self._transports,
                socketio_path=SOCKETIO_PATH,
            )
        except SocketIOConnectionError as e:
            self._sio = None
            raise ConnectionError(f"Realtime connect failed: {e}") from e

        try:
            await asyncio.wait_for(ready.wait(), timeout=self._ready_timeout)
        except asyncio.TimeoutError:
            self._sio = None
            await sio.disconnect()
            raise ConnectionError(f"No 'ready' from gateway within {self._ready_timeout}s")

    def _require_sio(self) -> socketio.AsyncClient:
        if self._sio is None or not self._sio.connected:
            raise ConnectionError("Realtime gateway not connected")
        return self._sio

    def _envelope(self, event_type: str, data: Any, topic: Optional[str],
                  request_id: Optional[str] = None) -> dict[str, Any]:
        return build_envelope(event_type, data, self._user_id, self._device_id,
                              topic=topic, request_id=request_id)

    def emit(self, event_type: str, data: Any, topic: Optional[str] = None) -> None:
        """Fire-and-forget emit scheduled on the running loop. Errors are logged."""
        sio = self._require_sio()
        envelope = self._envelope(event_type, data, topic)

        async def send() -> None:
            try:
                await sio.emit(event_type, envelope)
            except Exception as e:
                logger.error("Emit failed for %s: %s", event_type, e)

        asyncio.get_running_loop().create_task(send())

    async def emit_and_wait(
        self,
        event_type: str,
        data: Any,
        topic: Optional[str] = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """Emit and wait for the gateway's reply carrying the same request_id."""
        sio = self._require_sio()
        request_id = str(uuid.uuid4())
        reply: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()

        def match(evt: str, raw: dict[str, Any]) -> None:
            if evt != event_type or reply.done():
                return
            if (raw.get("metadata") or {}).get("request_id") == request_id:
                reply.set_result((raw.get("payload") or {}).get("data") or {})

        remove = self.add_event_handler(match)
        try:
            await sio.emit(event_type, self._envelope(event_type, data, topic, request_id))
            return await asyncio.wait_for(reply, timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError(f"No {event_type} reply within {timeout}s")
        finally:
            remove()

    async def join(self, topic: str, holder: object, config: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Join a channel topic on behalf of `holder`.

        Raises ConnectionError unless the gateway acks with status ok.
        """
        reply = await self.emit_and_wait(C2SEvent.CHANNEL_JOIN, {"config": config or {}}, topic=topic)
        if reply.get("status") != "ok":
            raise ConnectionError(f"Join {topic} rejected: {reply.get('reason', 'unknown')}")
        self._holders.setdefault(topic, set()).add(holder)
        return reply

    def leave(self, topic: str, holder: object) -> None:
        """Release `holder`'s claim; the channel is left once nobody holds it."""
        remaining = self._holders.get(topic)
        if remaining is None or holder not in remaining:
            return
        remaining.discard(holder)
        if remaining:
            return
        del self._holders[topic]
        if self.connected:
            self.emit(C2SEvent.CHANNEL_LEAVE, None, topic)

    async def disconnect(self) -> None:
        self._connected = False
        self._holders.clear()
        if self._sio:
            sio, self._sio = self._sio, None
            await sio.disconnect()
