"""
Conversation synchronization — keeps an ordered local view of the room.

Refresh model:
- Every change-feed event is a coarse invalidation signal: the whole history
  is re-fetched rather than patched from the event payload.
- A periodic re-fetch backs up the change feed against missed deliveries.
- Overlapping loads are allowed. Each carries a request sequence number and
  a completion older than the last applied one is discarded.

Only load_history() completions write the view.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from groupchat.auth import Auth
from groupchat.config import DEFAULT_REFRESH_INTERVAL_S
from groupchat.errors import ConnectionError, GroupChatError, UploadFailed, ValidationError
from groupchat.messages import MessagesAPI
from groupchat.models.events import ChangeEvent, ChangeType, S2CEvent
from groupchat.models.message import MAX_CONTENT_LENGTH, Message, NewMessage
from groupchat.storage import MESSAGE_IMAGES, FileInput, StorageAPI
from groupchat.transport.realtime import RealtimeManager

logger = logging.getLogger(__name__)

MESSAGES_TOPIC = "public:messages"
MESSAGES_TABLE = "messages"

ViewListener = Callable[[tuple[Message, ...]], None]


def order_messages(messages: Iterable[Message]) -> list[Message]:
    """De-duplicate by id (last copy wins) and sort by created_at ascending.

    The sort is stable, so rows sharing a timestamp keep their fetched order.
    """
    by_id: dict[str, Message] = {}
    for m in messages:
        by_id[m.id] = m
    return sorted(by_id.values(), key=lambda m: m.created_at)


def group_starts(messages: Sequence[Message]) -> list[bool]:
    """True where a message opens a new sender group."""
    starts = []
    for i, m in enumerate(messages):
        starts.append(i == 0 or messages[i - 1].sender_id != m.sender_id)
    return starts


def validate_content(content: str) -> str:
    """Return the trimmed body or raise ValidationError."""
    stripped = content.strip()
    if not stripped:
        raise ValidationError("Message cannot be empty")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(
            f"Message exceeds {MAX_CONTENT_LENGTH:,} characters limit.",
            details={"length": len(content)},
        )
    return stripped


class Subscription:
    """Handle for one change-feed registration on the messages table."""

    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    RECONNECT_REQUIRED = "reconnect_required"
    CLOSED = "closed"

    def __init__(
        self,
        realtime: RealtimeManager,
        on_change: Callable[[ChangeEvent], Any],
        on_error: Optional[Callable[[str], Any]] = None,
        topic: str = MESSAGES_TOPIC,
        table: str = MESSAGES_TABLE,
    ):
        self._realtime = realtime
        self._on_change = on_change
        self._on_error = on_error
        self._topic = topic
        self._table = table
        self._state = self.SUBSCRIBING
        self._remove_handler: Optional[Callable[[], None]] = None
        self._remove_disconnect: Optional[Callable[[], None]] = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def active(self) -> bool:
        return self._state == self.SUBSCRIBED

    @property
    def topic(self) -> str:
        return self._topic

    def _handle(self, event: str, raw: dict[str, Any]) -> None:
        if self._state == self.CLOSED:
            return
        payload = raw.get("payload") or {}
        if payload.get("topic") not in (None, self._topic):
            return
        if event == S2CEvent.CHANNEL_ERROR:
            reason = (payload.get("data") or {}).get("reason", "channel error")
            self._fail(reason)
            return
        if event != S2CEvent.POSTGRES_CHANGES:
            return
        try:
            change = ChangeEvent.model_validate(payload.get("data") or {})
        except ValueError:
            logger.warning("Dropping malformed change event on %s", self._topic)
            return
        if change.table != self._table:
            return
        self._on_change(change)

    def _fail(self, reason: str) -> None:
        if self._state == self.CLOSED:
            return
        logger.warning("Subscription to %s needs reconnect: %s", self._topic, reason)
        self._state = self.RECONNECT_REQUIRED
        if self._on_error:
            self._on_error(reason)

    async def _join(self) -> None:
        self._state = self.SUBSCRIBING
        if self._remove_handler is None:
            self._remove_handler = self._realtime.add_event_handler(self._handle)
        if self._remove_disconnect is None:
            self._remove_disconnect = self._realtime.add_disconnect_handler(self._fail)
        try:
            await self._realtime.join(self._topic, self, {
                "postgres_changes": [{"event": ChangeType.ALL, "schema": "public", "table": self._table}],
            })
        except ConnectionError as e:
            self._fail(str(e))
            return
        if self._state == self.SUBSCRIBING:
            self._state = self.SUBSCRIBED

    async def resubscribe(self) -> None:
        """Explicit retry after RECONNECT_REQUIRED. There is no automatic retry."""
        if self._state == self.CLOSED:
            raise ConnectionError("Subscription already cancelled")
        await self._join()

    def cancel(self) -> None:
        """Stop delivery. No on_change call happens after this returns."""
        if self._state == self.CLOSED:
            return
        self._state = self.CLOSED
        if self._remove_handler:
            self._remove_handler()
            self._remove_handler = None
        if self._remove_disconnect:
            self._remove_disconnect()
            self._remove_disconnect = None
        self._realtime.leave(self._topic, self)


class ConversationSync:
    """Ordered view of the shared room for one signed-in session."""

    def __init__(
        self,
        messages: MessagesAPI,
        storage: StorageAPI,
        auth: Auth,
        realtime: Optional[RealtimeManager] = None,
        refresh_interval_s: Optional[float] = DEFAULT_REFRESH_INTERVAL_S,
    ):
        self._messages = messages
        self._storage = storage
        self._auth = auth
        self._realtime = realtime
        self._refresh_interval_s = refresh_interval_s

        self._view: tuple[Message, ...] = ()
        self._requested_seq = 0
        self._applied_seq = 0
        self._listeners: list[ViewListener] = []

        self._subscription: Optional[Subscription] = None
        self._poller: Optional[asyncio.Task[None]] = None
        self._pending: set[asyncio.Task[Any]] = set()
        self._opened = False

    @property
    def view(self) -> tuple[Message, ...]:
        return self._view

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def add_view_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Called with every applied view. Returns a cleanup function."""
        self._listeners.append(listener)
        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    async def load_history(self) -> list[Message]:
        """Fetch the full history and apply it unless a newer load already landed."""
        self._auth.require()
        self._requested_seq += 1
        seq = self._requested_seq
        ordered = order_messages(await self._messages.list())
        if seq > self._applied_seq:
            self._applied_seq = seq
            self._view = tuple(ordered)
            self._notify()
        else:
            logger.debug("Discarding stale history load #%d (applied #%d)", seq, self._applied_seq)
        return ordered

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._view)
            except Exception:
                logger.exception("View listener failed")

    async def subscribe_to_changes(
        self,
        on_change: Callable[[ChangeEvent], Any],
        on_error: Optional[Callable[[str], Any]] = None,
    ) -> Subscription:
        """Register for insert/update/delete on messages.

        A failed join leaves the handle in RECONNECT_REQUIRED instead of raising.
        """
        if self._realtime is None or not self._realtime.connected:
            raise ConnectionError("Realtime gateway not connected. Call connect() first.")
        sub = Subscription(self._realtime, on_change, on_error)
        await sub._join()
        return sub

    async def send(self, content: str, is_image: bool = False) -> None:
        """Validate then insert exactly once. The view updates via the refresh path."""
        body = validate_content(content)
        identity = self._auth.require()
        await self._messages.insert(NewMessage(content=body, sender_id=identity.user_id, is_image=is_image))
        if self._opened:
            self.refresh()

    async def upload_attachment(
        self, file: FileInput, scope: str = MESSAGE_IMAGES, filename: Optional[str] = None,
    ) -> str:
        identity = self._auth.require()
        return await self._storage.upload(identity.user_id, file, scope=scope, filename=filename)

    async def send_image(self, file: FileInput, filename: Optional[str] = None) -> Optional[str]:
        """Upload then post the URL as an image message.

        Upload failures are logged and abort the send; the URL is returned on success.
        """
        try:
            url = await self.upload_attachment(file, filename=filename)
        except UploadFailed as e:
            logger.error("Error uploading image: %s", e)
            return None
        await self.send(url, is_image=True)
        return url

    # -- mounted mode -------------------------------------------------------

    def refresh(self) -> None:
        """Schedule a background load_history; failures are logged."""
        task = asyncio.get_running_loop().create_task(self._safe_load())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _safe_load(self) -> None:
        try:
            await self.load_history()
        except GroupChatError as e:
            logger.warning("History refresh failed: %s", e)
        except Exception:
            # keeps the poller alive; the next tick retries
            logger.exception("History refresh failed")

    async def _poll(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._safe_load()

    async def open(self, on_error: Optional[Callable[[str], Any]] = None) -> tuple[Message, ...]:
        """Mount: initial load, change subscription and periodic refresh."""
        if self._opened:
            return self._view
        await self.load_history()
        self._opened = True
        if self._realtime is not None and self._realtime.connected:
            self._subscription = await self.subscribe_to_changes(lambda _change: self.refresh(), on_error)
        else:
            logger.info("Realtime not connected; relying on periodic refresh only")
        if self._refresh_interval_s:
            self._poller = asyncio.get_running_loop().create_task(self._poll(self._refresh_interval_s))
        return self._view

    async def close(self) -> None:
        """Unmount: release the subscription and stop all refresh work."""
        self._opened = False
        if self._subscription:
            self._subscription.cancel()
            self._subscription = None
        tasks = list(self._pending)
        if self._poller:
            tasks.append(self._poller)
            self._poller = None
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "ConversationSync":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
