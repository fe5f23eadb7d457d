"""Terminal rendering of the room: sender groups, timestamps, image links."""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from rich.console import Console
from rich.text import Text

from groupchat.models.message import Message
from groupchat.sync import group_starts


def format_time(when: datetime, now: Optional[datetime] = None) -> str:
    """'Today at 3:04 PM', 'Yesterday at ...' or '05/17/2024 3:04 PM', in local time."""
    if now is None:
        now = datetime.now().astimezone()
    local = when.astimezone(now.tzinfo) if when.tzinfo and now.tzinfo else when
    clock = local.strftime("%I:%M %p").lstrip("0")
    if local.date() == now.date():
        return f"Today at {clock}"
    if local.date() == (now - timedelta(days=1)).date():
        return f"Yesterday at {clock}"
    return f"{local.strftime('%m/%d/%Y')} {clock}"


def render_messages(
    console: Console,
    messages: Sequence[Message],
    current_user_id: Optional[str] = None,
    now: Optional[datetime] = None,
    after: Optional[Message] = None,
) -> None:
    """Print messages; `after` is the last message already on screen, for grouping."""
    starts = group_starts([after, *messages])[1:] if after is not None else group_starts(messages)
    for msg, starts_group in zip(messages, starts):
        mine = msg.sender_id == current_user_id
        if starts_group:
            header = Text()
            header.append(msg.sender_name, style="bold blue" if mine else "bold")
            if msg.profiles and msg.profiles.is_admin:
                header.append(" [admin]", style="magenta")
            header.append(f"  {format_time(msg.created_at, now)}", style="dim")
            console.print(header)
        if msg.is_image:
            console.print(Text(f"  [image] {msg.content}", style="cyan underline"))
        else:
            console.print(Text(f"  {msg.content}"))
