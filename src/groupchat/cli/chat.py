"""CLI: groupchat history, groupchat send, groupchat watch, groupchat users"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from groupchat.cli.render import render_messages
from groupchat.errors import GroupChatError

console = Console()

PRESENCE_SETTLE_S = 1.0


def _get_client():
    from groupchat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from groupchat.cli.main import _run
    return _run(coro)


@click.command("history")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(json_output: bool):
    """Print the room's message history."""

    async def _history():
        client = _get_client()
        try:
            conv = client.conversation(refresh_interval_s=0)
            messages = await conv.load_history()
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([m.model_dump(mode="json") for m in messages], indent=2))
            return
        if not messages:
            console.print("[dim]No messages yet.[/dim]")
            return
        render_messages(console, messages, client.auth.current.user_id)

    _run(_history())


@click.command("send")
@click.argument("message", required=False)
@click.option("--image", "image", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Upload an image and post it")
def send_cmd(message: Optional[str], image: Optional[Path]):
    """Send a message (or an image) to the room."""
    if not message and not image:
        raise click.UsageError("Give a MESSAGE or --image")

    async def _send():
        client = _get_client()
        try:
            conv = client.conversation(refresh_interval_s=0)
            if image:
                with console.status("Uploading..."):
                    url = await conv.send_image(image)
                if url is None:
                    console.print("[red]Image upload failed; nothing was sent.[/red]")
                    raise SystemExit(1)
                console.print(f"[green]Image sent:[/green] {url}")
            if message:
                await conv.send(message)
                console.print("[green]Sent.[/green]")
        finally:
            await client.close()

    _run(_send())


@click.command("watch")
def watch_cmd():
    """Follow the room live; type to send, /quit to exit."""

    async def _watch():
        client = _get_client()
        me = client.auth.current.user_id
        shown = 0

        def on_view(view):
            nonlocal shown
            if len(view) < shown:
                shown = 0
            if len(view) > shown:
                previous = view[shown - 1] if shown else None
                render_messages(console, view[shown:], me, after=previous)
                shown = len(view)

        def on_error(reason: str):
            console.print(f"[yellow]Live updates paused ({reason}); falling back to polling.[/yellow]")

        try:
            await client.connect()
        except GroupChatError as e:
            console.print(f"[yellow]Realtime unavailable ({escape(str(e))}); polling only.[/yellow]")
        conv = client.conversation()
        conv.add_view_listener(on_view)
        try:
            await conv.open(on_error=on_error)
            console.print("[cyan]Type a message and press Enter (/quit to exit)[/cyan]\n")
            loop = asyncio.get_running_loop()
            while True:
                line = await loop.run_in_executor(None, input)
                if line.strip().lower() in ("/quit", "/exit"):
                    break
                try:
                    await conv.send(line)
                except GroupChatError as e:
                    console.print(f"[red]Error sending message:[/red] {escape(str(e))}")
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            await conv.close()
            await client.close()

    _run(_watch())


@click.command("users")
def users_cmd():
    """List everyone in the room with online status."""

    async def _users():
        client = _get_client()
        online: frozenset = frozenset()
        try:
            profiles = await client.profiles.list()
            try:
                await client.connect()
                async with client.presence() as tracker:
                    await asyncio.sleep(PRESENCE_SETTLE_S)
                    online = tracker.online_ids
            except GroupChatError as e:
                console.print(f"[yellow]Presence unavailable: {escape(str(e))}[/yellow]")
        finally:
            await client.close()
        table = Table(title=f"Users ({len(profiles)})")
        table.add_column("", width=2)
        table.add_column("Username", style="bold")
        table.add_column("Status")
        table.add_column("ID", style="dim")
        for p in profiles:
            dot = "[green]●[/green]" if p.id in online else "[dim]●[/dim]"
            table.add_row(dot, p.username + (" [magenta](admin)[/magenta]" if p.is_admin else ""),
                          p.status or "", p.id)
        console.print(table)

    _run(_users())
