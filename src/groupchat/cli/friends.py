"""CLI: groupchat friends search|add|accept|list|pending"""

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _get_client():
    from groupchat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from groupchat.cli.main import _run
    return _run(coro)


@click.group()
def friends():
    """Friend requests."""


@friends.command("search")
@click.argument("term")
def friends_search(term):
    """Find people by username."""

    async def _search():
        client = _get_client()
        try:
            results = await client.friends.search(term)
        finally:
            await client.close()
        if not results:
            console.print("[dim]No users found[/dim]")
            return
        table = Table()
        table.add_column("Username", style="bold")
        table.add_column("ID", style="dim")
        for p in results:
            table.add_row(p.username, p.id)
        console.print(table)

    _run(_search())


@friends.command("add")
@click.argument("user_id")
def friends_add(user_id):
    """Send a friend request."""

    async def _add():
        client = _get_client()
        try:
            await client.friends.send_request(user_id)
        finally:
            await client.close()
        console.print("[green]Friend request sent![/green]")

    _run(_add())


@friends.command("accept")
@click.argument("user_id")
def friends_accept(user_id):
    """Accept a request from USER_ID."""

    async def _accept():
        client = _get_client()
        try:
            await client.friends.accept(user_id)
        finally:
            await client.close()
        console.print("[green]Friend request accepted.[/green]")

    _run(_accept())


@friends.command("list")
def friends_list():
    """Requests you sent, with their status."""

    async def _list():
        client = _get_client()
        try:
            rows = await client.friends.list()
        finally:
            await client.close()
        table = Table(title=f"Friends ({len(rows)})")
        table.add_column("Friend ID", style="bold")
        table.add_column("Status")
        for f in rows:
            table.add_row(f.friend_id, "[green]accepted[/green]" if f.accepted else f.status)
        console.print(table)

    _run(_list())


@friends.command("pending")
def friends_pending():
    """Incoming requests waiting for you."""

    async def _pending():
        client = _get_client()
        try:
            rows = await client.friends.pending()
        finally:
            await client.close()
        if not rows:
            console.print("[dim]No pending requests.[/dim]")
        for f in rows:
            console.print(f"{f.user_id}  [dim](groupchat friends accept {f.user_id})[/dim]")

    _run(_pending())
