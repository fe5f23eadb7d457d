"""CLI: groupchat profile show|set|avatar|themes"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from groupchat.models.profile import Profile
from groupchat.profiles import THEMES

console = Console()


def _get_client():
    from groupchat.cli.main import _get_client
    return _get_client()


def _run(coro):
    from groupchat.cli.main import _run
    return _run(coro)


def _print_profile(p: Optional[Profile]) -> None:
    if p is None:
        console.print("[yellow]No profile found for this account.[/yellow]")
        return
    console.print(f"[bold]{p.username}[/bold]" + (" [magenta](admin)[/magenta]" if p.is_admin else ""))
    console.print(f"  theme:  {p.theme}")
    console.print(f"  avatar: {p.avatar_url or '-'}")
    console.print(f"  status: {p.status or '-'}")


@click.group()
def profile():
    """Your profile and settings."""


@profile.command("show")
def profile_show():
    """Show your profile."""

    async def _show():
        client = _get_client()
        try:
            p = await client.profiles.get_current()
        finally:
            await client.close()
        _print_profile(p)

    _run(_show())


@profile.command("set")
@click.option("--username", default=None)
@click.option("--theme", type=click.Choice(list(THEMES)), default=None)
@click.option("--status", default=None)
def profile_set(username, theme, status):
    """Update username, theme or status."""

    async def _set():
        client = _get_client()
        try:
            p = await client.profiles.update(username=username, theme=theme, status=status)
        finally:
            await client.close()
        console.print("[green]Settings Updated.[/green] Your preferences have been saved.")
        _print_profile(p)

    _run(_set())


@profile.command("avatar")
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def profile_avatar(image: Path):
    """Upload IMAGE as your avatar."""

    async def _avatar():
        client = _get_client()
        try:
            with console.status("Uploading..."):
                p = await client.profiles.upload_avatar(image)
        finally:
            await client.close()
        _print_profile(p)

    _run(_avatar())


@profile.command("themes")
def profile_themes():
    """List available themes."""
    table = Table()
    table.add_column("Key", style="bold")
    table.add_column("Name")
    table.add_column("Primary")
    for key, theme in THEMES.items():
        table.add_row(key, theme.name, theme.colors.primary)
    console.print(table)
