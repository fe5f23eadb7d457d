"""CLI: groupchat auth signup|login|status|logout"""

import click
from rich.console import Console

from groupchat.models.session import Session

console = Console()


def _load_config() -> dict:
    from groupchat.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from groupchat.cli.main import _save_config
    _save_config(cfg)


def _get_client(require_login: bool = True):
    from groupchat.cli.main import _get_client
    return _get_client(require_login)


def _run(coro):
    from groupchat.cli.main import _run
    return _run(coro)


def _remember(session: Session, username: str) -> None:
    cfg = _load_config()
    _save_config({
        **cfg,
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "user_id": session.identity.user_id,
        "email": session.identity.email,
        "username": username,
    })


@click.group()
def auth():
    """Authentication commands."""


@auth.command("signup")
def auth_signup():
    """Create an account."""

    async def _signup():
        client = _get_client(require_login=False)
        username = click.prompt("Username")
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)
        try:
            with console.status("Creating account..."):
                session = await client.auth.sign_up(username, password)
        finally:
            await client.close()
        _remember(session, username.strip())
        console.print(f"[green]Welcome, {username.strip()}![/green]")

    _run(_signup())


@auth.command("login")
def auth_login():
    """Sign in with username and password."""

    async def _login():
        client = _get_client(require_login=False)
        username = click.prompt("Username")
        password = click.prompt("Password", hide_input=True)
        try:
            with console.status("Signing in..."):
                session = await client.auth.sign_in(username, password)
        finally:
            await client.close()
        _remember(session, username.strip())
        console.print(f"[green]Logged in as {username.strip()} (ID: {session.identity.user_id})[/green]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        console.print(f"[green]Logged in[/green] as {cfg.get('username', 'unknown')} (ID: {cfg.get('user_id')})")
    else:
        console.print("[yellow]Not logged in. Run `groupchat auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Sign out and clear saved credentials."""
    cfg = _load_config()
    if cfg.get("access_token"):

        async def _logout():
            client = _get_client()
            try:
                await client.auth.sign_out()
            finally:
                await client.close()

        _run(_logout())
    _save_config({k: v for k, v in cfg.items() if k in ("url", "anon_key")})
    console.print("[green]Logged out.[/green]")
