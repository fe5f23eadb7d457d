"""
groupchat CLI — `groupchat` command.

Commands:
  groupchat auth signup|login|status|logout
  groupchat history | send <message> | watch
  groupchat users                    Everyone, with online markers
  groupchat friends <cmd>            Search, request, accept
  groupchat profile <cmd>            Username, theme, avatar
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
    from rich.markup import escape
except ImportError:
    raise SystemExit("CLI requires extras: pip install groupchat-sdk[cli]")

from groupchat.client import AsyncGroupChat
from groupchat.config import ANON_KEY_ENV, URL_ENV, Settings
from groupchat.errors import GroupChatError, Unauthorized

console = Console()
CONFIG_FILE = Path(os.environ.get("GROUPCHAT_CONFIG", Path.home() / ".groupchat" / "config.json"))


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _settings(cfg: dict, url: Optional[str] = None, anon_key: Optional[str] = None) -> Settings:
    return Settings.from_env(url or cfg.get("url"), anon_key or cfg.get("anon_key"))


def _get_client(require_login: bool = True) -> AsyncGroupChat:
    cfg = _load_config()
    client = AsyncGroupChat(settings=_settings(cfg))
    if cfg.get("access_token") and cfg.get("user_id"):
        client.auth.restore(
            cfg["access_token"], cfg["user_id"],
            refresh_token=cfg.get("refresh_token"),
            email=cfg.get("email"),
            claims={"username": cfg["username"]} if cfg.get("username") else None,
        )
    elif require_login:
        console.print("[red]Not logged in. Run `groupchat auth login` first.[/red]")
        raise SystemExit(1)
    return client


def _run(coro: Any) -> Any:
    """Run a command coroutine, turning SDK errors into a one-line notification."""
    try:
        return asyncio.run(coro)
    except Unauthorized:
        console.print("[red]Session expired or missing. Run `groupchat auth login`.[/red]")
        raise SystemExit(1)
    except GroupChatError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise SystemExit(1)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log SDK activity")
def main(verbose: bool):
    """groupchat CLI — the shared room from your terminal."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@main.command("configure")
@click.option("--url", prompt="Backend URL", envvar=URL_ENV)
@click.option("--anon-key", prompt="Anon key", envvar=ANON_KEY_ENV)
def configure(url: str, anon_key: str):
    """Save the backend URL and anon key."""
    cfg = _load_config()
    _save_config({**cfg, "url": url.rstrip("/"), "anon_key": anon_key})
    console.print(f"[dim]Saved to {CONFIG_FILE}[/dim]")


# Register subcommands from separate modules
from groupchat.cli.auth import auth
from groupchat.cli.chat import history_cmd, send_cmd, watch_cmd, users_cmd
from groupchat.cli.friends import friends
from groupchat.cli.profile import profile

main.add_command(auth)
main.add_command(history_cmd)
main.add_command(send_cmd)
main.add_command(watch_cmd)
main.add_command(users_cmd)
main.add_command(friends)
main.add_command(profile)


if __name__ == "__main__":
    main()
