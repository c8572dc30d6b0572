"""commitlink auth — GitHub sign-in and credential status."""

from __future__ import annotations

import asyncio
import json
import shutil
import sys

from rich.console import Console

from commitlink.core.constants import ExitCode


def _build_resolver(hostname: str = "github.com"):
    from commitlink.core.config import load_config
    from commitlink.core.exceptions import ConfigurationError
    from commitlink.tracker.credentials import CredentialResolver, GhCliSessionProvider

    try:
        static_token = load_config().issues.token_value()
    except ConfigurationError:
        static_token = ""
    return CredentialResolver(GhCliSessionProvider(hostname), static_token)


def cmd_auth_login(hostname: str, console: Console) -> None:
    """Interactive sign-in. The only code path that may open a browser."""
    if shutil.which("gh") is None:
        console.print("[red]GitHub CLI (gh) not found.[/red]")
        console.print("Install it from https://cli.github.com, or set GITHUB_TOKEN instead.")
        sys.exit(ExitCode.ENV_ERROR)

    resolver = _build_resolver(hostname)
    token = asyncio.run(resolver.sign_in())
    if not token:
        console.print("[red]Sign-in did not complete.[/red]")
        sys.exit(ExitCode.PERMISSION_ERROR)
    console.print(f"[green]Signed in to {hostname}.[/green]")


def cmd_auth_status(as_json: bool, console: Console) -> None:
    """Report which credential source resolves, without prompting."""
    resolver = _build_resolver()
    token = asyncio.run(resolver.resolve_token())
    source = resolver.last_source

    if as_json:
        print(json.dumps({"authenticated": token is not None, "source": source}, indent=2))
        return

    if token is None:
        console.print("[yellow]No GitHub credential found.[/yellow]")
        console.print(
            "Run [cyan]commitlink auth login[/cyan] or set [cyan]GITHUB_TOKEN[/cyan]. "
            "Issue lists will be fetched unauthenticated and issues cannot be created."
        )
        return

    label = {"session": "GitHub CLI session", "static": "configured token"}.get(
        source or "", source or "unknown"
    )
    console.print(f"[green]Authenticated[/green] via {label}.")
