"""commitlink config — create and inspect the config file."""

from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from commitlink.core.constants import ExitCode


def cmd_config_init(
    provider: str,
    api_key: str,
    github_token: str,
    repository: str,
    auto_create: bool,
    use_keyring: bool,
    force: bool,
    console: Console,
) -> None:
    """Write a starter config file, validating it before it touches disk."""
    from commitlink.core.config import CommitLinkConfig, _config_file_path, save_config
    from commitlink.core.exceptions import ConfigurationError

    cfg_path = _config_file_path()
    if cfg_path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {cfg_path}")
        console.print("Use [cyan]--force[/cyan] to overwrite it.")
        sys.exit(ExitCode.ERROR)

    data: dict[str, Any] = {
        "provider": {"name": provider},
        "issues": {
            "tracker": "github",
            "auto_create_issues": auto_create,
            "include_issue_in_commit": True,
        },
        "logging": {"level": "WARNING", "format": "text"},
    }
    if api_key:
        data["provider"]["api_key"] = api_key
    if github_token:
        data["issues"]["token"] = github_token
    if repository:
        data["issues"]["repository"] = repository

    try:
        CommitLinkConfig.model_validate(data)
    except ValueError as exc:
        console.print(f"[red]Invalid value:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    try:
        path = save_config(data, cfg_path, use_keyring=use_keyring)
    except ConfigurationError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    console.print(f"[green]Config written:[/green] {path}")
    if not api_key:
        console.print(
            "No API key stored. Set [cyan]COMMITLINK_API_KEY[/cyan] or re-run with "
            "[cyan]--api-key[/cyan]."
        )
    if use_keyring:
        console.print("[dim]Secrets were stored in the OS keychain.[/dim]")


def cmd_config_show(as_json: bool, console: Console) -> None:
    """Print the effective config (file + environment) with secrets masked."""
    from commitlink.core.config import load_config, redacted_dump
    from commitlink.core.exceptions import ConfigurationError

    try:
        config = load_config()
    except ConfigurationError as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    data = redacted_dump(config)
    source = str(config.config_path) if config.config_path else "(defaults + environment)"

    if as_json:
        print(json.dumps({"source": source, "config": data}, indent=2))
        return

    console.print(f"[bold]Config source:[/bold] {source}\n")
    for section in ("provider", "issues", "logging"):
        table = Table(title=f"[{section}]", show_header=False, title_justify="left")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in data.get(section, {}).items():
            table.add_row(key, _format_value(value))
        console.print(table)


def _format_value(value: Any) -> str:
    if value is None or value == "":
        return "[dim]-[/dim]"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value) or "[dim]-[/dim]"
    return str(value)
