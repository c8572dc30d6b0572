"""commitlink doctor — environment and configuration health check."""

from __future__ import annotations

import asyncio
import json
import shutil
import subprocess
import sys

from rich.console import Console


def _check_python_version() -> dict:
    ver = sys.version_info
    ok = ver >= (3, 11)
    return {
        "name": "Python version",
        "status": "pass" if ok else "fail",
        "detail": f"{ver.major}.{ver.minor}.{ver.micro}" + ("" if ok else " (3.11+ required)"),
    }


def _check_config() -> dict:
    from commitlink.core.config import _config_file_path, load_config
    from commitlink.core.exceptions import ConfigurationError

    cfg_path = _config_file_path()
    try:
        load_config()
    except ConfigurationError as exc:
        return {"name": "Config file", "status": "fail", "detail": str(exc)}
    if not cfg_path.exists():
        return {
            "name": "Config file",
            "status": "warn",
            "detail": f"not found at {cfg_path} (using defaults + environment) — run: "
            "commitlink config init",
        }
    return {"name": "Config file", "status": "pass", "detail": str(cfg_path)}


def _check_provider_key() -> dict:
    from commitlink.core.config import load_config
    from commitlink.core.exceptions import ConfigurationError
    from commitlink.providers import ProviderRegistry

    try:
        cfg = load_config()
    except ConfigurationError:
        return {"name": "Provider API key", "status": "skip", "detail": "config invalid"}

    name = cfg.provider.name
    if name not in ProviderRegistry.list_all():
        return {"name": "Provider API key", "status": "fail", "detail": f"unknown provider {name!r}"}
    key = cfg.provider.api_key_value()
    if not key:
        return {
            "name": "Provider API key",
            "status": "fail",
            "detail": f"{name}: not configured — set COMMITLINK_API_KEY",
        }
    masked = key[:4] + "..." + key[-4:] if len(key) > 12 else "****"
    return {
        "name": "Provider API key",
        "status": "pass",
        "detail": f"{name} ({cfg.provider.model_for(name)}): {masked}",
    }


def _check_git() -> dict:
    git = shutil.which("git")
    if git is None:
        return {"name": "git", "status": "fail", "detail": "not found on PATH"}
    try:
        out = subprocess.run(
            [git, "--version"], capture_output=True, text=True, timeout=5, check=False
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        return {"name": "git", "status": "fail", "detail": str(exc)}
    return {"name": "git", "status": "pass", "detail": out.stdout.strip() or git}


def _check_gh_cli() -> dict:
    if shutil.which("gh") is None:
        return {
            "name": "GitHub CLI",
            "status": "warn",
            "detail": "not installed — sign-in falls back to GITHUB_TOKEN",
        }
    return {"name": "GitHub CLI", "status": "pass", "detail": "installed"}


def _check_github_credential() -> dict:
    from commitlink.core.config import load_config
    from commitlink.core.exceptions import ConfigurationError
    from commitlink.tracker.credentials import CredentialResolver, GhCliSessionProvider

    try:
        cfg = load_config()
    except ConfigurationError:
        return {"name": "GitHub credential", "status": "skip", "detail": "config invalid"}
    if not cfg.issues.enabled:
        return {"name": "GitHub credential", "status": "skip", "detail": "issue tracker disabled"}

    resolver = CredentialResolver(GhCliSessionProvider(), cfg.issues.token_value())
    token = asyncio.run(resolver.resolve_token())
    if token is None:
        status = "fail" if cfg.issues.auto_create_issues else "warn"
        return {
            "name": "GitHub credential",
            "status": status,
            "detail": "none found — run: commitlink auth login",
        }
    return {"name": "GitHub credential", "status": "pass", "detail": f"via {resolver.last_source}"}


def cmd_doctor(as_json: bool, console: Console) -> None:
    checks: list[dict] = [
        _check_python_version(),
        _check_config(),
        _check_provider_key(),
        _check_git(),
        _check_gh_cli(),
        _check_github_credential(),
    ]

    all_pass = all(c["status"] in ("pass", "skip") for c in checks)

    if as_json:
        print(json.dumps({"checks": checks, "all_pass": all_pass}, indent=2))
        return

    console.print("[bold]commitlink doctor[/bold]\n")
    for c in checks:
        if c["status"] == "pass":
            icon = "[green]PASS[/green]"
        elif c["status"] == "skip":
            icon = "[dim]SKIP[/dim]"
        elif c["status"] == "warn":
            icon = "[yellow]WARN[/yellow]"
        else:
            icon = "[red]FAIL[/red]"
        console.print(f"  {icon}  {c['name']}: {c['detail']}")

    console.print()
    if all_pass:
        console.print("[green]All checks passed.[/green]")
    elif any(c["status"] == "fail" for c in checks):
        console.print("[red]Some checks failed.[/red]")
    else:
        console.print("[yellow]Some checks have warnings. Review above for details.[/yellow]")
