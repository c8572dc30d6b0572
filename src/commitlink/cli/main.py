"""
commitlink CLI entry point.

Commands:
  commitlink generate            — write a commit message for the pending change
  commitlink auth login          — sign in to GitHub through the GitHub CLI
  commitlink auth status         — show which GitHub credential source resolves
  commitlink config init         — create the config file
  commitlink config show         — print the effective config (secrets redacted)
  commitlink doctor              — environment and configuration health check
"""

from __future__ import annotations

import click
from rich.console import Console

from commitlink import __version__

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", message="commitlink %(version)s")
@click.option(
    "--log-level", default=None, hidden=True, help="Log level for structured logging."
)
@click.option("--log-json", is_flag=True, default=False, hidden=True, help="Emit JSON log lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_json: bool) -> None:
    """commitlink — commit messages linked to the GitHub issue they address."""
    from commitlink.core.logging import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["log_json"] = log_json
    configure_logging(level=log_level or "WARNING", json_output=log_json)


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=str),
    default=".",
    show_default=True,
    help="Working tree to read the diff from.",
)
@click.option("--repo", "repository", default="", help="GitHub repository as owner/repo.")
@click.option("--no-issues", is_flag=True, default=False, help="Skip issue lookup and linking.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the run result as JSON.")
@click.pass_context
def generate(ctx: click.Context, root: str, repository: str, no_issues: bool, as_json: bool) -> None:
    """Generate a commit message for the staged (or working-tree) change."""
    from commitlink.cli._generate import cmd_generate

    cmd_generate(
        root=root,
        repository=repository,
        no_issues=no_issues,
        as_json=as_json,
        log_level=ctx.obj.get("log_level"),
        log_json=ctx.obj.get("log_json", False),
        console=console,
        err_console=err_console,
    )


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


@cli.group()
def auth() -> None:
    """GitHub credential management."""


@auth.command("login")
@click.option("--hostname", default="github.com", show_default=True)
def auth_login(hostname: str) -> None:
    """Sign in to GitHub through the GitHub CLI (opens a browser)."""
    from commitlink.cli._auth import cmd_auth_login

    cmd_auth_login(hostname=hostname, console=console)


@auth.command("status")
@click.option("--json", "as_json", is_flag=True, default=False)
def auth_status(as_json: bool) -> None:
    """Show which GitHub credential source would be used."""
    from commitlink.cli._auth import cmd_auth_status

    cmd_auth_status(as_json=as_json, console=console)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@cli.group()
def config() -> None:
    """Configuration file management."""


@config.command("init")
@click.option(
    "--provider",
    type=click.Choice(["gemini", "openai", "anthropic"]),
    default="gemini",
    show_default=True,
)
@click.option("--api-key", default="", help="API key for the text-generation backend.")
@click.option("--github-token", default="", help="Static GitHub token fallback.")
@click.option("--repo", "repository", default="", help="Default GitHub repository (owner/repo).")
@click.option("--auto-create", is_flag=True, default=False, help="Enable issue auto-creation.")
@click.option(
    "--use-keyring", is_flag=True, default=False, help="Store secrets in the OS keychain."
)
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing config file.")
def config_init(
    provider: str,
    api_key: str,
    github_token: str,
    repository: str,
    auto_create: bool,
    use_keyring: bool,
    force: bool,
) -> None:
    """Create the commitlink config file."""
    from commitlink.cli._config import cmd_config_init

    cmd_config_init(
        provider=provider,
        api_key=api_key,
        github_token=github_token,
        repository=repository,
        auto_create=auto_create,
        use_keyring=use_keyring,
        force=force,
        console=console,
    )


@config.command("show")
@click.option("--json", "as_json", is_flag=True, default=False)
def config_show(as_json: bool) -> None:
    """Print the effective configuration with secrets redacted."""
    from commitlink.cli._config import cmd_config_show

    cmd_config_show(as_json=as_json, console=console)


# ---------------------------------------------------------------------------
# doctor
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--json", "as_json", is_flag=True, default=False)
def doctor(as_json: bool) -> None:
    """Environment and configuration health check."""
    from commitlink.cli._doctor import cmd_doctor

    cmd_doctor(as_json=as_json, console=console)


if __name__ == "__main__":
    cli()
