"""commitlink generate — run the pipeline on a working tree."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
import sys
from pathlib import Path

from rich.console import Console

from commitlink.core.config import CommitLinkConfig
from commitlink.core.constants import ExitCode
from commitlink.pipeline.orchestrator import RunOutcome, RunResult

# RunResult.error_type → process exit code
_FAILURE_EXIT_CODES: dict[str, ExitCode] = {
    "ConfigurationError": ExitCode.CONFIG_ERROR,
    "ConfigNotFoundError": ExitCode.CONFIG_ERROR,
    "DiffUnavailableError": ExitCode.ENV_ERROR,
    "NetworkError": ExitCode.NETWORK_ERROR,
    "AuthenticationError": ExitCode.PERMISSION_ERROR,
}


def cmd_generate(
    root: str,
    repository: str,
    no_issues: bool,
    as_json: bool,
    console: Console,
    err_console: Console,
    log_level: str | None = None,
    log_json: bool = False,
) -> None:
    """Load config, run one orchestration and print the outcome."""
    from commitlink.core.config import load_config
    from commitlink.core.exceptions import ConfigurationError
    from commitlink.core.logging import configure_logging

    try:
        config = load_config()
    except ConfigurationError as exc:
        err_console.print(f"[red]Config error:[/red] {exc}")
        sys.exit(ExitCode.CONFIG_ERROR)

    if log_level is None:
        configure_logging(
            level=config.logging.level,
            json_output=log_json or config.logging.format == "json",
        )
    if no_issues:
        config.issues.include_issue_in_commit = False

    try:
        result = asyncio.run(_generate_async(config, Path(root).resolve(), repository))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(ExitCode.CANCELLED)

    sys.exit(_report(result, as_json=as_json, console=console, err_console=err_console))


async def _generate_async(config: CommitLinkConfig, root: Path, repository: str) -> RunResult:
    from commitlink.core.cancellation import CancellationToken
    from commitlink.pipeline.orchestrator import CommitOrchestrator
    from commitlink.providers import TextGateway
    from commitlink.vcs.git import GitDiffSource

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    # Not available on Windows event loops; Ctrl-C then falls back to KeyboardInterrupt.
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, token.cancel)

    try:
        source = GitDiffSource()
        repo = repository or config.issues.repository
        if not repo and config.issues.linking_enabled:
            repo = await source.remote_repository(root) or ""

        async with TextGateway(config.provider) as gateway:
            orchestrator = CommitOrchestrator(config, gateway, source)
            return await orchestrator.run(root, repository=repo or None, cancellation=token)
    finally:
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGINT)


def _report(result: RunResult, *, as_json: bool, console: Console, err_console: Console) -> int:
    """Print *result* and return the process exit code."""
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        for warning in result.warnings:
            err_console.print(f"[yellow]Warning:[/yellow] {warning}")

    if result.outcome is RunOutcome.COMPLETED:
        if not as_json:
            # Plain stdout so the message can be piped into `git commit -F -`
            print(result.message)
            if result.linked_issue is not None:
                issue = result.linked_issue
                err_console.print(
                    f"[dim]Linked issue #{issue.id}: {issue.title}[/dim]"
                    + (f" [dim]({issue.url})[/dim]" if issue.url else "")
                )
        return ExitCode.SUCCESS

    if result.outcome is RunOutcome.NOTHING_TO_DO:
        if not as_json:
            err_console.print("No staged or unstaged changes found. Nothing to do.")
        return ExitCode.SUCCESS

    if result.outcome is RunOutcome.CANCELLED:
        if not as_json:
            err_console.print("[yellow]Cancelled.[/yellow]")
        return ExitCode.CANCELLED

    if not as_json:
        err_console.print(f"[red]Error:[/red] {result.error}")
        if result.error_type == "AuthenticationError":
            err_console.print("Check that your API key or token is valid and has the needed scope.")
        elif result.error_type in ("ConfigurationError", "ConfigNotFoundError"):
            err_console.print("Run [cyan]commitlink config init[/cyan] or [cyan]commitlink doctor[/cyan].")
    return _FAILURE_EXIT_CODES.get(result.error_type, ExitCode.ERROR)
