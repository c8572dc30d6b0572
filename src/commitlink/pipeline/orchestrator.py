"""
CommitOrchestrator — one cancellable, partially fault-tolerant run.

Stage machine::

    COLLECTING_DIFF → FETCHING_ISSUES → MATCHING_RELEVANCE
                    → CLASSIFYING_AND_CREATING → GENERATING_MESSAGE → DONE

Stages after COLLECTING_DIFF are skipped when their preconditions do not
hold. CANCELLED and FAILED are absorbing and reachable from any
non-terminal stage.

Failure policy:

    - a blank diff ends the run as NOTHING_TO_DO before any remote call
    - tracker failures degrade to "no candidates" / "no created issue"
    - match and classify failures only disable linking, with a warning
    - a failure of the final generation call fails the run
    - CancelledError at any suspend point ends the run as CANCELLED
    - any other unexpected error also ends the run as FAILED

The linked issue id is always one that was fetched or just created; the
final prompt only ever sees that single issue, and the reference line is
appended here rather than generated.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from contextlib import AsyncExitStack, contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog

from commitlink.core.cancellation import CancellationToken, ensure_token
from commitlink.core.config import CommitLinkConfig
from commitlink.core.exceptions import (
    CancelledError,
    CommitLinkError,
    ConfigurationError,
    ProviderResponseError,
)
from commitlink.pipeline.classifier import ChangeClassifier
from commitlink.pipeline.matcher import RelevanceMatcher
from commitlink.pipeline.models import Change, Classification
from commitlink.pipeline.prompts import message_prompt
from commitlink.providers.gateway import TextGateway
from commitlink.tracker.credentials import CredentialResolver, GhCliSessionProvider
from commitlink.tracker.github import GitHubIssueClient
from commitlink.tracker.models import Issue
from commitlink.vcs.git import DiffSource

logger = structlog.get_logger()

ClientFactory = Callable[[str | None], GitHubIssueClient]
BusyListener = Callable[[bool], None]

_TITLE_MAX_PATHS = 3


class RunStage(StrEnum):
    COLLECTING_DIFF = "collecting_diff"
    FETCHING_ISSUES = "fetching_issues"
    MATCHING_RELEVANCE = "matching_relevance"
    CLASSIFYING_AND_CREATING = "classifying_and_creating"
    GENERATING_MESSAGE = "generating_message"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class RunOutcome(StrEnum):
    COMPLETED = "completed"
    NOTHING_TO_DO = "nothing_to_do"
    CANCELLED = "cancelled"
    FAILED = "failed"


_TERMINAL = {RunStage.DONE, RunStage.CANCELLED, RunStage.FAILED}

# Forward edges only; CANCELLED and FAILED are added for every non-terminal stage.
_FORWARD: dict[RunStage, set[RunStage]] = {
    RunStage.COLLECTING_DIFF: {
        RunStage.FETCHING_ISSUES,
        RunStage.GENERATING_MESSAGE,
        RunStage.DONE,
    },
    RunStage.FETCHING_ISSUES: {
        RunStage.MATCHING_RELEVANCE,
        RunStage.CLASSIFYING_AND_CREATING,
        RunStage.GENERATING_MESSAGE,
    },
    RunStage.MATCHING_RELEVANCE: {
        RunStage.CLASSIFYING_AND_CREATING,
        RunStage.GENERATING_MESSAGE,
    },
    RunStage.CLASSIFYING_AND_CREATING: {RunStage.GENERATING_MESSAGE},
    RunStage.GENERATING_MESSAGE: {RunStage.DONE},
}


# ---------------------------------------------------------------------------
# Busy indicator
# ---------------------------------------------------------------------------


class BusyIndicator:
    """
    Caller-visible "run in progress" flag.

    Reference counted so overlapping runs sharing one indicator keep it
    set until the last one exits. Listeners are called with the new value
    on every False→True and True→False edge.
    """

    def __init__(self) -> None:
        self._active = 0
        self._listeners: list[BusyListener] = []

    @property
    def busy(self) -> bool:
        return self._active > 0

    def subscribe(self, listener: BusyListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @contextmanager
    def hold(self) -> Iterator[None]:
        self._active += 1
        if self._active == 1:
            self._notify(True)
        try:
            yield
        finally:
            self._active -= 1
            if self._active == 0:
                self._notify(False)

    def _notify(self, value: bool) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as exc:  # noqa: BLE001
                logger.warning("busy_listener_failed", error=str(exc))


# ---------------------------------------------------------------------------
# Run records
# ---------------------------------------------------------------------------


@dataclass
class RunState:
    """Mutable per-run record. Owned by exactly one ``run()`` call."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    change: Change | None = None
    candidate_issues: list[Issue] = field(default_factory=list)
    linked_issue: Issue | None = None
    classification: Classification | None = None
    message: str = ""
    cancelled: bool = False
    stage: RunStage = RunStage.COLLECTING_DIFF
    stages: list[RunStage] = field(default_factory=lambda: [RunStage.COLLECTING_DIFF])
    warnings: list[str] = field(default_factory=list)

    def advance(self, stage: RunStage) -> None:
        if self.stage in _TERMINAL:
            raise RuntimeError(f"run {self.run_id} already ended in {self.stage}")
        allowed = _FORWARD.get(self.stage, set()) | {RunStage.CANCELLED, RunStage.FAILED}
        if stage not in allowed:
            raise RuntimeError(f"invalid stage transition {self.stage} → {stage}")
        self.stage = stage
        self.stages.append(stage)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@dataclass(frozen=True)
class RunResult:
    """What the caller gets back from ``CommitOrchestrator.run``."""

    outcome: RunOutcome
    message: str = ""
    linked_issue: Issue | None = None
    classification: Classification | None = None
    warnings: tuple[str, ...] = ()
    error: str = ""
    error_type: str = ""
    stages: tuple[RunStage, ...] = ()

    @property
    def ok(self) -> bool:
        return self.outcome in (RunOutcome.COMPLETED, RunOutcome.NOTHING_TO_DO)

    def to_dict(self) -> dict[str, Any]:
        issue = self.linked_issue
        cls = self.classification
        return {
            "outcome": self.outcome.value,
            "message": self.message,
            "linked_issue": (
                {"id": issue.id, "title": issue.title, "url": issue.url} if issue else None
            ),
            "classification": (
                {
                    "type": cls.type.value,
                    "labels": cls.sorted_labels(),
                    "confidence": cls.confidence,
                }
                if cls
                else None
            ),
            "warnings": list(self.warnings),
            "error": self.error,
            "error_type": self.error_type,
            "stages": [s.value for s in self.stages],
        }


def _default_client_factory(token: str | None) -> GitHubIssueClient:
    return GitHubIssueClient(token)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class CommitOrchestrator:
    """
    Sequences diff → issues → match → (classify + create) → message.

    Args:
        config:         Loaded configuration; read once per run.
        gateway:        Text gateway shared by matcher, classifier and the
                        final generation call.
        diff_source:    Where the pending change comes from.
        resolver:       GitHub credential resolver (default: gh CLI, then
                        the configured static token).
        client_factory: ``token -> GitHubIssueClient``; tests inject one
                        backed by ``httpx.MockTransport``.
        busy:           Shared busy indicator; a private one by default.
    """

    def __init__(
        self,
        config: CommitLinkConfig,
        gateway: TextGateway,
        diff_source: DiffSource,
        *,
        resolver: CredentialResolver | None = None,
        client_factory: ClientFactory | None = None,
        busy: BusyIndicator | None = None,
    ) -> None:
        self._config = config
        self._gateway = gateway
        self._diff_source = diff_source
        self._resolver = resolver or CredentialResolver(
            GhCliSessionProvider(), config.issues.token_value()
        )
        self._client_factory = client_factory or _default_client_factory
        self.busy = busy or BusyIndicator()
        self.matcher = RelevanceMatcher(gateway)
        self.classifier = ChangeClassifier(gateway)

    async def run(
        self,
        root: Path,
        *,
        repository: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> RunResult:
        token = ensure_token(cancellation)
        state = RunState()
        log = logger.bind(run_id=state.run_id)
        log.info("run_started", root=str(root))

        with self.busy.hold():
            try:
                outcome = await self._execute(state, root, repository, token)
            except CancelledError as exc:
                state.cancelled = True
                state.advance(RunStage.CANCELLED)
                log.info("run_cancelled", stage=state.stages[-2].value, reason=str(exc))
                return self._result(state, RunOutcome.CANCELLED)
            except CommitLinkError as exc:
                failed_in = state.stage
                state.advance(RunStage.FAILED)
                log.error(
                    "run_failed",
                    stage=failed_in.value,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return self._result(
                    state,
                    RunOutcome.FAILED,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            except Exception as exc:  # noqa: BLE001
                failed_in = state.stage
                state.advance(RunStage.FAILED)
                log.exception("run_crashed", stage=failed_in.value, error_type=type(exc).__name__)
                return self._result(
                    state,
                    RunOutcome.FAILED,
                    error=f"Unexpected error: {exc}",
                    error_type=type(exc).__name__,
                )

        log.info(
            "run_finished",
            outcome=outcome.value,
            linked_issue=state.linked_issue.id if state.linked_issue else None,
            warnings=len(state.warnings),
        )
        return self._result(state, outcome, message=state.message)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _execute(
        self,
        state: RunState,
        root: Path,
        repository: str | None,
        token: CancellationToken,
    ) -> RunOutcome:
        # COLLECTING_DIFF
        token.raise_if_cancelled()
        diff = await token.guard(self._diff_source.get_change(root))
        state.change = Change.from_diff(diff)
        if state.change.is_empty:
            logger.info("run_nothing_to_do", run_id=state.run_id)
            state.advance(RunStage.DONE)
            return RunOutcome.NOTHING_TO_DO

        issues_cfg = self._config.issues
        repo = (repository or issues_cfg.repository).strip()
        if repo and (repo.count("/") != 1 or not all(repo.split("/"))):
            raise ConfigurationError(f"repository must look like 'owner/repo', got {repo!r}")
        if issues_cfg.linking_enabled and not repo:
            state.warn("No GitHub repository configured or detected; issue linking skipped.")

        async with AsyncExitStack() as stack:
            if issues_cfg.linking_enabled and repo:
                # FETCHING_ISSUES
                state.advance(RunStage.FETCHING_ISSUES)
                token.raise_if_cancelled()
                credential = await token.guard(self._resolver.resolve_token())
                client = await stack.enter_async_context(self._client_factory(credential))
                owner, name = repo.split("/", 1)
                issues = await client.list_open_issues(owner, name, token)
                state.candidate_issues = issues[: issues_cfg.max_candidates]
                logger.debug(
                    "candidates_fetched",
                    run_id=state.run_id,
                    count=len(state.candidate_issues),
                    credential_source=self._resolver.last_source,
                )

                if state.candidate_issues:
                    await self._match(state, token)

                if (
                    state.linked_issue is None
                    and issues_cfg.auto_create_issues
                    and credential
                ):
                    await self._classify_and_create(state, client, owner, name, token)

            # GENERATING_MESSAGE
            state.advance(RunStage.GENERATING_MESSAGE)
            state.message = await self._generate(state, token)

        state.advance(RunStage.DONE)
        return RunOutcome.COMPLETED

    async def _match(self, state: RunState, token: CancellationToken) -> None:
        state.advance(RunStage.MATCHING_RELEVANCE)
        token.raise_if_cancelled()
        assert state.change is not None
        try:
            issue_id = await self.matcher.match(
                state.change.diff, state.candidate_issues, token
            )
        except (CancelledError, ConfigurationError):
            raise
        except CommitLinkError as exc:
            logger.warning("match_failed", run_id=state.run_id, error=str(exc))
            state.warn(f"Issue matching failed; no issue linked: {exc}")
            return

        if issue_id is not None:
            state.linked_issue = next(i for i in state.candidate_issues if i.id == issue_id)
            logger.info("issue_matched", run_id=state.run_id, issue=issue_id)

    async def _classify_and_create(
        self,
        state: RunState,
        client: GitHubIssueClient,
        owner: str,
        repo: str,
        token: CancellationToken,
    ) -> None:
        state.advance(RunStage.CLASSIFYING_AND_CREATING)
        token.raise_if_cancelled()
        assert state.change is not None
        issues_cfg = self._config.issues

        try:
            classification = await self.classifier.classify(state.change.diff, token)
        except (CancelledError, ConfigurationError):
            raise
        except CommitLinkError as exc:
            logger.warning("classification_failed", run_id=state.run_id, error=str(exc))
            state.warn(f"Change classification failed; no issue created: {exc}")
            return
        state.classification = classification

        if classification.confidence < issues_cfg.min_create_confidence:
            logger.info(
                "issue_create_skipped",
                run_id=state.run_id,
                reason="low_confidence",
                confidence=classification.confidence,
            )
            state.warn(
                f"Classification confidence {classification.confidence:.2f} is below "
                f"{issues_cfg.min_create_confidence:.2f}; no issue created."
            )
            return

        assignee = None
        if issues_cfg.assign_to_self:
            assignee = await client.current_user(token)

        labels = sorted(classification.labels | set(issues_cfg.default_labels))
        token.raise_if_cancelled()
        created = await client.create_issue(
            owner,
            repo,
            issue_title(classification, state.change),
            issue_body(classification, state.change),
            labels=labels,
            assignee=assignee,
            cancellation=token,
        )
        if created is None:
            state.warn("The issue could not be created; no issue linked.")
            return
        state.linked_issue = created

    async def _generate(self, state: RunState, token: CancellationToken) -> str:
        token.raise_if_cancelled()
        assert state.change is not None
        text = await self._gateway.generate(
            message_prompt(state.change.diff, state.linked_issue), token
        )
        if not text:
            raise ProviderResponseError("The backend returned an empty commit message.")
        if state.linked_issue is not None:
            keyword = self._config.issues.reference_keyword
            text = f"{text}\n\n{keyword} #{state.linked_issue.id}"
        return text

    @staticmethod
    def _result(
        state: RunState,
        outcome: RunOutcome,
        *,
        message: str = "",
        error: str = "",
        error_type: str = "",
    ) -> RunResult:
        completed = outcome is RunOutcome.COMPLETED
        return RunResult(
            outcome=outcome,
            message=message if completed else "",
            linked_issue=state.linked_issue if completed else None,
            classification=state.classification,
            warnings=tuple(state.warnings),
            error=error,
            error_type=error_type,
            stages=tuple(state.stages),
        )


# ---------------------------------------------------------------------------
# Issue text
# ---------------------------------------------------------------------------


def issue_title(classification: Classification, change: Change) -> str:
    """Deterministic issue title from the change type and touched paths."""
    paths = change.paths
    if not paths:
        return f"{classification.type.value}: update from pending change"
    shown = ", ".join(paths[:_TITLE_MAX_PATHS])
    extra = len(paths) - _TITLE_MAX_PATHS
    if extra > 0:
        shown += f" and {extra} more"
    return f"{classification.type.value}: changes in {shown}"


def issue_body(classification: Classification, change: Change) -> str:
    lines = [
        "Opened automatically by commitlink for a pending change.",
        "",
        f"- Type: `{classification.type.value}`",
        f"- Confidence: {classification.confidence:.2f}",
    ]
    if change.paths:
        lines += ["", "Files:"]
        lines += [f"- `{path}`" for path in change.paths]
    return "\n".join(lines)
