"""Unit tests for the orchestrator's building blocks (busy flag, stage machine, issue text)."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from commitlink.pipeline.models import Change, ChangeType, Classification
from commitlink.pipeline.orchestrator import (
    BusyIndicator,
    RunOutcome,
    RunResult,
    RunStage,
    RunState,
    issue_body,
    issue_title,
)
from commitlink.tracker.models import Issue

FEATURE = Classification(type=ChangeType.ENHANCEMENT, labels=frozenset({"ui"}), confidence=0.75)


def _diff(*paths: str) -> str:
    return "".join(f"diff --git a/{p} b/{p}\n+x\n" for p in paths)


# ---------------------------------------------------------------------------
# BusyIndicator
# ---------------------------------------------------------------------------


class TestBusyIndicator:
    def test_hold_sets_and_clears(self) -> None:
        busy = BusyIndicator()
        assert busy.busy is False
        with busy.hold():
            assert busy.busy is True
        assert busy.busy is False

    def test_cleared_on_exception(self) -> None:
        busy = BusyIndicator()
        with pytest.raises(ValueError):
            with busy.hold():
                raise ValueError("boom")
        assert busy.busy is False

    def test_nested_holds_notify_edges_only(self) -> None:
        busy = BusyIndicator()
        events: list[bool] = []
        busy.subscribe(events.append)
        with busy.hold():
            with busy.hold():
                assert busy.busy
            assert busy.busy
        assert events == [True, False]

    def test_unsubscribe(self) -> None:
        busy = BusyIndicator()
        events: list[bool] = []
        unsubscribe = busy.subscribe(events.append)
        unsubscribe()
        unsubscribe()
        with busy.hold():
            pass
        assert events == []

    def test_failing_listener_is_logged(self) -> None:
        busy = BusyIndicator()
        events: list[bool] = []

        def broken(_: bool) -> None:
            raise RuntimeError("listener broke")

        busy.subscribe(broken)
        busy.subscribe(events.append)
        with capture_logs() as logs:
            with busy.hold():
                pass
        assert events == [True, False]
        assert [e["event"] for e in logs].count("busy_listener_failed") == 2


# ---------------------------------------------------------------------------
# RunState
# ---------------------------------------------------------------------------


class TestRunState:
    def test_full_path(self) -> None:
        state = RunState()
        for stage in (
            RunStage.FETCHING_ISSUES,
            RunStage.MATCHING_RELEVANCE,
            RunStage.CLASSIFYING_AND_CREATING,
            RunStage.GENERATING_MESSAGE,
            RunStage.DONE,
        ):
            state.advance(stage)
        assert state.stages[0] is RunStage.COLLECTING_DIFF
        assert state.stage is RunStage.DONE

    def test_backwards_rejected(self) -> None:
        state = RunState()
        state.advance(RunStage.FETCHING_ISSUES)
        with pytest.raises(RuntimeError):
            state.advance(RunStage.COLLECTING_DIFF)

    @pytest.mark.parametrize("terminal", [RunStage.CANCELLED, RunStage.FAILED])
    def test_cancel_and_fail_reachable_from_any_live_stage(self, terminal: RunStage) -> None:
        state = RunState()
        state.advance(RunStage.FETCHING_ISSUES)
        state.advance(terminal)
        assert state.stage is terminal

    def test_terminal_is_absorbing(self) -> None:
        state = RunState()
        state.advance(RunStage.CANCELLED)
        with pytest.raises(RuntimeError):
            state.advance(RunStage.FAILED)

    def test_run_ids_differ(self) -> None:
        assert RunState().run_id != RunState().run_id


class TestRunResult:
    def test_ok(self) -> None:
        assert RunResult(outcome=RunOutcome.COMPLETED).ok
        assert RunResult(outcome=RunOutcome.NOTHING_TO_DO).ok
        assert not RunResult(outcome=RunOutcome.CANCELLED).ok
        assert not RunResult(outcome=RunOutcome.FAILED).ok

    def test_to_dict(self) -> None:
        result = RunResult(
            outcome=RunOutcome.COMPLETED,
            message="feat: x\n\nRefs #7",
            linked_issue=Issue(id=7, title="Add x", url="https://github.com/o/r/issues/7"),
            classification=FEATURE,
            stages=(RunStage.COLLECTING_DIFF, RunStage.DONE),
        )
        data = result.to_dict()
        assert data["linked_issue"] == {
            "id": 7,
            "title": "Add x",
            "url": "https://github.com/o/r/issues/7",
        }
        assert data["classification"] == {"type": "enhancement", "labels": ["ui"], "confidence": 0.75}
        assert data["stages"] == ["collecting_diff", "done"]


# ---------------------------------------------------------------------------
# Issue text
# ---------------------------------------------------------------------------


class TestIssueText:
    def test_title_lists_paths(self) -> None:
        change = Change.from_diff(_diff("a.py", "b.py"))
        assert issue_title(FEATURE, change) == "enhancement: changes in a.py, b.py"

    def test_title_caps_paths(self) -> None:
        change = Change.from_diff(_diff("a", "b", "c", "d", "e"))
        assert issue_title(FEATURE, change) == "enhancement: changes in a, b, c and 2 more"

    def test_title_without_paths(self) -> None:
        assert issue_title(FEATURE, Change.from_diff("+x")) == "enhancement: update from pending change"

    def test_body(self) -> None:
        body = issue_body(FEATURE, Change.from_diff(_diff("src/a.py")))
        assert "`enhancement`" in body
        assert "0.75" in body
        assert "- `src/a.py`" in body
