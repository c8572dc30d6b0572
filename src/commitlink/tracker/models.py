"""Issue tracker data model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class IssueState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class Issue:
    """Read-only copy of a tracker issue. ``id`` is always tracker-assigned."""

    id: int
    title: str
    body: str = ""
    state: IssueState = IssueState.OPEN
    url: str = ""

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> Issue:
        """Build an Issue from a GitHub REST issue object."""
        try:
            state = IssueState(str(data.get("state") or "open").lower())
        except ValueError:
            state = IssueState.OPEN
        return cls(
            id=int(data["number"]),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            state=state,
            url=str(data.get("html_url") or ""),
        )

    @property
    def reference(self) -> str:
        return f"#{self.id}"
