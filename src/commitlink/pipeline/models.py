"""Pipeline data model: the captured change and its classification."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

_DIFF_HEADER = re.compile(r"^diff --git a/(?P<a>\S+) b/(?P<b>\S+)\s*$", re.MULTILINE)


class ChangeType(StrEnum):
    BUG = "bug"
    ENHANCEMENT = "enhancement"
    CHORE = "chore"
    REFACTOR = "refactor"
    DOCS = "docs"
    TEST = "test"


# Conventional-commit and label spellings backends tend to answer with
CHANGE_TYPE_ALIASES: dict[str, ChangeType] = {
    "fix": ChangeType.BUG,
    "bugfix": ChangeType.BUG,
    "feat": ChangeType.ENHANCEMENT,
    "feature": ChangeType.ENHANCEMENT,
    "documentation": ChangeType.DOCS,
    "doc": ChangeType.DOCS,
    "tests": ChangeType.TEST,
    "testing": ChangeType.TEST,
    "maintenance": ChangeType.CHORE,
}


@dataclass(frozen=True)
class Change:
    """The pending change: full diff text plus a per-path breakdown."""

    diff: str
    components: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_diff(cls, diff: str) -> Change:
        """Split a unified git diff into per-file sections keyed by path."""
        headers = list(_DIFF_HEADER.finditer(diff))
        parts: dict[str, str] = {}
        for i, match in enumerate(headers):
            end = headers[i + 1].start() if i + 1 < len(headers) else len(diff)
            path = match["b"]
            parts[path] = parts.get(path, "") + diff[match.start() : end]
        return cls(diff=diff, components=MappingProxyType(parts))

    @property
    def is_empty(self) -> bool:
        return not self.diff.strip()

    @property
    def paths(self) -> list[str]:
        return list(self.components)


@dataclass(frozen=True)
class Classification:
    """Structured categorisation of a change. Never mutated after creation."""

    type: ChangeType
    labels: frozenset[str]
    confidence: float

    @classmethod
    def fallback(cls) -> Classification:
        """The classification used whenever backend output cannot be trusted."""
        return cls(type=ChangeType.CHORE, labels=frozenset({"chore"}), confidence=0.0)

    def sorted_labels(self) -> list[str]:
        return sorted(self.labels)
