"""Prompt templates for the three backend calls of a run."""

from __future__ import annotations

from collections.abc import Sequence

from commitlink.core.constants import (
    ISSUE_BODY_EXCERPT_CHARS,
    MAX_DIFF_PROMPT_CHARS,
    NO_MATCH_TOKEN,
)
from commitlink.pipeline.models import ChangeType
from commitlink.tracker.models import Issue

CLASSIFIER_SYSTEM = "You classify code changes. You answer with JSON only."
MATCHER_SYSTEM = "You link code changes to issue tracker entries. You answer with one token."


def clip_diff(diff: str, limit: int = MAX_DIFF_PROMPT_CHARS) -> str:
    if len(diff) <= limit:
        return diff
    return diff[:limit] + f"\n... [diff truncated, {len(diff) - limit} more characters]"


def issue_excerpt(issue: Issue) -> str:
    body = issue.body[:ISSUE_BODY_EXCERPT_CHARS].replace("\r", " ").replace("\n", " ")
    return f"ID: #{issue.id} | Title: {issue.title} | Body: {body}..."


def message_prompt(diff: str, issue: Issue | None = None) -> str:
    issue_section = ""
    if issue is not None:
        issue_section = (
            "\nThis change addresses the following issue. Mention what was done "
            "about it, but do not add an issue reference line; one is appended "
            "automatically.\n"
            f"Issue #{issue.id}: {issue.title}\n"
        )
    return f"""Generate a concise and informative Git commit message based on the following staged changes. Focus on the 'what' and 'why' of the changes. If possible, categorize the commit (e.g., feat, fix, docs, style, refactor, test, chore) and provide a short summary, optionally followed by a more detailed explanation.
{issue_section}
Staged Changes:

{clip_diff(diff)}

Commit Message:"""


def classification_prompt(diff: str) -> str:
    types = ", ".join(t.value for t in ChangeType)
    return f"""Classify the following Git diff.

Respond with a single JSON object and nothing else: no markdown, no code fences, no commentary.
The object must have exactly these fields:
  "type": one of {types}
  "labels": an array of short issue-tracker label strings
  "confidence": a number between 0 and 1

Example: {{"type": "bug", "labels": ["bug"], "confidence": 0.8}}

Diff:
{clip_diff(diff)}

JSON:"""


def matcher_prompt(diff: str, issues: Sequence[Issue]) -> str:
    issues_context = "\n".join(issue_excerpt(i) for i in issues)
    return f"""
Analyze the provided Git diff and the list of open GitHub issues.

Task:
1. Determine which single issue, if any, is the MOST DIRECTLY and NECESSARILY addressed by the changes in the diff.
2. If a relevant issue is found, respond ONLY with the issue number (e.g., "278").
3. If NO issue is directly and necessarily addressed, respond ONLY with the word "{NO_MATCH_TOKEN}".

Open GitHub Issues:
{issues_context}

Diff:
{clip_diff(diff)}

Relevant Issue Number (or {NO_MATCH_TOKEN}):
"""
