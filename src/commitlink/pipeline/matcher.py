"""
Relevance matcher.

Asks the backend which candidate issue, if any, the diff addresses. The
answer is only trusted when it names an issue from the exact list that was
sent: anything else, including a well-formed number that was never listed,
means "no match".
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from commitlink.core.cancellation import CancellationToken, ensure_token
from commitlink.core.constants import NO_MATCH_TOKEN
from commitlink.pipeline.prompts import MATCHER_SYSTEM, matcher_prompt
from commitlink.providers.gateway import TextGateway
from commitlink.tracker.models import Issue

logger = structlog.get_logger()

_NON_DIGITS = re.compile(r"\D+")


def parse_issue_answer(answer: str, issues: Sequence[Issue]) -> int | None:
    """Map raw backend text to a listed issue id, or None."""
    text = answer.strip()
    if text.upper() == NO_MATCH_TOKEN:
        return None

    digits = _NON_DIGITS.sub("", text)
    # Longer digit runs are never tracker ids
    if not digits or len(digits) > 19:
        return None
    issue_id = int(digits)

    if issue_id not in {issue.id for issue in issues}:
        logger.info("match_rejected", answer=text[:80], issue=issue_id)
        return None
    return issue_id


class RelevanceMatcher:
    """(diff, candidate issues) → at most one issue id."""

    def __init__(self, gateway: TextGateway) -> None:
        self._gateway = gateway

    async def match(
        self,
        diff: str,
        issues: Sequence[Issue],
        cancellation: CancellationToken | None = None,
    ) -> int | None:
        token = ensure_token(cancellation)
        token.raise_if_cancelled()
        if not issues:
            return None

        answer = await self._gateway.generate(
            matcher_prompt(diff, issues), token, system=MATCHER_SYSTEM
        )
        issue_id = parse_issue_answer(answer, issues)
        logger.debug("match_decided", candidates=len(issues), issue=issue_id)
        return issue_id
