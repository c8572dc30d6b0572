"""
Change classifier.

Backend output is treated as untrusted input. ``parse_classification`` is a
pure parser stage that never raises: it strips fences, extracts the first
balanced JSON object, and validates it with pydantic, returning a
``ParseResult`` holding either a ``Classification`` or the
``ClassificationParseError`` that explains why not.

``ChangeClassifier.classify`` turns any parse failure into
``Classification.fallback()``. Gateway errors (network, auth, config,
cancellation) are not caught here; the orchestrator decides what they mean.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from commitlink.core.cancellation import CancellationToken
from commitlink.core.exceptions import ClassificationParseError
from commitlink.pipeline.models import CHANGE_TYPE_ALIASES, ChangeType, Classification
from commitlink.pipeline.prompts import CLASSIFIER_SYSTEM, classification_prompt
from commitlink.providers.gateway import TextGateway
from commitlink.providers.normalize import strip_fences

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Parser stage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParseResult:
    """Either ``value`` or ``error`` is set, never both."""

    value: Classification | None = None
    error: ClassificationParseError | None = None

    @property
    def ok(self) -> bool:
        return self.value is not None


class _ClassificationPayload(BaseModel):
    type: ChangeType
    labels: list[str]
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("type", mode="before")
    @classmethod
    def normalise_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower()
            return CHANGE_TYPE_ALIASES.get(key, key)
        return v

    @field_validator("labels", mode="before")
    @classmethod
    def reject_bare_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            raise ValueError("labels must be an array of strings")
        return v


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of *text*, or None.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards the balance.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one.
        start = text.find("{", start + 1)
    return None


def parse_classification(text: str) -> ParseResult:
    """Parse backend text into a Classification without raising."""
    candidate = extract_json_object(strip_fences(text or ""))
    if candidate is None:
        return ParseResult(error=ClassificationParseError("no JSON object found"))

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ParseResult(error=ClassificationParseError(f"invalid JSON: {exc.msg}"))
    if not isinstance(data, dict):
        return ParseResult(error=ClassificationParseError("JSON value is not an object"))

    try:
        payload = _ClassificationPayload.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        return ParseResult(error=ClassificationParseError(f"invalid fields: {fields}"))

    labels = frozenset(label.strip() for label in payload.labels if label.strip())
    return ParseResult(
        value=Classification(
            type=payload.type,
            labels=labels,
            confidence=payload.confidence,
        )
    )


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class ChangeClassifier:
    """Diff → {type, labels, confidence} through the text gateway."""

    def __init__(self, gateway: TextGateway) -> None:
        self._gateway = gateway

    async def classify(
        self, diff: str, cancellation: CancellationToken | None = None
    ) -> Classification:
        raw = await self._gateway.generate(
            classification_prompt(diff), cancellation, system=CLASSIFIER_SYSTEM
        )
        result = parse_classification(raw)
        if result.value is None:
            logger.warning(
                "classification_fallback",
                reason=str(result.error),
                raw=raw[:500],
            )
            return Classification.fallback()

        logger.debug(
            "classification_parsed",
            type=result.value.type.value,
            labels=result.value.sorted_labels(),
            confidence=result.value.confidence,
        )
        return result.value
