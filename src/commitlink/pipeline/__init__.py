"""Commit pipeline: classification, relevance matching and the run orchestrator."""

from commitlink.pipeline.classifier import ChangeClassifier, ParseResult, parse_classification
from commitlink.pipeline.matcher import RelevanceMatcher
from commitlink.pipeline.models import Change, ChangeType, Classification
from commitlink.pipeline.orchestrator import (
    BusyIndicator,
    CommitOrchestrator,
    RunOutcome,
    RunResult,
    RunStage,
)

__all__ = [
    "BusyIndicator",
    "Change",
    "ChangeClassifier",
    "ChangeType",
    "Classification",
    "CommitOrchestrator",
    "ParseResult",
    "RelevanceMatcher",
    "RunOutcome",
    "RunResult",
    "RunStage",
    "parse_classification",
]
