"""Threshold breach detection and notification deduplication."""

from .dedup import (
    DedupGuard,
    DedupKey,
    DurableDedupGuard,
    MemoryDedupGuard,
    SeenKeys,
    create_dedup_guard,
)
from .evaluator import BreachCandidate, check_threshold_breach, evaluate
from .orchestrator import Monitor, MonitorPhase, ThresholdState
from .stores import NotificationSink, ReadingStore, ThresholdStore

__all__ = [
    "BreachCandidate",
    "DedupGuard",
    "DedupKey",
    "DurableDedupGuard",
    "MemoryDedupGuard",
    "Monitor",
    "MonitorPhase",
    "NotificationSink",
    "ReadingStore",
    "SeenKeys",
    "ThresholdState",
    "ThresholdStore",
    "check_threshold_breach",
    "create_dedup_guard",
    "evaluate",
]
