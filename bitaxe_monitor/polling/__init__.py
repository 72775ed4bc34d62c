"""Polling engine: fetch coordination and scheduling."""

from .context import FailureMemo, TelemetryContext
from .fetch import (
    CancellationToken,
    CycleResult,
    DeviceOutcome,
    FailureKind,
    FetchCoordinator,
    OutcomeStatus,
    classify_failure,
)
from .scheduler import Debouncer, PollScheduler

__all__ = [
    "CancellationToken",
    "CycleResult",
    "Debouncer",
    "DeviceOutcome",
    "FailureKind",
    "FailureMemo",
    "FetchCoordinator",
    "OutcomeStatus",
    "PollScheduler",
    "TelemetryContext",
    "classify_failure",
]
