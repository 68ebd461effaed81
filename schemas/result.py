"""Result and status schemas.

Defines the output types of one detector-pipeline run (PipelineResult) and
one full anticipation cycle (CycleResult), the worker's configuration and
status objects, and the summary counts the store hands to list views.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from schemas.signal import Signal
from schemas.weight import SignalWeight

DEFAULT_INTERVAL_MS = 300_000


class WorkerConfig(BaseModel):
    """Scheduler configuration. Two documented fields, held in memory only.

    Attributes:
        interval_ms: Delay between scheduled cycles, in milliseconds.
        enabled: When False, start() is a no-op.
    """

    interval_ms: int = Field(default=DEFAULT_INTERVAL_MS, gt=0)
    enabled: bool = True


class WorkerStatus(BaseModel):
    """Snapshot of the worker's state. Safe to poll; reading it changes nothing."""

    is_active: bool
    is_running: bool
    last_run_at: datetime | None = None
    config: WorkerConfig


class PipelineResult(BaseModel):
    """Output of one DetectorPipeline.run() call.

    Attributes:
        signals: Concatenated raw signals in registry order.
        detectors_run: Names of detectors that completed.
        detectors_failed: Names of detectors that raised and were skipped.
        run_duration_ms: Wall-clock time for the whole pipeline.
    """

    signals: list[Signal]
    detectors_run: list[str]
    detectors_failed: list[str] = Field(default_factory=list)
    run_duration_ms: float = 0.0


class CycleResult(BaseModel):
    """Final output of a successful AnticipationWorker.run_cycle().

    Attributes:
        timestamp: When the cycle started. Becomes the worker's last_run_at.
        signals: The ranked batch that was merged into the store, highest
            priority first.
        detectors_run: Detectors that completed this cycle.
        detectors_failed: Detectors that raised and were skipped.
        weights_used: Feedback weights applied while ranking.
        skipped_with_outcome: Candidates dropped because the store already
            holds the same id with a recorded dismiss / act-on outcome.
        expired_removed: Signals removed by the expiry sweep.
        run_duration_ms: Wall-clock time of the whole cycle.
    """

    timestamp: datetime
    signals: list[Signal]
    detectors_run: list[str]
    detectors_failed: list[str] = Field(default_factory=list)
    weights_used: list[SignalWeight] = Field(default_factory=list)
    skipped_with_outcome: int = 0
    expired_removed: int = 0
    run_duration_ms: float = 0.0


class SignalCounts(BaseModel):
    """Active-signal totals for badge counters. urgent includes critical."""

    total: int
    urgent: int
    attention: int
    info: int
