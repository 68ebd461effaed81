"""Anticipation worker: the scheduler that drives detection cycles.

AnticipationWorker owns the periodic loop. Each cycle:
    1. Obtain a context snapshot from the provider (or an empty fallback)
    2. Run the detector pipeline against it
    3. Record the store's outcomes in the feedback history, then recompute
       weights from that history
    4. Deduplicate, score and order the candidates
    5. Drop candidates the user has already dismissed or acted on
    6. Merge the batch into the store, record it, and sweep expired signals

State machine:
    Stopped --start()--> Active --stop()--> Stopped
    Inside Active, the worker alternates between Idle and Running-Cycle.

A cycle that would start while another is still running is dropped, not
queued. Any exception inside a cycle is logged and swallowed: the store is
written only after every fallible step has succeeded, so a failed cycle
leaves it exactly as it was.

There are no timeouts on the provider or the detectors. A provider that
never returns keeps is_running set and every later tick is skipped.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from aggregation.prioritizer import PrioritySynthesizer
from core.store import SignalStore
from detectors.pipeline import DetectorPipeline
from feedback.loop import FeedbackLoop
from feedback.repository import InMemoryWeightRepository
from schemas.context import AnticipationContext, empty_context, utc_now
from schemas.result import CycleResult, WorkerConfig, WorkerStatus
from schemas.weight import SignalWeight

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], AnticipationContext | Awaitable[AnticipationContext]]


class AnticipationWorker:
    """Runs anticipation cycles on a timer against a shared SignalStore.

    All collaborators are injected so tests can swap any of them. Only the
    store is required; the rest default to the production wiring.

    Attributes:
        store: Where merged signals live.
        pipeline: Runs the registered detectors.
        feedback: Recomputes and persists feedback weights.
        prioritizer: Dedupes, scores and orders candidates.
        config: interval_ms and enabled. Held in memory only.
    """

    def __init__(
        self,
        store: SignalStore,
        pipeline: DetectorPipeline | None = None,
        feedback: FeedbackLoop | None = None,
        prioritizer: PrioritySynthesizer | None = None,
        config: WorkerConfig | None = None,
        context_provider: ContextProvider | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline or DetectorPipeline()
        self.feedback = feedback or FeedbackLoop(InMemoryWeightRepository())
        self.prioritizer = prioritizer or PrioritySynthesizer()
        self.config = config or WorkerConfig()
        self._context_provider = context_provider

        self._timer: asyncio.Task | None = None
        self._cycles: set[asyncio.Task] = set()
        self._is_running = False
        self._last_run_at: datetime | None = None
        self._last_weights: list[SignalWeight] = []

    @property
    def is_active(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def last_run_at(self) -> datetime | None:
        return self._last_run_at

    @property
    def weights(self) -> list[SignalWeight]:
        """Weights used by the most recent successful cycle."""
        return list(self._last_weights)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the schedule: one cycle now, then one every interval_ms.

        No-op when already active or when the config is disabled. Must be
        called from within a running event loop.
        """
        if self.is_active:
            logger.debug("Worker already active; start() ignored.")
            return
        if not self.config.enabled:
            logger.info("Worker disabled by config; not starting.")
            return

        logger.info("Starting anticipation worker (interval %dms).", self.config.interval_ms)
        self._spawn_cycle()
        self._timer = asyncio.create_task(self._tick_forever(self.config.interval_ms / 1000))

    def stop(self) -> None:
        """Cancel the timer. A cycle already in flight runs to completion."""
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        logger.info("Anticipation worker stopped.")

    def update_config(self, **updates) -> WorkerConfig:
        """Merge config updates and restart the schedule if it was active.

        Accepts interval_ms and enabled. Unknown keys raise ValueError and
        invalid values raise pydantic's ValidationError; either way the old
        config stays in place.
        """
        for key in updates:
            if key not in WorkerConfig.model_fields:
                raise ValueError(f"Unknown worker config field '{key}'.")
        merged = WorkerConfig.model_validate({**self.config.model_dump(), **updates})

        was_active = self.is_active
        self.stop()
        self.config = merged
        logger.info(
            "Worker config updated: interval_ms=%d enabled=%s.",
            merged.interval_ms,
            merged.enabled,
        )
        if was_active and merged.enabled:
            self.start()
        return merged

    def set_context_provider(self, provider: ContextProvider | None) -> None:
        """Install the snapshot source. May return a context or an awaitable of one."""
        self._context_provider = provider

    def get_status(self) -> WorkerStatus:
        return WorkerStatus(
            is_active=self.is_active,
            is_running=self.is_running,
            last_run_at=self._last_run_at,
            config=self.config.model_copy(),
        )

    async def wait_idle(self) -> None:
        """Wait for every cycle task spawned by the scheduler to finish."""
        while self._cycles:
            await asyncio.gather(*list(self._cycles), return_exceptions=True)

    # ── Cycle ─────────────────────────────────────────────────────────────────

    async def run_cycle(self) -> CycleResult | None:
        """Run one anticipation cycle.

        Returns:
            The CycleResult on success. None when another cycle was already
            running (the call is dropped) or when the cycle failed.
        """
        if self._is_running:
            logger.warning("Anticipation cycle already running; skipping this run.")
            return None

        self._is_running = True
        try:
            return await self._run_cycle()
        except Exception:
            logger.exception("Anticipation cycle failed; store left unchanged.")
            return None
        finally:
            self._is_running = False

    # ── Private ───────────────────────────────────────────────────────────────

    async def _run_cycle(self) -> CycleResult:
        start = time.perf_counter()
        started_at = utc_now()

        context = await self._get_context(started_at)
        pipeline_result = self.pipeline.run(context)

        current = self.store.all()
        # Outcomes must reach the history before the sweep below drops them.
        self.feedback.record(current, context.now)
        weights = self._compute_weights(context.now)
        ranked = self.prioritizer.prioritize(pipeline_result.signals, context, weights)

        # A candidate the user already dismissed or acted on must not
        # overwrite that outcome.
        with_outcome = {s.id for s in current if s.has_outcome}
        fresh = [s for s in ranked if s.id not in with_outcome]
        skipped = len(ranked) - len(fresh)

        self.store.add_signals(fresh)
        self.feedback.record(fresh, context.now)
        expired = self.store.clear_expired(context.now)

        self._last_run_at = started_at
        self._last_weights = weights
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "Anticipation cycle complete: %d signals merged, %d skipped with outcome, "
            "%d expired removed, %d/%d detectors ok in %.1fms.",
            len(fresh),
            skipped,
            expired,
            len(pipeline_result.detectors_run),
            len(pipeline_result.detectors_run) + len(pipeline_result.detectors_failed),
            elapsed_ms,
        )

        return CycleResult(
            timestamp=started_at,
            signals=fresh,
            detectors_run=pipeline_result.detectors_run,
            detectors_failed=pipeline_result.detectors_failed,
            weights_used=weights,
            skipped_with_outcome=skipped,
            expired_removed=expired,
            run_duration_ms=elapsed_ms,
        )

    async def _get_context(self, now: datetime) -> AnticipationContext:
        if self._context_provider is None:
            return empty_context(now, self.store.all())

        context = self._context_provider()
        if inspect.isawaitable(context):
            context = await context
        return context

    def _compute_weights(self, now: datetime) -> list[SignalWeight]:
        """Recompute weights from the outcome history, falling back to the persisted ones."""
        try:
            return self.feedback.recompute(self.feedback.history(), now)
        except Exception:
            logger.exception("Feedback recompute failed; using persisted weights.")
            return self.feedback.load()

    def _spawn_cycle(self) -> None:
        task = asyncio.create_task(self.run_cycle())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def _tick_forever(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self._spawn_cycle()
