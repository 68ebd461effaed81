"""Detector pipeline: run every registered detector against one context.

This is the only detection entry point the worker calls. It:
1. Runs each detector in registry order against the same context
2. Isolates failures: a raising detector is logged and skipped
3. Concatenates the surviving output in registry order
4. Reports which detectors ran and which failed

Detectors are pure and cheap, so they run sequentially inline. Running them
in order keeps the concatenated output deterministic without a merge step.
"""

import logging
import time

from core.registry import DetectorRegistry
from detectors.aging_detector import AgingConfig, AgingDetector
from detectors.base import BaseDetector
from detectors.calendar_conflicts import CalendarConflictDetector
from detectors.context_switch_prep import ContextSwitchPrep
from detectors.cross_domain_correlator import CrossDomainCorrelator
from detectors.deadline_radar import DeadlineRadar
from detectors.family_awareness import FamilyAwareness
from detectors.financial_sentinel import FinancialSentinel
from detectors.pattern_recognizer import PatternRecognizer
from detectors.streak_guardian import StreakGuardian
from schemas.context import AnticipationContext
from schemas.result import PipelineResult
from schemas.signal import Signal

logger = logging.getLogger(__name__)


def default_registry(aging_config: AgingConfig | None = None) -> DetectorRegistry:
    """Build the static, ordered detector registry used in production."""
    registry = DetectorRegistry()
    for detector in (
        AgingDetector(aging_config),
        StreakGuardian(),
        DeadlineRadar(),
        FamilyAwareness(),
        CalendarConflictDetector(),
        FinancialSentinel(),
        ContextSwitchPrep(),
        PatternRecognizer(),
        CrossDomainCorrelator(),
    ):
        registry.register(detector)
    return registry


class DetectorPipeline:
    """Runs all registered detectors and returns their concatenated signals."""

    def __init__(self, registry: DetectorRegistry | None = None) -> None:
        self._registry = registry if registry is not None else default_registry()

    @property
    def registry(self) -> DetectorRegistry:
        return self._registry

    def run(self, context: AnticipationContext) -> PipelineResult:
        """Run every detector against the context.

        Each detector runs independently. If one raises, the error is logged
        with its traceback and the pipeline continues with the rest. Partial
        signals are better than no signals.

        Args:
            context: The read-only snapshot for this cycle.

        Returns:
            PipelineResult with signals in registry order.
        """
        start = time.perf_counter()
        signals: list[Signal] = []
        ran: list[str] = []
        failed: list[str] = []

        for detector in self._registry.get_all():
            found = self._run(detector, context)
            if found is None:
                failed.append(detector.name)
                continue
            signals.extend(found)
            ran.append(detector.name)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Pipeline produced %d signals from %d/%d detectors in %.1fms.",
            len(signals),
            len(ran),
            len(self._registry),
            elapsed_ms,
        )
        return PipelineResult(
            signals=signals,
            detectors_run=ran,
            detectors_failed=failed,
            run_duration_ms=elapsed_ms,
        )

    # ── Private ───────────────────────────────────────────────────────────────

    def _run(self, detector: BaseDetector, context: AnticipationContext) -> list[Signal] | None:
        """Call one detector, returning None if it raised."""
        try:
            found = detector.detect(context)
        except Exception:
            logger.exception("Detector %s failed, skipping.", detector.name)
            return None
        logger.debug("Detector %s completed: %d signals.", detector.name, len(found))
        return found
