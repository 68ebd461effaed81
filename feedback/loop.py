"""Feedback loop: learn signal priority from how the user responded before.

Turns historical signal outcomes into forward-looking priority multipliers,
one per (signal type, domain) pairing:

    effectiveness = acted_on / (acted_on + dismissed)     (0.5 below 5 outcomes)
    modifier      = 0.3 + effectiveness * 1.7             (range [0.3, 2.0])

A pairing the user always dismisses converges toward 0.3x: suppressed, never
silenced, so a class that becomes relevant again can still surface. One the
user reliably acts on converges toward 2.0x.

Weights are recomputed wholesale from the full history on every run rather
than updated incrementally. The history is the repository's outcome log, not
the live signal store: the store sweeps expired signals, the log keeps one
record per signal id for good. Persisted rows for pairings absent from the
log are kept alongside the recomputed ones.

Outcome policy: a signal that is both dismissed and acted on counts as acted
on only. Acting on a signal is the stronger statement of usefulness; a later
dismissal usually just clears it from view.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from feedback.repository import WeightRepository, WeightStoreError
from schemas.context import utc_now
from schemas.signal import LifeDomain, Signal, SignalType
from schemas.weight import FeedbackStats, SignalOutcome, SignalWeight

logger = logging.getLogger(__name__)

MIN_INTERACTIONS = 5
NEUTRAL_EFFECTIVENESS = 0.5
MIN_MODIFIER = 0.3
MAX_MODIFIER = 2.0

WeightKey = tuple[SignalType, LifeDomain]
History = Iterable[Signal | SignalOutcome]


def aggregate_feedback(signals: History) -> dict[WeightKey, FeedbackStats]:
    """Count generated / dismissed / acted-on signals per (type, domain)."""
    stats: dict[WeightKey, FeedbackStats] = {}

    for signal in signals:
        key = (signal.type, signal.domain)
        entry = stats.get(key)
        if entry is None:
            entry = stats[key] = FeedbackStats(signal_type=signal.type, domain=signal.domain)

        entry.total_generated += 1
        if signal.is_acted_on:
            entry.total_acted_on += 1
        elif signal.is_dismissed:
            entry.total_dismissed += 1

    return stats


def effectiveness_score(stats: FeedbackStats) -> float:
    """Share of interacted signals that were acted on.

    Returns the neutral 0.5 until at least MIN_INTERACTIONS outcomes exist,
    regardless of how many signals were generated. Sparse data should not
    swing priorities.
    """
    interacted = stats.total_acted_on + stats.total_dismissed
    if interacted < MIN_INTERACTIONS:
        return NEUTRAL_EFFECTIVENESS
    return stats.total_acted_on / interacted


def weight_modifier(effectiveness: float) -> float:
    """Map effectiveness [0, 1] linearly onto a modifier in [0.3, 2.0]."""
    modifier = MIN_MODIFIER + effectiveness * (MAX_MODIFIER - MIN_MODIFIER)
    return min(MAX_MODIFIER, max(MIN_MODIFIER, modifier))


def apply_feedback_weight(score: float, signal: Signal, weights: list[SignalWeight]) -> float:
    """Scale a priority score by the weight matching the signal's (type, domain).

    New pairings with no weight row yet start neutral: the score comes back
    unchanged rather than penalised.
    """
    for weight in weights:
        if weight.signal_type == signal.type and weight.domain == signal.domain:
            return score * weight.weight_modifier
    return score


def compute_weights(signals: History, now: datetime | None = None) -> list[SignalWeight]:
    """Compute a fresh weight row for every pairing present in the history."""
    now = now or utc_now()
    weights = []
    for stats in aggregate_feedback(signals).values():
        effectiveness = effectiveness_score(stats)
        weights.append(SignalWeight(
            signal_type=stats.signal_type,
            domain=stats.domain,
            total_generated=stats.total_generated,
            total_dismissed=stats.total_dismissed,
            total_acted_on=stats.total_acted_on,
            effectiveness_score=effectiveness,
            weight_modifier=weight_modifier(effectiveness),
            last_updated=now,
            created_at=now,
        ))
    return weights


class FeedbackLoop:
    """Records signal outcomes and recomputes weights from them.

    Attributes:
        repository: Where weight rows and the outcome history live.
    """

    def __init__(self, repository: WeightRepository) -> None:
        self.repository = repository

    def record(self, signals: list[Signal], now: datetime | None = None) -> int:
        """Append the signals and their current outcomes to the history.

        Returns how many records were written: 0 when the repository
        rejected the batch, which is logged rather than raised.
        """
        if not signals:
            return 0
        now = now or utc_now()
        try:
            self.repository.record_outcomes([SignalOutcome.from_signal(s, now) for s in signals])
        except WeightStoreError as exc:
            logger.error("Failed to record %d signal outcomes: %s", len(signals), exc)
            return 0
        return len(signals)

    def history(self) -> list[SignalOutcome]:
        """The full outcome history. Raises WeightStoreError if unreadable."""
        return self.repository.outcomes()

    def recompute(self, all_signals: History, now: datetime | None = None) -> list[SignalWeight]:
        """Recompute every weight from the full history and upsert the rows.

        All rows are computed in memory before the first write, so a failure
        during computation leaves the persisted table untouched. Each upsert
        is independent: a row that fails to persist is logged and skipped,
        and the remaining rows are still written.

        Args:
            all_signals: The complete history, as signals or outcome records.
            now: Timestamp for last_updated. Defaults to the current UTC time.

        Returns:
            The freshly computed weights, including any row that failed to
            persist, followed by persisted rows for pairings the history does
            not cover.
        """
        all_signals = list(all_signals)
        logger.info("Computing signal weights from %d historical signals.", len(all_signals))
        weights = compute_weights(all_signals, now)

        persisted = 0
        for weight in weights:
            try:
                self.repository.upsert(weight)
                persisted += 1
            except WeightStoreError as exc:
                logger.error(
                    "Failed to persist weight %s/%s, continuing. Error: %s",
                    weight.signal_type.value,
                    weight.domain.value,
                    exc,
                )

        logger.info("Computed %d signal weights, persisted %d.", len(weights), persisted)
        computed = {w.key for w in weights}
        return weights + [w for w in self.load() if w.key not in computed]

    def load(self) -> list[SignalWeight]:
        """Return the persisted weights, or [] if the store cannot be read."""
        try:
            return self.repository.all()
        except WeightStoreError as exc:
            logger.error("Failed to load persisted weights: %s", exc)
            return []
