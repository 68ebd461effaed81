"""Priority synthesizer.

The PrioritySynthesizer takes the raw, concatenated detector output of one
cycle and produces the ranked batch that is merged into the store. It
handles three concerns the detectors do not:

1. Deduplication: signals with the same type about the same primary entity
   collapse into one, keeping the most severe.

2. Scoring: each signal gets a base score from its severity, raised for
   tasks due soon and for categories with an active project, then scaled by
   the learned feedback weight for its (type, domain) pairing.

3. Ordering: severity first, score second. A feedback weight can reorder
   signals within a severity band but never lift one above a more severe
   signal. rank_key() is the single comparator for that order; the store's
   list views sort with it too.
"""

from datetime import date

from feedback.loop import apply_feedback_weight
from schemas.context import AnticipationContext
from schemas.signal import SEVERITY_RANK, Signal, SignalSeverity
from schemas.weight import SignalWeight

SEVERITY_SCORES: dict[SignalSeverity, float] = {
    SignalSeverity.CRITICAL: 100,
    SignalSeverity.URGENT: 75,
    SignalSeverity.ATTENTION: 50,
    SignalSeverity.INFO: 25,
}

DUE_DATE_BOOST = 100
DUE_DATE_DECAY_PER_DAY = 10
ACTIVE_PROJECT_BOOST = 20


def severity_score(severity: SignalSeverity) -> float:
    return SEVERITY_SCORES[severity]


def rank_key(signal: Signal, score: float) -> tuple[int, float]:
    """Sort key for signal ordering: severity rank ascending, then score descending."""
    return (SEVERITY_RANK[signal.severity], -score)


def deduplicate_signals(signals: list[Signal]) -> list[Signal]:
    """Collapse signals sharing (type, first related entity) to the most severe one.

    Signals without related entities are never merged. On equal severity the
    first one seen wins, so the output stays in input order.
    """
    kept: dict[tuple, Signal] = {}

    for signal in signals:
        if signal.related_entity_ids:
            key: tuple = (signal.type, signal.related_entity_ids[0])
        else:
            key = ("unique", signal.id)

        existing = kept.get(key)
        if existing is None or SEVERITY_RANK[signal.severity] < SEVERITY_RANK[existing.severity]:
            kept[key] = signal

    return list(kept.values())


def base_score(signal: Signal, context: AnticipationContext) -> float:
    """Severity score plus context boosts, before feedback weighting.

    Boosts:
        - Due date: when the primary entity is a task with a due date,
          max(0, 100 - 10 * days_until_due). Overdue tasks score above 100.
        - Active project: +20 once if any active project's category is
          among the signal's related entities.
    """
    score = severity_score(signal.severity)

    if signal.related_entity_ids:
        primary = signal.related_entity_ids[0]
        task = next((t for t in context.tasks if t.id == primary), None)
        if task is not None and task.due_date is not None:
            score += _due_date_boost(task.due_date, context.today)

    related = set(signal.related_entity_ids)
    if any(p.status == "active" and p.category_id in related for p in context.projects):
        score += ACTIVE_PROJECT_BOOST

    return score


class PrioritySynthesizer:
    """Deduplicates, scores, and orders one cycle's candidate signals."""

    def prioritize(
        self,
        signals: list[Signal],
        context: AnticipationContext,
        weights: list[SignalWeight] | None = None,
    ) -> list[Signal]:
        """Return the deduplicated candidates, highest priority first.

        Args:
            signals: Raw detector output for this cycle.
            context: The snapshot the signals were detected against. Used
                for the due-date and active-project boosts.
            weights: Current feedback weights. Pairings with no weight row
                are left unscaled.

        Returns:
            A new list; the input is not modified. Empty input gives [].
        """
        weights = weights or []
        scored = [
            (signal, apply_feedback_weight(base_score(signal, context), signal, weights))
            for signal in deduplicate_signals(signals)
        ]
        # sort() is stable, so equal keys keep detector order.
        scored.sort(key=lambda pair: rank_key(*pair))
        return [signal for signal, _ in scored]


def rank_signals(signals: list[Signal], weights: list[SignalWeight] | None = None) -> list[Signal]:
    """Order stored signals for list views.

    Same comparator as PrioritySynthesizer, with severity score times the
    feedback weight as the score. No context is available at read time, so
    the context boosts do not apply.
    """
    weights = weights or []
    return sorted(
        signals,
        key=lambda s: rank_key(s, apply_feedback_weight(severity_score(s.severity), s, weights)),
    )


# ── Private ───────────────────────────────────────────────────────────────────


def _due_date_boost(due: date, today: date) -> float:
    days_until_due = (due - today).days
    return max(0, DUE_DATE_BOOST - DUE_DATE_DECAY_PER_DAY * days_until_due)
