"""Pattern recognizer: compare today against learned behavioural patterns.

Detects:
- Completion rate decline: tasks completed per day over the last week fell
  below 80% of the learned rate (info).
- Peak hours: the current hour is one of the learned peak hours (info).
- Day-of-week: a learned summary exists for today's weekday (info).
- Neglected category: a category with some history but no activity for
  7+ days (attention).

Patterns arrive precomputed in context.historical_patterns; this detector
only compares, it never learns.
"""

from datetime import date, timedelta

from detectors.base import BaseDetector
from detectors.streak_guardian import map_category_to_domain
from schemas.context import AnticipationContext, Category, ProductivityPattern, Task
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


def compute_completion_rate(tasks: list[Task], today: date, days: int) -> float:
    """Tasks completed per day over the trailing window of `days` days."""
    cutoff = today - timedelta(days=days)
    completed = sum(
        1 for t in tasks
        if t.completed_date is not None and t.completed_date >= cutoff
    )
    return completed / days


def find_neglected_categories(categories: list[Category], today: date, days: int = 7) -> list[Category]:
    """Categories with some history whose last activity is more than `days` ago.

    A category that never had a streak or any progress is new, not neglected.
    """
    cutoff = today - timedelta(days=days)
    neglected = []
    for category in categories:
        if category.streak_count == 0 and category.current_progress == 0:
            continue
        if category.last_active_date is None or category.last_active_date < cutoff:
            neglected.append(category)
    return neglected


class PatternRecognizer(BaseDetector):
    name = "pattern-recognizer"

    COMPLETION_WINDOW_DAYS = 7
    DECLINE_RATIO = 0.8
    NEGLECT_DAYS = 7

    def detect(self, context: AnticipationContext) -> list[Signal]:
        patterns = {p.pattern_type: p for p in context.historical_patterns}
        signals: list[Signal] = []

        for check in (self._completion_rate, self._peak_hours, self._day_of_week):
            signal = check(context, patterns)
            if signal is not None:
                signals.append(signal)

        signals.extend(self._neglect(context))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _insight(self, context: AnticipationContext, check: str, **fields) -> Signal:
        return self.build_signal(
            context,
            type_=SignalType.PATTERN_INSIGHT,
            severity=SignalSeverity.INFO,
            domain=LifeDomain.PERSONAL_GROWTH,
            key=(check, context.today.isoformat()),
            **fields,
        )

    def _completion_rate(
        self, context: AnticipationContext, patterns: dict[str, ProductivityPattern]
    ) -> Signal | None:
        pattern = patterns.get("completion_rate")
        if pattern is None:
            return None

        historical = float(pattern.data.get("rate") or 0)
        current = compute_completion_rate(context.tasks, context.today, self.COMPLETION_WINDOW_DAYS)
        if current >= historical * self.DECLINE_RATIO:
            return None

        return self._insight(
            context,
            "completion_rate",
            title="Completion rate declining",
            body=(
                f"Your task completion rate has dropped to {current:.1f} tasks/day "
                f"from {historical:.1f} tasks/day"
            ),
        )

    def _peak_hours(
        self, context: AnticipationContext, patterns: dict[str, ProductivityPattern]
    ) -> Signal | None:
        pattern = patterns.get("peak_hours")
        if pattern is None:
            return None

        if context.now.hour not in (pattern.data.get("hours") or []):
            return None

        return self._insight(
            context,
            f"peak_hours:{context.now.hour}",
            title="Peak productivity window",
            body=(
                f"You're in your peak productivity window ({context.current_time}). "
                "Consider scheduling deep work now."
            ),
            suggested_action="Block time for your most demanding tasks",
        )

    def _day_of_week(
        self, context: AnticipationContext, patterns: dict[str, ProductivityPattern]
    ) -> Signal | None:
        pattern = patterns.get("day_of_week")
        if pattern is None:
            return None

        day = context.day_of_week
        day_data = pattern.data.get(day.lower()) or {}
        avg_tasks = day_data.get("avgTasks")
        avg_rate = day_data.get("avgCompletionRate")
        if avg_tasks is None or avg_rate is None:
            return None

        return self._insight(
            context,
            "day_of_week",
            title=f"{day} productivity pattern",
            body=(
                f"Typically on {day}s you complete {float(avg_tasks):.1f} tasks "
                f"at {float(avg_rate) * 100:.0f}% rate"
            ),
        )

    def _neglect(self, context: AnticipationContext) -> list[Signal]:
        return [
            self.build_signal(
                context,
                type_=SignalType.PATTERN_INSIGHT,
                severity=SignalSeverity.ATTENTION,
                domain=map_category_to_domain(category.name),
                title=f"{category.name} category neglected",
                body=(
                    f"No activity in {category.name} for {self.NEGLECT_DAYS}+ days. "
                    f"Last active: {category.last_active_date or 'never'}"
                ),
                suggested_action=f"Schedule a task in {category.name} to maintain balance",
                related_entity_ids=[category.id],
                key=("neglect", category.id, context.today.isoformat()),
            )
            for category in find_neglected_categories(context.categories, context.today, self.NEGLECT_DAYS)
        ]
