"""Streak guardian: category streaks about to break, or already broken.

A category with a live streak whose last activity was:
- yesterday, streak >= 7  -> urgent (a long streak needs action today)
- yesterday, shorter      -> attention
- 2+ days ago             -> critical (broken)
Activity today is safe and produces nothing. Each signal is about one day
and expires at the following midnight.
"""

from detectors.base import BaseDetector
from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType

# Checked in order; first keyword hit wins.
_DOMAIN_KEYWORDS: list[tuple[tuple[str, ...], LifeDomain]] = [
    (("health", "fitness"), LifeDomain.HEALTH_FITNESS),
    (("wealth", "finance", "money"), LifeDomain.FINANCE),
    (("family", "relationship"), LifeDomain.FAMILY),
    (("business", "work", "career"), LifeDomain.BUSINESS_TECH),
    (("creative", "art"), LifeDomain.CREATIVE),
    (("spiritual", "mindfulness"), LifeDomain.SPIRITUAL),
]


def map_category_to_domain(category_name: str) -> LifeDomain:
    """Map a free-text category name onto a life domain."""
    lower = category_name.lower()
    for keywords, domain in _DOMAIN_KEYWORDS:
        if any(k in lower for k in keywords):
            return domain
    return LifeDomain.PERSONAL_GROWTH


class StreakGuardian(BaseDetector):
    name = "streak-guardian"

    LONG_STREAK_DAYS = 7

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []

        for category in context.categories:
            if category.streak_count <= 0 or category.last_active_date is None:
                continue

            days = (context.today - category.last_active_date).days
            streak = category.streak_count

            if days == 1:
                if streak >= self.LONG_STREAK_DAYS:
                    severity = SignalSeverity.URGENT
                    body = (
                        f"Your {category.name} streak of {streak} days is still alive "
                        "but needs action today to continue."
                    )
                else:
                    severity = SignalSeverity.ATTENTION
                    body = (
                        f"Your {category.name} streak of {streak} days was last active "
                        "yesterday. Complete a task today to keep it going."
                    )
            elif days >= 2:
                severity = SignalSeverity.CRITICAL
                body = (
                    f"Your {category.name} streak of {streak} days has been broken. "
                    f"Last activity was {days} days ago."
                )
            else:
                continue

            signals.append(self.build_signal(
                context,
                type_=SignalType.STREAK_AT_RISK,
                severity=severity,
                domain=map_category_to_domain(category.name),
                title=f"{category.name} streak at risk ({streak} days)",
                body=body,
                suggested_action=f"Complete a {category.name} task today to maintain your streak",
                related_entity_ids=[category.id],
                key=(category.id, context.today.isoformat()),
                expires_at=context.end_of_today,
            ))

        return signals
