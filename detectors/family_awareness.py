"""Family awareness: shared family calendars against the user's own schedule.

Detects:
- Conflict: a family event overlapping a timed personal calendar event.
  Critical, referencing both events. A conflicting event gets no other signal.
- Starting soon: a family event starting within the look-ahead window
  (default 2 hours) -> urgent.
- Later today: a family event later the same day -> attention.

Events that have already ended are skipped, on both calendars. An event
already in progress only matters if it conflicts.
"""

import bisect
from datetime import timedelta

from detectors.base import BaseDetector, format_time
from schemas.context import AnticipationContext, CalendarEvent, FamilyEvent
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


def time_until(minutes: int) -> str:
    """Render a minute count as "in 45 minutes", "in 2 hours", "in 1h 30m"."""
    if minutes < 60:
        return f"in {minutes} minutes"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"in {hours} hour{'s' if hours > 1 else ''}"
    return f"in {hours}h {rest}m"


class FamilyAwareness(BaseDetector):
    name = "family-awareness"

    DEFAULT_LOOKAHEAD_MINUTES = 120

    def __init__(self, lookahead_minutes: int = DEFAULT_LOOKAHEAD_MINUTES) -> None:
        self.lookahead = timedelta(minutes=lookahead_minutes)

    def detect(self, context: AnticipationContext) -> list[Signal]:
        family_events = context.integrations.family_calendars
        if not family_events:
            return []

        now = context.now
        personal = sorted(
            (e for e in context.calendar_events if not e.all_day and e.end_time > now),
            key=lambda e: e.start_time,
        )
        starts = [e.start_time for e in personal]
        signals: list[Signal] = []

        for event in family_events:
            if event.end_time <= now:
                continue

            conflict = self._find_conflict(event, personal, starts)
            if conflict is not None:
                signals.append(self._conflict_signal(context, event, conflict))
                continue

            until = event.start_time - now
            if until <= timedelta(0):
                continue

            if until <= self.lookahead:
                minutes = int(until.total_seconds() // 60)
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.FAMILY_AWARENESS,
                    severity=SignalSeverity.URGENT,
                    domain=LifeDomain.FAMILY,
                    title=f"{event.member}'s event starting soon",
                    body=f'"{event.summary}" starts at {format_time(event.start_time)} ({time_until(minutes)})',
                    suggested_action="Be aware and prepare to wrap up current work",
                    related_entity_ids=[event.id],
                    expires_at=event.end_time,
                ))
            elif event.start_time.astimezone(now.tzinfo).date() == context.today:
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.FAMILY_AWARENESS,
                    severity=SignalSeverity.ATTENTION,
                    domain=LifeDomain.FAMILY,
                    title=f"{event.member} has event today",
                    body=f'"{event.summary}" at {format_time(event.start_time)}',
                    suggested_action="Plan your day accordingly",
                    related_entity_ids=[event.id],
                    expires_at=event.end_time,
                ))

        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _find_conflict(
        self,
        event: FamilyEvent,
        personal: list[CalendarEvent],
        starts: list,
    ) -> CalendarEvent | None:
        """Return the earliest-starting personal event overlapping event."""
        # Only events starting before the family event ends can overlap it.
        upper = bisect.bisect_left(starts, event.end_time)
        for candidate in personal[:upper]:
            if candidate.end_time > event.start_time:
                return candidate
        return None

    def _conflict_signal(
        self,
        context: AnticipationContext,
        event: FamilyEvent,
        conflict: CalendarEvent,
    ) -> Signal:
        return self.build_signal(
            context,
            type_=SignalType.FAMILY_AWARENESS,
            severity=SignalSeverity.CRITICAL,
            domain=LifeDomain.FAMILY,
            title="Family event conflicts with your schedule",
            body=(
                f"{event.member}'s event \"{event.summary}\" at {format_time(event.start_time)} "
                f"overlaps with your \"{conflict.summary}\""
            ),
            suggested_action=f'Reschedule "{conflict.summary}" or notify {event.member}',
            related_entity_ids=[event.id, conflict.id],
            expires_at=event.end_time,
        )
