"""Calendar conflict detector: double-booked personal calendar time.

Every pair of overlapping timed events emits one critical calendar_conflict
signal referencing both events. Schedule conflicts are the most actionable
signal class, so there is no softer tier. Events that have ended are ignored;
all-day events never conflict.

Sort-and-sweep: O(n log n) plus the number of overlapping pairs.
"""

from detectors.base import BaseDetector, format_time
from schemas.context import AnticipationContext, CalendarEvent
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


class CalendarConflictDetector(BaseDetector):
    name = "calendar-conflicts"

    def detect(self, context: AnticipationContext) -> list[Signal]:
        events = sorted(
            (
                e for e in context.calendar_events
                if not e.all_day and e.end_time > context.now
            ),
            key=lambda e: (e.start_time, e.id),
        )

        signals: list[Signal] = []
        open_events: list[CalendarEvent] = []

        for event in events:
            # Drop events that finished before this one starts.
            open_events = [o for o in open_events if o.end_time > event.start_time]
            for earlier in open_events:
                signals.append(self._conflict(context, earlier, event))
            open_events.append(event)

        return signals

    def _conflict(
        self,
        context: AnticipationContext,
        first: CalendarEvent,
        second: CalendarEvent,
    ) -> Signal:
        return self.build_signal(
            context,
            type_=SignalType.CALENDAR_CONFLICT,
            severity=SignalSeverity.CRITICAL,
            domain=LifeDomain.PERSONAL_GROWTH,
            title=f'Schedule conflict: "{first.summary}" and "{second.summary}"',
            body=(
                f'"{first.summary}" ({format_time(first.start_time)}-{format_time(first.end_time)}) '
                f'overlaps "{second.summary}" ({format_time(second.start_time)}-{format_time(second.end_time)})'
            ),
            suggested_action=f'Move or decline one of "{first.summary}" and "{second.summary}"',
            related_entity_ids=[first.id, second.id],
            key=tuple(sorted((first.id, second.id))),
            expires_at=min(first.end_time, second.end_time),
        )
