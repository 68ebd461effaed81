"""Context switch preparation: get ready for whatever the calendar does next.

Every timed event starting within the next 30 minutes yields one signal whose
severity escalates with proximity: <= 5 min urgent, <= 15 min attention,
otherwise info. Focus blocks get an environment-prep nudge in
personal_growth; other events get a domain guessed from their text.
"""

import re
from datetime import timedelta

from detectors.base import BaseDetector, format_time
from schemas.context import AnticipationContext, CalendarEvent
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType

# Checked in order; first match wins.
_DOMAIN_PATTERNS: list[tuple[re.Pattern, LifeDomain]] = [
    (re.compile(r"\b(deal|property|real estate|showing|inspection|closing)\b"), LifeDomain.BUSINESS_RE),
    (re.compile(r"\b(trade|trading|market|stock|portfolio|alpaca)\b"), LifeDomain.BUSINESS_TRADING),
    (re.compile(r"\b(dev|development|code|coding|meeting|client|project)\b"), LifeDomain.BUSINESS_TECH),
    (re.compile(r"\b(family|kids|spouse|school|pickup|dropoff)\b"), LifeDomain.FAMILY),
    (re.compile(r"\b(workout|gym|doctor|health|fitness)\b"), LifeDomain.HEALTH_FITNESS),
    (re.compile(r"\b(social|dinner|coffee|drinks|hangout)\b"), LifeDomain.SOCIAL),
    (re.compile(r"\b(church|prayer|meditation|spiritual)\b"), LifeDomain.SPIRITUAL),
    (re.compile(r"\b(creative|writing|music|art|hobby)\b"), LifeDomain.CREATIVE),
]


def infer_domain(event: CalendarEvent) -> LifeDomain:
    """Guess an event's life domain from keywords in its summary and description."""
    text = f"{event.summary} {event.description or ''}".lower()
    for pattern, domain in _DOMAIN_PATTERNS:
        if pattern.search(text):
            return domain
    return LifeDomain.PERSONAL_GROWTH


def severity_by_proximity(minutes_until: int) -> SignalSeverity:
    if minutes_until <= 5:
        return SignalSeverity.URGENT
    if minutes_until <= 15:
        return SignalSeverity.ATTENTION
    return SignalSeverity.INFO


def _suggestion(minutes_until: int) -> str:
    if minutes_until <= 5:
        return "Wrap up current task and prepare to transition"
    if minutes_until <= 15:
        return "Begin wrapping up current work and gather materials for upcoming event"
    return "Be aware of upcoming transition and plan accordingly"


class ContextSwitchPrep(BaseDetector):
    name = "context-switch-prep"

    WINDOW = timedelta(minutes=30)

    def detect(self, context: AnticipationContext) -> list[Signal]:
        now = context.now
        upcoming = sorted(
            (
                e for e in context.calendar_events
                if e.end_time > now and now < e.start_time <= now + self.WINDOW
            ),
            key=lambda e: e.start_time,
        )

        signals: list[Signal] = []
        for event in upcoming:
            minutes = int((event.start_time - now).total_seconds() // 60)
            at = format_time(event.start_time)

            if event.is_focus_block:
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.CONTEXT_SWITCH_PREP,
                    severity=severity_by_proximity(minutes),
                    domain=LifeDomain.PERSONAL_GROWTH,
                    title="Deep work session approaching",
                    body=f'Focus block "{event.summary}" starts in {minutes} minutes at {at}',
                    suggested_action=(
                        "Prepare your environment: close distractions, "
                        "silence notifications, gather materials"
                    ),
                    related_entity_ids=[event.id],
                    expires_at=event.start_time,
                ))
            else:
                signals.append(self.build_signal(
                    context,
                    type_=SignalType.CONTEXT_SWITCH_PREP,
                    severity=severity_by_proximity(minutes),
                    domain=infer_domain(event),
                    title="Upcoming context switch",
                    body=f'"{event.summary}" starts in {minutes} minutes at {at}',
                    suggested_action=_suggestion(minutes),
                    related_entity_ids=[event.id],
                    expires_at=event.start_time,
                ))

        return signals
