"""Deadline radar: due dates on tasks and projects, imminent calendar events.

Tasks:     overdue -> critical, due today -> urgent, tomorrow -> attention,
           within 3 days -> info.
Projects:  overdue -> critical, within 3 days -> urgent, within 7 -> attention.
Events:    a timed event starting inside the look-ahead window -> attention.
           Events that have already started produce nothing.
"""

from datetime import timedelta

from detectors.base import BaseDetector, format_time, plural
from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


class DeadlineRadar(BaseDetector):
    """Watch due dates and the next half hour of the calendar."""

    name = "deadline-radar"

    TASK_INFO_DAYS = 3
    PROJECT_URGENT_DAYS = 3
    PROJECT_ATTENTION_DAYS = 7
    DEFAULT_EVENT_LOOKAHEAD_MINUTES = 30

    def __init__(self, event_lookahead_minutes: int = DEFAULT_EVENT_LOOKAHEAD_MINUTES) -> None:
        self.event_lookahead = timedelta(minutes=event_lookahead_minutes)

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []
        signals.extend(self._check_tasks(context))
        signals.extend(self._check_projects(context))
        signals.extend(self._check_events(context))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _check_tasks(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for task in context.tasks:
            if task.status in ("completed", "dismissed") or task.due_date is None:
                continue

            days = (task.due_date - context.today).days
            if days < 0:
                severity, prefix = SignalSeverity.CRITICAL, "OVERDUE"
                body = f'Task "{task.title}" was due {plural(-days, "day")} ago.'
            elif days == 0:
                severity, prefix = SignalSeverity.URGENT, "Due today"
                body = f'Task "{task.title}" is due today.'
            elif days == 1:
                severity, prefix = SignalSeverity.ATTENTION, "Due tomorrow"
                body = f'Task "{task.title}" is due tomorrow.'
            elif days <= self.TASK_INFO_DAYS:
                severity, prefix = SignalSeverity.INFO, f"Due in {days} days"
                body = f'Task "{task.title}" is due in {days} days.'
            else:
                continue

            signals.append(self.build_signal(
                context,
                type_=SignalType.DEADLINE_APPROACHING,
                severity=severity,
                domain=LifeDomain.PERSONAL_GROWTH,
                title=f"{prefix}: {task.title}",
                body=body,
                suggested_action=(
                    "Address this overdue task immediately"
                    if days < 0
                    else "Schedule time to complete this task"
                ),
                related_entity_ids=[task.id],
            ))
        return signals

    def _check_projects(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for project in context.projects:
            if project.status == "completed" or project.due_date is None:
                continue

            days = (project.due_date - context.today).days
            if days < 0:
                severity, prefix = SignalSeverity.CRITICAL, "OVERDUE"
                body = f'Project "{project.title}" was due {plural(-days, "day")} ago.'
            elif days <= self.PROJECT_URGENT_DAYS:
                severity, prefix = SignalSeverity.URGENT, f"Due in {plural(days, 'day')}"
                body = f'Project "{project.title}" is due in {plural(days, "day")}.'
            elif days <= self.PROJECT_ATTENTION_DAYS:
                severity, prefix = SignalSeverity.ATTENTION, f"Due in {days} days"
                body = f'Project "{project.title}" is due in {days} days.'
            else:
                continue

            signals.append(self.build_signal(
                context,
                type_=SignalType.DEADLINE_APPROACHING,
                severity=severity,
                domain=LifeDomain.PERSONAL_GROWTH,
                title=f"{prefix}: {project.title}",
                body=body,
                suggested_action=(
                    "Review and reschedule this overdue project"
                    if days < 0
                    else "Review project progress and plan next actions"
                ),
                related_entity_ids=[project.id],
            ))
        return signals

    def _check_events(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for event in context.calendar_events:
            if event.all_day:
                continue

            until = event.start_time - context.now
            if until < timedelta(0) or until > self.event_lookahead:
                continue

            minutes = int(until.total_seconds() // 60)
            signals.append(self.build_signal(
                context,
                type_=SignalType.CALENDAR_CONFLICT,
                severity=SignalSeverity.ATTENTION,
                domain=LifeDomain.PERSONAL_GROWTH,
                title=f"Upcoming event in {minutes} min: {event.summary}",
                body=f'Calendar event "{event.summary}" starts at {format_time(event.start_time)}.',
                suggested_action="Wrap up current work and prepare for this event",
                related_entity_ids=[event.id],
                expires_at=event.start_time,
            ))
        return signals
