"""Aging detector: unanswered email and stalled tasks.

Detects:
- Aging email: unreplied, non-archived mail older than 24h / 48h / 72h
  escalates attention -> urgent -> critical. Promotional and
  unsubscribe-tier mail never ages into a signal.
- Stale task: an active task older than N days gets a follow-up nudge.

No I/O. Same context always produces the same output.
"""

from pydantic import BaseModel

from detectors.base import BaseDetector, plural
from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType


class AgingConfig(BaseModel):
    email_attention_hours: float = 24
    email_urgent_hours: float = 48
    email_critical_hours: float = 72
    task_stale_days: float = 3


class AgingDetector(BaseDetector):
    """Flag email and tasks that have been sitting too long."""

    name = "aging-detector"

    SKIPPED_EMAIL_STATUSES = {"replied", "archived"}
    SKIPPED_EMAIL_TIERS = {"promotions", "unsubscribe"}

    def __init__(self, config: AgingConfig | None = None) -> None:
        self.config = config or AgingConfig()

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []
        signals.extend(self._check_emails(context))
        signals.extend(self._check_tasks(context))
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _email_severity(self, hours: float) -> SignalSeverity | None:
        if hours > self.config.email_critical_hours:
            return SignalSeverity.CRITICAL
        if hours > self.config.email_urgent_hours:
            return SignalSeverity.URGENT
        if hours > self.config.email_attention_hours:
            return SignalSeverity.ATTENTION
        return None

    def _check_emails(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for email in context.emails:
            if email.status in self.SKIPPED_EMAIL_STATUSES:
                continue
            if email.tier in self.SKIPPED_EMAIL_TIERS:
                continue

            hours = (context.now - email.received_at).total_seconds() / 3600
            severity = self._email_severity(hours)
            if severity is None:
                continue

            signals.append(self.build_signal(
                context,
                type_=SignalType.AGING_EMAIL,
                severity=severity,
                domain=LifeDomain.BUSINESS_TECH,
                title=f"Email from {email.sender} aging ({int(hours)}h)",
                body=f'Subject: "{email.subject}" received {int(hours)} hours ago',
                suggested_action=f"Review and respond to email from {email.sender}",
                related_entity_ids=[email.id],
            ))
        return signals

    def _check_tasks(self, context: AnticipationContext) -> list[Signal]:
        signals = []
        for task in context.tasks:
            if task.status != "active":
                continue

            days = (context.today - task.created_date).days
            if days <= self.config.task_stale_days:
                continue

            signals.append(self.build_signal(
                context,
                type_=SignalType.FOLLOW_UP_DUE,
                severity=SignalSeverity.ATTENTION,
                domain=LifeDomain.BUSINESS_TECH,
                title=f'Task "{task.title}" has been active for {plural(days, "day")}',
                body=f"Created {plural(days, 'day')} ago with priority {task.priority}",
                suggested_action=f'Review progress or complete task "{task.title}"',
                related_entity_ids=[task.id],
            ))
        return signals
