"""Signal schema.

Signals are typed alerts produced by the detector pipeline during an
anticipation cycle. Each one describes a single condition worth the user's
attention (an aging email, a streak about to break, a family event that
clashes with a meeting) plus the outcome state the user later gives it.

Detectors create signals. After that, only the Signal Store changes them,
and only through dismiss / act-on. The expiry sweep is the only thing that
removes them.
"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

# Fixed namespace so the same natural key always yields the same signal id,
# across cycles and across process restarts.
_SIGNAL_NAMESPACE = uuid.UUID("6f1c1a52-2d7e-4c55-9b1e-3a0f6c7d9e41")


class SignalSeverity(str, Enum):
    """How loudly a signal should be surfaced.

    Extends str so values serialize to plain strings ("urgent") in logs and
    API responses.
    """

    CRITICAL = "critical"
    URGENT = "urgent"
    ATTENTION = "attention"
    INFO = "info"


class SignalType(str, Enum):
    """Which detection rule produced a signal."""

    AGING_EMAIL = "aging_email"
    DEADLINE_APPROACHING = "deadline_approaching"
    STREAK_AT_RISK = "streak_at_risk"
    CALENDAR_CONFLICT = "calendar_conflict"
    DEAL_UPDATE = "deal_update"
    PORTFOLIO_ALERT = "portfolio_alert"
    PATTERN_INSIGHT = "pattern_insight"
    FAMILY_AWARENESS = "family_awareness"
    HEALTH_REMINDER = "health_reminder"
    WEEKLY_REVIEW = "weekly_review"
    FINANCIAL_UPDATE = "financial_update"
    DOCUMENT_ACTION = "document_action"
    FOLLOW_UP_DUE = "follow_up_due"
    CONTEXT_SWITCH_PREP = "context_switch_prep"


class LifeDomain(str, Enum):
    """Life or business area a signal belongs to."""

    BUSINESS_RE = "business_re"
    BUSINESS_TRADING = "business_trading"
    BUSINESS_TECH = "business_tech"
    PERSONAL_GROWTH = "personal_growth"
    HEALTH_FITNESS = "health_fitness"
    FAMILY = "family"
    FINANCE = "finance"
    SOCIAL = "social"
    CREATIVE = "creative"
    SPIRITUAL = "spiritual"


# Lower rank = higher priority. Shared by ranking and dedup.
SEVERITY_RANK: dict[SignalSeverity, int] = {
    SignalSeverity.CRITICAL: 0,
    SignalSeverity.URGENT: 1,
    SignalSeverity.ATTENTION: 2,
    SignalSeverity.INFO: 3,
}


class Signal(BaseModel):
    """A single alert instance.

    Frozen: the store never edits a signal in place. Dismiss and act-on
    produce a copy with the flag set and swap it in, so a reader holding an
    older reference can never observe a half-applied change.

    Attributes:
        id: Stable identifier. Detectors derive it from the condition's
            natural key via signal_id(), so the same condition detected
            again in a later cycle replaces the stored entry.
        type: Detection rule that produced the signal.
        severity: critical > urgent > attention > info.
        domain: Life or business area the signal belongs to.
        source: Name of the detector that emitted it (e.g. "deadline-radar").
            Distinct from type because one detector can emit several types.
        title: One-line headline shown in list views.
        context: Human-readable explanation of why the signal fired.
        suggested_action: Optional next step for the user.
        auto_actionable: Whether the system could resolve it without user
            input. Informational only; nothing here executes actions.
        is_dismissed: Set when the user dismisses the signal.
        is_acted_on: Set when the user acts on the signal. Independent of
            is_dismissed; both may be true.
        related_entity_ids: Ordered ids of the domain records the signal
            concerns (task, email, calendar event, ...).
        created_at: When the detector produced the signal.
        expires_at: Optional instant after which the signal is no longer
            active and becomes eligible for the expiry sweep.
        updated_at: Last time dismiss / act-on touched the signal.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    type: SignalType
    severity: SignalSeverity
    domain: LifeDomain
    source: str
    title: str
    context: str
    suggested_action: str | None = None
    auto_actionable: bool = False
    is_dismissed: bool = False
    is_acted_on: bool = False
    related_entity_ids: list[str] = Field(default_factory=list)
    created_at: AwareDatetime
    expires_at: AwareDatetime | None = None
    updated_at: AwareDatetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """True if expires_at is set and is at or before now."""
        return self.expires_at is not None and self.expires_at <= now

    def is_active(self, now: datetime) -> bool:
        """True if the signal is neither dismissed nor expired."""
        return not self.is_dismissed and not self.is_expired(now)

    @property
    def has_outcome(self) -> bool:
        return self.is_dismissed or self.is_acted_on


def signal_id(source: str, type_: SignalType, *parts: object) -> str:
    """Return a deterministic signal id for a detector's natural key.

    Args:
        source: Detector name.
        type_: Signal type emitted for this condition.
        *parts: Whatever identifies the condition (entity ids, a date).

    Returns:
        A UUIDv5 string. Identical inputs always give the identical id.
    """
    key = "|".join([source, type_.value, *(str(p) for p in parts)])
    return str(uuid.uuid5(_SIGNAL_NAMESPACE, key))
