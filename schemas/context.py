"""Anticipation context schema.

The AnticipationContext is the point-in-time snapshot an anticipation cycle
runs against. It is assembled by the Domain Snapshot Provider (an external
collaborator injected into the worker), consumed once by the detector
pipeline, and discarded.

The record types below carry only the fields the detectors and the ranking
step read. Integration clients may send more; extra fields are ignored.

Everything here is frozen. Detectors must not mutate the context, and
freezing the models makes an accidental attribute write fail loudly instead
of leaking state into the next detector.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from schemas.signal import Signal

_FROZEN = ConfigDict(frozen=True, extra="ignore")


class Task(BaseModel):
    model_config = _FROZEN

    id: str
    title: str
    status: Literal["active", "deferred", "completed", "dismissed"] = "active"
    priority: str = "medium"
    category_id: str | None = None
    created_date: date
    due_date: date | None = None
    completed_date: date | None = None


class Project(BaseModel):
    model_config = _FROZEN

    id: str
    title: str
    status: Literal["active", "completed"] = "active"
    category_id: str | None = None
    due_date: date | None = None


class Category(BaseModel):
    """A life bucket ("Health", "Wealth") with a daily-activity streak."""

    model_config = _FROZEN

    id: str
    name: str
    streak_count: int = 0
    current_progress: float = 0.0
    last_active_date: date | None = None


class Email(BaseModel):
    # Integration payloads use "from"; Python code uses sender=.
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    sender: str = Field(alias="from")
    subject: str
    tier: Literal["urgent", "important", "promotions", "unsubscribe"] = "important"
    status: Literal["unread", "read", "drafted", "replied", "archived", "snoozed"] = "unread"
    received_at: AwareDatetime


class CalendarEvent(BaseModel):
    model_config = _FROZEN

    id: str
    summary: str
    description: str | None = None
    start_time: AwareDatetime
    end_time: AwareDatetime
    all_day: bool = False
    is_focus_block: bool = False


class Deal(BaseModel):
    """A real-estate deal in the acquisition pipeline."""

    model_config = _FROZEN

    id: str
    address: str
    strategy: Literal["flip", "brrrr", "rental", "wholesale"] = "rental"
    status: Literal[
        "prospect", "analyzing", "offer", "under_contract", "closed", "dead"
    ] = "prospect"
    last_analysis_at: AwareDatetime | None = None


class FamilyEvent(BaseModel):
    """An event read from a family member's shared calendar."""

    model_config = _FROZEN

    id: str
    member: str
    summary: str
    start_time: AwareDatetime
    end_time: AwareDatetime
    source_calendar: str = ""


class PortfolioPosition(BaseModel):
    model_config = _FROZEN

    symbol: str
    qty: float
    avg_price: float
    current_price: float
    pnl: float


class PortfolioData(BaseModel):
    model_config = _FROZEN

    equity: float
    day_pnl: float
    positions: list[PortfolioPosition] = Field(default_factory=list)


class ProductivityPattern(BaseModel):
    """A pattern learned from weekly behavioural history.

    data is pattern-specific: {"rate": 4.2} for completion_rate,
    {"hours": [9, 10]} for peak_hours, {"monday": {...}} for day_of_week.
    """

    model_config = _FROZEN

    id: str
    pattern_type: Literal[
        "peak_hours",
        "category_trend",
        "completion_rate",
        "streak_health",
        "day_of_week",
        "deep_work_ratio",
    ]
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class IntegrationData(BaseModel):
    """Typed results handed over by third-party integration clients."""

    model_config = _FROZEN

    portfolio: PortfolioData | None = None
    family_calendars: list[FamilyEvent] = Field(default_factory=list)
    recent_docs: list[dict[str, Any]] = Field(default_factory=list)


class AnticipationContext(BaseModel):
    """Read-only snapshot of everything one cycle needs.

    Attributes:
        now: The cycle's notion of the current instant. Detectors read time
            from here and never from the system clock, so a cycle is a pure
            function of its context.
        tasks / projects / categories / emails / calendar_events / deals:
            Domain collections read from the document store.
        signals: The signal set as it stood when the snapshot was taken.
            Used by detectors that correlate existing signals.
        integrations: Portfolio, family calendar, and document data.
        historical_patterns: Behavioural patterns from past weeks.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    now: AwareDatetime
    tasks: list[Task] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    emails: list[Email] = Field(default_factory=list)
    calendar_events: list[CalendarEvent] = Field(default_factory=list)
    deals: list[Deal] = Field(default_factory=list)
    signals: list[Signal] = Field(default_factory=list)
    integrations: IntegrationData = Field(default_factory=IntegrationData)
    historical_patterns: list[ProductivityPattern] = Field(default_factory=list)

    @property
    def today(self) -> date:
        return self.now.date()

    @property
    def end_of_today(self) -> datetime:
        """Midnight after today, in now's timezone."""
        return datetime.combine(self.today + timedelta(days=1), time.min, tzinfo=self.now.tzinfo)

    @property
    def current_time(self) -> str:
        """Wall-clock time of now as HH:MM."""
        return self.now.strftime("%H:%M")

    @property
    def day_of_week(self) -> str:
        return self.now.strftime("%A")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def empty_context(now: datetime | None = None, signals: list[Signal] | None = None) -> AnticipationContext:
    """Build the minimal context used when no provider is configured.

    Args:
        now: Instant to stamp the context with. Defaults to the current UTC time.
        signals: Signals already known to the caller (typically the store's
            current contents) so correlating detectors still have input.
    """
    return AnticipationContext(now=now or utc_now(), signals=list(signals or []))
