"""Feedback weight schemas.

A SignalWeight is the learned priority multiplier for one
(signal type, domain) pairing. It is recomputed wholesale from the full
outcome history every time the feedback loop runs and upserted by that
composite key.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from schemas.signal import LifeDomain, Signal, SignalType


class FeedbackStats(BaseModel):
    """Outcome counts for one (signal type, domain) pairing."""

    signal_type: SignalType
    domain: LifeDomain
    total_generated: int = 0
    total_dismissed: int = 0
    total_acted_on: int = 0

    @property
    def key(self) -> tuple[SignalType, LifeDomain]:
        return (self.signal_type, self.domain)


class SignalWeight(BaseModel):
    """A persisted feedback weight row.

    Attributes:
        id: Row identifier. Generated on first insert; the repository keeps
            the original id when a later recompute updates the row.
        signal_type: Signal type half of the composite key.
        domain: Domain half of the composite key.
        total_generated: Signals of this pairing seen in history.
        total_dismissed: Of those, how many were dismissed.
        total_acted_on: Of those, how many were acted on.
        effectiveness_score: acted_on / (acted_on + dismissed), or the
            neutral 0.5 while fewer than 5 outcomes exist.
        weight_modifier: 0.3 + effectiveness * 1.7, always within [0.3, 2.0].
        last_updated: When this row was last recomputed.
        created_at: When this row was first computed.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    signal_type: SignalType
    domain: LifeDomain
    total_generated: int = Field(ge=0)
    total_dismissed: int = Field(ge=0)
    total_acted_on: int = Field(ge=0)
    effectiveness_score: float = Field(ge=0.0, le=1.0)
    weight_modifier: float = Field(ge=0.3, le=2.0)
    last_updated: datetime
    created_at: datetime

    @property
    def key(self) -> tuple[SignalType, LifeDomain]:
        return (self.signal_type, self.domain)


class SignalOutcome(BaseModel):
    """Durable record of one generated signal and what the user did with it.

    The signal store forgets a signal once it expires; this record does not.
    The feedback loop aggregates these rather than the live store so learned
    weights keep every past outcome. Field names mirror Signal so either can
    be aggregated.

    Attributes:
        signal_id: Id of the signal this record tracks. One record per id.
        type: Signal type.
        domain: Life domain.
        is_dismissed: Sticky; once recorded it is never cleared.
        is_acted_on: Sticky; once recorded it is never cleared.
        recorded_at: When the record was last written.
    """

    signal_id: str
    type: SignalType
    domain: LifeDomain
    is_dismissed: bool = False
    is_acted_on: bool = False
    recorded_at: datetime

    @classmethod
    def from_signal(cls, signal: Signal, recorded_at: datetime) -> "SignalOutcome":
        return cls(
            signal_id=signal.id,
            type=signal.type,
            domain=signal.domain,
            is_dismissed=signal.is_dismissed,
            is_acted_on=signal.is_acted_on,
            recorded_at=recorded_at,
        )
