"""Base detector definition.

Defines the contract every detection rule must satisfy. Detectors are the
scanning units of the anticipation engine: they receive a read-only
AnticipationContext and return zero or more candidate Signals.

Detectors are deliberately plain functions wrapped in a class:
- They do not call other detectors
- They do not store state between cycles
- They do no I/O (network-backed enrichment belongs to the snapshot provider)
- They do not mutate the context
- They read time from context.now, never from the system clock

Everything about scheduling, fault isolation, ranking, and storage lives in
the pipeline, prioritizer, store, and worker.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from schemas.context import AnticipationContext
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType, signal_id


class BaseDetector(ABC):
    """Abstract base class for all detectors.

    Every concrete detector (DeadlineRadar, FamilyAwareness, ...) extends this
    class and implements name and detect(). The pipeline only ever interacts
    with detectors through this interface.

    Example:
        class DeadlineRadar(BaseDetector):
            name = "deadline-radar"

            def detect(self, context: AnticipationContext) -> list[Signal]:
                ...
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique detector identifier, written into Signal.source.

        Implement by declaring a class-level attribute on the subclass.
        """
        ...

    @abstractmethod
    def detect(self, context: AnticipationContext) -> list[Signal]:
        """Scan the context and return candidate signals.

        Args:
            context: Read-only snapshot for this cycle.

        Returns:
            Zero or more signals. An empty list is the normal "nothing to
            report" result, not an error.

        Raises:
            Exception: A raising detector is a bug. DetectorPipeline logs it
                and skips this detector so the rest of the cycle survives.
        """
        ...

    def build_signal(
        self,
        context: AnticipationContext,
        *,
        type_: SignalType,
        severity: SignalSeverity,
        domain: LifeDomain,
        title: str,
        body: str,
        key: tuple = (),
        related_entity_ids: list[str] | None = None,
        suggested_action: str | None = None,
        expires_at: datetime | None = None,
    ) -> Signal:
        """Create a fresh signal stamped with this detector's name.

        Args:
            context: The cycle's context; supplies created_at.
            key: Natural-key parts for the deterministic id. Defaults to the
                related entity ids, which is right for most entity-bound rules.
            body: Becomes Signal.context.
        """
        related = list(related_entity_ids or [])
        return Signal(
            id=signal_id(self.name, type_, *(key or related)),
            type=type_,
            severity=severity,
            domain=domain,
            source=self.name,
            title=title,
            context=body,
            suggested_action=suggested_action,
            auto_actionable=False,
            related_entity_ids=related,
            created_at=context.now,
            expires_at=expires_at,
        )


def format_time(moment: datetime) -> str:
    """Format an instant as HH:MM in its own timezone."""
    return moment.strftime("%H:%M")


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
