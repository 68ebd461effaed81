"""Signal store: the process-wide collection of current signals.

SignalStore holds every signal the worker has produced, together with the
dismiss / act-on outcomes the user has recorded on them. It lives for the
lifetime of the host process. Nothing here touches disk; the only durable
state in the system is the feedback weight table.

Concurrency:
    The worker's cycle and the HTTP handlers reach the store from different
    threads. Every public method takes the same re-entrant lock, so a reader
    either sees a whole batch merged or none of it. Readers always get a
    fresh list; the backing dict never leaves this module.

Mutation model:
    Signals are frozen pydantic models. Dismiss and act-on build a copy with
    the flag set and swap it in under the lock. A replaced signal is removed
    and re-inserted, which moves it to the end of insertion order.
"""

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime

from aggregation.prioritizer import rank_signals
from schemas.context import utc_now
from schemas.result import SignalCounts
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType
from schemas.weight import SignalWeight

logger = logging.getLogger(__name__)


class SignalStore:
    """Thread-safe in-memory signal collection keyed by signal id.

    Attributes:
        _signals: id -> Signal, in insertion order.
        _lock: Guards every read and write of _signals.
    """

    def __init__(self, signals: Iterable[Signal] = ()) -> None:
        self._signals: dict[str, Signal] = {}
        self._lock = threading.RLock()
        self.add_signals(signals)

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add_signals(self, batch: Iterable[Signal]) -> None:
        """Merge a batch into the store as one critical section.

        An incoming signal whose id already exists replaces the stored one.
        Ids not in the batch are untouched. Merging the same batch twice
        leaves the store as after the first merge.
        """
        with self._lock:
            for signal in batch:
                self._put(signal)

    def add_signal(self, signal: Signal) -> None:
        with self._lock:
            self._put(signal)

    def dismiss(self, signal_id: str) -> bool:
        """Mark a signal dismissed. Returns False if no signal has this id."""
        return self._set_flag(signal_id, "is_dismissed")

    def act_on(self, signal_id: str) -> bool:
        """Mark a signal acted on. Returns False if no signal has this id.

        Independent of dismiss: a signal can carry both outcomes.
        """
        return self._set_flag(signal_id, "is_acted_on")

    def clear_expired(self, now: datetime | None = None) -> int:
        """Remove every signal whose expiry is at or before now.

        Dismissed and acted-on signals are removed too. Returns how many
        signals were removed.
        """
        now = now or utc_now()
        removed = self.purge(lambda s: s.is_expired(now))
        if removed:
            logger.debug("Cleared %d expired signals.", removed)
        return removed

    def purge(self, predicate: Callable[[Signal], bool]) -> int:
        """Remove every signal the predicate selects. Returns the count."""
        with self._lock:
            doomed = [sid for sid, s in self._signals.items() if predicate(s)]
            for sid in doomed:
                del self._signals[sid]
            return len(doomed)

    def replace_all(self, signals: Iterable[Signal]) -> None:
        with self._lock:
            self._signals.clear()
            for signal in signals:
                self._put(signal)

    def clear_all(self) -> None:
        with self._lock:
            self._signals.clear()

    # ── Reads ─────────────────────────────────────────────────────────────────

    def all(self) -> list[Signal]:
        """Return every stored signal, including dismissed and expired ones."""
        with self._lock:
            return list(self._signals.values())

    def get(self, signal_id: str) -> Signal | None:
        with self._lock:
            return self._signals.get(signal_id)

    def active(self, now: datetime | None = None) -> list[Signal]:
        """Signals that are neither dismissed nor expired."""
        now = now or utc_now()
        return [s for s in self.all() if s.is_active(now)]

    def urgent(self, now: datetime | None = None) -> list[Signal]:
        """Active signals at critical or urgent severity."""
        return [
            s for s in self.active(now)
            if s.severity in (SignalSeverity.CRITICAL, SignalSeverity.URGENT)
        ]

    def by_domain(self, domain: LifeDomain, now: datetime | None = None) -> list[Signal]:
        return [s for s in self.active(now) if s.domain == domain]

    def by_type(self, signal_type: SignalType, now: datetime | None = None) -> list[Signal]:
        return [s for s in self.active(now) if s.type == signal_type]

    def counts(self, now: datetime | None = None) -> SignalCounts:
        """Badge counts over active signals. urgent includes critical."""
        active = self.active(now)
        return SignalCounts(
            total=len(active),
            urgent=sum(
                1 for s in active
                if s.severity in (SignalSeverity.CRITICAL, SignalSeverity.URGENT)
            ),
            attention=sum(1 for s in active if s.severity == SignalSeverity.ATTENTION),
            info=sum(1 for s in active if s.severity == SignalSeverity.INFO),
        )

    def ranked(
        self,
        weights: list[SignalWeight] | None = None,
        now: datetime | None = None,
    ) -> list[Signal]:
        """Active signals in priority order, using the same comparator as a cycle."""
        return rank_signals(self.active(now), weights)

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)

    # ── Private ───────────────────────────────────────────────────────────────

    def _put(self, signal: Signal) -> None:
        # pop first so a replaced id moves to the end of insertion order.
        self._signals.pop(signal.id, None)
        self._signals[signal.id] = signal

    def _set_flag(self, signal_id: str, flag: str) -> bool:
        with self._lock:
            current = self._signals.get(signal_id)
            if current is None:
                logger.debug("No signal with id %s; %s ignored.", signal_id, flag)
                return False
            self._put(current.model_copy(update={flag: True, "updated_at": utc_now()}))
            return True


# Process-wide store used by the host process.
signal_store = SignalStore()
