"""Durable storage for feedback weights and the signal outcome history.

Weights are upserted one row at a time, keyed by (signal_type, domain).
Every upsert is its own transaction: a failure on one row leaves every other
row, including the previous version of the failing one, exactly as it was.

The outcome history holds one record per signal id. Dismissed and acted-on
flags are sticky: recording a signal again can set them but never clears
them, and records outlive the in-memory signal store.

Two implementations share the WeightRepository protocol:
- InMemoryWeightRepository: tests and the CLI demo.
- SqliteWeightRepository: the host process. One file, two tables.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from schemas.signal import LifeDomain, SignalType
from schemas.weight import SignalOutcome, SignalWeight

logger = logging.getLogger(__name__)


class WeightStoreError(Exception):
    """Raised when a weight row cannot be read or written.

    Carries the composite key of the row involved so callers can log which
    row failed without re-deriving it.
    """

    def __init__(self, message: str, key: tuple[SignalType, LifeDomain] | None = None):
        super().__init__(message)
        self.key = key


class WeightRepository(Protocol):
    """Storage contract for SignalWeight rows."""

    def upsert(self, weight: SignalWeight) -> None:
        """Insert the row, or update the existing row with the same key."""

    def get(self, signal_type: SignalType, domain: LifeDomain) -> SignalWeight | None:
        """Return the row for the key, or None."""

    def all(self) -> list[SignalWeight]:
        """Return every persisted row."""

    def record_outcomes(self, outcomes: list[SignalOutcome]) -> None:
        """Insert or merge outcome records, keyed by signal id."""

    def outcomes(self) -> list[SignalOutcome]:
        """Return the full outcome history."""


class InMemoryWeightRepository:
    """Dict-backed repository. Same upsert semantics as the SQLite one."""

    def __init__(self) -> None:
        self._rows: dict[tuple[SignalType, LifeDomain], SignalWeight] = {}
        self._outcomes: dict[str, SignalOutcome] = {}
        self._lock = threading.Lock()

    def upsert(self, weight: SignalWeight) -> None:
        with self._lock:
            existing = self._rows.get(weight.key)
            if existing is not None:
                # Keep identity and first-seen timestamp across recomputes.
                weight = weight.model_copy(update={
                    "id": existing.id,
                    "created_at": existing.created_at,
                })
            self._rows[weight.key] = weight

    def get(self, signal_type: SignalType, domain: LifeDomain) -> SignalWeight | None:
        with self._lock:
            return self._rows.get((signal_type, domain))

    def all(self) -> list[SignalWeight]:
        with self._lock:
            return list(self._rows.values())

    def record_outcomes(self, outcomes: list[SignalOutcome]) -> None:
        with self._lock:
            for outcome in outcomes:
                self._outcomes[outcome.signal_id] = _merge_outcome(
                    self._outcomes.get(outcome.signal_id), outcome
                )

    def outcomes(self) -> list[SignalOutcome]:
        with self._lock:
            return list(self._outcomes.values())


def _merge_outcome(existing: SignalOutcome | None, incoming: SignalOutcome) -> SignalOutcome:
    if existing is None:
        return incoming
    return incoming.model_copy(update={
        "is_dismissed": existing.is_dismissed or incoming.is_dismissed,
        "is_acted_on": existing.is_acted_on or incoming.is_acted_on,
    })


_SCHEMA = """
CREATE TABLE IF NOT EXISTS signal_weights (
    id                  TEXT PRIMARY KEY,
    signal_type         TEXT NOT NULL,
    domain              TEXT NOT NULL,
    total_generated     INTEGER NOT NULL,
    total_dismissed     INTEGER NOT NULL,
    total_acted_on      INTEGER NOT NULL,
    effectiveness_score REAL NOT NULL,
    weight_modifier     REAL NOT NULL,
    last_updated        TEXT NOT NULL,
    created_at          TEXT NOT NULL,
    UNIQUE (signal_type, domain)
)
"""

_OUTCOME_SCHEMA = """
CREATE TABLE IF NOT EXISTS signal_outcomes (
    signal_id    TEXT PRIMARY KEY,
    type         TEXT NOT NULL,
    domain       TEXT NOT NULL,
    is_dismissed INTEGER NOT NULL,
    is_acted_on  INTEGER NOT NULL,
    recorded_at  TEXT NOT NULL
)
"""

_UPSERT = """
INSERT INTO signal_weights (
    id, signal_type, domain, total_generated, total_dismissed, total_acted_on,
    effectiveness_score, weight_modifier, last_updated, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (signal_type, domain) DO UPDATE SET
    total_generated     = excluded.total_generated,
    total_dismissed     = excluded.total_dismissed,
    total_acted_on      = excluded.total_acted_on,
    effectiveness_score = excluded.effectiveness_score,
    weight_modifier     = excluded.weight_modifier,
    last_updated        = excluded.last_updated
"""

_RECORD_OUTCOME = """
INSERT INTO signal_outcomes (signal_id, type, domain, is_dismissed, is_acted_on, recorded_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT (signal_id) DO UPDATE SET
    is_dismissed = max(is_dismissed, excluded.is_dismissed),
    is_acted_on  = max(is_acted_on, excluded.is_acted_on),
    recorded_at  = excluded.recorded_at
"""

_COLUMNS = (
    "id, signal_type, domain, total_generated, total_dismissed, total_acted_on, "
    "effectiveness_score, weight_modifier, last_updated, created_at"
)


class SqliteWeightRepository:
    """SQLite-backed repository.

    Opens a short-lived connection per call so the repository can be used
    from the event loop thread and from FastAPI's worker threads alike.
    The `with conn:` block commits on success and rolls back on error, which
    is what makes each upsert its own transaction.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(_SCHEMA)
                    conn.execute(_OUTCOME_SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise WeightStoreError(f"Cannot initialise weight store at {self.path}: {exc}") from exc

    def upsert(self, weight: SignalWeight) -> None:
        row = (
            weight.id,
            weight.signal_type.value,
            weight.domain.value,
            weight.total_generated,
            weight.total_dismissed,
            weight.total_acted_on,
            weight.effectiveness_score,
            weight.weight_modifier,
            weight.last_updated.isoformat(),
            weight.created_at.isoformat(),
        )
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(_UPSERT, row)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise WeightStoreError(
                f"Failed to upsert weight {weight.signal_type.value}/{weight.domain.value}: {exc}",
                key=weight.key,
            ) from exc

    def get(self, signal_type: SignalType, domain: LifeDomain) -> SignalWeight | None:
        rows = self._query(
            f"SELECT {_COLUMNS} FROM signal_weights WHERE signal_type = ? AND domain = ?",
            (signal_type.value, domain.value),
        )
        return rows[0] if rows else None

    def all(self) -> list[SignalWeight]:
        return self._query(f"SELECT {_COLUMNS} FROM signal_weights ORDER BY signal_type, domain")

    def record_outcomes(self, outcomes: list[SignalOutcome]) -> None:
        """Write a batch of outcome records in one transaction."""
        rows = [
            (
                o.signal_id,
                o.type.value,
                o.domain.value,
                int(o.is_dismissed),
                int(o.is_acted_on),
                o.recorded_at.isoformat(),
            )
            for o in outcomes
        ]
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.executemany(_RECORD_OUTCOME, rows)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise WeightStoreError(f"Failed to record {len(rows)} signal outcomes: {exc}") from exc

    def outcomes(self) -> list[SignalOutcome]:
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    "SELECT signal_id, type, domain, is_dismissed, is_acted_on, recorded_at "
                    "FROM signal_outcomes ORDER BY rowid"
                )
                names = [d[0] for d in cursor.description]
                return [SignalOutcome.model_validate(dict(zip(names, r))) for r in cursor.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise WeightStoreError(f"Failed to read signal outcomes: {exc}") from exc

    # ── Private ───────────────────────────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path)

    def _query(self, sql: str, params: tuple = ()) -> list[SignalWeight]:
        try:
            conn = self._connect()
            try:
                cursor = conn.execute(sql, params)
                names = [d[0] for d in cursor.description]
                return [SignalWeight.model_validate(dict(zip(names, r))) for r in cursor.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise WeightStoreError(f"Failed to read weights: {exc}") from exc
