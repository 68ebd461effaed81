"""Anticipation worker tests.

Covers one cycle end to end, outcome preservation across cycles, failure
handling, the overlap guard, and the start / stop / reconfigure lifecycle.
Async tests run under pytest-asyncio's auto mode.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from core.store import SignalStore
from core.worker import AnticipationWorker
from feedback.loop import FeedbackLoop
from feedback.repository import InMemoryWeightRepository, SqliteWeightRepository
from schemas.context import AnticipationContext, Task
from schemas.result import WorkerConfig
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType
from schemas.weight import SignalWeight

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)


def make_context(**fields) -> AnticipationContext:
    defaults = dict(
        tasks=[Task(id="task-1", title="Taxes", created_date=TODAY, due_date=TODAY)],
    )
    defaults.update(fields)
    return AnticipationContext(now=NOW, **defaults)


def make_signal(id, domain=LifeDomain.FAMILY, **fields) -> Signal:
    return Signal(
        id=id,
        type=SignalType.FAMILY_AWARENESS,
        severity=SignalSeverity.ATTENTION,
        domain=domain,
        source="family-awareness",
        title=f"Signal {id}",
        context="",
        created_at=NOW,
        **fields,
    )


def make_worker(store=None, provider=None, **kwargs) -> AnticipationWorker:
    return AnticipationWorker(
        store=store if store is not None else SignalStore(),
        context_provider=provider if provider is not None else make_context,
        **kwargs,
    )


class CountingProvider:
    def __init__(self, context=None):
        self.calls = 0
        self.context = context or make_context()

    def __call__(self) -> AnticipationContext:
        self.calls += 1
        return self.context


class BrokenFeedback(FeedbackLoop):
    def recompute(self, all_signals, now=None):
        raise RuntimeError("recompute exploded")


# ── Single cycle ──────────────────────────────────────────────────────────────

class TestRunCycle:
    async def test_cycle_merges_ranked_signals(self):
        store = SignalStore()
        worker = make_worker(store)

        result = await worker.run_cycle()

        assert result is not None
        assert len(result.signals) == 1
        assert result.signals[0].type == SignalType.DEADLINE_APPROACHING
        assert result.signals[0].severity == SignalSeverity.URGENT
        assert [s.id for s in store.all()] == [s.id for s in result.signals]
        assert worker.last_run_at == result.timestamp
        assert result.detectors_failed == []

    async def test_repeated_cycles_do_not_accumulate(self):
        store = SignalStore()
        worker = make_worker(store)
        await worker.run_cycle()
        await worker.run_cycle()
        assert len(store) == 1

    async def test_dismissal_survives_next_cycle(self):
        store = SignalStore()
        worker = make_worker(store)
        first = await worker.run_cycle()
        signal_id = first.signals[0].id
        store.dismiss(signal_id)

        second = await worker.run_cycle()

        assert second.skipped_with_outcome == 1
        assert second.signals == []
        assert store.get(signal_id).is_dismissed is True

    async def test_async_provider(self):
        async def provider():
            await asyncio.sleep(0)
            return make_context()

        result = await make_worker(provider=provider).run_cycle()
        assert result is not None
        assert len(result.signals) == 1

    async def test_no_provider_uses_store_signals(self):
        store = SignalStore([make_signal(f"s{i}") for i in range(3)])
        worker = AnticipationWorker(store=store)

        result = await worker.run_cycle()

        assert result is not None
        assert [s.source for s in result.signals] == ["cross-domain-correlator"]
        assert len(store) == 4

    async def test_expired_signals_swept(self):
        store = SignalStore([make_signal("old", expires_at=NOW - timedelta(minutes=1))])
        result = await make_worker(store).run_cycle()
        assert result.expired_removed == 1
        assert store.get("old") is None

    async def test_weights_recomputed_and_persisted(self):
        repo = InMemoryWeightRepository()
        store = SignalStore([make_signal(f"s{i}", is_acted_on=True) for i in range(5)])
        worker = make_worker(store, feedback=FeedbackLoop(repo))

        result = await worker.run_cycle()

        weight = repo.get(SignalType.FAMILY_AWARENESS, LifeDomain.FAMILY)
        assert weight is not None
        assert weight.weight_modifier == pytest.approx(2.0)
        assert weight in result.weights_used
        assert worker.weights == result.weights_used

    async def test_recompute_failure_falls_back_to_persisted(self):
        worker = make_worker(feedback=BrokenFeedback(InMemoryWeightRepository()))
        result = await worker.run_cycle()
        assert result is not None
        assert result.weights_used == []


FAMILY_KEY = (SignalType.FAMILY_AWARENESS, LifeDomain.FAMILY)


def make_history_store() -> SignalStore:
    """8 acted-on family signals that have already expired, 2 live dismissed ones."""
    expired = NOW - timedelta(minutes=1)
    return SignalStore(
        [make_signal(f"acted-{i}", is_acted_on=True, expires_at=expired) for i in range(8)]
        + [make_signal(f"dismissed-{i}", is_dismissed=True) for i in range(2)]
    )


def family_weight(weights) -> SignalWeight:
    return next(w for w in weights if w.key == FAMILY_KEY)


class TestLearningAcrossExpiry:
    async def test_weights_survive_expiry_sweep(self):
        repo = InMemoryWeightRepository()
        store = make_history_store()
        worker = make_worker(store, feedback=FeedbackLoop(repo))

        first = await worker.run_cycle()
        second = await worker.run_cycle()

        assert first.expired_removed == 8
        assert len(store) == 3
        assert family_weight(first.weights_used).weight_modifier == pytest.approx(1.66)
        assert family_weight(second.weights_used).weight_modifier == pytest.approx(1.66)
        persisted = repo.get(*FAMILY_KEY)
        assert persisted.total_generated == 10
        assert persisted.effectiveness_score == pytest.approx(0.8)

    async def test_outcome_recorded_between_cycles_is_kept(self):
        repo = InMemoryWeightRepository()
        store = SignalStore([make_signal("late", expires_at=NOW - timedelta(minutes=1))])
        store.act_on("late")
        worker = make_worker(store, feedback=FeedbackLoop(repo))

        await worker.run_cycle()

        assert store.get("late") is None
        assert [(o.signal_id, o.is_acted_on) for o in repo.outcomes() if o.signal_id == "late"] == [
            ("late", True)
        ]


class TestColdStart:
    async def test_empty_store_ranks_with_persisted_weights(self):
        repo = InMemoryWeightRepository()
        row = SignalWeight(
            signal_type=SignalType.FAMILY_AWARENESS,
            domain=LifeDomain.FAMILY,
            total_generated=10,
            total_dismissed=0,
            total_acted_on=10,
            effectiveness_score=1.0,
            weight_modifier=2.0,
            last_updated=NOW,
            created_at=NOW,
        )
        repo.upsert(row)
        worker = make_worker(feedback=FeedbackLoop(repo))

        result = await worker.run_cycle()

        assert row in result.weights_used
        assert row in worker.weights

    async def test_restart_reuses_sqlite_history(self, tmp_path):
        path = tmp_path / "weights.db"
        before = make_worker(make_history_store(), feedback=FeedbackLoop(SqliteWeightRepository(path)))
        await before.run_cycle()

        after = make_worker(SignalStore(), feedback=FeedbackLoop(SqliteWeightRepository(path)))
        result = await after.run_cycle()

        weight = family_weight(result.weights_used)
        assert weight.total_generated == 10
        assert weight.weight_modifier == pytest.approx(1.66)


class TestCycleFailures:
    async def test_provider_failure_leaves_store_unchanged(self):
        def provider():
            raise ConnectionError("document store unreachable")

        store = SignalStore([make_signal("keep")])
        before = store.all()
        worker = make_worker(store, provider=provider)

        assert await worker.run_cycle() is None
        assert store.all() == before
        assert worker.is_running is False
        assert worker.last_run_at is None

    async def test_next_cycle_runs_after_failure(self):
        calls = 0

        def provider():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConnectionError("flaky")
            return make_context()

        worker = make_worker(provider=provider)
        assert await worker.run_cycle() is None
        assert await worker.run_cycle() is not None

    async def test_overlapping_cycle_is_dropped(self):
        release = asyncio.Event()
        calls = 0

        async def slow_provider():
            nonlocal calls
            calls += 1
            await release.wait()
            return make_context()

        worker = make_worker(provider=slow_provider)
        first = asyncio.create_task(worker.run_cycle())
        await asyncio.sleep(0)

        assert worker.is_running is True
        assert await worker.run_cycle() is None

        release.set()
        assert await first is not None
        assert calls == 1
        assert worker.is_running is False


# ── Lifecycle ─────────────────────────────────────────────────────────────────

class TestLifecycle:
    async def test_start_runs_immediately_then_on_interval(self):
        provider = CountingProvider()
        worker = make_worker(provider=provider, config=WorkerConfig(interval_ms=20))

        worker.start()
        assert worker.is_active is True
        await asyncio.sleep(0.15)
        worker.stop()
        await worker.wait_idle()

        assert worker.is_active is False
        assert provider.calls >= 2

    async def test_start_is_noop_when_active(self):
        provider = CountingProvider()
        worker = make_worker(provider=provider, config=WorkerConfig(interval_ms=60_000))

        worker.start()
        worker.start()
        await worker.wait_idle()
        worker.stop()

        assert provider.calls == 1

    async def test_start_is_noop_when_disabled(self):
        provider = CountingProvider()
        worker = make_worker(provider=provider, config=WorkerConfig(enabled=False))

        worker.start()
        await worker.wait_idle()

        assert worker.is_active is False
        assert provider.calls == 0

    async def test_stop_is_idempotent(self):
        worker = make_worker()
        worker.stop()
        worker.stop()
        assert worker.is_active is False

    async def test_update_config_restarts_active_worker(self):
        worker = make_worker(config=WorkerConfig(interval_ms=60_000))
        worker.start()

        config = worker.update_config(interval_ms=30_000)

        assert config.interval_ms == 30_000
        assert worker.is_active is True
        worker.stop()
        await worker.wait_idle()

    async def test_disabling_stops_the_schedule(self):
        worker = make_worker(config=WorkerConfig(interval_ms=60_000))
        worker.start()

        worker.update_config(enabled=False)

        assert worker.is_active is False
        await worker.wait_idle()

    async def test_update_config_on_stopped_worker_stays_stopped(self):
        worker = make_worker()
        worker.update_config(interval_ms=1_000)
        assert worker.is_active is False
        assert worker.config.interval_ms == 1_000

    def test_invalid_update_keeps_old_config(self):
        worker = make_worker()
        with pytest.raises(ValidationError):
            worker.update_config(interval_ms=0)
        with pytest.raises(ValueError):
            worker.update_config(colour="blue")
        assert worker.config == WorkerConfig()

    async def test_status_reflects_state(self):
        worker = make_worker(config=WorkerConfig(interval_ms=45_000))
        status = worker.get_status()
        assert status.is_active is False
        assert status.is_running is False
        assert status.last_run_at is None
        assert status.config.interval_ms == 45_000

        await worker.run_cycle()
        assert worker.get_status().last_run_at is not None

    async def test_set_context_provider(self):
        worker = make_worker()
        worker.set_context_provider(lambda: make_context(tasks=[]))
        result = await worker.run_cycle()
        assert result.signals == []
