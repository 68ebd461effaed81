"""Component tests for the detection and ranking layer.

Covers DetectorRegistry, DetectorPipeline, and the priority synthesizer.
All tests use stub detectors and in-memory data only.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from aggregation.prioritizer import (
    PrioritySynthesizer,
    base_score,
    deduplicate_signals,
    rank_key,
    rank_signals,
    severity_score,
)
from core.registry import DetectorRegistry
from detectors.base import BaseDetector
from detectors.pipeline import DetectorPipeline, default_registry
from schemas.context import AnticipationContext, Project, Task, empty_context
from schemas.signal import LifeDomain, Signal, SignalSeverity, SignalType
from schemas.weight import SignalWeight

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)


def make_signal(
    id="sig-1",
    severity=SignalSeverity.ATTENTION,
    type=SignalType.DEADLINE_APPROACHING,
    domain=LifeDomain.PERSONAL_GROWTH,
    related=None,
) -> Signal:
    return Signal(
        id=id,
        type=type,
        severity=severity,
        domain=domain,
        source="stub",
        title=f"Signal {id}",
        context="",
        related_entity_ids=related or [],
        created_at=NOW,
    )


def make_weight(signal_type, domain, modifier) -> SignalWeight:
    return SignalWeight(
        signal_type=signal_type,
        domain=domain,
        total_generated=10,
        total_dismissed=0,
        total_acted_on=10,
        effectiveness_score=1.0,
        weight_modifier=modifier,
        last_updated=NOW,
        created_at=NOW,
    )


class StubDetector(BaseDetector):
    def __init__(self, name="stub", signals=None):
        self._name = name
        self._signals = signals or []

    @property
    def name(self) -> str:
        return self._name

    def detect(self, context: AnticipationContext) -> list[Signal]:
        return list(self._signals)


class CrashDetector(BaseDetector):
    name = "crash"

    def detect(self, context: AnticipationContext) -> list[Signal]:
        raise RuntimeError("boom")


# ── Registry ──────────────────────────────────────────────────────────────────

class TestDetectorRegistry:
    def test_register_and_get_all(self):
        registry = DetectorRegistry()
        registry.register(StubDetector("a"))
        registry.register(StubDetector("b"))
        assert [d.name for d in registry.get_all()] == ["a", "b"]
        assert len(registry) == 2

    def test_duplicate_name_raises(self):
        registry = DetectorRegistry()
        registry.register(StubDetector("a"))
        with pytest.raises(ValueError):
            registry.register(StubDetector("a"))

    def test_get_by_name_returns_none_when_missing(self):
        assert DetectorRegistry().get_by_name("nope") is None

    def test_get_all_returns_copy(self):
        registry = DetectorRegistry()
        registry.register(StubDetector("a"))
        registry.get_all().clear()
        assert len(registry) == 1

    def test_default_registry_order(self):
        assert default_registry().names() == [
            "aging-detector",
            "streak-guardian",
            "deadline-radar",
            "family-awareness",
            "calendar-conflicts",
            "financial-sentinel",
            "context-switch-prep",
            "pattern-recognizer",
            "cross-domain-correlator",
        ]


# ── Pipeline ──────────────────────────────────────────────────────────────────

class TestDetectorPipeline:
    def test_concatenates_in_registry_order(self):
        registry = DetectorRegistry()
        registry.register(StubDetector("a", [make_signal("a1"), make_signal("a2")]))
        registry.register(StubDetector("b", [make_signal("b1")]))

        result = DetectorPipeline(registry).run(empty_context(NOW))

        assert [s.id for s in result.signals] == ["a1", "a2", "b1"]
        assert result.detectors_run == ["a", "b"]
        assert result.detectors_failed == []

    def test_crashing_detector_is_isolated(self):
        registry = DetectorRegistry()
        registry.register(StubDetector("before", [make_signal("x")]))
        registry.register(CrashDetector())
        registry.register(StubDetector("after", [make_signal("y")]))

        result = DetectorPipeline(registry).run(empty_context(NOW))

        assert [s.id for s in result.signals] == ["x", "y"]
        assert result.detectors_failed == ["crash"]
        assert result.detectors_run == ["before", "after"]

    def test_empty_context_yields_no_signals(self):
        result = DetectorPipeline().run(empty_context(NOW))
        assert result.signals == []
        assert len(result.detectors_run) == 9

    def test_duration_is_recorded(self):
        assert DetectorPipeline().run(empty_context(NOW)).run_duration_ms >= 0


# ── Prioritizer ───────────────────────────────────────────────────────────────

class TestDeduplicate:
    def test_keeps_most_severe_per_entity(self):
        signals = [
            make_signal("low", SignalSeverity.ATTENTION, related=["task-1"]),
            make_signal("high", SignalSeverity.CRITICAL, related=["task-1"]),
        ]
        assert [s.id for s in deduplicate_signals(signals)] == ["high"]

    def test_first_seen_wins_on_tie(self):
        signals = [
            make_signal("first", related=["task-1"]),
            make_signal("second", related=["task-1"]),
        ]
        assert [s.id for s in deduplicate_signals(signals)] == ["first"]

    def test_different_types_not_merged(self):
        signals = [
            make_signal("a", related=["task-1"]),
            make_signal("b", type=SignalType.FOLLOW_UP_DUE, related=["task-1"]),
        ]
        assert len(deduplicate_signals(signals)) == 2

    def test_signals_without_entities_not_merged(self):
        signals = [make_signal("a"), make_signal("b")]
        assert len(deduplicate_signals(signals)) == 2


class TestScoring:
    def test_severity_scores(self):
        assert severity_score(SignalSeverity.CRITICAL) == 100
        assert severity_score(SignalSeverity.URGENT) == 75
        assert severity_score(SignalSeverity.ATTENTION) == 50
        assert severity_score(SignalSeverity.INFO) == 25

    def test_due_date_boost(self):
        ctx = AnticipationContext(now=NOW, tasks=[
            Task(id="task-1", title="Deck", created_date=TODAY, due_date=TODAY + timedelta(days=2)),
        ])
        assert base_score(make_signal(related=["task-1"]), ctx) == 50 + 80

    def test_far_due_date_adds_nothing(self):
        ctx = AnticipationContext(now=NOW, tasks=[
            Task(id="task-1", title="Deck", created_date=TODAY, due_date=TODAY + timedelta(days=30)),
        ])
        assert base_score(make_signal(related=["task-1"]), ctx) == 50

    def test_active_project_boost(self):
        ctx = AnticipationContext(now=NOW, projects=[
            Project(id="p1", title="Launch", category_id="cat-biz"),
            Project(id="p2", title="Old", status="completed", category_id="cat-old"),
        ])
        assert base_score(make_signal(related=["cat-biz"]), ctx) == 70
        assert base_score(make_signal(related=["cat-old"]), ctx) == 50

    def test_rank_key_orders_severity_before_score(self):
        critical = make_signal("c", SignalSeverity.CRITICAL)
        info = make_signal("i", SignalSeverity.INFO)
        assert rank_key(critical, 1) < rank_key(info, 1000)


class TestPrioritySynthesizer:
    def test_severity_dominates_feedback_weight(self):
        urgent = make_signal("u", SignalSeverity.URGENT, type=SignalType.AGING_EMAIL)
        critical = make_signal("c", SignalSeverity.CRITICAL, type=SignalType.STREAK_AT_RISK)
        weights = [
            make_weight(SignalType.AGING_EMAIL, LifeDomain.PERSONAL_GROWTH, 2.0),
            make_weight(SignalType.STREAK_AT_RISK, LifeDomain.PERSONAL_GROWTH, 0.3),
        ]
        ranked = PrioritySynthesizer().prioritize([urgent, critical], empty_context(NOW), weights)
        assert [s.id for s in ranked] == ["c", "u"]

    def test_weight_reorders_within_severity(self):
        a = make_signal("a", type=SignalType.AGING_EMAIL)
        b = make_signal("b", type=SignalType.STREAK_AT_RISK)
        weights = [make_weight(SignalType.STREAK_AT_RISK, LifeDomain.PERSONAL_GROWTH, 2.0)]
        ranked = PrioritySynthesizer().prioritize([a, b], empty_context(NOW), weights)
        assert [s.id for s in ranked] == ["b", "a"]

    def test_stable_for_equal_keys(self):
        signals = [make_signal("a"), make_signal("b"), make_signal("c")]
        ranked = PrioritySynthesizer().prioritize(signals, empty_context(NOW), [])
        assert [s.id for s in ranked] == ["a", "b", "c"]

    def test_empty_input(self):
        assert PrioritySynthesizer().prioritize([], empty_context(NOW), []) == []

    def test_input_not_modified(self):
        signals = [make_signal("a", SignalSeverity.INFO), make_signal("b", SignalSeverity.CRITICAL)]
        PrioritySynthesizer().prioritize(signals, empty_context(NOW))
        assert [s.id for s in signals] == ["a", "b"]


class TestRankSignals:
    def test_same_comparator_as_synthesizer(self):
        signals = [
            make_signal("info", SignalSeverity.INFO),
            make_signal("urgent", SignalSeverity.URGENT),
            make_signal("critical", SignalSeverity.CRITICAL),
        ]
        assert [s.id for s in rank_signals(signals)] == ["critical", "urgent", "info"]

    def test_weight_applied(self):
        a = make_signal("a", type=SignalType.AGING_EMAIL)
        b = make_signal("b", type=SignalType.STREAK_AT_RISK)
        weights = [make_weight(SignalType.AGING_EMAIL, LifeDomain.PERSONAL_GROWTH, 0.3)]
        assert [s.id for s in rank_signals([a, b], weights)] == ["b", "a"]
