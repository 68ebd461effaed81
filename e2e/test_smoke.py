import json
import pathlib

from core.store import SignalStore
from core.worker import AnticipationWorker
from schemas.context import AnticipationContext

_FIXTURE = pathlib.Path(__file__).parent.parent / "fixtures" / "demo_context.json"


async def test_demo_snapshot_smoke() -> None:
    context = AnticipationContext.model_validate(json.loads(_FIXTURE.read_text()))
    store = SignalStore()
    worker = AnticipationWorker(store=store, context_provider=lambda: context)

    result = await worker.run_cycle()

    assert result is not None
    assert result.detectors_failed == []
    assert len(result.signals) == len(store)
    assert store.counts(context.now).urgent > 0
