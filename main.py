"""Anticipation engine: host process and signal API.

This file handles two concerns:

1. Scheduling: the app lifespan starts the AnticipationWorker on startup
   and stops its timer on shutdown.

2. Signals API: read endpoints the dashboard polls for ranked signals and
   counts, plus the two outcome endpoints (dismiss / act) that feed the
   learning loop.

Flow of one cycle:
    worker timer tick
        → context provider (last snapshot POSTed to /context, else empty)
        → detector pipeline
        → feedback weights recomputed and persisted to SQLite
        → prioritize, skip signals the user already handled
        → merge into signal_store, sweep expired

    dashboard polls:
        GET /signals  or  GET /signals/counts
        → active signals in priority order

Run locally:
    uv run uvicorn main:app --reload
"""

import logging
import logging.handlers
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from config import Settings
from core.store import signal_store
from core.worker import AnticipationWorker
from detectors.pipeline import DetectorPipeline, default_registry
from feedback.loop import FeedbackLoop
from feedback.repository import SqliteWeightRepository
from schemas.context import AnticipationContext, empty_context, utc_now
from schemas.result import CycleResult, SignalCounts, WorkerStatus
from schemas.signal import LifeDomain, Signal, SignalType
from schemas.weight import SignalWeight

settings = Settings.from_env()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_file_handler = logging.handlers.RotatingFileHandler(
    settings.log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

_root_logger = logging.getLogger()
_root_logger.setLevel(logging.INFO)
_root_logger.addHandler(_file_handler)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Worker setup
# ---------------------------------------------------------------------------

feedback = FeedbackLoop(SqliteWeightRepository(settings.weights_db))
worker = AnticipationWorker(
    store=signal_store,
    pipeline=DetectorPipeline(default_registry(settings.aging)),
    feedback=feedback,
    config=settings.worker_config(),
)

# Latest snapshot pushed by the integrations layer. None until the first POST.
_latest_context: AnticipationContext | None = None


def _provide_context() -> AnticipationContext:
    """Reuse the latest pushed snapshot with a fresh clock and the current signals."""
    if _latest_context is None:
        return empty_context(signals=signal_store.all())
    return _latest_context.model_copy(update={"now": utc_now(), "signals": signal_store.all()})


worker.set_context_provider(_provide_context)


@asynccontextmanager
async def lifespan(app: FastAPI):
    worker.start()
    yield
    worker.stop()


# ---------------------------------------------------------------------------
# App + CORS
# ---------------------------------------------------------------------------

app = FastAPI(title="Anticipation Engine", lifespan=lifespan)

# ALLOWED_ORIGINS env var overrides the default for production deployments.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)


class WorkerConfigUpdate(BaseModel):
    """Body of PATCH /worker/config. Omitted fields are left unchanged."""
    interval_ms: int | None = None
    enabled: bool | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "worker_active": worker.is_active}


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

@app.get("/signals", response_model=list[Signal])
def list_signals():
    """Active signals, highest priority first."""
    return signal_store.ranked(worker.weights)


@app.get("/signals/counts", response_model=SignalCounts)
def signal_counts():
    return signal_store.counts()


@app.get("/signals/urgent", response_model=list[Signal])
def urgent_signals():
    return signal_store.urgent()


@app.get("/signals/domain/{domain}", response_model=list[Signal])
def signals_by_domain(domain: LifeDomain):
    return signal_store.by_domain(domain)


@app.get("/signals/type/{signal_type}", response_model=list[Signal])
def signals_by_type(signal_type: SignalType):
    return signal_store.by_type(signal_type)


@app.post("/signals/{signal_id}/dismiss", response_model=Signal)
def dismiss_signal(signal_id: str):
    """Record a dismissal. Returns 404 if the signal is not in the store."""
    if not signal_store.dismiss(signal_id):
        raise HTTPException(status_code=404, detail=f"Signal '{signal_id}' not found.")
    signal = signal_store.get(signal_id)
    feedback.record([signal])
    logger.info("Signal %s dismissed.", signal_id)
    return signal


@app.post("/signals/{signal_id}/act", response_model=Signal)
def act_on_signal(signal_id: str):
    """Record that the user acted on a signal. Returns 404 if not found."""
    if not signal_store.act_on(signal_id):
        raise HTTPException(status_code=404, detail=f"Signal '{signal_id}' not found.")
    signal = signal_store.get(signal_id)
    feedback.record([signal])
    logger.info("Signal %s acted on.", signal_id)
    return signal


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------

@app.get("/worker/status", response_model=WorkerStatus)
def worker_status():
    return worker.get_status()


@app.post("/worker/run", response_model=CycleResult)
async def run_worker_cycle():
    """Run one cycle now, outside the schedule.

    Returns 409 if a cycle is already running and 500 if the cycle failed.
    The failure itself is in the log; the store is left unchanged.
    """
    if worker.is_running:
        raise HTTPException(status_code=409, detail="A cycle is already running.")
    result = await worker.run_cycle()
    if result is None:
        raise HTTPException(status_code=500, detail="Cycle failed. See the log for details.")
    return result


@app.patch("/worker/config", response_model=WorkerStatus)
async def update_worker_config(body: WorkerConfigUpdate):
    """Merge config changes. Must run on the event loop: a restart schedules tasks."""
    updates = body.model_dump(exclude_none=True)
    try:
        worker.update_config(**updates)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False))
    return worker.get_status()


@app.post("/context")
def push_context(context: AnticipationContext):
    """Install a snapshot as the source for subsequent cycles."""
    global _latest_context
    _latest_context = context
    logger.info(
        "Context snapshot received: %d tasks, %d emails, %d events.",
        len(context.tasks),
        len(context.emails),
        len(context.calendar_events),
    )
    return {"status": "accepted", "now": context.now}


# ---------------------------------------------------------------------------
# Feedback weights
# ---------------------------------------------------------------------------

@app.get("/weights", response_model=list[SignalWeight])
def list_weights():
    return feedback.load()
