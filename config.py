"""Process configuration read from the environment.

load_dotenv() runs at import time, so a .env file next to the process is
picked up before any setting is read. Every value has a default that works
for local development.

Environment variables:
    ANTICIPATION_INTERVAL_MS   Delay between cycles (default 300000, 5 min)
    ANTICIPATION_ENABLED       "false" keeps the worker from starting
    SIGNAL_WEIGHTS_DB          SQLite file for feedback weights
    LOG_FILE                   Rotating log file for the host process
    ALLOWED_ORIGINS            Comma-separated CORS origins
    EMAIL_ATTENTION_HOURS      Email aging thresholds, in hours
    EMAIL_URGENT_HOURS
    EMAIL_CRITICAL_HOURS
    TASK_STALE_DAYS            Age in days after which an active task is stale
"""

import os
import pathlib
from dataclasses import dataclass, field

from dotenv import load_dotenv

from detectors.aging_detector import AgingConfig
from schemas.result import DEFAULT_INTERVAL_MS, WorkerConfig

load_dotenv()

_ROOT = pathlib.Path(__file__).parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    interval_ms: int = DEFAULT_INTERVAL_MS
    enabled: bool = True
    weights_db: pathlib.Path = _ROOT / "signal_weights.db"
    log_file: pathlib.Path = _ROOT / "anticipation.log"
    allowed_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    aging: AgingConfig = field(default_factory=AgingConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        defaults = AgingConfig()
        return cls(
            interval_ms=_env_int("ANTICIPATION_INTERVAL_MS", DEFAULT_INTERVAL_MS),
            enabled=_env_bool("ANTICIPATION_ENABLED", True),
            weights_db=pathlib.Path(os.environ.get("SIGNAL_WEIGHTS_DB", _ROOT / "signal_weights.db")),
            log_file=pathlib.Path(os.environ.get("LOG_FILE", _ROOT / "anticipation.log")),
            allowed_origins=os.environ.get("ALLOWED_ORIGINS", "http://localhost:3000").split(","),
            aging=AgingConfig(
                email_attention_hours=_env_float("EMAIL_ATTENTION_HOURS", defaults.email_attention_hours),
                email_urgent_hours=_env_float("EMAIL_URGENT_HOURS", defaults.email_urgent_hours),
                email_critical_hours=_env_float("EMAIL_CRITICAL_HOURS", defaults.email_critical_hours),
                task_stale_days=_env_float("TASK_STALE_DAYS", defaults.task_stale_days),
            ),
        )

    def worker_config(self) -> WorkerConfig:
        return WorkerConfig(interval_ms=self.interval_ms, enabled=self.enabled)
