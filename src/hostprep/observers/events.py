# src/hostprep/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single provisioning run
    host: str         # target host label

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(host: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": now(),
        "run_id": run_id or str(uuid.uuid4()),
        "host": host,
    }


# ----- Run -----

@dataclass(frozen=True)
class RunStarted(BaseEvent):
    steps: List[str]

@dataclass(frozen=True)
class RunFinished(BaseEvent):
    state: str        # "completed" | "failed"
    applied: int
    skipped: int
    failed: int


# ----- Per-step lifecycle -----

@dataclass(frozen=True)
class StepStarted(BaseEvent):
    step: str
    index: int
    total: int

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    step: str
    reason: str

@dataclass(frozen=True)
class StepApplied(BaseEvent):
    step: str
    duration_ms: int

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    step: str
    error: str
    returncode: Optional[int] = None
