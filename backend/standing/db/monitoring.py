"""Connection-pool counters reported through telemetry and ``/healthz/database``."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import emit_event


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    last_emit: float = 0.0

    def as_dict(self) -> Dict[str, int]:
        return {"connects": self.connects, "checkouts": self.checkouts, "checkins": self.checkins}


_COUNTERS: Dict[int, PoolCounters] = {}
_TELEMETRY_INTERVAL = float(os.getenv("STANDING_DB_TELEMETRY_INTERVAL", "60"))


def instrument_engine(engine: Engine) -> None:
    """Count pool activity and emit a ``db_pool_status`` event at most once per interval."""
    key = id(engine)
    if key in _COUNTERS:
        return
    counters = _COUNTERS[key] = PoolCounters()

    def bump(field: str) -> None:
        setattr(counters, field, getattr(counters, field) + 1)
        now = time.time()
        if _TELEMETRY_INTERVAL > 0 and (now - counters.last_emit) < _TELEMETRY_INTERVAL:
            return
        counters.last_emit = now
        emit_event("db_pool_status", status=_pool_status(engine), trigger=field, **counters.as_dict())

    event.listen(engine, "connect", lambda *_: bump("connects"))
    event.listen(engine, "checkout", lambda *_: bump("checkouts"))
    event.listen(engine, "checkin", lambda *_: bump("checkins"))


def forget_engine(engine: Engine) -> None:
    """Drop counters for a disposed engine so a replacement starts from zero."""
    _COUNTERS.pop(id(engine), None)


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(id(engine), PoolCounters())
    return {"status": _pool_status(engine), **counters.as_dict()}


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()
    except Exception as exc:  # pragma: no cover - pool implementations vary
        return f"unavailable: {exc}"


__all__ = [
    "forget_engine",
    "get_pool_snapshot",
    "instrument_engine",
]
