"""Structured telemetry for portal syncs, reconciliation runs and privacy changes.

Events are logged as a single ``TELEMETRY {json}`` line and handed to any
in-process listeners. Per-event counters back the ``/healthz`` payload.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("standing.telemetry")

Listener = Callable[["TelemetryEvent"], None]


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]


class _Dispatcher:
    def __init__(self) -> None:
        self._lock = RLock()
        self._listeners: List[Listener] = []
        self._counts: Counter[str] = Counter()

    def add(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def reset(self) -> None:
        with self._lock:
            self._listeners.clear()
            self._counts.clear()

    def dispatch(self, event: TelemetryEvent) -> None:
        with self._lock:
            self._counts[event.name] += 1
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Telemetry listener failed for %s", event.name)

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


_dispatcher = _Dispatcher()


def register_listener(listener: Listener) -> None:
    """Register an in-process listener (used in tests)."""
    _dispatcher.add(listener)


def clear_listeners() -> None:
    """Drop listeners and counters. Mainly used to reset test state."""
    _dispatcher.reset()


def event_counts() -> Dict[str, int]:
    return _dispatcher.counts()


def emit_event(name: str, **fields: Any) -> None:
    payload = {key: value.isoformat() if isinstance(value, datetime) else value for key, value in fields.items()}
    _dispatcher.dispatch(TelemetryEvent(name=name, payload=payload))
    logger.info(
        "TELEMETRY %s",
        json.dumps({"event": name, **payload}, default=str, ensure_ascii=False),
    )


__all__ = [
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "event_counts",
    "register_listener",
]
