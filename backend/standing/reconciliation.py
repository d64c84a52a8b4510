"""Daily whole-population refresh against the portal.

Students are refreshed strictly one after another with a fixed pause between
portal sessions; the portal cannot take more than that. Students whose last
login was rejected stay skipped until they re-authenticate on demand.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from .config import Settings, get_settings
from .domain import Student, utcnow
from .errors import ParseError, TransportError
from .sync_engine import SyncEngine
from .telemetry import emit_event

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    refreshed: List[str] = field(default_factory=list)
    login_errors: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    interrupted: bool = False

    def summary(self) -> dict:
        return {
            "refreshed": len(self.refreshed),
            "login_errors": len(self.login_errors),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "interrupted": self.interrupted,
        }


def reconcile_all(
    engine: SyncEngine,
    *,
    delay_seconds: float = 1.0,
    stop_event: Optional[threading.Event] = None,
    clock: Callable[[], datetime] = utcnow,
) -> ReconciliationReport:
    """Refresh every active student once, in roster order."""
    stop_event = stop_event or threading.Event()
    store = engine.store
    students = store.list_active_students()
    metadata = store.list_metadata()
    report = ReconciliationReport(started_at=clock())
    logger.info("Reconciliation starting for %d active students", len(students))

    for student in students:
        if stop_event.is_set():
            report.interrupted = True
            break
        meta = metadata.get(student.student_id)
        if meta is not None and meta.login_error:
            report.skipped.append(student.student_id)
            continue

        _refresh_one(engine, student, report)

        # wait() returns early on stop so shutdown is not held up by pacing.
        if stop_event.wait(delay_seconds):
            report.interrupted = True
            break

    report.finished_at = clock()
    logger.info("Reconciliation finished: %s", report.summary())
    emit_event("reconciliation_completed", started_at=report.started_at, **report.summary())
    return report


def _refresh_one(engine: SyncEngine, student: Student, report: ReconciliationReport) -> None:
    student_id = student.student_id
    try:
        record = engine.refresh(student)
    except (TransportError, ParseError) as exc:
        logger.warning("Reconciliation could not refresh student_id=%s: %s", student_id, exc)
        report.failed.append(student_id)
        return
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected failure refreshing student_id=%s", student_id)
        report.failed.append(student_id)
        return
    if record.login_error:
        report.login_errors.append(student_id)
    else:
        report.refreshed.append(student_id)


def next_run_after(now: datetime, hour: int, minute: int, tz: ZoneInfo) -> datetime:
    """Next wall-clock ``hour:minute`` in ``tz`` strictly after ``now``."""
    local_now = now.astimezone(tz)
    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return candidate


class ReconciliationScheduler:
    """Background thread that runs :func:`reconcile_all` once a day."""

    def __init__(
        self,
        engine: SyncEngine,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._engine = engine
        self._settings = settings or get_settings()
        self._tz = ZoneInfo(self._settings.timezone)
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_report: Optional[ReconciliationReport] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run(self) -> datetime:
        hour, minute = self._settings.reconcile_time()
        return next_run_after(self._clock(), hour, minute, self._tz)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="standing-reconciliation", daemon=True)
        self._thread.start()
        logger.info("Reconciliation scheduled daily at %s %s", self._settings.reconcile_at, self._settings.timezone)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def run_once(self) -> ReconciliationReport:
        self.last_report = reconcile_all(
            self._engine,
            delay_seconds=self._settings.reconcile_delay_seconds,
            stop_event=self._stop,
            clock=self._clock,
        )
        return self.last_report

    def _loop(self) -> None:
        while not self._stop.is_set():
            wait_seconds = max(0.0, (self.next_run() - self._clock()).total_seconds())
            if self._stop.wait(wait_seconds):
                break
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                # Roster or store unavailable; try again tomorrow.
                logger.exception("Reconciliation run failed before completing")


__all__ = [
    "ReconciliationReport",
    "ReconciliationScheduler",
    "next_run_after",
    "reconcile_all",
]
