"""Keep each student's cached standing fresh by scraping the portal on demand."""

from __future__ import annotations

import logging
import threading
import weakref
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .config import Settings, get_settings
from .domain import (
    AcademicSnapshot,
    CachedAcademicRecord,
    StandingDetail,
    StandingStatus,
    Student,
    SyncMetadata,
    utcnow,
)
from .errors import CredentialRejected, NotFound, ParseError, PermissionDenied, TransportError
from .portal_session import PortalFactory, PortalSession
from .record_store import StudentRecordStore
from .score_extractor import extract_snapshot
from .telemetry import emit_event

logger = logging.getLogger(__name__)


def check_viewer_permission(metadata: SyncMetadata) -> None:
    """A viewer may look at other students only while sharing their own data."""
    if metadata.login_error:
        raise PermissionDenied(
            "Your own standing must be readable before viewing others. "
            "Reset your portal password to the initial password first."
        )
    if metadata.private_ranking:
        raise PermissionDenied("Allow your own ranking to be shared before viewing others.")


class SyncEngine:
    def __init__(
        self,
        store: StudentRecordStore,
        portal_factory: Optional[PortalFactory] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._portal_factory = portal_factory or (lambda: PortalSession.from_settings(settings))
        self._tz = ZoneInfo(settings.timezone)
        self._clock = clock
        # Entries disappear once no refresh holds the lock.
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> StudentRecordStore:
        return self._store

    def _lock_for(self, student_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(student_id)
            if lock is None:
                lock = self._locks[student_id] = threading.Lock()
            return lock

    def is_fresh(self, record: CachedAcademicRecord, now: Optional[datetime] = None) -> bool:
        """True when the last sync or rejected login happened on today's local calendar day."""
        if record.modified_at is None:
            return False
        now = now or self._clock()
        return record.modified_at.astimezone(self._tz).date() == now.astimezone(self._tz).date()

    def get_cached(self, student: Student) -> CachedAcademicRecord:
        record = self._store.get_record(student.student_id)
        if record is not None and self.is_fresh(record):
            return record
        return self.refresh(student)

    def refresh(
        self,
        student: Student,
        password: Optional[str] = None,
        *,
        record_rejection: bool = True,
    ) -> CachedAcademicRecord:
        """Scrape the portal for ``student`` and persist the outcome.

        A rejected login is normally a stored outcome: the login-error flag is
        set, the attempt is timestamped and the stale record comes back. With
        ``record_rejection=False`` the rejection propagates and the flag is
        left untouched. Transport and parse failures leave the record as it
        was and propagate to the caller.
        """
        source = "explicit" if password else "default"
        student_id = student.student_id
        with self._lock_for(student_id):
            self._store.ensure(student_id)
            try:
                snapshot = self._scrape(student, password or student_id)
            except CredentialRejected:
                if not record_rejection:
                    emit_event("standing_refresh", student_id=student_id, status="rejected", credential_source=source)
                    raise
                record = self._store.mark_login_error(student_id, self._clock())
                emit_event("standing_refresh", student_id=student_id, status="login_error", credential_source=source)
                return record
            except TransportError as exc:
                logger.warning("Portal unreachable while refreshing student_id=%s: %s", student_id, exc)
                emit_event("standing_refresh", student_id=student_id, status="transport_error", credential_source=source)
                raise
            except ParseError as exc:
                logger.error("Unreadable portal payload for student_id=%s: %s", student_id, exc)
                emit_event("standing_refresh", student_id=student_id, status="parse_error", credential_source=source)
                raise

            record = self._store.save_snapshot(student_id, snapshot, self._clock())
        emit_event(
            "standing_refresh",
            student_id=student_id,
            status="success",
            credential_source=source,
            score=record.score,
        )
        return record

    def _scrape(self, student: Student, password: str) -> AcademicSnapshot:
        with self._portal_factory() as portal:
            portal.login(student, password)
            try:
                score_html = portal.fetch_score_html(student.student_id)
                point_html = portal.fetch_point_html()
            finally:
                portal.logout()
        return extract_snapshot(score_html, point_html)

    # inbound operations ---------------------------------------------------------

    def own_status(self, viewer: Student) -> StandingStatus:
        return StandingStatus.from_record(self.get_cached(viewer), now=self._clock())

    def refresh_own_status(self, viewer: Student) -> StandingStatus:
        return StandingStatus.from_record(self.refresh(viewer), now=self._clock())

    def detail_as(
        self,
        viewer: Student,
        grade: int,
        class_no: int,
        student_no: int,
        password: Optional[str] = None,
    ) -> StandingDetail:
        target = self._store.find_student(grade, class_no, student_no)
        if target is None:
            raise NotFound("Student not found.")

        is_self = target.student_id == viewer.student_id
        if not is_self:
            viewer_meta = self._store.get_metadata(viewer.student_id)
            if viewer_meta is None:
                raise NotFound("Your standing information has not been loaded yet.")
            check_viewer_permission(viewer_meta)
            target_meta = self._store.get_metadata(target.student_id)
            if target_meta is not None and target_meta.private_ranking:
                raise PermissionDenied("This student does not share their standing.")

        # A wrong guess at someone else's password must not flag their account.
        record = self.refresh(target, password or None, record_rejection=is_self or not password)
        return StandingDetail.from_record(record, now=self._clock())


__all__ = ["SyncEngine", "check_viewer_permission"]
