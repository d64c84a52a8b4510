"""Privacy-aware leaderboard over every cached academic record."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from .config import Settings, get_settings
from .domain import (
    CachedAcademicRecord,
    RankingEntry,
    ResultType,
    Student,
    StudentIdentity,
    SyncMetadata,
    utcnow,
)
from .errors import NotFound, RateLimited
from .record_store import StudentRecordStore
from .sync_engine import check_viewer_permission
from .telemetry import emit_event

logger = logging.getLogger(__name__)

SortKey = Tuple[int, float, int, int, int]


def classify(metadata: SyncMetadata) -> ResultType:
    if metadata.private_ranking:
        return ResultType.PRIVATE
    if metadata.login_error:
        return ResultType.LOGIN_ERROR
    return ResultType.SUCCESS


def build_entry(student: Student, record: CachedAcademicRecord, metadata: SyncMetadata) -> RankingEntry:
    result = classify(metadata)
    entry = RankingEntry(student=StudentIdentity.of(student), result=result)
    if result is not ResultType.SUCCESS:
        return entry
    return entry.model_copy(
        update={
            "score": record.score,
            "positive_point": record.positive_point,
            "negative_point": record.negative_point,
            "last_update": record.modified_at,
        }
    )


class RankingService:
    def __init__(
        self,
        store: StudentRecordStore,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        settings = settings or get_settings()
        self._store = store
        self._clock = clock
        self._cooldown = timedelta(hours=settings.privacy_cooldown_hours)
        self._tier_rank: Dict[ResultType, int] = {
            ResultType(name): rank for rank, name in enumerate(settings.tier_order())
        }

    def sort_key(self, entry: RankingEntry) -> SortKey:
        """``(tier_rank, -score, grade, class_no, student_no)``; score only counts for SUCCESS."""
        score = entry.score if entry.result is ResultType.SUCCESS and entry.score is not None else 0.0
        return (
            self._tier_rank[entry.result],
            -score,
            entry.student.grade,
            entry.student.class_no,
            entry.student.student_no,
        )

    def update_privacy(self, viewer: Student, make_private: bool) -> SyncMetadata:
        metadata = self._store.get_metadata(viewer.student_id)
        if metadata is None:
            raise NotFound("Standing information has not been loaded yet.")

        now = self._clock()
        if metadata.last_privacy_change_at is not None:
            available_at = metadata.last_privacy_change_at + self._cooldown
            if now < available_at:
                raise RateLimited((available_at - now).total_seconds())

        updated = self._store.set_privacy(viewer.student_id, make_private, now)
        emit_event("privacy_updated", student_id=viewer.student_id, private=make_private)
        return updated

    def get_ranking(self, viewer: Student) -> List[RankingEntry]:
        metadata = self._store.get_metadata(viewer.student_id)
        if metadata is None:
            raise NotFound("Standing information has not been loaded yet.")
        check_viewer_permission(metadata)

        entries = [build_entry(student, record, meta) for student, record, meta in self._store.list_ranked()]
        entries.sort(key=self.sort_key)
        logger.debug("Built ranking with %d entries for student_id=%s", len(entries), viewer.student_id)
        return entries


__all__ = ["RankingService", "build_entry", "classify"]
