"""Process-wide service instances shared by the routes and the scheduler."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from .domain import Student
from .ranking import RankingService
from .reconciliation import ReconciliationScheduler
from .record_store import StudentRecordStore
from .sync_engine import SyncEngine

_store: Optional[StudentRecordStore] = None
_engine: Optional[SyncEngine] = None
_ranking: Optional[RankingService] = None
_scheduler: Optional[ReconciliationScheduler] = None


def get_record_store() -> StudentRecordStore:
    global _store
    if _store is None:
        _store = StudentRecordStore()
    return _store


def get_sync_engine() -> SyncEngine:
    global _engine
    if _engine is None:
        _engine = SyncEngine(get_record_store())
    return _engine


def get_ranking_service() -> RankingService:
    global _ranking
    if _ranking is None:
        _ranking = RankingService(get_record_store())
    return _ranking


def get_scheduler() -> ReconciliationScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = ReconciliationScheduler(get_sync_engine())
    return _scheduler


def reset_services() -> None:
    global _store, _engine, _ranking, _scheduler
    if _scheduler is not None:
        _scheduler.stop()
    _store = _engine = _ranking = _scheduler = None


def current_student(
    student_id: str = Header(..., alias="X-Student-Id", min_length=1),
    store: StudentRecordStore = Depends(get_record_store),
) -> Student:
    """Resolve the caller. The upstream auth gateway sets ``X-Student-Id``."""
    student = store.get_student(student_id)
    if student is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown student.")
    return student


__all__ = [
    "current_student",
    "get_ranking_service",
    "get_record_store",
    "get_scheduler",
    "get_sync_engine",
    "reset_services",
]
