"""Durable keyed store for per-student sync metadata and cached academic records."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .db.session import session_scope
from .domain import AcademicSnapshot, CachedAcademicRecord, Student, SyncMetadata
from .repositories.student_records import StudentRecordRepository, student_records


class StudentRecordStore:
    """One transaction per call; values returned are detached copies."""

    def __init__(self, repository: StudentRecordRepository | None = None) -> None:
        self._repo = repository or student_records

    def get_student(self, student_id: str) -> Optional[Student]:
        with session_scope(commit=False) as session:
            return self._repo.get_student(session, student_id)

    def find_student(self, grade: int, class_no: int, student_no: int) -> Optional[Student]:
        with session_scope(commit=False) as session:
            return self._repo.find_student(session, grade, class_no, student_no)

    def list_active_students(self) -> List[Student]:
        with session_scope(commit=False) as session:
            return self._repo.list_active_students(session)

    def add_student(self, student: Student) -> Student:
        with session_scope() as session:
            return self._repo.add_student(session, student)

    def get_metadata(self, student_id: str) -> Optional[SyncMetadata]:
        with session_scope(commit=False) as session:
            return self._repo.get_metadata(session, student_id)

    def list_metadata(self) -> Dict[str, SyncMetadata]:
        with session_scope(commit=False) as session:
            return self._repo.list_metadata(session)

    def get_record(self, student_id: str) -> Optional[CachedAcademicRecord]:
        with session_scope(commit=False) as session:
            return self._repo.get_record(session, student_id)

    def ensure(self, student_id: str) -> CachedAcademicRecord:
        with session_scope() as session:
            return self._repo.ensure(session, student_id)

    def save_snapshot(self, student_id: str, snapshot: AcademicSnapshot, synced_at: datetime) -> CachedAcademicRecord:
        with session_scope() as session:
            return self._repo.apply_snapshot(session, student_id, snapshot, synced_at)

    def mark_login_error(self, student_id: str, attempted_at: datetime) -> CachedAcademicRecord:
        with session_scope() as session:
            return self._repo.mark_login_error(session, student_id, attempted_at)

    def set_privacy(self, student_id: str, private: bool, changed_at: datetime) -> SyncMetadata:
        with session_scope() as session:
            return self._repo.set_privacy(session, student_id, private, changed_at)

    def list_ranked(self) -> List[Tuple[Student, CachedAcademicRecord, SyncMetadata]]:
        with session_scope(commit=False) as session:
            return self._repo.list_ranked(session)


__all__ = ["StudentRecordStore"]
