"""Database-backed repository for the roster, sync metadata and cached records."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..db.models import AcademicRecordModel, StudentModel, SyncMetadataModel
from ..domain import AcademicSnapshot, CachedAcademicRecord, Student, SyncMetadata, as_utc


def _normalize_student_id(student_id: str) -> str:
    normalized = student_id.strip()
    if not normalized:
        raise ValueError("Student id cannot be empty.")
    return normalized


class StudentRecordRepository:
    """Maps ORM rows to value records; nothing outside this class sees a model."""

    # roster -----------------------------------------------------------------

    def get_student(self, session: Session, student_id: str) -> Student | None:
        model = session.get(StudentModel, _normalize_student_id(student_id))
        return self._student(model) if model else None

    def find_student(self, session: Session, grade: int, class_no: int, student_no: int) -> Student | None:
        stmt = select(StudentModel).where(
            StudentModel.grade == grade,
            StudentModel.class_no == class_no,
            StudentModel.student_no == student_no,
        )
        model = session.execute(stmt).scalar_one_or_none()
        return self._student(model) if model else None

    def list_active_students(self, session: Session) -> List[Student]:
        stmt = (
            select(StudentModel)
            .where(StudentModel.grade != 0)
            .order_by(StudentModel.grade, StudentModel.class_no, StudentModel.student_no)
        )
        return [self._student(model) for model in session.execute(stmt).scalars()]

    def add_student(self, session: Session, student: Student) -> Student:
        model = StudentModel(
            student_id=_normalize_student_id(student.student_id),
            grade=student.grade,
            class_no=student.class_no,
            student_no=student.student_no,
            name=student.name,
        )
        session.merge(model)
        session.flush()
        return student

    # sync state ---------------------------------------------------------------

    def get_metadata(self, session: Session, student_id: str) -> SyncMetadata | None:
        model = session.get(SyncMetadataModel, _normalize_student_id(student_id))
        return self._metadata(model) if model else None

    def list_metadata(self, session: Session) -> Dict[str, SyncMetadata]:
        models = session.execute(select(SyncMetadataModel)).scalars()
        return {model.student_id: self._metadata(model) for model in models}

    def get_record(self, session: Session, student_id: str) -> CachedAcademicRecord | None:
        model = self._load_record(session, _normalize_student_id(student_id))
        return self._record(model) if model else None

    def ensure(self, session: Session, student_id: str) -> CachedAcademicRecord:
        """Return the record for ``student_id``, creating metadata and record together."""
        normalized = _normalize_student_id(student_id)
        model = self._load_record(session, normalized)
        if model is not None:
            return self._record(model)

        meta = session.get(SyncMetadataModel, normalized)
        if meta is None:
            meta = SyncMetadataModel(student_id=normalized, login_error=False, private_ranking=False)
            session.add(meta)
        model = AcademicRecordModel(
            student_id=normalized,
            score=0.0,
            positive_point=0,
            negative_point=0,
            score_raw_html="",
            point_raw_html="",
        )
        model.meta = meta
        session.add(model)
        session.flush()
        return self._record(model)

    def apply_snapshot(
        self,
        session: Session,
        student_id: str,
        snapshot: AcademicSnapshot,
        synced_at: datetime,
    ) -> CachedAcademicRecord:
        model = self._require_record(session, student_id)
        model.score = snapshot.score
        model.positive_point = snapshot.positive_point
        model.negative_point = snapshot.negative_point
        model.score_raw_html = snapshot.score_raw_html
        model.point_raw_html = snapshot.point_raw_html
        model.modified_at = synced_at
        model.meta.login_error = False
        session.flush()
        return self._record(model)

    def mark_login_error(self, session: Session, student_id: str, attempted_at: datetime) -> CachedAcademicRecord:
        """Flag a rejected login. The attempt time makes the record fresh for the day."""
        model = self._require_record(session, student_id)
        model.meta.login_error = True
        model.modified_at = attempted_at
        session.flush()
        return self._record(model)

    def set_privacy(self, session: Session, student_id: str, private: bool, changed_at: datetime) -> SyncMetadata:
        meta = session.get(SyncMetadataModel, _normalize_student_id(student_id))
        if meta is None:
            raise LookupError(f"Sync metadata for '{student_id}' was not found.")
        meta.private_ranking = private
        meta.last_privacy_change_at = changed_at
        session.flush()
        return self._metadata(meta)

    def list_ranked(self, session: Session) -> List[Tuple[Student, CachedAcademicRecord, SyncMetadata]]:
        """Every cached record that still has a roster entry, highest score first."""
        stmt = (
            select(AcademicRecordModel, StudentModel)
            .join(StudentModel, StudentModel.student_id == AcademicRecordModel.student_id)
            .options(selectinload(AcademicRecordModel.meta))
            .order_by(AcademicRecordModel.score.desc())
        )
        rows = session.execute(stmt).all()
        return [
            (self._student(student), self._record(record), self._metadata(record.meta))
            for record, student in rows
        ]

    # helpers ------------------------------------------------------------------

    @staticmethod
    def _load_record(session: Session, student_id: str) -> Optional[AcademicRecordModel]:
        stmt = (
            select(AcademicRecordModel)
            .where(AcademicRecordModel.student_id == student_id)
            .options(selectinload(AcademicRecordModel.meta))
        )
        return session.execute(stmt).scalar_one_or_none()

    def _require_record(self, session: Session, student_id: str) -> AcademicRecordModel:
        model = self._load_record(session, _normalize_student_id(student_id))
        if model is None:
            raise LookupError(f"Academic record for '{student_id}' was not found.")
        return model

    @staticmethod
    def _student(model: StudentModel) -> Student:
        return Student(
            student_id=model.student_id,
            grade=model.grade,
            class_no=model.class_no,
            student_no=model.student_no,
            name=model.name,
        )

    @staticmethod
    def _metadata(model: SyncMetadataModel) -> SyncMetadata:
        return SyncMetadata(
            student_id=model.student_id,
            login_error=model.login_error,
            private_ranking=model.private_ranking,
            last_privacy_change_at=as_utc(model.last_privacy_change_at),
        )

    @staticmethod
    def _record(model: AcademicRecordModel) -> CachedAcademicRecord:
        return CachedAcademicRecord(
            student_id=model.student_id,
            score=model.score,
            positive_point=model.positive_point,
            negative_point=model.negative_point,
            score_raw_html=model.score_raw_html,
            point_raw_html=model.point_raw_html,
            modified_at=as_utc(model.modified_at),
            login_error=bool(model.meta.login_error) if model.meta is not None else False,
        )


student_records = StudentRecordRepository()

__all__ = ["StudentRecordRepository", "student_records"]
