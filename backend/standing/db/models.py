"""ORM models for the roster and the per-student sync state."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class StudentModel(Base):
    """Read-only mirror of the school roster; written by the roster owner."""

    __tablename__ = "students"
    __table_args__ = (
        Index("ix_students_number", "grade", "class_no", "student_no", unique=True),
    )

    student_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    class_no: Mapped[int] = mapped_column(Integer, nullable=False)
    student_no: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(64), default="", nullable=False)


class SyncMetadataModel(TimestampMixin, Base):
    __tablename__ = "student_sync_metadata"

    student_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    login_error: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    private_ranking: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_privacy_change_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    record: Mapped["AcademicRecordModel"] = relationship(back_populates="meta", uselist=False)


class AcademicRecordModel(Base):
    __tablename__ = "student_academic_records"
    __table_args__ = (Index("ix_student_academic_records_score", "score"),)

    student_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("student_sync_metadata.student_id", ondelete="CASCADE"),
        primary_key=True,
    )
    score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    positive_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    negative_point: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    score_raw_html: Mapped[str] = mapped_column(Text, default="", nullable=False)
    point_raw_html: Mapped[str] = mapped_column(Text, default="", nullable=False)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    meta: Mapped[SyncMetadataModel] = relationship(back_populates="record")


__all__ = [
    "AcademicRecordModel",
    "StudentModel",
    "SyncMetadataModel",
]
