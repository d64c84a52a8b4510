"""Value records exchanged between the sync engine, the store and the ranking service."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on round trips; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Student(BaseModel):
    """Roster entry owned by the school system. Grade 0 marks a graduate."""

    student_id: str
    grade: int = Field(ge=0)
    class_no: int = Field(ge=0)
    student_no: int = Field(ge=0)
    name: str = ""

    @property
    def is_active(self) -> bool:
        return self.grade != 0


class SyncMetadata(BaseModel):
    student_id: str
    login_error: bool = False
    private_ranking: bool = False
    last_privacy_change_at: Optional[datetime] = None


class CachedAcademicRecord(BaseModel):
    student_id: str
    score: float = 0.0
    positive_point: int = Field(default=0, ge=0)
    negative_point: int = Field(default=0, ge=0)
    score_raw_html: str = ""
    point_raw_html: str = ""
    modified_at: Optional[datetime] = None
    login_error: bool = False


class AcademicSnapshot(BaseModel):
    """Facts extracted from one successful portal session."""

    score: float = 0.0
    positive_point: int = Field(default=0, ge=0)
    negative_point: int = Field(default=0, ge=0)
    score_raw_html: str = ""
    point_raw_html: str = ""


class ResultType(str, Enum):
    SUCCESS = "SUCCESS"
    LOGIN_ERROR = "LOGIN_ERROR"
    PRIVATE = "PRIVATE"


class StudentIdentity(BaseModel):
    grade: int
    class_no: int
    student_no: int
    name: str

    @classmethod
    def of(cls, student: Student) -> "StudentIdentity":
        return cls(
            grade=student.grade,
            class_no=student.class_no,
            student_no=student.student_no,
            name=student.name,
        )


class RankingEntry(BaseModel):
    student: StudentIdentity
    result: ResultType
    score: Optional[float] = None
    positive_point: Optional[int] = None
    negative_point: Optional[int] = None
    last_update: Optional[datetime] = None


class StandingStatus(BaseModel):
    """What a student sees for their own (or an inspected) standing."""

    student_id: str
    login_error: bool = False
    score: Optional[float] = None
    positive_point: Optional[int] = None
    negative_point: Optional[int] = None
    last_update: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: CachedAcademicRecord, *, now: datetime) -> "StandingStatus":
        if record.login_error:
            return cls(student_id=record.student_id, login_error=True, last_update=now)
        return cls(
            student_id=record.student_id,
            score=record.score,
            positive_point=record.positive_point,
            negative_point=record.negative_point,
            last_update=record.modified_at,
        )


class StandingDetail(StandingStatus):
    score_raw_html: Optional[str] = None
    point_raw_html: Optional[str] = None

    @classmethod
    def from_record(cls, record: CachedAcademicRecord, *, now: datetime) -> "StandingDetail":
        status = StandingStatus.from_record(record, now=now)
        if status.login_error:
            return cls(**status.model_dump())
        return cls(
            **status.model_dump(),
            score_raw_html=record.score_raw_html,
            point_raw_html=record.point_raw_html,
        )


__all__ = [
    "AcademicSnapshot",
    "CachedAcademicRecord",
    "RankingEntry",
    "ResultType",
    "StandingDetail",
    "StandingStatus",
    "Student",
    "StudentIdentity",
    "SyncMetadata",
    "as_utc",
    "utcnow",
]
