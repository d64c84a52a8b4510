from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

import pytest

from standing.config import Settings, get_settings
from standing.db import models  # noqa: F401  registers tables
from standing.db.base import Base
from standing.db.session import dispose_engine, get_engine
from standing.dependencies import reset_services
from standing.domain import Student
from standing.errors import CredentialRejected, TransportError
from standing.record_store import StudentRecordStore
from standing.sync_engine import SyncEngine

# 12:00 in Asia/Seoul.
T0 = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakePortal:
    def __init__(self, factory: "FakePortalFactory") -> None:
        self._factory = factory
        self._student: Optional[Student] = None

    def __enter__(self) -> "FakePortal":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._factory.closed += 1

    def login(self, student: Student, password: str) -> None:
        self._factory.logins.append((student.student_id, password))
        if student.student_id in self._factory.unreachable:
            raise TransportError("connect timeout")
        if password != self._factory.passwords.get(student.student_id, student.student_id):
            raise CredentialRejected("rejected")
        self._student = student

    def fetch_score_html(self, student_id: str) -> str:
        return self._factory.score_pages.get(student_id, "<table><tr><td>80.0</td></tr></table>")

    def fetch_point_html(self) -> str:
        assert self._student is not None
        return self._factory.point_pages.get(self._student.student_id, "(상점 : 2) (벌점 : 1)")

    def logout(self) -> None:
        self._factory.logouts += 1


class FakePortalFactory:
    """Stands in for ``PortalSession`` construction; records every login."""

    def __init__(self) -> None:
        self.logins: List[Tuple[str, str]] = []
        self.passwords: Dict[str, str] = {}
        self.unreachable: Set[str] = set()
        self.score_pages: Dict[str, str] = {}
        self.point_pages: Dict[str, str] = {}
        self.logouts = 0
        self.closed = 0

    def __call__(self) -> FakePortal:
        return FakePortal(self)

    def logins_for(self, student_id: str) -> List[str]:
        return [password for sid, password in self.logins if sid == student_id]


@pytest.fixture()
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    monkeypatch.setenv("STANDING_DATABASE_URL", f"sqlite:///{tmp_path / 'standing.db'}")
    monkeypatch.setenv("STANDING_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("STANDING_TIMEZONE", "Asia/Seoul")
    get_settings.cache_clear()
    dispose_engine()
    Base.metadata.create_all(get_engine())
    yield get_settings()
    reset_services()
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture()
def store(settings: Settings) -> StudentRecordStore:
    return StudentRecordStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def portal() -> FakePortalFactory:
    return FakePortalFactory()


@pytest.fixture()
def engine(store: StudentRecordStore, portal: FakePortalFactory, clock: FakeClock, settings: Settings) -> SyncEngine:
    return SyncEngine(store, portal, settings=settings, clock=clock)


@pytest.fixture()
def make_student(store: StudentRecordStore):
    def _make(student_id: str, grade: int = 1, class_no: int = 1, student_no: int = 1, name: str = "") -> Student:
        return store.add_student(
            Student(
                student_id=student_id,
                grade=grade,
                class_no=class_no,
                student_no=student_no,
                name=name or f"student-{student_id}",
            )
        )

    return _make
