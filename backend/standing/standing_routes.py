"""REST surface for own status, detail lookups, privacy and the ranking."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .dependencies import current_student, get_ranking_service, get_sync_engine
from .domain import RankingEntry, StandingDetail, StandingStatus, Student
from .errors import (
    CredentialRejected,
    NotFound,
    ParseError,
    PermissionDenied,
    RateLimited,
    StandingError,
    TransportError,
)
from .ranking import RankingService
from .sync_engine import SyncEngine

router = APIRouter(prefix="/api/standing", tags=["standing"])
logger = logging.getLogger(__name__)


class DetailRequest(BaseModel):
    grade: int = Field(..., ge=1)
    class_no: int = Field(..., ge=1)
    student_no: int = Field(..., ge=1)
    password: Optional[str] = Field(default=None, max_length=128)


class PrivacyRequest(BaseModel):
    private: bool


class PrivacyResponse(BaseModel):
    private: bool


def _http_error(exc: StandingError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermissionDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, RateLimited):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"message": str(exc), "remaining_seconds": exc.remaining_seconds},
            headers={"Retry-After": str(exc.remaining_seconds)},
        )
    if isinstance(exc, CredentialRejected):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, (TransportError, ParseError)):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The standing portal is unavailable. Try again later.",
        )
    logger.error("Unmapped standing error: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/me", response_model=StandingStatus)
def get_own_status(
    viewer: Student = Depends(current_student),
    engine: SyncEngine = Depends(get_sync_engine),
) -> StandingStatus:
    try:
        return engine.own_status(viewer)
    except StandingError as exc:
        raise _http_error(exc) from exc


@router.post("/me/refresh", response_model=StandingStatus)
def refresh_own_status(
    viewer: Student = Depends(current_student),
    engine: SyncEngine = Depends(get_sync_engine),
) -> StandingStatus:
    try:
        return engine.refresh_own_status(viewer)
    except StandingError as exc:
        raise _http_error(exc) from exc


@router.post("/detail", response_model=StandingDetail)
def get_detail_as(
    payload: DetailRequest,
    viewer: Student = Depends(current_student),
    engine: SyncEngine = Depends(get_sync_engine),
) -> StandingDetail:
    try:
        return engine.detail_as(
            viewer,
            payload.grade,
            payload.class_no,
            payload.student_no,
            payload.password,
        )
    except StandingError as exc:
        raise _http_error(exc) from exc


@router.put("/privacy", response_model=PrivacyResponse)
def set_privacy(
    payload: PrivacyRequest,
    viewer: Student = Depends(current_student),
    ranking: RankingService = Depends(get_ranking_service),
) -> PrivacyResponse:
    try:
        metadata = ranking.update_privacy(viewer, payload.private)
    except StandingError as exc:
        raise _http_error(exc) from exc
    return PrivacyResponse(private=metadata.private_ranking)


@router.get("/ranking", response_model=List[RankingEntry])
def get_ranking(
    viewer: Student = Depends(current_student),
    ranking: RankingService = Depends(get_ranking_service),
) -> List[RankingEntry]:
    try:
        return ranking.get_ranking(viewer)
    except StandingError as exc:
        raise _http_error(exc) from exc
