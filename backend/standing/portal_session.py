"""Short-lived, cookie-scoped session against the external standing portal.

The portal only speaks form-encoded POSTs behind a PHP session cookie, so a
session is one ``httpx.Client``: log in, fetch the two pages, log out, close.
Nothing is kept between operations.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Callable, Dict, Optional, Type

import httpx

from .config import Settings
from .domain import Student
from .errors import CredentialRejected, TransportError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/inc/common_json.php"
SCORE_PATH = "/_suCert/bssm/B002/jnv_201j.php"
POINT_PATH = "/ss/ss_a40j.php"
LOGOUT_PATH = "/logout.php"

COMMON_TRACK = "공통과정"
SOFTWARE_TRACK = "소프트웨어개발과"
EMBEDDED_TRACK = "임베디드소프트웨어과"
# From grade 2 the school splits classes 1-2 and 3+ into separate departments.
SOFTWARE_MAX_CLASS = 2

PortalFactory = Callable[[], "PortalSession"]


def account_track(grade: int, class_no: int) -> str:
    """Department name the portal expects for a student's login."""
    if grade < 1 or class_no < 1:
        raise ValueError(f"No portal track for grade={grade} class={class_no}.")
    if grade == 1:
        return COMMON_TRACK
    if class_no <= SOFTWARE_MAX_CLASS:
        return SOFTWARE_TRACK
    return EMBEDDED_TRACK


class PortalSession:
    """Context manager wrapping one authenticated portal visit."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PortalSession":
        return cls(settings.portal_base_url, timeout=settings.portal_timeout_seconds)

    def __enter__(self) -> "PortalSession":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def login(self, student: Student, password: str) -> None:
        form = {
            "caseBy": "login",
            "pw": password,
            "lgtype": "S",
            "hakgwa": account_track(student.grade, student.class_no),
            "hak": str(student.grade),
            "ban": str(student.class_no),
            "bun": str(student.student_no),
        }
        response = self._post(LOGIN_PATH, form)
        if not response.is_success or response.text != "true":
            logger.info(
                "Portal rejected login for student_id=%s (status=%s)",
                student.student_id,
                response.status_code,
            )
            raise CredentialRejected("The portal rejected the supplied password.")

    def fetch_score_html(self, student_id: str) -> str:
        return self._fetch(SCORE_PATH, {"caseBy": "getViewer", "uniqNo": student_id})

    def fetch_point_html(self) -> str:
        return self._fetch(POINT_PATH, {"caseBy": "listview", "pageNumber": "1", "onPageCnt": "100"})

    def logout(self) -> None:
        try:
            self._client.get(LOGOUT_PATH)
        except httpx.HTTPError as exc:
            logger.debug("Ignoring portal logout failure: %s", exc)

    def _fetch(self, path: str, form: Dict[str, str]) -> str:
        response = self._post(path, form)
        if not response.is_success:
            raise TransportError(f"Portal returned HTTP {response.status_code} for {path}.")
        return response.text

    def _post(self, path: str, form: Dict[str, str]) -> httpx.Response:
        try:
            return self._client.post(path, data=form)
        except httpx.HTTPError as exc:
            raise TransportError(f"Portal request to {path} failed: {exc}") from exc


__all__ = [
    "COMMON_TRACK",
    "EMBEDDED_TRACK",
    "PortalFactory",
    "PortalSession",
    "SOFTWARE_TRACK",
    "account_track",
]
