"""Pure helpers that turn portal HTML into score and point totals.

The portal has no structured API. Pages are parsed with BeautifulSoup and the
numbers are read from cell and page text, so markup inside a cell (``<b>``,
``<span>``) does not hide a value. Absence of a score is normal (new students
have none yet); a blank, non-text or unparsable payload is not.
"""

from __future__ import annotations

import logging
import re
from typing import Tuple

from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from .domain import AcademicSnapshot
from .errors import ParseError

logger = logging.getLogger(__name__)

DECIMAL = re.compile(r"^(\d+(?:\.\d+)?|\.\d+)$")
# "(상점 : 3" is a merit entry, "(벌점 : 1" a demerit entry. Counts may be blank.
POINT_MARKER = re.compile(r"\(\s*(상점|벌점)\s*:\s*(\d*)")
MERIT = "상점"


def _soup(html: object, label: str) -> BeautifulSoup:
    if not isinstance(html, str):
        raise ParseError(f"{label} payload is not text ({type(html).__name__}).")
    if not html.strip():
        raise ParseError(f"{label} payload is empty.")
    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseError(f"{label} payload could not be parsed: {exc}") from exc
    if soup.find(True) is None and not soup.get_text(strip=True):
        raise ParseError(f"{label} payload has no markup or text.")
    return soup


def extract_score(html: str) -> float:
    """Return the first ``<td>`` whose text is a decimal, or ``0.0`` when none is."""
    soup = _soup(html, "Score")
    for cell in soup.find_all("td"):
        match = DECIMAL.match(cell.get_text(strip=True))
        if match:
            return float(match.group(1))
    return 0.0


def extract_points(html: str) -> Tuple[int, int]:
    """Sum every merit and demerit count on the listing page."""
    text = _soup(html, "Point").get_text(" ")
    positive = negative = 0
    for match in POINT_MARKER.finditer(text):
        kind, raw_count = match.group(1), match.group(2)
        if not raw_count:
            logger.debug("Skipping %s entry without a count at offset %s", kind, match.start())
            continue
        if kind == MERIT:
            positive += int(raw_count)
        else:
            negative += int(raw_count)
    return positive, negative


def extract_snapshot(score_html: str, point_html: str) -> AcademicSnapshot:
    score = extract_score(score_html)
    positive, negative = extract_points(point_html)
    return AcademicSnapshot(
        score=score,
        positive_point=positive,
        negative_point=negative,
        score_raw_html=score_html,
        point_raw_html=point_html,
    )


__all__ = ["extract_points", "extract_score", "extract_snapshot"]
