from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from standing.dependencies import get_ranking_service, get_record_store, get_sync_engine
from standing.main import app
from standing.ranking import RankingService


@pytest.fixture()
def client(store, engine, clock, settings) -> Iterator[TestClient]:
    ranking = RankingService(store, settings=settings, clock=clock)
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_sync_engine] = lambda: engine
    app.dependency_overrides[get_ranking_service] = lambda: ranking
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _as(student_id: str) -> dict:
    return {"X-Student-Id": student_id}


def test_missing_header_is_rejected(client) -> None:
    assert client.get("/api/standing/me").status_code == 422


def test_unknown_student_is_unauthorized(client) -> None:
    response = client.get("/api/standing/me", headers=_as("9999"))
    assert response.status_code == 401


def test_own_status_returns_numbers(client, make_student) -> None:
    make_student("1101")

    response = client.get("/api/standing/me", headers=_as("1101"))

    assert response.status_code == 200
    body = response.json()
    assert body["score"] == 80.0
    assert body["positive_point"] == 2
    assert body["login_error"] is False


def test_own_status_with_login_error_omits_numbers(client, portal, make_student) -> None:
    make_student("1101")
    portal.passwords["1101"] = "secret"

    body = client.post("/api/standing/me/refresh", headers=_as("1101")).json()

    assert body["login_error"] is True
    assert body["score"] is None


def test_portal_outage_is_bad_gateway(client, portal, make_student) -> None:
    make_student("1101")
    portal.unreachable.add("1101")

    response = client.post("/api/standing/me/refresh", headers=_as("1101"))

    assert response.status_code == 502


def test_detail_of_unknown_student_is_not_found(client, make_student) -> None:
    make_student("1101")
    client.get("/api/standing/me", headers=_as("1101"))

    response = client.post(
        "/api/standing/detail",
        headers=_as("1101"),
        json={"grade": 3, "class_no": 4, "student_no": 18},
    )

    assert response.status_code == 404


def test_detail_with_password_returns_raw_payloads(client, portal, make_student) -> None:
    make_student("1101")
    make_student("1102", student_no=2)
    portal.passwords["1102"] = "target-pw"
    client.get("/api/standing/me", headers=_as("1101"))

    response = client.post(
        "/api/standing/detail",
        headers=_as("1101"),
        json={"grade": 1, "class_no": 1, "student_no": 2, "password": "target-pw"},
    )

    assert response.status_code == 200
    assert response.json()["point_raw_html"] == "(상점 : 2) (벌점 : 1)"


def test_detail_request_validates_numbers(client, make_student) -> None:
    make_student("1101")
    response = client.post(
        "/api/standing/detail",
        headers=_as("1101"),
        json={"grade": 0, "class_no": 1, "student_no": 1},
    )
    assert response.status_code == 422


def test_privacy_toggle_then_rate_limited(client, make_student) -> None:
    make_student("1101")
    client.get("/api/standing/me", headers=_as("1101"))

    first = client.put("/api/standing/privacy", headers=_as("1101"), json={"private": True})
    second = client.put("/api/standing/privacy", headers=_as("1101"), json={"private": False})

    assert first.status_code == 200
    assert first.json() == {"private": True}
    assert second.status_code == 429
    assert second.json()["detail"]["remaining_seconds"] == 24 * 3600
    assert second.headers["Retry-After"] == str(24 * 3600)


def test_private_viewer_gets_forbidden_ranking(client, make_student) -> None:
    make_student("1101")
    client.get("/api/standing/me", headers=_as("1101"))
    client.put("/api/standing/privacy", headers=_as("1101"), json={"private": True})

    response = client.get("/api/standing/ranking", headers=_as("1101"))

    assert response.status_code == 403


def test_ranking_lists_entries(client, make_student) -> None:
    make_student("1101", name="Kim")
    make_student("1102", student_no=2, name="Lee")
    client.get("/api/standing/me", headers=_as("1101"))
    client.get("/api/standing/me", headers=_as("1102"))

    response = client.get("/api/standing/ranking", headers=_as("1101"))

    assert response.status_code == 200
    entries = response.json()
    assert [entry["student"]["name"] for entry in entries] == ["Kim", "Lee"]
    assert all(entry["result"] == "SUCCESS" for entry in entries)


def test_detail_with_wrong_password_is_bad_request(client, store, make_student) -> None:
    make_student("1101")
    make_student("1102", student_no=2)
    client.get("/api/standing/me", headers=_as("1101"))
    client.get("/api/standing/me", headers=_as("1102"))

    response = client.post(
        "/api/standing/detail",
        headers=_as("1101"),
        json={"grade": 1, "class_no": 1, "student_no": 2, "password": "guess"},
    )

    assert response.status_code == 400
    assert store.get_metadata("1102").login_error is False
