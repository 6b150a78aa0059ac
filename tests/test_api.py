from __future__ import annotations

import pytest
from flask import Flask
from flask.testing import FlaskClient

from burnbin.db import Base, get_engine

NOW_HEADER = "X-Test-Now-Ms"


def _create(client: FlaskClient, payload: dict, now_ms: int | None = None) -> dict:
    headers = {NOW_HEADER: str(now_ms)} if now_ms is not None else {}
    resp = client.post("/api/pastes", json=payload, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _fetch(client: FlaskClient, paste_id: str, now_ms: int | None = None):
    headers = {NOW_HEADER: str(now_ms)} if now_ms is not None else {}
    return client.get(f"/api/pastes/{paste_id}", headers=headers)


def test_healthz(client: FlaskClient) -> None:
    resp = client.get("/api/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}


def test_correlation_id_is_echoed(client: FlaskClient) -> None:
    resp = client.get("/api/healthz", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"

    generated = client.get("/api/healthz")
    assert generated.headers["X-Correlation-ID"]


def test_create_returns_id_and_share_url(client: FlaskClient) -> None:
    body = _create(client, {"content": "hello"})
    assert set(body) == {"id", "url"}
    assert body["url"] == f"http://localhost/p/{body['id']}"


def test_create_uses_public_base_url(app: Flask, client: FlaskClient) -> None:
    app.config["PUBLIC_BASE_URL"] = "https://paste.example.com/"
    body = _create(client, {"content": "hello"})
    assert body["url"] == f"https://paste.example.com/p/{body['id']}"


@pytest.mark.parametrize(
    "payload, message",
    [
        ({}, "content required"),
        ({"content": ""}, "content required"),
        ({"content": "   "}, "content required"),
        ({"content": 42}, "content required"),
        ({"content": ["a"]}, "content required"),
        ({"content": "x", "ttl_seconds": 0}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": -5}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": "60"}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": 1.5}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": None}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": True}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "max_views": 0}, "max_views must be integer >= 1"),
        ({"content": "x", "max_views": "2"}, "max_views must be integer >= 1"),
        ({"content": "x", "max_views": False}, "max_views must be integer >= 1"),
        ({"ttl_seconds": 0, "max_views": 0}, "content required"),
        ({"content": "x", "ttl_seconds": 0, "max_views": 0}, "ttl_seconds must be integer >= 1"),
    ],
)
def test_create_validation_errors(client: FlaskClient, payload: dict, message: str) -> None:
    resp = client.post("/api/pastes", json=payload)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": message}


def test_create_with_non_json_body(client: FlaskClient) -> None:
    resp = client.post("/api/pastes", data="content=hello", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "content required"}


def test_create_accepts_integral_floats(client: FlaskClient) -> None:
    body = _create(client, {"content": "x", "ttl_seconds": 60.0, "max_views": 2.0}, now_ms=0)
    resp = _fetch(client, body["id"], now_ms=0)
    assert resp.get_json()["remaining_views"] == 1
    assert resp.get_json()["expires_at"] == "1970-01-01T00:01:00.000Z"


def test_max_views_countdown(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "hello", "max_views": 2})["id"]

    first = _fetch(client, paste_id)
    assert first.status_code == 200
    assert first.get_json() == {"content": "hello", "remaining_views": 1, "expires_at": None}

    second = _fetch(client, paste_id)
    assert second.status_code == 200
    assert second.get_json()["remaining_views"] == 0

    third = _fetch(client, paste_id)
    assert third.status_code == 404
    assert third.get_json() == {"error": "Paste not found"}


def test_ttl_expiry_with_injected_clock(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "x", "ttl_seconds": 60}, now_ms=0)["id"]

    ok = _fetch(client, paste_id, now_ms=59_000)
    assert ok.status_code == 200
    assert ok.get_json() == {
        "content": "x",
        "remaining_views": None,
        "expires_at": "1970-01-01T00:01:00.000Z",
    }

    gone = _fetch(client, paste_id, now_ms=60_001)
    assert gone.status_code == 404
    assert gone.get_json() == {"error": "Paste not found"}


def test_denials_are_indistinguishable(client: FlaskClient) -> None:
    expired_id = _create(client, {"content": "x", "ttl_seconds": 1}, now_ms=0)["id"]
    exhausted_id = _create(client, {"content": "y", "max_views": 1})["id"]
    _fetch(client, exhausted_id)

    expired = _fetch(client, expired_id, now_ms=5_000)
    exhausted = _fetch(client, exhausted_id)
    unknown = _fetch(client, "00000000-0000-0000-0000-000000000000")

    assert expired.status_code == exhausted.status_code == unknown.status_code == 404
    assert expired.get_json() == exhausted.get_json() == unknown.get_json()


def test_test_clock_header_ignored_outside_test_mode(app: Flask, client: FlaskClient) -> None:
    app.config["TEST_MODE"] = False
    paste_id = _create(client, {"content": "x", "ttl_seconds": 60}, now_ms=0)["id"]

    # Expiry was computed from the wall clock, so a far-past header is ignored.
    resp = _fetch(client, paste_id, now_ms=10**15)
    assert resp.status_code == 200
    assert resp.get_json()["expires_at"] > "2000"


def test_unparsable_test_clock_header_falls_back_to_wall_clock(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "x", "ttl_seconds": 60})["id"]
    resp = client.get(f"/api/pastes/{paste_id}", headers={NOW_HEADER: "not-a-number"})
    assert resp.status_code == 200


def test_strict_view_limit_config(app: Flask, client: FlaskClient) -> None:
    app.config["STRICT_VIEW_LIMIT"] = True
    paste_id = _create(client, {"content": "x", "max_views": 1})["id"]
    assert _fetch(client, paste_id).status_code == 200
    assert _fetch(client, paste_id).status_code == 404


def test_rendered_page_escapes_markup(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "<b>hi</b> & bye"})["id"]

    resp = client.get(f"/p/{paste_id}")
    assert resp.status_code == 200
    assert resp.mimetype == "text/html"
    html = resp.get_data(as_text=True)
    assert "&lt;b&gt;hi&lt;/b&gt; &amp; bye" in html
    assert "<b>hi</b>" not in html


def test_rendered_page_counts_as_a_view(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "once", "max_views": 1})["id"]

    assert client.get(f"/p/{paste_id}").status_code == 200

    resp = client.get(f"/p/{paste_id}")
    assert resp.status_code == 404
    assert resp.mimetype == "text/plain"
    assert resp.get_data(as_text=True) == "Paste not found"

    assert _fetch(client, paste_id).status_code == 404


def test_rendered_page_respects_expiry(client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "x", "ttl_seconds": 1}, now_ms=0)["id"]
    resp = client.get(f"/p/{paste_id}", headers={NOW_HEADER: "1001"})
    assert resp.status_code == 404


def test_storage_failure_is_opaque(app: Flask, client: FlaskClient) -> None:
    paste_id = _create(client, {"content": "x"})["id"]
    Base.metadata.drop_all(get_engine())

    resp = client.post("/api/pastes", json={"content": "x"})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}

    resp = _fetch(client, paste_id)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}

    page = client.get(f"/p/{paste_id}")
    assert page.status_code == 500
    assert "sqlite" not in page.get_data(as_text=True).lower()


@pytest.mark.parametrize(
    "payload, message",
    [
        ({"content": "x", "ttl_seconds": 10**13, "max_views": 1}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": 10**16}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "ttl_seconds": 1e300}, "ttl_seconds must be integer >= 1"),
        ({"content": "x", "max_views": 10**20}, "max_views must be integer >= 1"),
    ],
)
def test_create_rejects_limits_beyond_storage_range(
    client: FlaskClient,
    payload: dict,
    message: str,
) -> None:
    resp = client.post("/api/pastes", json=payload, headers={NOW_HEADER: "0"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": message}


def test_create_rejects_ttl_pushed_out_of_range_by_clock(client: FlaskClient) -> None:
    resp = client.post(
        "/api/pastes",
        json={"content": "x", "ttl_seconds": 60},
        headers={NOW_HEADER: str(10**17)},
    )
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "ttl_seconds must be integer >= 1"}


def test_longest_ttl_is_served_once(client: FlaskClient) -> None:
    paste_id = _create(
        client,
        {"content": "x", "ttl_seconds": 253_402_300_799, "max_views": 1},
        now_ms=0,
    )["id"]

    first = _fetch(client, paste_id, now_ms=0)
    assert first.status_code == 200
    assert first.get_json()["expires_at"] == "9999-12-31T23:59:59.000Z"

    assert _fetch(client, paste_id, now_ms=0).status_code == 404
