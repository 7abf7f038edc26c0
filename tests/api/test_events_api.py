import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.crud import crud_event
from app.utils.qr import decode_qr, encode_qr_png

from tests.utils.auth import create_moderator, get_moderator_authentication_headers


def test_create_event_becomes_current(client: TestClient, moderator_headers):
    response = client.post(
        "/api/v1/events", headers=moderator_headers, json={"title": "Town Hall"}
    )
    assert response.status_code == 201
    created = response.json()
    assert len(created["event_code"]) == 6
    assert created["join_url"].endswith(f"/session/{created['event_code']}")

    current = client.get("/api/v1/events/current", headers=moderator_headers)
    assert current.status_code == 200
    assert current.json()["id"] == created["id"]


def test_create_event_requires_title(client: TestClient, moderator_headers):
    response = client.post("/api/v1/events", headers=moderator_headers, json={"title": "  "})
    assert response.status_code == 422


def test_create_event_requires_auth(client: TestClient):
    assert client.post("/api/v1/events", json={"title": "Town Hall"}).status_code == 401


def test_no_current_event(client: TestClient, moderator_headers):
    response = client.get("/api/v1/events/current", headers=moderator_headers)
    assert response.status_code == 404


def test_current_event_falls_back_to_latest_active(client: TestClient, event, moderator_headers):
    response = client.get("/api/v1/events/current", headers=moderator_headers)
    assert response.status_code == 200
    assert response.json()["id"] == event.id


def test_other_moderators_event_is_hidden(client: TestClient, db_session, event):
    stranger = create_moderator(db_session, email="stranger@example.com")
    headers = get_moderator_authentication_headers(db_session, stranger)
    response = client.get(f"/api/v1/events/{event.id}", headers=headers)
    assert response.status_code == 404


def test_toggle_accepting_requests(client: TestClient, event, moderator_headers):
    response = client.patch(
        f"/api/v1/events/{event.id}/accepting-requests",
        headers=moderator_headers,
        json={"accepting_requests": False},
    )
    assert response.status_code == 200
    assert response.json()["accepting_requests"] is False


def test_end_event_twice(client: TestClient, event, moderator_headers, published):
    first = client.post(f"/api/v1/events/{event.id}/end", headers=moderator_headers)
    assert first.status_code == 200
    assert first.json()["is_active"] is False
    published.reset_mock()

    second = client.post(f"/api/v1/events/{event.id}/end", headers=moderator_headers)
    assert second.status_code == 200
    assert second.json()["is_active"] is False
    published.publish.assert_not_called()


def test_qr_png_encodes_join_url(client: TestClient, event, moderator_headers):
    response = client.get(
        f"/api/v1/events/{event.id}/qr.png?size=300", headers=moderator_headers
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert decode_qr(response.content).endswith(f"/session/{event.event_code}")


@pytest.mark.parametrize("size", [64, 300, 512])
def test_qr_png_decodes_with_production_base_url(
    client: TestClient, event, moderator_headers, monkeypatch, size
):
    monkeypatch.setattr(settings, "APP_BASE_URL", "https://speaker-queue.example.org")
    response = client.get(
        f"/api/v1/events/{event.id}/qr.png?size={size}", headers=moderator_headers
    )
    assert response.status_code == 200
    assert decode_qr(response.content) == (
        f"https://speaker-queue.example.org/session/{event.event_code}"
    )


def test_join_by_code_is_case_insensitive(client: TestClient, event):
    response = client.get(f"/api/v1/events/join/{event.event_code.lower()}")
    assert response.status_code == 200
    content = response.json()
    assert content["id"] == event.id
    assert "moderator_id" not in content


def test_join_rejects_wrong_length_and_unknown_codes(client: TestClient, event):
    for code in ("ABC", "ABCDEFG", "0O0O0O"):
        response = client.get(f"/api/v1/events/join/{code}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Event not found"


def test_join_ended_event_is_not_found(client: TestClient, db_session, event):
    crud_event.event.deactivate(db_session, db_obj=event)
    assert client.get(f"/api/v1/events/join/{event.event_code}").status_code == 404


def test_join_by_scanned_join_url(client: TestClient, event):
    png = encode_qr_png(f"http://localhost:5173/session/{event.event_code}", size=300)
    response = client.post(
        "/api/v1/events/join/scan", files={"image": ("qr.png", png, "image/png")}
    )
    assert response.status_code == 200
    assert response.json()["id"] == event.id


def test_join_by_scan_rejects_non_images(client: TestClient):
    response = client.post(
        "/api/v1/events/join/scan", files={"image": ("qr.png", b"nope", "image/png")}
    )
    assert response.status_code == 400
