import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.crud import crud_event
from app.models.speaking_request import SpeakingRequest
from app.schemas.realtime import ChangeEvent, ChangeType

from tests.utils.speaking_request import create_request


def _submit(client, event_code, name="Ada", question="When is the vote?"):
    return client.post(
        f"/api/v1/sessions/{event_code}/requests",
        json={"attendee_name": name, "question": question},
    )


def test_session_snapshot_for_open_event(client: TestClient, event):
    response = client.get(f"/api/v1/sessions/{event.event_code}")
    assert response.status_code == 200
    content = response.json()
    assert content["state"] == "default"
    assert content["event"]["id"] == event.id
    assert content["request"] is None


def test_session_snapshot_for_ended_event(client: TestClient, db_session, event):
    crud_event.event.deactivate(db_session, db_obj=event)
    response = client.get(f"/api/v1/sessions/{event.event_code}")
    assert response.json()["state"] == "ended"


def test_unknown_event_code(client: TestClient):
    assert client.get("/api/v1/sessions/NOPE00").status_code == 404


def test_submit_queues_first_request_at_position_one(client: TestClient, event):
    response = _submit(client, event.event_code.lower())
    assert response.status_code == 201
    content = response.json()
    assert content["state"] == "queued"
    assert content["queue_position"] == 1
    assert content["request"]["status"] == "pending"


def test_resume_with_request_id(client: TestClient, event):
    request_id = _submit(client, event.event_code).json()["request"]["id"]
    response = client.get(
        f"/api/v1/sessions/{event.event_code}", params={"request_id": request_id}
    )
    assert response.json()["state"] == "queued"


@pytest.mark.parametrize("name, question", [("", "Why?"), ("Ada", "   ")])
def test_blank_fields_are_rejected(client: TestClient, db_session, event, name, question):
    response = _submit(client, event.event_code, name=name, question=question)
    assert response.status_code == 422
    assert db_session.query(SpeakingRequest).count() == 0


def test_submit_when_not_accepting(client: TestClient, db_session, event):
    crud_event.event.set_accepting_requests(db_session, db_obj=event, accepting=False)
    response = _submit(client, event.event_code)
    assert response.status_code == 409


def test_submit_after_event_ended(client: TestClient, db_session, event):
    crud_event.event.deactivate(db_session, db_obj=event)
    response = _submit(client, event.event_code)
    assert response.status_code == 410


def test_socket_pushes_snapshots_until_event_ends(client: TestClient, db_session, event, monkeypatch):
    request = create_request(db_session, event)

    async def feed(*subscriptions, client=None):
        yield ChangeEvent(
            table="speaking_requests",
            type=ChangeType.UPDATE,
            new={"id": request.id, "event_id": event.id, "status": "approved"},
        )
        yield ChangeEvent(
            table="events",
            type=ChangeType.UPDATE,
            new={"id": event.id, "is_active": False, "accepting_requests": True},
        )

    monkeypatch.setattr("app.services.change_feed.subscribe_many", feed)

    url = f"/api/v1/sessions/{event.event_code}/ws?request_id={request.id}"
    with client.websocket_connect(url) as ws:
        assert ws.receive_json()["state"] == "queued"
        assert ws.receive_json()["state"] == "speaking"
        assert ws.receive_json()["state"] == "ended"


def test_socket_for_unknown_event_is_refused(client: TestClient):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/sessions/NOPE00/ws"):
            pass
    assert exc_info.value.code == 1008
