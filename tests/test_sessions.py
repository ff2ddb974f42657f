import uuid

from config import db
from models import Session, Message


def create(client, headers, **body):
    resp = client.post("/api/sessions", json=body, headers=headers)
    assert resp.status_code == 201
    return resp.get_json()


def test_create_session_defaults_title(client, auth_headers):
    s = create(client, auth_headers)
    assert s["title"] == "New Chat"
    assert uuid.UUID(s["id"])
    assert s["created_at"] and s["updated_at"]


def test_create_session_with_title(client, auth_headers):
    assert create(client, auth_headers, title="  Trip plans ")["title"] == "Trip plans"


def test_create_session_rejects_long_title(client, auth_headers):
    resp = client.post("/api/sessions", json={"title": "x" * 121}, headers=auth_headers)
    assert resp.status_code == 400


def test_list_sessions_most_recent_first(client, auth_headers, fake_stream):
    first = create(client, auth_headers, title="first")
    create(client, auth_headers, title="second")
    fake_stream(["ok"])
    client.post(f"/api/sessions/{first['id']}/chat/stream", json={"message": "hi"}, headers=auth_headers).get_data()

    titles = [s["title"] for s in client.get("/api/sessions", headers=auth_headers).get_json()]
    assert titles == ["first", "second"]


def test_get_and_rename_session(client, auth_headers):
    s = create(client, auth_headers)
    resp = client.patch(f"/api/sessions/{s['id']}", json={"title": "Renamed"}, headers=auth_headers)
    assert resp.status_code == 200
    assert client.get(f"/api/sessions/{s['id']}", headers=auth_headers).get_json()["title"] == "Renamed"


def test_session_id_must_be_uuid(client, auth_headers):
    resp = client.get("/api/sessions/not-a-uuid/messages", headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Validation failed"


def test_missing_session_is_404(client, auth_headers):
    missing = str(uuid.uuid4())
    assert client.get(f"/api/sessions/{missing}", headers=auth_headers).status_code == 404
    assert client.delete(f"/api/sessions/{missing}", headers=auth_headers).status_code == 404


def test_delete_session_removes_messages(app, client, auth_headers, fake_stream):
    s = create(client, auth_headers)
    fake_stream(["Hello", " there"])
    client.post(f"/api/sessions/{s['id']}/chat/stream", json={"message": "hi"}, headers=auth_headers).get_data()
    assert Message.query.filter_by(session_id=s["id"]).count() == 2

    resp = client.delete(f"/api/sessions/{s['id']}", headers=auth_headers)
    assert resp.status_code == 204
    assert db.session.get(Session, s["id"]) is None
    assert Message.query.filter_by(session_id=s["id"]).count() == 0
