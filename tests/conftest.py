import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LLM_GATEWAY_URL"] = "http://gateway.test"
os.environ["AUTH_USERNAME"] = ""
os.environ["AUTH_PASSWORD"] = ""
os.environ["ALLOWED_ORIGINS"] = "http://localhost:3000,http://localhost:5173"
os.environ["CORS_ALLOW_ALL"] = "false"

import pytest
from openai.types.chat import ChatCompletionChunk

from app import app as flask_app
from config import db


@pytest.fixture
def app():
    flask_app.config["TESTING"] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/login", json={"username": "alice", "password": "pw"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


def make_chunk(content=None, finish_reason=None):
    delta = {"content": content} if content is not None else {}
    return ChatCompletionChunk.model_validate({
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "test-model",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    })


class FakeStream:
    """Stands in for the SDK's Stream: iterable chunks plus close()."""

    def __init__(self, chunks, fail_after=None):
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    def __iter__(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise RuntimeError("upstream went away")
            yield chunk

    def close(self):
        self.closed = True


@pytest.fixture
def fake_stream(monkeypatch):
    """Patch the gateway to stream the given text pieces; records request bodies."""
    import gateway

    calls = []

    def install(pieces, fail_after=None):
        stream = FakeStream([make_chunk(p) for p in pieces] + [make_chunk(finish_reason="stop")], fail_after)

        def fake_open(body):
            calls.append(body)
            return stream

        monkeypatch.setattr(gateway, "open_completion_stream", fake_open)
        return stream

    install.calls = calls
    return install
