# chat_client.py - Python client for the chat gateway API
import os
import time
import logging

import requests

from sse import iter_deltas

logger = logging.getLogger("chat_gateway.client")

DEFAULT_BASE_URL = os.getenv("CHAT_BACKEND_URL", "http://localhost:5000")

FALLBACK_MODELS = [
    {"id": "gpt-3.5-turbo", "object": "model", "litellm_provider": "openai"},
    {"id": "gpt-4", "object": "model", "litellm_provider": "openai"},
    {"id": "claude-3-haiku-20240307", "object": "model", "litellm_provider": "anthropic"},
    {"id": "claude-3-sonnet-20240229", "object": "model", "litellm_provider": "anthropic"},
    {"id": "gemini-pro", "object": "model", "litellm_provider": "vertex_ai"},
]


class ChatClientError(Exception):
    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class AuthError(ChatClientError):
    pass


def model_provider(entry):
    """Best guess at which provider serves a LiteLLM model entry."""
    params = entry.get("litellm_params") or {}
    info = entry.get("model_info") or {}
    return (
        params.get("custom_llm_provider")
        or info.get("litellm_provider")
        or params.get("litellm_provider")
        or entry.get("litellm_provider")
        or "openai"
    )


def normalize_models(data):
    """
    Reduce the gateway's model listing to [{id, object, litellm_provider}].

    Accepts LiteLLM's {"data": [...]}, a bare list, or one model object.
    Returns None when the payload has none of those shapes.
    """
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        entries = data["data"]
    elif isinstance(data, list):
        entries = data
    elif isinstance(data, dict) and (data.get("id") or data.get("model_name")):
        entries = [data]
    else:
        return None

    models = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        model_id = entry.get("model_name") or entry.get("id") or entry.get("name")
        if model_id:
            models.append({"id": model_id, "object": "model", "litellm_provider": model_provider(entry)})
    return models


def mock_reply(messages):
    last = messages[-1]["content"] if messages else ""
    reply = f'I\'m a mock response since the backend proxy is not available. You asked: "{last}"'
    lowered = last.lower()
    if "code" in lowered or "function" in lowered or "python" in lowered:
        reply += (
            "\n\nHere's a sample Python function:\n\n```python\ndef hello_world():\n"
            "    print(\"Hello, World!\")\n    return \"Success\"\n\n# Call the function\n"
            "hello_world()\n```\n\nThis is just a mock response for testing purposes."
        )
    return reply


def mock_stream(messages, delay=0.1):
    for i, word in enumerate(mock_reply(messages).split(" ")):
        if delay:
            time.sleep(delay)
        yield word if i == 0 else " " + word


class ChatClient:
    """Thin wrapper over the REST/SSE API; keeps the bearer token between calls."""

    def __init__(self, base_url=DEFAULT_BASE_URL, token=None, timeout=30, session=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()
        self.user = None

    # ---------- plumbing ----------

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _check(self, resp):
        if resp.status_code < 400:
            return resp
        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text
        message = payload.get("error") if isinstance(payload, dict) else None
        message = message or f"HTTP {resp.status_code}"
        if resp.status_code in (401, 403):
            # stale or missing token: forget it so the caller logs in again
            self.token = None
            raise AuthError(message, resp.status_code, payload)
        raise ChatClientError(message, resp.status_code, payload)

    def _request(self, method, path, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = self.http.request(method, f"{self.base_url}{path}", headers=self._headers(), **kwargs)
        except requests.RequestException as e:
            raise ChatClientError(f"Backend unreachable: {e}") from e
        return self._check(resp)

    def _stream_lines(self, path, payload):
        resp = self._request("POST", path, json=payload, stream=True)
        try:
            yield from resp.iter_lines(decode_unicode=True)
        finally:
            resp.close()

    # ---------- health / auth ----------

    def health(self):
        try:
            self._request("GET", "/api/health")
        except ChatClientError as e:
            logger.warning("Health check failed: %s", e)
            return False
        return True

    def login(self, username, password):
        data = self._request("POST", "/api/login", json={"username": username, "password": password}).json()
        self.token = data["token"]
        self.user = data.get("user")
        return self.user

    def logout(self):
        self.token = None
        self.user = None

    # ---------- models / completions ----------

    def list_models(self):
        """Models from the gateway, or FALLBACK_MODELS when it cannot be reached."""
        try:
            data = self._request("GET", "/api/models", timeout=5).json()
        except (ChatClientError, ValueError) as e:
            logger.info("Model fetch failed (%s). Using fallback models.", e)
            return list(FALLBACK_MODELS)
        models = normalize_models(data)
        if models is None:
            logger.warning("Unexpected model info response format: %r", data)
            return list(FALLBACK_MODELS)
        return models

    def complete(self, messages, model):
        data = self._request("POST", "/api/chat/completions", json={"model": model, "messages": messages}).json()
        return data["choices"][0]["message"]["content"]

    def stream_completion(self, messages, model, mock_delay=0.1):
        """
        Yield reply text pieces from the streaming proxy.

        A backend that cannot be reached at all yields a mock reply instead.
        """
        try:
            lines = self._stream_lines("/api/chat/completions/stream", {"model": model, "messages": messages})
            first = next(lines, None)
        except ChatClientError as e:
            if e.status_code is not None:
                raise
            logger.info("Connection failed, providing mock response")
            yield from mock_stream(messages, delay=mock_delay)
            return
        if first is None:
            return
        try:
            yield from iter_deltas(_prepend(first, lines))
        finally:
            lines.close()

    # ---------- sessions ----------

    def list_sessions(self):
        return self._request("GET", "/api/sessions").json()

    def create_session(self, title=None):
        payload = {"title": title} if title else {}
        return self._request("POST", "/api/sessions", json=payload).json()

    def rename_session(self, session_id, title):
        return self._request("PATCH", f"/api/sessions/{session_id}", json={"title": title}).json()

    def delete_session(self, session_id):
        self._request("DELETE", f"/api/sessions/{session_id}")

    def get_messages(self, session_id):
        return self._request("GET", f"/api/sessions/{session_id}/messages").json()

    def stream_session_chat(self, session_id, message, model=None, role_id=None):
        payload = {"message": message}
        if model:
            payload["model"] = model
        if role_id:
            payload["role_id"] = role_id
        lines = self._stream_lines(f"/api/sessions/{session_id}/chat/stream", payload)
        try:
            yield from iter_deltas(lines)
        finally:
            lines.close()

    # ---------- roles ----------

    def list_roles(self):
        return self._request("GET", "/api/roles").json()

    def create_role(self, name, instructions):
        return self._request("POST", "/api/roles", json={"name": name, "instructions": instructions}).json()

    def update_role(self, role_id, name=None, instructions=None):
        patch = {k: v for k, v in (("name", name), ("instructions", instructions)) if v}
        return self._request("PUT", f"/api/roles/{role_id}", json=patch).json()

    def delete_role(self, role_id):
        self._request("DELETE", f"/api/roles/{role_id}")


def _prepend(first, rest):
    yield first
    yield from rest
