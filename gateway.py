# gateway.py - calls to the upstream LLM gateway (LiteLLM / OpenAI-compatible)
import json

import openai
import requests

from config import client, logger, LLM_GATEWAY_URL, LLM_GATEWAY_API_KEY, MODELS_TIMEOUT
from sse import format_event, DONE

CONNECT_ERROR = "Failed to connect to LLM gateway"


class GatewayError(Exception):
    """An upstream failure, carrying the HTTP status to relay to our caller."""

    def __init__(self, status_code, message, details=None, connect_failed=False):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
        self.connect_failed = connect_failed


def json_safe(data):
    """Make an upstream error payload safe to put in a JSON response."""
    if data is None or isinstance(data, (str, int, float, bool)):
        return data
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    try:
        return json.loads(json.dumps(data, default=str))
    except (TypeError, ValueError):
        return "[Non-serializable error data]"


def _from_openai_error(e):
    if isinstance(e, openai.APIStatusError):
        details = e.body if e.body is not None else e.message
        return GatewayError(e.status_code, str(e), json_safe(details))
    # no response at all: connection refused, DNS, timeout
    return GatewayError(500, str(e), connect_failed=True)


def split_body(body):
    """Split a chat request body into (model, messages, extra params for the SDK)."""
    extra = dict(body or {})
    model = extra.pop("model", None)
    messages = extra.pop("messages", None)
    extra.pop("stream", None)
    return model, messages, extra


def fetch_model_info():
    """GET {gateway}/v1/model/info and return the decoded JSON as-is."""
    headers = {"accept": "application/json"}
    if LLM_GATEWAY_API_KEY:
        headers["x-litellm-api-key"] = LLM_GATEWAY_API_KEY
    try:
        resp = requests.get(f"{LLM_GATEWAY_URL}/v1/model/info", headers=headers, timeout=MODELS_TIMEOUT)
    except requests.RequestException as e:
        raise GatewayError(500, str(e), connect_failed=True) from e

    logger.debug("Models response status: %s", resp.status_code)
    if resp.status_code >= 400:
        try:
            details = resp.json()
        except ValueError:
            details = resp.text
        raise GatewayError(resp.status_code, f"Gateway returned {resp.status_code}", json_safe(details))
    try:
        return resp.json()
    except ValueError as e:
        raise GatewayError(502, "Gateway returned invalid JSON", resp.text) from e


def create_completion(body):
    """Forward a non-streaming chat completion; returns the completion as a dict."""
    model, messages, extra = split_body(body)
    try:
        completion = client.chat.completions.create(
            model=model, messages=messages, extra_body=extra or None
        )
    except openai.APIError as e:
        raise _from_openai_error(e) from e
    return completion.model_dump(exclude_unset=True)


def open_completion_stream(body):
    """
    Start a streaming chat completion.

    HTTP errors surface here, before any byte reaches our client, so callers
    can still answer with a proper status code.
    """
    model, messages, extra = split_body(body)
    try:
        return client.chat.completions.create(
            model=model, messages=messages, stream=True, extra_body=extra or None
        )
    except openai.APIError as e:
        raise _from_openai_error(e) from e


def chunk_delta(chunk):
    if not chunk.choices:
        return ""
    delta = chunk.choices[0].delta
    return (delta.content if delta else None) or ""


def relay(stream, on_finish=None):
    """
    Re-emit upstream chunks as SSE events, then the [DONE] sentinel.

    `on_finish` receives the concatenated delta text once the stream is over,
    whether it completed, failed midway or the client went away.
    """
    parts = []
    try:
        for chunk in stream:
            text = chunk_delta(chunk)
            if text:
                parts.append(text)
            yield format_event(chunk.model_dump_json(exclude_unset=True))
        yield format_event(DONE)
    except Exception:
        logger.exception("❌ Stream error from LLM gateway")
    finally:
        stream.close()
        if on_finish is not None:
            on_finish("".join(parts))
