# sse.py - Server-Sent-Events framing shared by the proxy and the client
import json

DONE = "[DONE]"
DATA_PREFIX = "data: "


def format_event(data):
    """Frame one SSE event. Dicts are JSON-encoded, strings are sent as-is."""
    if not isinstance(data, str):
        data = json.dumps(data)
    return f"{DATA_PREFIX}{data}\n\n"


def parse_data_line(line):
    """Return the payload of a `data: ...` line, or None for any other line."""
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):]


def delta_content(payload):
    """Pull choices[0].delta.content out of a decoded chunk; '' when absent."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices") or []
    if not choices:
        return ""
    delta = choices[0].get("delta") or {}
    return delta.get("content") or ""


def iter_deltas(lines):
    """
    Walk SSE lines and yield the text deltas they carry.

    Stops at the [DONE] sentinel. Lines that are not JSON are skipped.
    """
    for line in lines:
        data = parse_data_line(line)
        if data is None:
            continue
        if data == DONE:
            return
        try:
            payload = json.loads(data)
        except ValueError:
            continue
        content = delta_content(payload)
        if content:
            yield content
