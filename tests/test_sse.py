from sse import format_event, parse_data_line, delta_content, iter_deltas


def test_format_event_encodes_dicts():
    assert format_event({"a": 1}) == 'data: {"a": 1}\n\n'
    assert format_event("[DONE]") == "data: [DONE]\n\n"


def test_parse_data_line():
    assert parse_data_line(b"data: {}\n") == "{}"
    assert parse_data_line(": keep-alive") is None
    assert parse_data_line("") is None


def test_delta_content_tolerates_missing_parts():
    assert delta_content({"choices": []}) == ""
    assert delta_content({"choices": [{"delta": {}}]}) == ""
    assert delta_content("nope") == ""


def test_iter_deltas_stops_at_done_and_skips_noise():
    lines = [
        'data: {"choices": [{"delta": {"content": "Hel"}}]}',
        "",
        "data: not json",
        'data: {"choices": [{"delta": {"role": "assistant"}}]}',
        'data: {"choices": [{"delta": {"content": "lo"}}]}',
        "data: [DONE]",
        'data: {"choices": [{"delta": {"content": "ignored"}}]}',
    ]
    assert list(iter_deltas(lines)) == ["Hel", "lo"]
