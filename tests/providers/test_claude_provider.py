import io
import json

import pytest
import requests

from taskloop.core.primitives.messages import (
    TextBlock,
    ToolResultBlock,
    system_message,
    tool_result_message,
    user_message,
)
from taskloop.llm.base import (
    CompleteEvent,
    ContentDelta,
    ErrorEvent,
    LLMError,
    LLMParameters,
    StartEvent,
    StreamHandler,
    ToolReady,
)
from taskloop.llm.claude import ClaudeProvider, ClaudeStreamAccumulator
from taskloop.llm.http_client import iter_sse_events


class FakeResponse:
    def __init__(self, lines=(), status_code=200, body=None):
        self._lines = list(lines)
        self.status_code = status_code
        self._body = body
        self.closed = False

    @property
    def text(self):
        return json.dumps(self._body) if self._body is not None else ""

    def json(self):
        return self._body

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def close(self):
        self.closed = True


def sse(event_type, payload):
    payload = dict(payload, type=event_type)
    return [f"event: {event_type}", f"data: {json.dumps(payload)}", ""]


def tool_use_stream():
    return (
        sse("message_start", {"message": {"id": "msg_1", "model": "claude-test", "usage": {"input_tokens": 10}}})
        + [": keep-alive", ""]
        + sse("content_block_start", {"index": 0, "content_block": {"type": "text", "text": ""}})
        + sse("content_block_delta", {"index": 0, "delta": {"type": "text_delta", "text": "Let me check"}})
        + sse("content_block_stop", {"index": 0})
        + sse(
            "content_block_start",
            {"index": 1, "content_block": {"type": "tool_use", "id": "toolu_1", "name": "calc", "input": {}}},
        )
        + sse("content_block_delta", {"index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"expr'}})
        + sse(
            "content_block_delta",
            {"index": 1, "delta": {"type": "input_json_delta", "partial_json": 'ession": "2+2"}'}},
        )
        + sse("content_block_stop", {"index": 1})
        + sse("message_delta", {"delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 5}})
        + sse("message_stop", {})
    )


@pytest.fixture
def provider(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    return ClaudeProvider("claude-test")


def test_sse_parser_groups_multiline_data_and_skips_comments():
    events = list(iter_sse_events(["event: ping", "data: {", "data: }", "", ": comment", "data: [DONE]"]))

    assert [(e.event, e.data) for e in events] == [("ping", "{\n}"), (None, "[DONE]")]


def test_accumulator_emits_canonical_events_in_order():
    accumulator = ClaudeStreamAccumulator()
    events = []
    for item in iter_sse_events(tool_use_stream()):
        events.extend(accumulator.feed(item.json()))

    assert [type(e) for e in events] == [ContentDelta, ContentDelta, ToolReady, CompleteEvent]
    assert events[0].text == ""
    assert events[1].text == "Let me check"
    assert events[2].call.input == {"expression": "2+2"}

    response = events[-1].response
    assert response.text_content == "Let me check"
    assert [(c.id, c.name) for c in response.tool_calls] == [("toolu_1", "calc")]
    assert response.stop_reason == "tool_use"
    assert response.usage == {"input_tokens": 10, "output_tokens": 5}
    assert accumulator.finished


def test_tool_block_without_json_fragments_parses_as_empty_object():
    accumulator = ClaudeStreamAccumulator()
    accumulator.feed({"type": "content_block_start", "content_block": {"type": "tool_use", "id": "t", "name": "snap"}})

    events = accumulator.feed({"type": "content_block_stop", "index": 0})

    assert events[0].call.input == {}


def test_stream_posts_system_prompt_through_dedicated_field(provider, monkeypatch):
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None, stream=False):
        captured.update(url=url, payload=json, headers=headers, stream=stream)
        return FakeResponse(tool_use_stream())

    monkeypatch.setattr("taskloop.llm.http_client.requests.post", fake_post)
    messages = [system_message("You are terse."), user_message("2+2?")]
    params = LLMParameters(tools=[{"name": "calc", "description": "", "input_schema": {"type": "object"}}])

    events = list(provider.stream(messages, params))

    assert isinstance(events[0], StartEvent)
    assert isinstance(events[-1], CompleteEvent)
    assert captured["url"].endswith("/messages")
    assert captured["stream"] is True
    assert captured["headers"]["x-api-key"] == "test-key"
    payload = captured["payload"]
    assert payload["system"] == "You are terse."
    assert payload["messages"] == [{"role": "user", "content": "2+2?"}]
    assert payload["max_tokens"] == 4096
    assert payload["model"] == "claude-test"
    assert payload["tools"][0]["name"] == "calc"


def test_transport_error_becomes_error_event(provider, monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("connection reset")

    monkeypatch.setattr("taskloop.llm.http_client.requests.post", fake_post)

    events = list(provider.stream([user_message("hi")], LLMParameters()))

    assert isinstance(events[0], StartEvent)
    assert isinstance(events[-1], ErrorEvent)
    assert isinstance(events[-1].error, requests.ConnectionError)


def test_http_error_status_becomes_error_event(provider, monkeypatch):
    response = FakeResponse(status_code=529, body={"error": {"type": "overloaded_error"}})
    monkeypatch.setattr("taskloop.llm.http_client.requests.post", lambda *a, **k: response)

    events = list(provider.stream([user_message("hi")], LLMParameters()))

    assert isinstance(events[-1].error, LLMError)
    assert events[-1].error.status_code == 529
    assert response.closed


def test_wire_error_event_stops_stream(provider, monkeypatch):
    lines = sse("message_start", {"message": {"id": "m"}}) + sse(
        "error", {"error": {"type": "overloaded_error", "message": "Overloaded"}}
    )
    monkeypatch.setattr("taskloop.llm.http_client.requests.post", lambda *a, **k: FakeResponse(lines))

    events = list(provider.stream([user_message("hi")], LLMParameters()))

    assert len(events) == 2
    assert "Overloaded" in str(events[-1].error)


def test_generate_stream_drives_handler(provider, monkeypatch):
    monkeypatch.setattr("taskloop.llm.http_client.requests.post", lambda *a, **k: FakeResponse(tool_use_stream()))

    class Recorder(StreamHandler):
        def __init__(self):
            self.seen = []

        def on_start(self):
            self.seen.append("start")

        def on_content(self, text):
            self.seen.append(("content", text))

        def on_tool_use(self, call):
            self.seen.append(("tool", call.name))

        def on_complete(self, response):
            self.seen.append("complete")

    recorder = Recorder()
    provider.generate_stream([user_message("hi")], LLMParameters(), recorder)

    assert recorder.seen == ["start", ("content", ""), ("content", "Let me check"), ("tool", "calc"), "complete"]


def test_generate_text_parses_content_blocks(provider, monkeypatch):
    body = {
        "id": "msg_2",
        "content": [
            {"type": "text", "text": "Sure."},
            {"type": "tool_use", "id": "toolu_9", "name": "calc", "input": {"expression": "1+1"}},
        ],
        "stop_reason": "tool_use",
        "usage": {"input_tokens": 3, "output_tokens": 4},
    }
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured["payload"] = json
        return FakeResponse(body=body)

    monkeypatch.setattr("taskloop.llm.http_client.requests.post", fake_post)
    history = [
        user_message("add"),
        tool_result_message([ToolResultBlock(tool_use_id="toolu_0", content=[TextBlock("2")])]),
    ]

    response = provider.generate_text(history, LLMParameters(max_tokens=50, temperature=0))

    assert response.text_content == "Sure."
    assert response.tool_calls[0].input == {"expression": "1+1"}
    assert response.stop_reason == "tool_use"
    assert captured["payload"]["max_tokens"] == 50
    assert captured["payload"]["temperature"] == 0
    assert "system" not in captured["payload"]
    assert captured["payload"]["messages"][1]["content"][0]["type"] == "tool_result"


def test_missing_api_key_is_rejected(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(ValueError):
        ClaudeProvider()


def raw_event_stream(text_deltas, content_type):
    events = [("message_start", {"message": {"id": "msg_u"}})]
    events.append(("content_block_start", {"index": 0, "content_block": {"type": "text", "text": ""}}))
    for text in text_deltas:
        events.append(("content_block_delta", {"index": 0, "delta": {"type": "text_delta", "text": text}}))
    events += [
        ("content_block_stop", {"index": 0}),
        ("message_delta", {"delta": {"stop_reason": "end_turn"}}),
        ("message_stop", {}),
    ]
    body = "".join(
        f"event: {name}\ndata: {json.dumps(dict(payload, type=name), ensure_ascii=False)}\n\n"
        for name, payload in events
    )
    response = requests.Response()
    response.status_code = 200
    response.headers["Content-Type"] = content_type
    response.raw = io.BytesIO(body.encode("utf-8"))
    return response


@pytest.mark.parametrize("content_type", ["text/event-stream", "text/event-stream; charset=utf-8"])
def test_stream_decodes_utf8_text_and_unicode_line_separators(provider, monkeypatch, content_type):
    deltas = ["café 你好", "a\u2028b\u2029c\u0085d"]
    monkeypatch.setattr(
        "taskloop.llm.http_client.requests.post",
        lambda *a, **k: raw_event_stream(deltas, content_type),
    )

    events = list(provider.stream([user_message("hi")], LLMParameters()))

    assert isinstance(events[-1], CompleteEvent)
    assert [e.text for e in events if isinstance(e, ContentDelta) and e.text] == deltas
    assert events[-1].response.text_content == "".join(deltas)


def test_generate_text_ignores_unknown_content_blocks(provider, monkeypatch):
    body = {
        "content": [
            {"type": "thinking", "thinking": "adding numbers", "signature": "sig"},
            {"type": "redacted_thinking", "data": "opaque"},
            {"type": "text", "text": "2"},
        ],
        "stop_reason": "end_turn",
    }
    monkeypatch.setattr("taskloop.llm.http_client.requests.post", lambda *a, **k: FakeResponse(body=body))

    response = provider.generate_text([user_message("1+1")], LLMParameters())

    assert response.text_content == "2"
    assert response.tool_calls == []
