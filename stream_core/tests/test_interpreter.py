from stream_core.domain.models import (
    DoneEvent,
    ErrorEvent,
    MessageEndEvent,
    MessagePartEvent,
    MessageStartEvent,
    ReasoningPart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from stream_core.streaming.interpreter import interpret_payload, text_event


def test_envelope_text_part():
    event = interpret_payload('{"type":"message-part","part":{"type":"text","text":"hi"}}')
    assert event == MessagePartEvent(part=TextPart(text="hi"))


def test_bare_tool_parts():
    call = interpret_payload('{"type":"tool-call","toolCallId":"c1","toolName":"lookup","args":{"id":3}}')
    assert call.part == ToolCallPart(id="c1", name="lookup", args={"id": 3})
    result = interpret_payload('{"type":"tool-result","id":"c1","name":"lookup","result":{"ok":true}}')
    assert isinstance(result.part, ToolResultPart)
    assert result.part.result == {"ok": True}


def test_tool_call_without_id_gets_one():
    event = interpret_payload('{"type":"tool-call","name":"lookup"}')
    assert event.part.id.startswith("call-")


def test_reasoning_part():
    event = interpret_payload('{"type":"reasoning","text":"thinking"}')
    assert event.part == ReasoningPart(text="thinking")


def test_non_json_payload_becomes_text():
    assert interpret_payload("plain words") == MessagePartEvent(part=TextPart(text="plain words"))


def test_json_string_and_array():
    assert interpret_payload('"quoted"').part == TextPart(text="quoted")
    assert interpret_payload("[1,2]").part == TextPart(text="[1,2]")


def test_object_with_text_field():
    assert interpret_payload('{"text":" tail"}').part == TextPart(text=" tail")


def test_empty_text_is_dropped():
    assert interpret_payload('{"type":"message-part","part":{"type":"text","text":""}}') is None
    assert interpret_payload("") is None
    assert text_event("") is None


def test_whitespace_text_is_kept():
    assert interpret_payload('{"type":"text","text":" "}').part == TextPart(text=" ")


def test_lifecycle_events():
    started = interpret_payload('{"type":"message-start","message":{"metadata":{"model":"m"}}}')
    assert isinstance(started, MessageStartEvent)
    assert started.message["metadata"] == {"model": "m"}

    ended = interpret_payload('{"type":"message-end","message":{"id":"m1","parts":[{"type":"text","text":"x"}]}}')
    assert isinstance(ended, MessageEndEvent)
    assert ended.message.id == "m1"
    assert ended.message.parts == [TextPart(text="x")]

    assert isinstance(interpret_payload('{"type":"done"}'), DoneEvent)


def test_error_event_message():
    assert interpret_payload('{"type":"error","error":{"message":"quota"}}') == ErrorEvent(error="quota")
    assert interpret_payload('{"type":"error","error":"boom"}') == ErrorEvent(error="boom")
    assert interpret_payload('{"type":"error"}') == ErrorEvent(error="Unknown stream error")


def test_unknown_object_ignored():
    assert interpret_payload('{"type":"ping"}') is None
