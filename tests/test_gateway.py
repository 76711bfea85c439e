import json

import httpx
import pytest
import respx

from pantheon.gateway import (
    ChatRequest,
    Client,
    FunctionCall,
    FunctionSchema,
    GatewayError,
    Message,
    ToolCall,
    ToolDefinition,
)

BASE = "http://gateway.test"
URL = f"{BASE}/chat/completions"


@pytest.fixture
def client():
    c = Client(BASE + "/", "placeholder")
    yield c
    c.close()


@pytest.fixture
def router():
    with respx.mock(assert_all_called=False) as mock:
        yield mock


def _request():
    return ChatRequest(model="test-model", messages=[Message("user", "hi")])


def _sse(chunks):
    body = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks) + "data: [DONE]\n\n"
    return httpx.Response(200, content=body.encode(), headers={"Content-Type": "text/event-stream"})


def test_chat_success(client, router):
    route = router.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "id": "resp-1",
                "choices": [
                    {"message": {"role": "assistant", "content": "hello back"}, "finish_reason": "stop"}
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            },
        )
    )
    resp = client.chat(_request())
    assert route.calls.last.request.headers["Authorization"] == "Bearer placeholder"
    assert resp.choices[0].message.content == "hello back"
    assert resp.usage.total_tokens == 15
    sent = json.loads(route.calls.last.request.content)
    assert sent["stream"] is False
    assert sent["model"] == "test-model"


def test_chat_with_tool_calls(client, router):
    router.post(URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "choices": [
                    {
                        "message": {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "tc-1",
                                    "type": "function",
                                    "function": {"name": "get_weather", "arguments": '{"location":"NYC"}'},
                                }
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ]
            },
        )
    )
    request = _request()
    request.tools = [
        ToolDefinition(
            "function",
            FunctionSchema(name="get_weather", description="Get weather", parameters={"type": "object"}),
        )
    ]
    resp = client.chat_with_tools(request)
    calls = resp.choices[0].message.tool_calls
    assert len(calls) == 1
    assert calls[0].function.name == "get_weather"
    assert resp.choices[0].message.content == ""


def test_chat_retry_on_429(client, router):
    limited = httpx.Response(429, text="rate limited", headers={"Retry-After": "0"})
    ok = httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "finally"}}]})
    route = router.post(URL).mock(side_effect=[limited, limited, ok])
    resp = client.chat(_request())
    assert resp.choices[0].message.content == "finally"
    assert route.call_count == 3


def test_chat_gives_up_after_max_retries(client, router):
    failing = httpx.Response(503, text="unavailable", headers={"Retry-After": "0"})
    route = router.post(URL).mock(side_effect=[failing, failing, failing])
    with pytest.raises(GatewayError) as info:
        client.chat(_request())
    assert info.value.status == 503
    assert route.call_count == 3


def test_chat_non_retryable_error(client, router):
    route = router.post(URL).mock(return_value=httpx.Response(400, text="bad request"))
    with pytest.raises(GatewayError) as info:
        client.chat(_request())
    assert "400" in str(info.value)
    assert "bad request" in str(info.value)
    assert route.call_count == 1


def test_chat_stream_content(client, router):
    route = router.post(URL).mock(
        return_value=_sse([{"choices": [{"delta": {"content": c}}]} for c in ["Hel", "lo ", "world"]])
    )
    received = []
    full = client.chat_stream(_request(), received.append)
    assert full == "Hello world"
    assert len(received) == 3
    assert json.loads(route.calls.last.request.content)["stream"] is True


def test_chat_stream_error_status(client, router):
    router.post(URL).mock(return_value=httpx.Response(500, text="boom"))
    with pytest.raises(GatewayError) as info:
        client.chat_stream(_request())
    assert info.value.status == 500


def test_chat_stream_full_accumulates_tool_calls(client, router):
    chunks = [
        {"choices": [{"delta": {"content": "thinking"}}]},
        {"choices": [{"delta": {"tool_calls": [
            {"index": 0, "id": "c1", "type": "function", "function": {"name": "read_file", "arguments": '{"pa'}}
        ]}}]},
        {"choices": [{"delta": {"tool_calls": [
            {"index": 0, "function": {"arguments": 'th":"a"}'}},
            {"index": 1, "id": "c2", "type": "function", "function": {"name": "list_dir", "arguments": "{}"}},
        ]}}]},
        {"choices": []},
    ]
    router.post(URL).mock(return_value=_sse(chunks))
    received = []
    result = client.chat_stream_full(_request(), received.append)
    assert result.content == "thinking"
    assert received == ["thinking"]
    assert [c.id for c in result.tool_calls] == ["c1", "c2"]
    assert result.tool_calls[0].function.arguments == '{"path":"a"}'
    assert result.tool_calls[1].function.name == "list_dir"


def test_stream_skips_malformed_lines(client, router):
    body = b"event: ping\n\ndata: not-json\n\ndata: {\"choices\":[{\"delta\":{\"content\":\"ok\"}}]}\n\ndata: [DONE]\n\n"
    router.post(URL).mock(return_value=httpx.Response(200, content=body))
    assert client.chat_stream(_request()) == "ok"


def test_message_serialization():
    msg = Message(
        role="assistant",
        content="text",
        tool_calls=[ToolCall(id="tc-1", type="function", function=FunctionCall("test", "{}"))],
        tool_call_id="tc-1",
        name="test",
    )
    decoded = Message.from_dict(json.loads(json.dumps(msg.to_dict())))
    assert decoded.tool_call_id == "tc-1"
    assert len(decoded.tool_calls) == 1
    assert decoded == msg


def test_message_omits_empty_fields():
    assert Message("user", "hi").to_dict() == {"role": "user", "content": "hi"}


def test_request_omits_zero_values():
    data = ChatRequest(model="m").to_dict()
    assert data == {"model": "m", "messages": [], "stream": False}


def test_tool_definition_strict_flag():
    plain = ToolDefinition("function", FunctionSchema(name="x", parameters={})).to_dict()
    strict = ToolDefinition("function", FunctionSchema(name="x", parameters={}, strict=True)).to_dict()
    assert "strict" not in plain["function"]
    assert strict["function"]["strict"] is True