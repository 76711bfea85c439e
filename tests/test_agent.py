import json
import logging

import httpx
import pytest

from pantheon.agent import Agent, AgentError, EventKind, equip_tools, load_all
from pantheon.builtin_tools import builtin_registry
from pantheon.gateway import Client, Message
from pantheon.skill import Metadata, Skill
from pantheon.tool import FunctionTool, Schema, parse_args, strict_schema


class _Server:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(json.loads(request.content))
        return self.responses.pop(0)


def _client(server):
    http = httpx.Client(transport=httpx.MockTransport(server))
    return Client("http://gateway.test", api_key="placeholder", http_client=http)


def _reply(content, usage=None):
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "usage": usage or {},
        },
    )


def _tool_reply(call_id, name, arguments, usage=None):
    return httpx.Response(
        200,
        json={
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": "",
                        "tool_calls": [
                            {
                                "id": call_id,
                                "type": "function",
                                "function": {"name": name, "arguments": arguments},
                            }
                        ],
                    },
                    "finish_reason": "tool_calls",
                }
            ],
            "usage": usage or {},
        },
    )


def _sse(*chunks):
    text = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks) + "data: [DONE]\n\n"
    return httpx.Response(200, text=text, headers={"Content-Type": "text/event-stream"})


def _echo_tool():
    return FunctionTool(
        name="echo",
        description="Echo args back",
        parameters=strict_schema({"msg": Schema(type="string", description="Message")}, ["msg"]),
        fn=lambda args_json: parse_args(args_json)["msg"],
    )


def _skill(**metadata):
    return Skill(
        name="athena",
        description="A strategist skill",
        body="You are Athena.",
        metadata=Metadata(model="opus-4", **metadata),
    )


def test_reset_builds_system_prompt_with_suffix():
    agent = Agent(_skill(), _client(_Server([])))
    agent.history.append(Message(role="user", content="hi"))
    agent.system_suffix = " Extra."
    agent.reset()
    assert agent.history == [Message(role="system", content="You are Athena. Extra.")]


def test_defaults_and_overrides():
    plain = Agent(_skill(), _client(_Server([])))
    assert (plain.max_iterations, plain.temperature, plain.max_tokens) == (10, 0.7, 4096)

    tuned = Agent(_skill(max_iterations=3, temperature=0.5, max_tokens=8192), _client(_Server([])))
    assert (tuned.max_iterations, tuned.temperature, tuned.max_tokens) == (3, 0.5, 8192)


def test_send_appends_history_and_builds_request():
    server = _Server([_reply("hello back")])
    agent = Agent(_skill(), _client(server))

    assert agent.send("hi") == "hello back"
    assert [m.role for m in agent.history] == ["system", "user", "assistant"]
    body = server.requests[0]
    assert body["model"] == "opus-4"
    assert body["temperature"] == 0.7
    assert body["max_tokens"] == 4096
    assert body["stream"] is False
    assert "tools" not in body


def test_send_without_choices_raises():
    server = _Server([httpx.Response(200, json={"choices": []})])
    agent = Agent(_skill(), _client(server))
    with pytest.raises(AgentError, match="no choices in response"):
        agent.send("hi")


def test_send_stream_collects_chunks():
    server = _Server([_sse(*({"choices": [{"delta": {"content": c}}]} for c in ["Hel", "lo"]))])
    agent = Agent(_skill(), _client(server))
    received = []

    assert agent.send_stream("hi", received.append) == "Hello"
    assert received == ["Hel", "lo"]
    assert agent.history[-1] == Message(role="assistant", content="Hello")
    assert server.requests[0]["stream"] is True


def test_run_executes_tools_until_final_reply():
    usage = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
    server = _Server([_tool_reply("c1", "echo", '{"msg":"hello"}'), _reply("Done.", usage)])
    agent = Agent(_skill(), _client(server))
    agent.tools.register(_echo_tool())
    events = []
    agent.on_event = events.append

    assert agent.run("say hello") == "Done."
    assert [m.role for m in agent.history] == ["system", "user", "assistant", "tool", "assistant"]
    assert agent.history[3].content == "hello"
    assert agent.history[3].tool_call_id == "c1"
    assert [e.kind for e in events] == [EventKind.TOOL_CALL, EventKind.TOOL_RESULT, EventKind.REPLY]
    assert all(e.agent == "athena" for e in events)
    assert events[0].tool == "echo"
    assert events[-1].usage.total_tokens == 15
    tools = server.requests[0]["tools"]
    assert [t["function"]["name"] for t in tools] == ["echo"]
    assert tools[0]["function"]["strict"] is True


def test_run_stops_at_max_iterations():
    server = _Server([_tool_reply(f"c{i}", "echo", '{"msg":"x"}') for i in range(2)])
    agent = Agent(_skill(max_iterations=2), _client(server))
    agent.tools.register(_echo_tool())

    with pytest.raises(AgentError, match=r"hit max iterations \(2\)"):
        agent.run("loop")
    assert len(server.requests) == 2


def test_run_gateway_error_is_wrapped_and_emitted():
    server = _Server([httpx.Response(400, text="bad request")])
    agent = Agent(_skill(), _client(server))
    events = []
    agent.on_event = events.append

    with pytest.raises(AgentError, match="^iteration 0: gateway 400"):
        agent.run("hi")
    assert [e.kind for e in events] == [EventKind.ERROR]
    assert "bad request" in events[0].content


def test_run_stream_accumulates_tool_call_deltas():
    first = _sse(
        {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": "c1", "type": "function",
                                                 "function": {"name": "echo",
                                                              "arguments": '{"msg":'}}]}}]},
        {"choices": [{"delta": {"tool_calls": [{"index": 0,
                                                 "function": {"arguments": '"hi"}'}}]}}]},
    )
    second = _sse(*({"choices": [{"delta": {"content": c}}]} for c in ["Do", "ne"]))
    server = _Server([first, second])
    agent = Agent(_skill(), _client(server))
    agent.tools.register(_echo_tool())
    received = []

    assert agent.run_stream("echo hi", received.append) == "Done"
    assert received == ["Do", "ne"]
    assert agent.history[2].tool_calls[0].function.arguments == '{"msg":"hi"}'
    assert agent.history[3].content == "hi"
    assert all(body["stream"] is True for body in server.requests)


def test_load_all_builds_agents_from_skills(tmp_path):
    for name in ("athena", "kali"):
        folder = tmp_path / name
        folder.mkdir()
        (folder / "SKILL.md").write_text(
            f"---\nname: {name}\ndescription: {name} skill\n---\n\n# {name}\n"
        )
    agents = load_all(str(tmp_path), _client(_Server([])))

    assert sorted(agents) == ["athena", "kali"]
    assert agents["kali"].history == [Message(role="system", content="# kali")]


def test_equip_tools_registers_known_and_warns_about_unknown(caplog):
    agent = Agent(_skill(tools=["read_file", "nope"]), _client(_Server([])))
    with caplog.at_level(logging.WARNING):
        equip_tools(agent, builtin_registry())

    assert "read_file" in agent.tools
    assert "nope" not in agent.tools
    assert "nope" in caplog.text