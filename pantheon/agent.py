"""An agent: a skill bound to a gateway client, with history and tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from pantheon.gateway import (
    ChatRequest,
    Client,
    GatewayError,
    Message,
    ToolCall,
    Usage,
)
from pantheon.skill import Skill, discover_map
from pantheon.tool import Registry

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4096

_log = logging.getLogger(__name__)


class AgentError(Exception):
    """Raised when an agent cannot produce a reply."""


class EventKind(str, Enum):
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    REPLY = "reply"
    ERROR = "error"


@dataclass
class Event:
    kind: EventKind
    agent: str = ""
    tool: str = ""
    content: str = ""
    usage: Usage = field(default_factory=Usage)


EventHandler = Callable[[Event], None]
ChunkCallback = Callable[[str], None]


class Agent:
    """Holds a conversation with a model under the instructions of a skill."""

    def __init__(self, skill: Skill, client: Client, *, strict_tools: bool = True) -> None:
        self.skill = skill
        self.client = client
        self.system_suffix = ""
        self.strict_tools = strict_tools
        self.tools = Registry()
        self.on_event: Optional[EventHandler] = None
        self.history: list[Message] = []
        self.reset()

    @property
    def name(self) -> str:
        return self.skill.name

    @property
    def persona(self) -> str:
        return self.skill.metadata.persona

    @property
    def model(self) -> str:
        return self.skill.metadata.model

    @property
    def use_for(self) -> str:
        return self.skill.description

    @property
    def tool_names(self) -> list[str]:
        return self.skill.metadata.tools

    @property
    def delegates(self) -> list[str]:
        return self.skill.metadata.delegates

    @property
    def max_iterations(self) -> int:
        return self.skill.metadata.max_iterations or DEFAULT_MAX_ITERATIONS

    @property
    def temperature(self) -> float:
        value = self.skill.metadata.temperature
        return DEFAULT_TEMPERATURE if value is None else value

    @property
    def max_tokens(self) -> int:
        return self.skill.metadata.max_tokens or DEFAULT_MAX_TOKENS

    def _emit(self, kind: EventKind, content: str = "", tool: str = "",
              usage: Optional[Usage] = None) -> None:
        if self.on_event is not None:
            self.on_event(Event(kind=kind, agent=self.name, tool=tool, content=content,
                                usage=usage or Usage()))

    def _request(self) -> ChatRequest:
        return ChatRequest(
            model=self.model,
            messages=list(self.history),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def reset(self) -> None:
        """Drop the conversation, keeping only the system prompt."""
        self.history = [Message(role="system", content=self.skill.body + self.system_suffix)]

    def send(self, message: str) -> str:
        """One plain request without tools or streaming."""
        self.history.append(Message(role="user", content=message))
        response = self.client.chat(self._request())
        if not response.choices:
            raise AgentError("no choices in response")
        reply = response.choices[0].message.content
        self.history.append(Message(role="assistant", content=reply))
        return reply

    def send_stream(self, message: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        """Like ``send``, but streams the reply through ``on_chunk``."""
        self.history.append(Message(role="user", content=message))
        reply = self.client.chat_stream(self._request(), on_chunk)
        self.history.append(Message(role="assistant", content=reply))
        return reply

    def run(self, message: str) -> str:
        """Reason, call tools and observe until the model gives a final answer."""
        return self.run_stream(message, None)

    def _run_tools(self, calls: list[ToolCall]) -> None:
        for call in calls:
            self._emit(EventKind.TOOL_CALL, tool=call.function.name,
                       content=call.function.arguments)
        for result in self.tools.execute_all(calls):
            self._emit(EventKind.TOOL_RESULT, content=result.content)
            self.history.append(result)

    def run_stream(self, message: str, on_chunk: Optional[ChunkCallback] = None) -> str:
        """The tool loop of ``run``, streaming content deltas when ``on_chunk`` is given."""
        self.history.append(Message(role="user", content=message))
        definitions = self.tools.definitions(self.strict_tools)
        total = Usage()

        for iteration in range(self.max_iterations):
            request = self._request()
            if definitions:
                request.tools = list(definitions)

            try:
                if on_chunk is not None:
                    streamed = self.client.chat_stream_full(request, on_chunk)
                    assistant = Message(role="assistant", content=streamed.content,
                                        tool_calls=streamed.tool_calls)
                else:
                    response = self.client.chat_with_tools(request)
            except GatewayError as exc:
                self._emit(EventKind.ERROR, content=str(exc))
                raise AgentError(f"iteration {iteration}: {exc}") from exc

            if on_chunk is None:
                total.prompt_tokens += response.usage.prompt_tokens
                total.completion_tokens += response.usage.completion_tokens
                total.total_tokens += response.usage.total_tokens
                if not response.choices:
                    raise AgentError(f"no choices at iteration {iteration}")
                assistant = response.choices[0].message

            if assistant.tool_calls:
                self.history.append(assistant)
                self._run_tools(assistant.tool_calls)
                continue

            reply = assistant.content
            self.history.append(Message(role="assistant", content=reply))
            self._emit(EventKind.REPLY, content=reply, usage=total)
            return reply

        raise AgentError(
            f"agent {self.name!r} hit max iterations ({self.max_iterations}) without producing "
            "a final response; consider increasing max_iterations in the skill config or "
            "breaking the task into smaller steps"
        )


def load_all(directory: str, client: Client) -> dict[str, Agent]:
    """An agent for every skill found in ``directory``, keyed by name."""
    return {name: Agent(skill, client) for name, skill in discover_map(directory).items()}


def equip_tools(agent: Agent, builtins: Registry) -> None:
    """Give the agent each tool its skill names that ``builtins`` provides."""
    for name in agent.tool_names:
        tool = builtins.get(name)
        if tool is None:
            _log.warning("agent %r: tool %r not found in registry", agent.name, name)
            continue
        agent.tools.register(tool)