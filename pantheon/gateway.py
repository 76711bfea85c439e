"""Client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Optional

import httpx

MAX_RETRIES = 3
BASE_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 30.0
DEFAULT_TIMEOUT = 300.0

_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})

ChunkCallback = Callable[[str], None]


class GatewayError(Exception):
    """Raised when the gateway cannot be reached or answers with an error."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


@dataclass
class FunctionCall:
    name: str = ""
    arguments: str = ""


@dataclass
class ToolCall:
    id: str = ""
    type: str = ""
    function: FunctionCall = field(default_factory=FunctionCall)
    index: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.index:
            data["index"] = self.index
        data["id"] = self.id
        data["type"] = self.type
        data["function"] = {
            "name": self.function.name,
            "arguments": self.function.arguments,
        }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=_text(data.get("id")),
            type=_text(data.get("type")),
            function=FunctionCall(
                name=_text(function.get("name")),
                arguments=_text(function.get("arguments")),
            ),
            index=_number(data.get("index")),
        )


@dataclass
class Message:
    role: str = ""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            role=_text(data.get("role")),
            content=_text(data.get("content")),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []],
            tool_call_id=_text(data.get("tool_call_id")),
            name=_text(data.get("name")),
        )


@dataclass
class FunctionSchema:
    name: str
    description: str = ""
    parameters: Any = None
    strict: bool = False


@dataclass
class ToolDefinition:
    type: str
    function: FunctionSchema

    def to_dict(self) -> dict[str, Any]:
        parameters = self.function.parameters
        if hasattr(parameters, "to_dict"):
            parameters = parameters.to_dict()
        function: dict[str, Any] = {
            "name": self.function.name,
            "description": self.function.description,
            "parameters": parameters,
        }
        if self.function.strict:
            function["strict"] = True
        return {"type": self.type, "function": function}


@dataclass
class ChatRequest:
    model: str
    messages: list[Message] = field(default_factory=list)
    temperature: float = 0.0
    max_tokens: int = 0
    stream: bool = False
    tools: list[ToolDefinition] = field(default_factory=list)
    tool_choice: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.temperature:
            data["temperature"] = self.temperature
        if self.max_tokens:
            data["max_tokens"] = self.max_tokens
        data["stream"] = self.stream
        if self.tools:
            data["tools"] = [t.to_dict() for t in self.tools]
        if self.tool_choice is not None:
            data["tool_choice"] = self.tool_choice
        return data


@dataclass
class ChatChoice:
    index: int = 0
    message: Message = field(default_factory=Message)
    delta: Message = field(default_factory=Message)
    finish_reason: str = ""


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


def _choice_from_dict(data: dict[str, Any]) -> ChatChoice:
    return ChatChoice(
        index=_number(data.get("index")),
        message=Message.from_dict(data.get("message") or {}),
        delta=Message.from_dict(data.get("delta") or {}),
        finish_reason=_text(data.get("finish_reason")),
    )


def _usage_from_dict(data: dict[str, Any]) -> Usage:
    return Usage(
        prompt_tokens=_number(data.get("prompt_tokens")),
        completion_tokens=_number(data.get("completion_tokens")),
        total_tokens=_number(data.get("total_tokens")),
    )


@dataclass
class ChatResponse:
    id: str = ""
    choices: list[ChatChoice] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatResponse":
        return cls(
            id=_text(data.get("id")),
            choices=[_choice_from_dict(c) for c in data.get("choices") or []],
            usage=_usage_from_dict(data.get("usage") or {}),
        )


@dataclass
class StreamResult:
    """Accumulated text and tool calls of a streamed response."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


def _retry_delay(attempt: int, retry_after: Optional[str]) -> float:
    if retry_after:
        try:
            return float(int(retry_after))
        except ValueError:
            pass
    delay = min(BASE_RETRY_DELAY * 2**attempt, MAX_RETRY_DELAY)
    return delay + random.random() * delay / 2


class Client:
    """Talks to the ``/chat/completions`` endpoint of a gateway."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        http_client: Optional[httpx.Client] = None,
        strict_tools: bool = False,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.strict_tools = strict_tools
        self._http = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def _url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def chat(self, request: ChatRequest) -> ChatResponse:
        return self._do_chat(replace(request, stream=False))

    def chat_with_tools(self, request: ChatRequest) -> ChatResponse:
        return self._do_chat(replace(request, stream=False))

    def _do_chat(self, request: ChatRequest) -> ChatResponse:
        body = json.dumps(request.to_dict())
        last_error: Optional[GatewayError] = None
        for attempt in range(MAX_RETRIES):
            try:
                response = self._http.post(self._url, content=body, headers=self._headers())
            except httpx.TransportError as exc:
                last_error = GatewayError(f"gateway request: {exc}")
                time.sleep(_retry_delay(attempt, None))
                continue

            if response.status_code == 200:
                try:
                    return ChatResponse.from_dict(response.json())
                except (ValueError, TypeError, AttributeError) as exc:
                    raise GatewayError(f"decode response: {exc}") from exc

            last_error = GatewayError(
                f"gateway {response.status_code}: {response.text}", response.status_code
            )
            if response.status_code not in _RETRYABLE_STATUSES or attempt == MAX_RETRIES - 1:
                raise last_error
            time.sleep(_retry_delay(attempt, response.headers.get("Retry-After")))
        assert last_error is not None
        raise last_error

    def _stream_chunks(self, request: ChatRequest) -> Iterator[ChatResponse]:
        body = json.dumps(replace(request, stream=True).to_dict())
        try:
            with self._http.stream(
                "POST", self._url, content=body, headers=self._headers()
            ) as response:
                if response.status_code != 200:
                    response.read()
                    raise GatewayError(
                        f"gateway {response.status_code}: {response.text}",
                        response.status_code,
                    )
                for line in response.iter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[len("data: "):]
                    if data == "[DONE]":
                        return
                    try:
                        chunk = ChatResponse.from_dict(json.loads(data))
                    except (ValueError, TypeError, AttributeError):
                        continue
                    yield chunk
        except httpx.TransportError as exc:
            raise GatewayError(f"gateway request: {exc}") from exc

    def chat_stream(self, request: ChatRequest, on_chunk: Optional[ChunkCallback] = None) -> str:
        """Stream a reply, passing each content delta to ``on_chunk``."""
        parts: list[str] = []
        for chunk in self._stream_chunks(request):
            if not chunk.choices:
                continue
            content = chunk.choices[0].delta.content
            parts.append(content)
            if on_chunk is not None:
                on_chunk(content)
        return "".join(parts)

    def chat_stream_full(
        self, request: ChatRequest, on_chunk: Optional[ChunkCallback] = None
    ) -> StreamResult:
        """Stream a reply, accumulating both content and tool call deltas."""
        parts: list[str] = []
        calls: dict[int, ToolCall] = {}
        for chunk in self._stream_chunks(request):
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                parts.append(delta.content)
                if on_chunk is not None:
                    on_chunk(delta.content)
            for tc in delta.tool_calls:
                existing = calls.get(tc.index)
                if existing is not None:
                    existing.function.arguments += tc.function.arguments
                else:
                    calls[tc.index] = ToolCall(
                        id=tc.id,
                        type=tc.type,
                        function=FunctionCall(
                            name=tc.function.name, arguments=tc.function.arguments
                        ),
                    )
        return StreamResult(
            content="".join(parts),
            tool_calls=[calls[i] for i in sorted(calls)],
        )