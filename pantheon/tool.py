"""Tool interface, JSON argument helpers and a registry that runs tool calls."""

from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from pantheon.gateway import FunctionSchema, Message, ToolCall, ToolDefinition


class ToolArgumentError(ValueError):
    """Raised when the JSON arguments of a tool call are unusable."""


@dataclass
class Schema:
    """A JSON Schema fragment describing tool parameters."""

    type: str = ""
    description: str = ""
    properties: dict[str, "Schema"] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    additional_properties: Optional[bool] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.description:
            data["description"] = self.description
        if self.properties:
            data["properties"] = {
                name: prop.to_dict() for name, prop in self.properties.items()
            }
        if self.required:
            data["required"] = list(self.required)
        if self.additional_properties is not None:
            data["additionalProperties"] = self.additional_properties
        return data


def strict_schema(properties: dict[str, Schema], required: Iterable[str]) -> Schema:
    """An object schema that forbids properties beyond the listed ones."""
    return Schema(
        type="object",
        properties=dict(properties),
        required=list(required),
        additional_properties=False,
    )


def validate_required(schema: Schema, args_json: str) -> None:
    """Raise ToolArgumentError unless every required field is present and not null."""
    if not schema.required:
        return
    try:
        parsed = json.loads(args_json)
    except ValueError as exc:
        raise ToolArgumentError(f"malformed JSON: {exc}") from exc
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ToolArgumentError("malformed JSON: arguments must be a JSON object")
    for name in schema.required:
        if parsed.get(name) is None:
            raise ToolArgumentError(f"missing required field {json.dumps(name)}")


def parse_args(args_json: str) -> dict[str, Any]:
    """Decode a tool call's JSON arguments into a dictionary."""
    try:
        value = json.loads(args_json)
    except ValueError as exc:
        raise ToolArgumentError(f"parse args: {exc}") from exc
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ToolArgumentError("parse args: expected a JSON object")
    return value


class Tool(ABC):
    """Something a model can call by name with JSON arguments."""

    name: str
    description: str
    parameters: Schema

    @abstractmethod
    def execute(self, args_json: str) -> str:
        """Run the tool and return its textual result."""


@dataclass
class FunctionTool(Tool):
    """A tool backed by a plain function of the JSON arguments."""

    name: str
    description: str
    parameters: Schema
    fn: Callable[[str], str]

    def execute(self, args_json: str) -> str:
        return self.fn(args_json)


class Registry:
    """A thread-safe collection of tools, keyed by name."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def register(self, tool: Tool) -> None:
        with self._lock:
            self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def definitions(self, strict: bool = False) -> list[ToolDefinition]:
        """Tool definitions for a chat request, sorted by tool name."""
        with self._lock:
            tools = sorted(self._tools.values(), key=lambda t: t.name)
        return [
            ToolDefinition(
                type="function",
                function=FunctionSchema(
                    name=tool.name,
                    description=tool.description,
                    parameters=tool.parameters,
                    strict=strict,
                ),
            )
            for tool in tools
        ]

    def execute(self, call: ToolCall) -> Message:
        """Run one tool call; failures become error text in the reply message."""

        def reply(content: str) -> Message:
            return Message(role="tool", content=content, tool_call_id=call.id)

        name = call.function.name
        if not name:
            return reply("error: tool call missing function name")
        tool = self.get(name)
        if tool is None:
            return reply(f"error: unknown tool {json.dumps(name)}")
        try:
            validate_required(tool.parameters, call.function.arguments)
        except ToolArgumentError as exc:
            return reply(f"error: invalid arguments for {json.dumps(name)}: {exc}")
        try:
            result = tool.execute(call.function.arguments)
        except Exception as exc:  # any tool failure is reported back to the model
            return reply(f"error: {exc}")
        return reply(result)

    def execute_all(self, calls: Iterable[ToolCall]) -> list[Message]:
        """Run tool calls concurrently, returning replies in call order."""
        calls = list(calls)
        if not calls:
            return []
        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(self.execute, calls))