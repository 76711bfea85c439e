"""Tracing, logging and cost estimation for agent events."""

from __future__ import annotations

import json
import sys
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pantheon.agent import Event, EventKind
from pantheon.gateway import Usage

EventHandler = Callable[[Event], None]

_SPAN_CONTENT_LIMIT = 500
_TOOL_ARGS_LIMIT = 120
_RESULT_LIMIT = 200


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _usage_dict(usage: Usage) -> dict[str, int]:
    return {
        "prompt_tokens": usage.prompt_tokens,
        "completion_tokens": usage.completion_tokens,
        "total_tokens": usage.total_tokens,
    }


@dataclass
class Span:
    """One recorded event inside a trace."""

    kind: str
    agent: str = ""
    tool: str = ""
    content: str = ""
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "agent": self.agent}
        if self.tool:
            data["tool"] = self.tool
        if self.content:
            data["content"] = self.content
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class Trace:
    """The full lifecycle of one agent invocation."""

    id: str
    agent: str
    started_at: datetime = field(default_factory=_now)
    spans: list[Span] = field(default_factory=list)
    total_usage: Usage = field(default_factory=Usage)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent": self.agent,
            "started_at": self.started_at.isoformat(),
            "spans": [span.to_dict() for span in self.spans],
            "total_usage": _usage_dict(self.total_usage),
            "duration_ms": self.duration_ms,
        }


class Tracker:
    """Collects traces across several agent invocations; safe across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._traces: dict[str, Trace] = {}
        self._clocks: dict[str, float] = {}

    def start(self, trace_id: str, agent_name: str) -> None:
        with self._lock:
            self._traces[trace_id] = Trace(id=trace_id, agent=agent_name)
            self._clocks[trace_id] = time.monotonic()

    def add_span(self, trace_id: str, span: Span) -> None:
        """Record a span, stamped with the current time; unknown traces are ignored."""
        with self._lock:
            trace = self._traces.get(trace_id)
            if trace is not None:
                trace.spans.append(replace(span, timestamp=_now()))

    def finish(self, trace_id: str, usage: Usage) -> Optional[Trace]:
        """Close a trace with its token usage; None if it was never started."""
        with self._lock:
            trace = self._traces.get(trace_id)
            if trace is None:
                return None
            trace.total_usage = usage
            elapsed = time.monotonic() - self._clocks[trace_id]
            trace.duration_ms = float(int(elapsed * 1000))
            return trace

    def event_handler(self, trace_id: str) -> EventHandler:
        """An event handler that records each event as a span of the trace."""

        def handle(event: Event) -> None:
            self.add_span(
                trace_id,
                Span(
                    kind=EventKind(event.kind).value,
                    agent=event.agent,
                    tool=event.tool,
                    content=_truncate(event.content, _SPAN_CONTENT_LIMIT),
                ),
            )

        return handle


@dataclass
class Logger:
    """Writes a short line per event to standard error."""

    verbose: bool = False

    def handler(self) -> EventHandler:
        def handle(event: Event) -> None:
            out = sys.stderr
            if event.kind == EventKind.TOOL_CALL:
                print(f"  [tool] {event.tool}({_truncate(event.content, _TOOL_ARGS_LIMIT)})",
                      file=out)
            elif event.kind == EventKind.TOOL_RESULT:
                if self.verbose:
                    print(f"  [result] {_truncate(event.content, _RESULT_LIMIT)}", file=out)
            elif event.kind == EventKind.ERROR:
                print(f"  [error] {event.content}", file=out)
            elif event.kind == EventKind.REPLY:
                usage = event.usage
                if usage.total_tokens > 0:
                    print(
                        f"  [tokens] prompt={usage.prompt_tokens} "
                        f"completion={usage.completion_tokens} total={usage.total_tokens}",
                        file=out,
                    )

        return handle


def combine_handlers(*handlers: Optional[EventHandler]) -> EventHandler:
    """One handler that passes each event to every non-None handler in order."""

    def handle(event: Event) -> None:
        for handler in handlers:
            if handler is not None:
                handler(event)

    return handle


def cost_estimate(model: str, usage: Usage) -> float:
    """A rough cost in USD for the given model and token usage."""
    if "opus" in model:
        in_rate, out_rate = 15.0, 75.0
    elif "codex" in model:
        in_rate, out_rate = 6.0, 24.0
    elif "nano" in model:
        in_rate, out_rate = 0.10, 0.40
    else:
        in_rate, out_rate = 3.0, 15.0
    return (usage.prompt_tokens * in_rate + usage.completion_tokens * out_rate) / 1_000_000


def print_trace(trace: Optional[Trace]) -> None:
    """Dump a trace as indented JSON to standard error."""
    data = None if trace is None else trace.to_dict()
    print(json.dumps(data, indent=2, ensure_ascii=False), file=sys.stderr)