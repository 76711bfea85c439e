"""Ways of combining agents: delegating teams, pipelines and parallel reviews."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from pantheon.agent import Agent, AgentError, Event
from pantheon.gateway import GatewayError
from pantheon.tool import Schema, Tool, ToolArgumentError, parse_args, strict_schema

EventHandler = Callable[[Event], None]

_COORDINATOR_PROMPT = """

You are the lead coordinator of a specialist team. Analyze requests, delegate to the right specialist, and synthesize their responses.

Available specialists:
{roster}
PROTOCOL:
1. If the request is simple and within your own expertise, answer directly.
2. For specialized work, delegate to the MOST specific specialist available.
3. For complex requests, decompose into independent subtasks and delegate them in parallel (you may call multiple specialists in one turn).
4. Each delegation must be self-contained — include all context, file paths, and requirements. Specialists cannot see this conversation.
5. If a specialist returns an error, acknowledge it and either retry with a revised task or explain the limitation.

SYNTHESIS:
- Attribute key insights to the specialist who produced them.
- Resolve contradictions between specialists explicitly.
- Present a unified, actionable response — not a list of raw specialist outputs."""

_SYNTHESIS_PROMPT = """Synthesize these specialist reviews into a single, actionable response.

Original request:
{request}

Reviews:
{reviews}

Provide a unified response with the most important points from each reviewer."""


class AgentTool(Tool):
    """Exposes an agent as a tool so a coordinator can delegate to it."""

    def __init__(self, agent: Agent) -> None:
        self.agent = agent

    @property
    def name(self) -> str:  # type: ignore[override]
        return "ask_" + self.agent.name

    @property
    def description(self) -> str:  # type: ignore[override]
        return (
            f"Delegate to {self.agent.name} ({self.agent.persona}). "
            f"Specializes in: {self.agent.use_for}"
        )

    @property
    def parameters(self) -> Schema:  # type: ignore[override]
        return strict_schema(
            {"task": Schema(type="string", description="Task or question for this specialist")},
            ["task"],
        )

    def execute(self, args_json: str) -> str:
        """Run the agent on a fresh conversation; its failures become the reply text."""
        task = parse_args(args_json).get("task")
        if task is None:
            task = ""
        if not isinstance(task, str):
            raise ToolArgumentError("parse args: field 'task' must be a string")
        self.agent.reset()
        try:
            return self.agent.run(task)
        except (AgentError, GatewayError) as exc:
            return f"specialist {self.agent.name} error: {exc}"


class Team:
    """A lead agent that delegates to specialists through agent tools."""

    def __init__(
        self,
        lead: Agent,
        specialists: Iterable[Agent],
        on_event: Optional[EventHandler] = None,
    ) -> None:
        self.lead = lead
        self.specialists = {spec.name: spec for spec in specialists}
        self.on_event = on_event

    def setup(self) -> None:
        """Register the specialist tools and give the lead its coordinator prompt."""
        for spec in self.specialists.values():
            self.lead.tools.register(AgentTool(spec))

        roster = "".join(
            f"- ask_{spec.name}: {spec.name} ({spec.persona}) — {spec.use_for}\n"
            for spec in self.specialists.values()
        )
        self.lead.system_suffix = _COORDINATOR_PROMPT.format(roster=roster)
        self.lead.reset()

        if self.on_event is not None:
            self.lead.on_event = self.on_event
            for spec in self.specialists.values():
                spec.on_event = self.on_event

    def run(self, message: str) -> str:
        return self.lead.run(message)


class PipelineError(Exception):
    """Raised when a pipeline stage fails."""


class Pipeline:
    """Runs agents one after another, each on the previous one's output."""

    def __init__(self, name: str, *stages: Agent) -> None:
        self.name = name
        self.stages = list(stages)

    def run(self, input_text: str) -> str:
        current = input_text
        for index, stage in enumerate(self.stages):
            stage.reset()
            try:
                current = stage.run(current)
            except (AgentError, GatewayError) as exc:
                raise PipelineError(
                    f"pipeline {json.dumps(self.name)} stage {index} ({stage.name}): {exc}"
                ) from exc
        return current


@dataclass
class _ReviewResult:
    name: str
    persona: str
    output: str = ""
    error: Optional[Exception] = None


class Review:
    """Runs reviewers in parallel, then has a synthesizer combine their feedback."""

    def __init__(self, synthesizer: Agent, *reviewers: Agent) -> None:
        self.synthesizer = synthesizer
        self.reviewers = list(reviewers)

    @staticmethod
    def _review(reviewer: Agent, input_text: str) -> _ReviewResult:
        reviewer.reset()
        try:
            output = reviewer.run(input_text)
        except (AgentError, GatewayError) as exc:
            return _ReviewResult(reviewer.name, reviewer.persona, error=exc)
        return _ReviewResult(reviewer.name, reviewer.persona, output=output)

    def run(self, input_text: str) -> str:
        results: list[_ReviewResult] = []
        if self.reviewers:
            with ThreadPoolExecutor(max_workers=len(self.reviewers)) as pool:
                results = list(
                    pool.map(lambda r: self._review(r, input_text), self.reviewers)
                )

        sections = []
        for result in results:
            body = f"ERROR: {result.error}\n" if result.error is not None else result.output
            sections.append(f"=== {result.name} ({result.persona}) ===\n{body}\n\n")

        prompt = _SYNTHESIS_PROMPT.format(request=input_text, reviews="".join(sections))
        self.synthesizer.reset()
        return self.synthesizer.run(prompt)