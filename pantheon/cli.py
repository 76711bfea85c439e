"""Command-line entry point: list agents, chat with them, run tools and orchestrations."""

from __future__ import annotations

import json
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

from pantheon import config
from pantheon.agent import Agent, AgentError, Event, equip_tools, load_all
from pantheon.builtin_tools import builtin_registry
from pantheon.gateway import Client, GatewayError
from pantheon.memory import FileStore, session_id
from pantheon.observe import Logger
from pantheon.orchestrate import Pipeline, PipelineError, Review, Team
from pantheon.skill import SkillError

_AGENT_ERRORS = (AgentError, GatewayError, PipelineError)

USAGE = """pantheon — agentic AI toolkit with tools, orchestration, and pipelines

Usage:
  pantheon                                Launch the interactive War Room
  pantheon warroom                        Launch the interactive War Room
  pantheon list                           List all agents
  pantheon chat   <agent>                 Interactive chat (no tools)
  pantheon ask    <agent> <message>       One-shot (no tools)
  pantheon run    <agent> <task>          ReAct loop with tools
  pantheon team   <coordinator> <task>    Coordinator delegates to specialists
  pantheon pipe   <a1,a2,...> <input>     Sequential pipeline
  pantheon review <r1,r2,...> <input>     Parallel review → synthesizer

Environment:
  GATEWAY_URL    OpenAI-compatible endpoint (default: NVIDIA gateway)
  API_KEY        Bearer token
  SKILLS_DIR     Skills directory (default: .agents/skills)
  VERBOSE        Show tool calls and tokens (set to 1)
"""


class _CliError(Exception):
    """A failure that ends the command with exit status 1."""


@dataclass
class _Context:
    directory: str
    client: Client
    verbose: bool
    args: list[str] = field(default_factory=list)


def _err(text: str = "", end: str = "\n") -> None:
    print(text, end=end, file=sys.stderr, flush=True)


def _out(text: str = "", end: str = "\n") -> None:
    print(text, end=end, flush=True)


def _load(ctx: _Context) -> dict[str, Agent]:
    try:
        return load_all(ctx.directory, ctx.client)
    except (SkillError, OSError, ValueError) as exc:
        raise _CliError(f"error loading agents: {exc}") from exc


def _must_get(agents: dict[str, Agent], name: str) -> Agent:
    agent = agents.get(name)
    if agent is None:
        available = ", ".join(sorted(agents))
        raise _CliError(f"agent {json.dumps(name)} not found — available: {available}")
    return agent


def _equip(agent: Agent) -> None:
    equip_tools(agent, builtin_registry())


def _log_handler(verbose: bool) -> Callable[[Event], None]:
    return Logger(verbose).handler()


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _has_tools(agent: Agent) -> bool:
    return bool(agent.tool_names)


def _align(rows: Sequence[Sequence[str]]) -> list[str]:
    """Pad every cell but the last of each row to its column width plus two spaces."""
    columns = len(rows[0]) - 1
    widths = [max(len(row[i]) for row in rows) + 2 for i in range(columns)]
    return [
        "".join(cell.ljust(width) for cell, width in zip(row, widths)) + row[-1]
        for row in rows
    ]


def _prompt_lines(prompt: str) -> Iterator[str]:
    while True:
        _out(prompt, end="")
        line = sys.stdin.readline()
        if not line:
            return
        yield line.strip()


def _format_elapsed(seconds: float) -> str:
    millis = round(seconds * 1000)
    if millis == 0:
        return "0s"
    if millis < 1000:
        return f"{millis}ms"
    hours, rest = divmod(millis, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    whole, frac = divmod(rest, 1000)
    secs = str(whole) + (f".{frac:03d}".rstrip("0") if frac else "")
    text = f"{secs}s"
    if hours or minutes:
        text = f"{minutes}m{text}"
    if hours:
        text = f"{hours}h{text}"
    return text


def _split_names(text: str) -> list[str]:
    return text.split(",")


# --- commands ---


def _cmd_list(ctx: _Context) -> None:
    agents = _load(ctx)
    rows = [
        ["NAME", "PERSONA", "MODEL", "TOOLS", "DELEGATES", "USE FOR"],
        ["----", "-------", "-----", "-----", "---------", "-------"],
    ]
    for name in sorted(agents):
        agent = agents[name]
        rows.append([
            agent.name,
            agent.persona,
            agent.model,
            str(len(agent.tool_names or [])),
            str(len(agent.delegates or [])),
            _truncate(agent.use_for, 60),
        ])
    for line in _align(rows):
        _out(line)


def _save_session(store: Optional[FileStore], sid: str, agent: Agent) -> bool:
    if store is None:
        return False
    try:
        store.save(sid, agent.history)
    except OSError:
        return False
    return True


def _cmd_chat(ctx: _Context) -> None:
    name = ctx.args[0]
    agents = _load(ctx)
    agent = agents.get(name)
    if agent is None:
        raise _CliError(f"agent {json.dumps(name)} not found")

    store: Optional[FileStore]
    try:
        store = FileStore(config.memory_dir())
    except OSError as exc:
        _err(f"warning: could not open session store: {exc}")
        store = None
    sid = session_id(name, "interactive")

    if store is not None:
        try:
            messages = store.load(sid)
        except (OSError, ValueError):
            messages = []
        if messages:
            agent.history = list(messages)
            _out(f"[restored session {sid[:8]} with {len(messages)} messages]")

    _out(f"Chatting with {agent.name} ({agent.persona}) — model: {agent.model}")
    _out("Commands: /reset  /save  /quit")
    _out()

    for line in _prompt_lines("you> "):
        if not line:
            continue
        if line in ("/quit", "/exit"):
            break
        if line == "/reset":
            agent.reset()
            _out("[history cleared]")
            continue
        if line == "/save":
            if store is not None:
                _save_session(store, sid, agent)
                _out(f"[session saved: {sid[:8]}]")
            continue
        _out(f"\n{agent.name}> ", end="")
        try:
            agent.send_stream(line, lambda chunk: _out(chunk, end=""))
        except _AGENT_ERRORS as exc:
            _err(f"\nerror: {exc}")
            continue
        _out("\n\n", end="")

    _save_session(store, sid, agent)


def _cmd_ask(ctx: _Context) -> None:
    agent = _must_get(_load(ctx), ctx.args[0])
    message = " ".join(ctx.args[1:])
    try:
        agent.send_stream(message, lambda chunk: _out(chunk, end=""))
    except _AGENT_ERRORS as exc:
        raise _CliError(f"error: {exc}") from exc
    _out()


def _cmd_run(ctx: _Context) -> None:
    agent = _must_get(_load(ctx), ctx.args[0])
    _equip(agent)
    agent.on_event = _log_handler(ctx.verbose)
    try:
        reply = agent.run(" ".join(ctx.args[1:]))
    except _AGENT_ERRORS as exc:
        raise _CliError(f"error: {exc}") from exc
    _out(reply)


def _cmd_team(ctx: _Context) -> None:
    agents = _load(ctx)
    coordinator = _must_get(agents, ctx.args[0])
    _equip(coordinator)

    specialists = []
    for delegate in coordinator.delegates or []:
        specialist = agents.get(delegate)
        if specialist is None:
            _err(f"warning: delegate {json.dumps(delegate)} not found")
            continue
        _equip(specialist)
        specialists.append(specialist)
    if not specialists:
        raise _CliError("no delegates configured — use 'run' instead")

    team = Team(coordinator, specialists, on_event=_log_handler(ctx.verbose))
    team.setup()
    delegates = ", ".join(coordinator.delegates or [])
    _err(f"Team: {coordinator.name} coordinating [{delegates}]\n")

    try:
        reply = team.run(" ".join(ctx.args[1:]))
    except _AGENT_ERRORS as exc:
        raise _CliError(f"error: {exc}") from exc
    _out(reply)


def _prepare_stage(agents: dict[str, Agent], name: str, verbose: bool) -> Agent:
    agent = _must_get(agents, name.strip())
    _equip(agent)
    if verbose:
        agent.on_event = _log_handler(True)
    return agent


def _cmd_pipe(ctx: _Context) -> None:
    agents = _load(ctx)
    names = _split_names(ctx.args[0])
    stages = [_prepare_stage(agents, name, ctx.verbose) for name in names]
    pipeline = Pipeline("cli", *stages)
    _err(f"Pipeline: {' → '.join(names)}\n")
    try:
        result = pipeline.run(" ".join(ctx.args[1:]))
    except _AGENT_ERRORS as exc:
        raise _CliError(f"error: {exc}") from exc
    _out(result)


def _cmd_review(ctx: _Context) -> None:
    agents = _load(ctx)
    names = _split_names(ctx.args[0])
    if len(names) < 2:
        raise _CliError("review needs at least 2 agents (reviewers + synthesizer)")

    synth_name = names[-1].strip()
    synthesizer = _must_get(agents, synth_name)
    _equip(synthesizer)
    reviewers = [_prepare_stage(agents, name, ctx.verbose) for name in names[:-1]]

    review = Review(synthesizer, *reviewers)
    _err(f"Review: [{', '.join(names[:-1])}] → {synth_name}\n")
    try:
        result = review.run(" ".join(ctx.args[1:]))
    except _AGENT_ERRORS as exc:
        raise _CliError(f"error: {exc}") from exc
    _out(result)


# --- War Room ---


@dataclass
class _BroadcastReply:
    name: str
    persona: str
    reply: str = ""
    error: Optional[Exception] = None
    elapsed: float = 0.0


def _broadcast(agents: dict[str, Agent], names: list[str], message: str,
               verbose: bool) -> None:
    _out(f"\n  Broadcasting to {len(names)} agents...")

    def ask(name: str) -> _BroadcastReply:
        agent = agents[name]
        started = time.monotonic()
        if verbose:
            agent.on_event = _log_handler(True)
        reply, error = "", None
        try:
            reply = agent.run(message) if _has_tools(agent) else agent.send(message)
        except _AGENT_ERRORS as exc:
            error = exc
        return _BroadcastReply(agent.name, agent.persona, reply, error,
                               time.monotonic() - started)

    results: list[_BroadcastReply] = []
    if names:
        with ThreadPoolExecutor(max_workers=len(names)) as pool:
            results = list(pool.map(ask, names))

    _out()
    for result in results:
        _out(f"  ┌─ {result.name} ({result.persona}) [{_format_elapsed(result.elapsed)}]")
        if result.error is not None:
            _out(f"  │ [error: {result.error}]")
        else:
            for line in result.reply.split("\n"):
                _out(f"  │ {line}")
        _out("  └─")
        _out()


def _address(agents: dict[str, Agent], line: str, verbose: bool) -> None:
    parts = line[1:].split(" ", 1)
    name = parts[0].lower()
    if len(parts) < 2 or not parts[1].strip():
        _out(f"  Usage: @{name} <message>")
        return
    agent = agents.get(name)
    if agent is None:
        _out(f"  Unknown agent {json.dumps(name)}")
        return
    if verbose:
        agent.on_event = _log_handler(True)
    message = parts[1].strip()
    _out(f"\n  {agent.name}> ", end="")
    try:
        if _has_tools(agent):
            _out(agent.run(message))
        else:
            agent.send_stream(message, lambda chunk: _out(chunk, end=""))
    except _AGENT_ERRORS as exc:
        _err(f"\n  [error: {exc}]")
    _out("\n\n", end="")


def _cmd_warroom(ctx: _Context) -> None:
    agents = _load(ctx)
    for agent in agents.values():
        _equip(agent)
    names = sorted(agents)

    _out()
    _out("  ╔══════════════════════════════════════════════════╗")
    _out("  ║                THE WAR ROOM                     ║")
    _out("  ║     Your pantheon stands ready for battle.      ║")
    _out("  ╚══════════════════════════════════════════════════╝")
    _out()
    for name in names:
        agent = agents[name]
        _out(f"    {agent.name:<12}  {agent.persona}")
    _out()
    _out("  @<name> <msg>   Speak to an agent")
    _out("  /all <msg>      Broadcast to all")
    _out("  /list           Show agents")
    _out("  /quit           Exit")
    _out()

    for line in _prompt_lines("  you> "):
        if not line:
            continue
        if line in ("/quit", "/exit"):
            break
        if line == "/list":
            for name in names:
                agent = agents[name]
                _out(f"    {agent.name:<12}  {agent.persona:<28}  {agent.model}")
            _out()
            continue
        if line.startswith("/all "):
            _broadcast(agents, names, line[5:].strip(), ctx.verbose)
            continue
        if line.startswith("@"):
            _address(agents, line, ctx.verbose)
            continue
        _out("  Use @<name> to address an agent, /all to broadcast, /quit to exit.")
    _out("\n  The war room goes dark.")


_COMMANDS: dict[str, tuple[int, str, Callable[[_Context], None]]] = {
    "warroom": (0, "pantheon warroom", _cmd_warroom),
    "list": (0, "pantheon list", _cmd_list),
    "chat": (1, "pantheon chat <agent>", _cmd_chat),
    "ask": (2, "pantheon ask <agent> <message...>", _cmd_ask),
    "run": (2, "pantheon run <agent> <task...>", _cmd_run),
    "team": (2, "pantheon team <coordinator> <task...>", _cmd_team),
    "pipe": (2, "pantheon pipe <a1,a2,...> <input...>", _cmd_pipe),
    "review": (2, "pantheon review <r1,r2,...> <input...>", _cmd_review),
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line and return its exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    config.load_env_file()

    command = args[0] if args else "warroom"
    if command in ("help", "--help", "-h"):
        _err(USAGE, end="")
        return 0
    entry = _COMMANDS.get(command)
    if entry is None:
        _err(f"unknown command: {command}\n")
        _err(USAGE, end="")
        return 1
    min_args, usage, handler = entry
    rest = args[1:]
    if len(rest) < min_args:
        _err(f"usage: {usage}")
        return 1

    with Client(config.gateway_url(), config.api_key()) as client:
        ctx = _Context(config.skills_dir(), client, config.verbose(), rest)
        try:
            handler(ctx)
        except _CliError as exc:
            _err(str(exc))
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())