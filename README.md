# pantheon

A command-line toolkit for running LLM agents against any OpenAI-compatible
chat-completions endpoint. Each agent is defined by a `SKILL.md` file; agents
can use built-in tools (shell, file reading/writing, directory listing, file
search), delegate to specialists, run as sequential pipelines, or review a
task in parallel with a synthesizer combining the results.

## Installation

```
pip install .
```

For development and tests:

```
pip install ".[test]"
pytest
```

## Defining agents

Agents live in a skills directory, one sub-directory per agent, each holding a
`SKILL.md` file with YAML frontmatter between `---` lines, followed by the
system prompt:

```
.agents/skills/
  athena/SKILL.md
  kali/SKILL.md
```

```markdown
---
name: athena
description: A strategist skill
metadata:
  persona: Your Devoted Strategist
  model: opus-4
  temperature: 0.5
  max_tokens: 8192
  max_iterations: 10
  tools:
    - read_file
    - list_dir
  delegates:
    - kali
---

# Athena

You are a careful strategist...
```

`description` is required; a skill without it is skipped with a warning on
standard error. When `name` is missing, the directory name is used.
Defaults: temperature 0.7, max_tokens 4096, max_iterations 10.

Built-in tools: `shell_exec` (runs a command through `$SHELL`, `bash` or `sh`,
or `cmd.exe` on Windows, with a 60-second timeout), `read_file` (files up to
10 MB), `write_file` (creates missing parent directories), `list_dir`
(directories get a trailing `/`) and `search_files` (matches a glob against
file names, at most 100 results). A tool named in a skill but not among these
is left out with a logged warning.

## Usage

```
pantheon                                Launch the interactive War Room
pantheon warroom                        Launch the interactive War Room
pantheon list                           List all agents
pantheon chat   <agent>                 Interactive chat (no tools)
pantheon ask    <agent> <message>       One-shot (no tools)
pantheon run    <agent> <task>          Tool-using loop until a final answer
pantheon team   <coordinator> <task>    Coordinator delegates to specialists
pantheon pipe   <a1,a2,...> <input>     Sequential pipeline
pantheon review <r1,r2,...> <input>     Parallel review -> synthesizer
pantheon help                           Show the usage text
```

In `review`, the last agent listed is the synthesizer; the others review in
parallel. In `team`, the coordinator's `delegates` become callable
`ask_<name>` tools. In `pipe`, each agent receives the previous agent's
output. The command exits with status 1 on any error, such as an unknown
agent or a failed request.

`chat` saves its session as JSON under the memory directory when it ends and
restores it on the next run. Inside chat, `/reset` clears the history,
`/save` saves it at once, and `/quit` or `/exit` leaves.

In the War Room, address an agent with `@<name> <message>`, broadcast to
every agent in parallel with `/all <message>`, show agents with `/list`, and
leave with `/quit`. Agents that have tools answer through the tool loop;
the others answer directly.

## Configuration

Settings come from the environment.

| Variable      | Meaning                                                        |
|---------------|----------------------------------------------------------------|
| `GATEWAY_URL` | OpenAI-compatible endpoint (falls back to `NVIDIA_GATEWAY_URL`, then the NVIDIA integrate API) |
| `API_KEY`     | Bearer token sent to the gateway (falls back to `NVIDIA_API_KEY`) |
| `SKILLS_DIR`  | Skills directory (falls back to `AGENTS_DIR`, then the first of `.agents/skills`, `.cursor/skills`, `.claude/skills` that exists) |
| `MEMORY_DIR`  | Where chat sessions are stored (default: `.memory`)            |
| `VERBOSE`     | Set to `1` or `true` to show tool results                      |

Tool calls, errors and token counts are always logged to standard error
during `run` and `team`.

At start-up, a `.env` file fills in any variable that is not already set.
The first readable one of these is used: `../.env` relative to the
directory of the running program, then `.env` in the current directory.

Example `.env`:

```
GATEWAY_URL=http://localhost:8000/v1
API_KEY=placeholder
```

Non-streaming requests are retried up to three attempts on connection
errors and on HTTP 429, 500, 502, 503 and 504, honouring a `Retry-After`
header given in seconds. Streaming requests are not retried.

## Using it as a library

```python
from pantheon.gateway import Client
from pantheon.agent import load_all, equip_tools
from pantheon.builtin_tools import builtin_registry

with Client("http://localhost:8000/v1", api_key="placeholder") as client:
    agents = load_all(".agents/skills", client)
    athena = agents["athena"]
    equip_tools(athena, builtin_registry())
    print(athena.run("Summarise the files in this directory."))
```

- `pantheon.gateway`: `Client` with `chat`, `chat_with_tools`,
  `chat_stream` and `chat_stream_full`; message and request dataclasses;
  `GatewayError`.
- `pantheon.skill`: `parse`, `parse_bytes`, `discover`, `discover_map`,
  `split_frontmatter`; `SkillError`.
- `pantheon.tool`: `Tool`, `FunctionTool`, `Registry`, `Schema`,
  `strict_schema`, `validate_required`, `parse_args`.
- `pantheon.agent`: `Agent` with `send`, `send_stream`, `run`, `run_stream`,
  `reset`; `Event`, `EventKind`, `AgentError`.
- `pantheon.orchestrate`: `Team`, `Pipeline`, `Review`, `AgentTool`,
  `PipelineError`.
- `pantheon.memory`: `FileStore`, `WindowTrimmer`, `SummaryCompressor`,
  `session_id`.
- `pantheon.observe`: `Tracker`, `Logger`, `combine_handlers`,
  `cost_estimate`, `print_trace`.

## What it does not do

The command line does not trim or summarise long chat histories;
`WindowTrimmer` and `SummaryCompressor` are available only when using the
package as a library. Tracing with `Tracker` and cost estimates are likewise
library-only. There is no server or web interface: agents run from the
terminal or from your own code.