"""Built-in tools: shell commands and basic file-system access."""

from __future__ import annotations

import fnmatch
import os
import shutil
import subprocess
import sys
from itertools import islice
from typing import Any, Iterator

from pantheon.tool import (
    FunctionTool,
    Registry,
    Schema,
    ToolArgumentError,
    parse_args,
    strict_schema,
)

MAX_READ_SIZE = 10 << 20
SHELL_TIMEOUT = 60.0
MAX_SEARCH_RESULTS = 100


def _string_arg(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ToolArgumentError(f"parse args: field {key!r} must be a string")
    return value


def shell_command() -> tuple[str, str]:
    """The shell and its command flag used by ``shell_exec``."""
    if sys.platform == "win32":
        return "cmd.exe", "/c"
    shell = os.environ.get("SHELL")
    if shell:
        return shell, "-c"
    if shutil.which("bash"):
        return "bash", "-c"
    return "sh", "-c"


def _shell_exec(args_json: str) -> str:
    args = parse_args(args_json)
    command = _string_arg(args, "command")
    workdir = _string_arg(args, "workdir")
    shell, flag = shell_command()
    try:
        completed = subprocess.run(
            [shell, flag, command],
            cwd=workdir or None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            timeout=SHELL_TIMEOUT,
        )
    except subprocess.TimeoutExpired as exc:
        output = (exc.output or b"").decode("utf-8", errors="replace").strip()
        return f"{output}\nexit: timed out after {SHELL_TIMEOUT:g} seconds"
    except OSError as exc:
        return f"\nexit: {exc}"
    result = completed.stdout.decode("utf-8", errors="replace").strip()
    code = completed.returncode
    if code > 0:
        return f"{result}\nexit: exit status {code}"
    if code < 0:
        return f"{result}\nexit: signal: {-code}"
    return result or "(no output)"


def _read_file(args_json: str) -> str:
    path = _string_arg(parse_args(args_json), "path")
    try:
        size = os.stat(path).st_size
        if size > MAX_READ_SIZE:
            return f"error: file is too large ({size} bytes, max {MAX_READ_SIZE} bytes)"
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        return f"error: {exc}"
    return data.decode("utf-8", errors="replace")


def _write_file(args_json: str) -> str:
    args = parse_args(args_json)
    path = _string_arg(args, "path")
    content = _string_arg(args, "content")
    data = content.encode("utf-8")
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "wb") as handle:
            handle.write(data)
    except OSError as exc:
        return f"error: {exc}"
    return f"wrote {len(data)} bytes to {path}"


def _list_dir(args_json: str) -> str:
    path = _string_arg(parse_args(args_json), "path")
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as exc:
        return f"error: {exc}"
    names = [
        entry.name + "/" if entry.is_dir(follow_symlinks=False) else entry.name
        for entry in entries
    ]
    return "\n".join(names).strip()


def _walk(root: str) -> Iterator[str]:
    """Yield ``root`` and everything below it in lexical order, without following links."""
    yield root
    if os.path.islink(root) or not os.path.isdir(root):
        return
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError:
        return
    for entry in entries:
        path = os.path.normpath(os.path.join(root, entry.name))
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(path)
        else:
            yield path


def _search_files(args_json: str) -> str:
    args = parse_args(args_json)
    pattern = _string_arg(args, "pattern")
    root = _string_arg(args, "root") or "."
    if not os.path.lexists(root):
        return "no matches found"
    found = (
        path for path in _walk(root)
        if fnmatch.fnmatchcase(os.path.basename(path) or path, pattern)
    )
    matches = list(islice(found, MAX_SEARCH_RESULTS))
    if not matches:
        return "no matches found"
    return "\n".join(matches)


def _shell_tool() -> FunctionTool:
    return FunctionTool(
        name="shell_exec",
        description=(
            "Execute a shell command in the system shell and return combined stdout/stderr output. "
            "Use this tool to run build commands, install packages, query system state, or perform "
            "any operation available via the command line. "
            "The command times out after 60 seconds; long-running processes will be killed and an "
            "error returned. "
            "On Windows the command runs via cmd.exe; on Unix it uses the user's default shell. "
            "Returns '(no output)' when the command succeeds but produces no output."
        ),
        parameters=strict_schema(
            {
                "command": Schema(
                    type="string",
                    description="The shell command to execute, e.g. 'make test' or 'ls -la'",
                ),
                "workdir": Schema(
                    type="string",
                    description=(
                        "Working directory for the command. "
                        "Pass an empty string to use the current directory"
                    ),
                ),
            },
            ["command", "workdir"],
        ),
        fn=_shell_exec,
    )


def _read_file_tool() -> FunctionTool:
    return FunctionTool(
        name="read_file",
        description=(
            "Read the full contents of a file and return it as a UTF-8 string. "
            "Use this tool when you need to inspect source code, configuration files, or any "
            "text file. "
            "Returns a descriptive error message if the file does not exist or cannot be read. "
            "This tool does not support binary files; use shell_exec for binary operations."
        ),
        parameters=strict_schema(
            {
                "path": Schema(
                    type="string",
                    description="Absolute or relative file path to read, e.g. 'src/main.py'",
                ),
            },
            ["path"],
        ),
        fn=_read_file,
    )


def _write_file_tool() -> FunctionTool:
    return FunctionTool(
        name="write_file",
        description=(
            "Write text content to a file, creating any missing parent directories automatically. "
            "Use this tool to create new files or overwrite existing ones with the provided content. "
            "The file is written with UTF-8 encoding. "
            "Returns a confirmation with the number of bytes written, or an error if the write fails."
        ),
        parameters=strict_schema(
            {
                "path": Schema(
                    type="string",
                    description=(
                        "Absolute or relative file path to write, e.g. 'output/result.json'"
                    ),
                ),
                "content": Schema(
                    type="string", description="The full text content to write to the file"
                ),
            },
            ["path", "content"],
        ),
        fn=_write_file,
    )


def _list_dir_tool() -> FunctionTool:
    return FunctionTool(
        name="list_dir",
        description=(
            "List all files and subdirectories in a directory, one entry per line. "
            "Directory entries are suffixed with '/' to distinguish them from files. "
            "Use this tool to explore project structure or verify that expected files exist. "
            "Returns an error if the path does not exist or is not a directory."
        ),
        parameters=strict_schema(
            {
                "path": Schema(
                    type="string",
                    description=(
                        "Absolute or relative path to the directory to list, e.g. 'src/'"
                    ),
                ),
            },
            ["path"],
        ),
        fn=_list_dir,
    )


def _search_files_tool() -> FunctionTool:
    return FunctionTool(
        name="search_files",
        description=(
            "Recursively search for files whose names match a glob pattern, starting from a root "
            "directory. "
            "Returns matching file paths (one per line), capped at 100 results. "
            "The pattern is matched against the file basename only, not the full path — use "
            "'*.py' not '**/*.py'. "
            "Returns 'no matches found' if no files match the pattern."
        ),
        parameters=strict_schema(
            {
                "pattern": Schema(
                    type="string",
                    description=(
                        "Glob pattern matched against file names, e.g. '*.py', '*.test.js', "
                        "'Makefile'"
                    ),
                ),
                "root": Schema(
                    type="string",
                    description=(
                        "Root directory to search from. "
                        "Pass an empty string to use the current directory"
                    ),
                ),
            },
            ["pattern", "root"],
        ),
        fn=_search_files,
    )


def builtin_registry() -> Registry:
    """A registry holding every built-in tool."""
    registry = Registry()
    for tool in (
        _shell_tool(),
        _read_file_tool(),
        _write_file_tool(),
        _list_dir_tool(),
        _search_files_tool(),
    ):
        registry.register(tool)
    return registry