import json
import os
import sys

import pytest

from pantheon.builtin_tools import MAX_SEARCH_RESULTS, builtin_registry, shell_command
from pantheon.gateway import FunctionCall, ToolCall


def _call(name, **args):
    tool = builtin_registry().get(name)
    assert tool is not None
    return tool.execute(json.dumps(args))


def test_builtins_registry():
    registry = builtin_registry()
    for name in ["shell_exec", "read_file", "write_file", "list_dir", "search_files"]:
        assert registry.get(name) is not None, name
    assert len(registry) == 5


def test_definitions_are_strict_objects():
    defs = builtin_registry().definitions(True)
    names = [d.function.name for d in defs]
    assert names == sorted(names)
    for d in defs:
        params = d.to_dict()["function"]["parameters"]
        assert params["type"] == "object"
        assert params["additionalProperties"] is False


def test_write_then_read_roundtrip(tmp_path):
    target = tmp_path / "nested" / "dir" / "note.txt"
    result = _call("write_file", path=str(target), content="héllo")
    assert result == f"wrote 6 bytes to {target}"
    assert _call("read_file", path=str(target)) == "héllo"


def test_read_missing_file(tmp_path):
    result = _call("read_file", path=str(tmp_path / "missing.txt"))
    assert result.startswith("error: ")


def test_list_dir_marks_directories(tmp_path):
    (tmp_path / "b.txt").write_text("x")
    (tmp_path / "a_dir").mkdir()
    assert _call("list_dir", path=str(tmp_path)) == "a_dir/\nb.txt"


def test_list_dir_missing(tmp_path):
    assert _call("list_dir", path=str(tmp_path / "nope")).startswith("error: ")


def test_search_files_matches_basename(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "one.py").write_text("")
    (tmp_path / "sub" / "two.py").write_text("")
    (tmp_path / "three.txt").write_text("")
    result = _call("search_files", pattern="*.py", root=str(tmp_path))
    lines = result.splitlines()
    assert lines == [str(tmp_path / "one.py"), str(tmp_path / "sub" / "two.py")]


def test_search_files_no_matches(tmp_path):
    (tmp_path / "a.txt").write_text("")
    assert _call("search_files", pattern="*.rs", root=str(tmp_path)) == "no matches found"


def test_search_files_caps_results(tmp_path):
    for i in range(MAX_SEARCH_RESULTS + 20):
        (tmp_path / f"f{i:03}.log").write_text("")
    result = _call("search_files", pattern="*.log", root=str(tmp_path))
    assert len(result.splitlines()) == MAX_SEARCH_RESULTS


def test_shell_exec_output():
    assert _call("shell_exec", command="echo hello", workdir="") == "hello"


def test_shell_exec_no_output():
    assert _call("shell_exec", command="exit 0", workdir="") == "(no output)"


def test_shell_exec_failure_reports_exit():
    result = _call("shell_exec", command="exit 3", workdir="")
    assert result.endswith("exit: exit status 3")


def test_shell_exec_bad_workdir(tmp_path):
    result = _call("shell_exec", command="echo hi", workdir=str(tmp_path / "missing"))
    assert "exit:" in result


def test_shell_exec_via_registry_requires_fields():
    msg = builtin_registry().execute(
        ToolCall(id="t1", function=FunctionCall(name="shell_exec", arguments='{"command":"echo"}'))
    )
    assert "missing required field" in msg.content


def test_wrong_argument_type_reported():
    msg = builtin_registry().execute(
        ToolCall(id="t2", function=FunctionCall(name="read_file", arguments='{"path":5}'))
    )
    assert msg.content.startswith("error: parse args")


def test_shell_command_uses_shell_env(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("SHELL", "/bin/zsh")
    assert shell_command() == ("/bin/zsh", "-c")


def test_shell_command_windows(monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")
    assert shell_command() == ("cmd.exe", "/c")


def test_shell_command_fallback(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.delenv("SHELL", raising=False)
    shell, flag = shell_command()
    assert flag == "-c"
    assert shell in ("bash", "sh")