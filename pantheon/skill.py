"""Parsing and discovery of SKILL.md files."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import yaml

SKILL_FILE = "SKILL.md"


class SkillError(Exception):
    """Raised when a skill cannot be read or is invalid."""


@dataclass
class Metadata:
    persona: str = ""
    model: str = ""
    temperature: Optional[float] = None
    max_tokens: int = 0
    max_iterations: int = 0
    tools: list[str] = field(default_factory=list)
    delegates: list[str] = field(default_factory=list)


@dataclass
class Skill:
    name: str = ""
    description: str = ""
    license: str = ""
    body: str = ""
    path: str = ""
    metadata: Metadata = field(default_factory=Metadata)


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise TypeError(f"expected a scalar, got {type(value).__name__}")
    return str(value)


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"expected an integer, got {value!r}")
    return int(value)


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise TypeError(f"expected a number, got {value!r}")
    return float(value)


def _to_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"expected a list, got {value!r}")
    return [_to_str(item) for item in value]


def _mapping(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"expected a mapping, got {value!r}")
    return value


def _build_skill(frontmatter: str) -> Skill:
    data = _mapping(yaml.safe_load(frontmatter))
    meta = _mapping(data.get("metadata"))
    return Skill(
        name=_to_str(data.get("name")),
        description=_to_str(data.get("description")),
        license=_to_str(data.get("license")),
        metadata=Metadata(
            persona=_to_str(meta.get("persona")),
            model=_to_str(meta.get("model")),
            temperature=_to_float(meta.get("temperature")),
            max_tokens=_to_int(meta.get("max_tokens")),
            max_iterations=_to_int(meta.get("max_iterations")),
            tools=_to_list(meta.get("tools")),
            delegates=_to_list(meta.get("delegates")),
        ),
    )


def split_frontmatter(data: Union[bytes, str]) -> tuple[str, str]:
    """Split YAML frontmatter between ``---`` lines from the markdown body."""
    content = (data.decode("utf-8") if isinstance(data, bytes) else data).strip()
    if not content.startswith("---"):
        return "", content
    rest = content[3:]
    idx = rest.find("\n---")
    if idx < 0:
        return "", content
    return rest[:idx].strip(), rest[idx + 4:].strip()


def parse_bytes(data: Union[bytes, str], path: str) -> Skill:
    """Parse SKILL.md content; ``path`` is recorded and used in messages."""
    try:
        frontmatter, body = split_frontmatter(data)
    except UnicodeDecodeError as exc:
        raise SkillError(f"parse skill {path}: {exc}") from exc

    skill = Skill()
    if frontmatter:
        try:
            skill = _build_skill(frontmatter)
        except (yaml.YAMLError, TypeError, ValueError) as exc:
            raise SkillError(f"parse skill frontmatter {path}: {exc}") from exc

    if not skill.description:
        raise SkillError(f"skill {path}: missing required field 'description'")
    if not skill.name:
        skill.name = os.path.basename(os.path.dirname(path))
    skill.body = body
    skill.path = path
    return skill


def parse(path: str) -> Skill:
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise SkillError(f"read skill {path}: {exc}") from exc
    return parse_bytes(data, path)


def discover(directory: str) -> list[Skill]:
    """Find and parse every ``<directory>/*/SKILL.md``, skipping invalid ones."""
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as exc:
        raise SkillError(f"read skills dir {directory}: {exc}") from exc

    skills = []
    for entry in entries:
        if not entry.is_dir():
            continue
        path = os.path.join(directory, entry.name, SKILL_FILE)
        if not os.path.exists(path):
            continue
        try:
            skills.append(parse(path))
        except SkillError as exc:
            print(f"warning: skipping {path}: {exc}", file=sys.stderr)
    return skills


def discover_map(directory: str) -> dict[str, Skill]:
    return {skill.name: skill for skill in discover(directory)}