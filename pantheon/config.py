"""Settings read from the environment and from ``.env`` files."""

from __future__ import annotations

import os
import sys
from pathlib import Path

DEFAULT_GATEWAY_URL = "https://integrate.api.nvidia.com/v1"
DEFAULT_MEMORY_DIR = ".memory"

_SKILL_DIR_CANDIDATES = (
    os.path.join(".agents", "skills"),
    os.path.join(".cursor", "skills"),
    os.path.join(".claude", "skills"),
)


def skills_dir() -> str:
    """Directory holding skill definitions."""
    for var in ("SKILLS_DIR", "AGENTS_DIR"):
        value = os.environ.get(var)
        if value:
            return value
    for candidate in _SKILL_DIR_CANDIDATES:
        if os.path.isdir(candidate):
            return candidate
    return _SKILL_DIR_CANDIDATES[0]


def gateway_url() -> str:
    for var in ("GATEWAY_URL", "NVIDIA_GATEWAY_URL"):
        value = os.environ.get(var)
        if value:
            return value.rstrip("/")
    return DEFAULT_GATEWAY_URL


def api_key() -> str:
    return os.environ.get("API_KEY") or os.environ.get("NVIDIA_API_KEY", "")


def memory_dir() -> str:
    return os.environ.get("MEMORY_DIR") or DEFAULT_MEMORY_DIR


def verbose() -> bool:
    return os.environ.get("VERBOSE", "") in ("1", "true")


def _default_env_paths() -> list[str]:
    paths = [".env"]
    if sys.argv and sys.argv[0]:
        program_dir = Path(sys.argv[0]).resolve().parent
        paths.insert(0, str(program_dir / ".." / ".env"))
    return paths


def load_env_file(*paths: str) -> None:
    """Load the first readable ``.env`` file, keeping variables already set."""
    for path in paths or _default_env_paths():
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError:
            continue
        except UnicodeDecodeError as exc:
            print(f"warning: reading {path}: {exc}", file=sys.stderr)
            return
        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip()
            value = value.strip().strip("\"'")
            if not os.environ.get(key):
                os.environ[key] = value
        return