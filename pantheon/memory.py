"""Conversation persistence and history-shrinking strategies."""

from __future__ import annotations

import hashlib
import json
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from pantheon.gateway import Message

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def _format_time(moment: datetime) -> str:
    return moment.isoformat()


def _parse_time(text: Any) -> datetime:
    if not text:
        return _ZERO_TIME
    value = str(text).strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    # fromisoformat before 3.11 accepts at most six fractional digits
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(value)


@dataclass
class SessionInfo:
    """Summary of one stored session."""

    id: str
    agent: str
    messages: int
    updated_at: datetime


@dataclass
class _Session:
    id: str
    agent: str = ""
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = _ZERO_TIME
    updated_at: datetime = _ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agent": self.agent,
            "messages": [m.to_dict() for m in self.messages],
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "_Session":
        if not isinstance(data, dict):
            raise TypeError("session must be a JSON object")
        return cls(
            id=str(data.get("id") or ""),
            agent=str(data.get("agent") or ""),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
        )


class FileStore:
    """Keeps each session as a JSON file in a directory."""

    def __init__(self, directory: str) -> None:
        os.makedirs(directory, mode=0o755, exist_ok=True)
        self.directory = directory

    def _path(self, session_id: str) -> str:
        return os.path.join(self.directory, session_id + ".json")

    def _load_session(self, session_id: str) -> _Session:
        with open(self._path(session_id), encoding="utf-8") as handle:
            text = handle.read()
        try:
            return _Session.from_dict(json.loads(text))
        except (ValueError, TypeError, AttributeError) as exc:
            raise ValueError(f"unmarshal session: {exc}") from exc

    def save(self, session_id: str, messages: Sequence[Message]) -> None:
        """Write the messages, keeping the creation time and agent of an earlier save."""
        session = _Session(id=session_id, messages=list(messages), updated_at=_now())
        try:
            existing = self._load_session(session_id)
        except (OSError, ValueError):
            session.created_at = _now()
        else:
            session.created_at = existing.created_at
            session.agent = existing.agent
        data = json.dumps(session.to_dict(), indent=2, ensure_ascii=False)
        with open(self._path(session_id), "w", encoding="utf-8") as handle:
            handle.write(data)

    def load(self, session_id: str) -> list[Message]:
        """Messages of a stored session; raises OSError if it is missing."""
        return self._load_session(session_id).messages

    def list(self) -> list[SessionInfo]:
        """Every readable session in the directory, ordered by file name."""
        infos = []
        for entry in sorted(os.scandir(self.directory), key=lambda e: e.name):
            if entry.is_dir() or not entry.name.endswith(".json"):
                continue
            try:
                session = self._load_session(entry.name[: -len(".json")])
            except (OSError, ValueError):
                continue
            infos.append(
                SessionInfo(
                    id=session.id,
                    agent=session.agent,
                    messages=len(session.messages),
                    updated_at=session.updated_at,
                )
            )
        return infos


def session_id(agent_name: str, label: str) -> str:
    """A deterministic 16-hex-digit ID for an agent and a label."""
    digest = hashlib.sha256(f"{agent_name}:{label}".encode("utf-8")).digest()
    return digest[:8].hex()


def _conversation_start(messages: Sequence[Message]) -> int:
    return next((i for i, m in enumerate(messages) if m.role == "user"), 0)


@dataclass
class WindowTrimmer:
    """Keeps the messages before the first user turn plus the last N pairs."""

    max_pairs: int

    def trim(self, messages: Sequence[Message]) -> list[Message]:
        start = _conversation_start(messages)
        prefix, conversation = list(messages[:start]), list(messages[start:])
        limit = self.max_pairs * 2
        if len(conversation) <= limit:
            return list(messages)
        return prefix + conversation[len(conversation) - limit:]


@dataclass
class SummaryCompressor:
    """Replaces older turns with a summary once a conversation grows too long."""

    threshold_pairs: int
    keep_pairs: int
    summarize: Callable[[list[Message]], str]

    def compress(self, messages: Sequence[Message]) -> list[Message]:
        start = _conversation_start(messages)
        prefix, conversation = list(messages[:start]), list(messages[start:])
        if len(conversation) // 2 <= self.threshold_pairs:
            return list(messages)
        cut = max(len(conversation) - self.keep_pairs * 2, 0)
        to_summarize, to_keep = conversation[:cut], conversation[cut:]
        try:
            summary: Optional[str] = self.summarize(to_summarize)
        except Exception:  # a failed summary leaves the history untouched
            return list(messages)
        note = Message(role="system", content=f"[Conversation summary: {summary}]")
        return prefix + [note] + to_keep