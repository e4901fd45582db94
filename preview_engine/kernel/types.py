"""
Preview Kernel — Shared Types

Data classes used across the flattener, detector, compilers, scheduler and
sync channel. These are the contracts that bind the engine together.

Wire messages (SyncMessage variants) mirror the compile-authority protocol:
  client → server: join-project, update-file, refresh-preview, leave-project
  server → client: joined-project, preview-updated, preview-error, error
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------

FlatFileMap = dict[str, str]

ConnectionState = Literal["local", "connecting", "connected", "offline", "reconnect_required"]

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Framework(str, Enum):
    """Project shapes the detector can resolve to."""

    NEXTJS = "nextjs"
    VUE = "vue"
    EXPRESS_API = "express"
    REACT = "react"
    GENERIC = "generic"


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    COMPILING = "compiling"
    RENDERED = "rendered"
    FAILED = "failed"
    DELEGATED = "delegated"


# ---------------------------------------------------------------------------
# File tree
# ---------------------------------------------------------------------------


@dataclass
class FileNode:
    """
    One node of the editor's file tree.
    Read-only snapshot: the engine never mutates nodes it is handed.
    """

    name: str
    kind: Literal["file", "directory"] = "file"
    content: str | None = None
    children: list[FileNode] = field(default_factory=list)

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FileNode:
        # The editor sends "folder"; the compile authority stores "directory"
        raw_kind = d.get("kind") or d.get("type") or "file"
        kind: Literal["file", "directory"] = "file" if raw_kind == "file" else "directory"
        return cls(
            name=d["name"],
            kind=kind,
            content=d.get("content"),
            children=[cls.from_dict(c) for c in d.get("children") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "kind": self.kind}
        if self.content is not None:
            d["content"] = self.content
        if self.children:
            d["children"] = [c.to_dict() for c in self.children]
        return d


# ---------------------------------------------------------------------------
# Compiled output
# ---------------------------------------------------------------------------


def content_hash(html: str) -> str:
    """
    Deterministic hash of a compiled document, used by the skip rule.

    Returns the first 16 hex characters of SHA-256; 64 bits is plenty for
    telling two consecutive renders apart.
    """
    return hashlib.sha256(html.encode("utf-8")).hexdigest()[:16]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CompiledDocument:
    """
    One compiler run's output.
    Replaces the session's previous document only when content_hash differs.
    """

    html: str
    content_hash: str
    compiled_at_ms: int
    framework: Framework
    compile_duration_ms: float = 0.0

    @classmethod
    def build(
        cls,
        html: str,
        framework: Framework,
        compile_duration_ms: float = 0.0,
    ) -> CompiledDocument:
        return cls(
            html=html,
            content_hash=content_hash(html),
            compiled_at_ms=now_ms(),
            framework=framework,
            compile_duration_ms=compile_duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "html": self.html,
            "content_hash": self.content_hash,
            "compiled_at_ms": self.compiled_at_ms,
            "framework": self.framework.value,
            "compile_duration_ms": self.compile_duration_ms,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompiledDocument:
        html = d["html"]
        return cls(
            html=html,
            content_hash=d.get("content_hash") or content_hash(html),
            compiled_at_ms=d.get("compiled_at_ms", 0),
            framework=Framework(d.get("framework", Framework.GENERIC.value)),
            compile_duration_ms=d.get("compile_duration_ms", 0.0),
        )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


def session_key_for(project_id: str, route: str | None = None) -> str:
    """Stable cache key: the same project (and route) always maps to the same key."""
    key = f"preview:{project_id}"
    if route:
        key += f":{route.strip('/') or 'index'}"
    return key


@dataclass
class PreviewSession:
    """
    State of one mounted preview.
    Created on mount, discarded on unmount. last_document is the reference
    the skip rule compares against.
    """

    project_id: str
    user_id: str | None = None
    route: str | None = None
    session_key: str = ""
    last_document: CompiledDocument | None = None
    hot_reload_enabled: bool = True
    connection_state: ConnectionState = "local"
    dev_server_url: str | None = None

    def __post_init__(self) -> None:
        if not self.session_key:
            self.session_key = session_key_for(self.project_id, self.route)

    @property
    def dev_server_active(self) -> bool:
        return self.dev_server_url is not None


@dataclass
class CompileRequest:
    """
    One issued compile.
    seq is monotonic per scheduler; changed holds the edits coalesced inside
    the debounce window (path → content), in edit order.
    """

    seq: int
    files: FlatFileMap
    changed: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sync messages
# ---------------------------------------------------------------------------


@dataclass
class FileUpdated:
    path: str
    content: str
    seq: int | None = None

    def to_wire(self, project_id: str) -> dict[str, Any]:
        return {
            "type": "update-file",
            "projectId": project_id,
            "filePath": self.path,
            "content": self.content,
            "seq": self.seq,
        }


@dataclass
class RefreshRequested:
    seq: int | None = None

    def to_wire(self, project_id: str) -> dict[str, Any]:
        return {"type": "refresh-preview", "projectId": project_id, "seq": self.seq}


@dataclass
class DocumentReady:
    html: str
    seq: int | None = None
    file_path: str | None = None


@dataclass
class CompileFailed:
    error: str
    seq: int | None = None
    file_path: str | None = None


SyncMessage = FileUpdated | RefreshRequested | DocumentReady | CompileFailed


def parse_server_message(msg: dict[str, Any]) -> DocumentReady | CompileFailed | None:
    """
    Convert an inbound preview event to its SyncMessage variant.
    Returns None for events that are not compile results (joined-project, error)
    and for results whose seq is not an integer.
    """
    msg_type = msg.get("type")
    seq = msg.get("seq")
    if seq is not None:
        try:
            seq = int(seq)
        except (TypeError, ValueError):
            return None
    if msg_type == "preview-updated":
        return DocumentReady(html=msg.get("html", ""), seq=seq, file_path=msg.get("filePath"))
    if msg_type == "preview-error":
        return CompileFailed(error=msg.get("error") or "Unknown error", seq=seq, file_path=msg.get("filePath"))
    return None
