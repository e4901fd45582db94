"""
Preview Kernel — the pure half of the engine.

  flatten    — FileNode tree → FlatFileMap
  detector   — FlatFileMap → Framework
  jsx        — textual JSX → static HTML
  compilers  — FlatFileMap → complete HTML document (never raises)
  sentinels  — special-case static mocks, consulted before translation
  error_view — full-document error rendering

No IO here. Scheduling, sockets and HTTP live in preview_engine.runtime.
"""

from preview_engine.kernel.compilers import COMPILERS, compile_html, compile_project
from preview_engine.kernel.detector import detect_framework
from preview_engine.kernel.error_view import render_error_view
from preview_engine.kernel.errors import AuthError, CompileError, PreviewError, TransportError
from preview_engine.kernel.flatten import apply_override, changed_paths, flatten_tree
from preview_engine.kernel.jsx import translate_component, translate_jsx
from preview_engine.kernel.sentinels import Sentinel, SentinelRegistry, default_registry
from preview_engine.kernel.types import (
    CompiledDocument,
    FileNode,
    Framework,
    PreviewSession,
    SchedulerState,
)

__all__ = [
    "COMPILERS",
    "compile_html",
    "compile_project",
    "detect_framework",
    "render_error_view",
    "PreviewError",
    "CompileError",
    "TransportError",
    "AuthError",
    "flatten_tree",
    "apply_override",
    "changed_paths",
    "translate_component",
    "translate_jsx",
    "Sentinel",
    "SentinelRegistry",
    "default_registry",
    "CompiledDocument",
    "FileNode",
    "Framework",
    "PreviewSession",
    "SchedulerState",
]
