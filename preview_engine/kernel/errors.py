"""
Preview Kernel — Exceptions

Stale responses are deliberately absent: a superseded result is a discard
condition handled by the scheduler, not an error.
"""

from __future__ import annotations


class PreviewError(Exception):
    """Base class for every preview engine failure."""

    kind = "compile"


class CompileError(PreviewError):
    """Source text had a shape the translator or a compiler could not handle."""

    kind = "compile"


class TransportError(PreviewError):
    """The sync channel or HTTP fallback could not reach the compile authority."""

    kind = "transport"


class AuthError(PreviewError):
    """Missing or rejected credentials on join or on an HTTP call."""

    kind = "auth"
