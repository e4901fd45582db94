"""
ErrorPresenter — what the user sees when something goes wrong.

Tracks one banner at a time plus the transient offline indicator. The
frame itself is never touched here; the scheduler decides whether the
full-document error view is painted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from preview_engine.kernel.error_view import render_error_view
from preview_engine.kernel.errors import AuthError, PreviewError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class ErrorBanner:
    kind: str
    message: str
    retryable: bool = True


class ErrorPresenter:
    def __init__(self) -> None:
        self.banner: ErrorBanner | None = None
        self.offline = False
        self.history: list[ErrorBanner] = []

    def present(self, error: BaseException) -> ErrorBanner:
        """Record a failure as the current banner and log it."""
        kind = error.kind if isinstance(error, PreviewError) else "compile"
        banner = ErrorBanner(kind=kind, message=str(error) or type(error).__name__, retryable=kind != "auth")
        self.banner = banner
        self.history.append(banner)
        if isinstance(error, TransportError):
            self.offline = True
        if isinstance(error, AuthError):
            logger.warning("presenter: auth failure: %s", banner.message)
        else:
            logger.error("presenter: %s failure: %s", kind, banner.message)
        return banner

    def set_offline(self, offline: bool) -> None:
        if offline != self.offline:
            logger.info("presenter: offline indicator %s", "on" if offline else "off")
        self.offline = offline

    def clear(self) -> None:
        self.banner = None

    def render(self) -> str | None:
        """Full error document for the current banner, or None."""
        if self.banner is None:
            return None
        return render_error_view(self.banner.message, self.banner.kind)
