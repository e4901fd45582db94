"""
PreviewFrame — the single paint surface.

Models the sandboxed iframe the host UI mirrors into the DOM. Only the
RenderScheduler mutates it. A paint is one assignment of srcdoc; there is
no intermediate blank state.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

LOCAL_SANDBOX = "allow-scripts allow-same-origin allow-forms"
DELEGATED_SANDBOX = LOCAL_SANDBOX + " allow-popups allow-modals"


class PreviewFrame:
    """
    In-process stand-in for the preview iframe.

    auto_load=True fires the load notification immediately after every
    assignment (headless use and tests). A host bridge sets auto_load=False
    and calls notify_loaded() when the real iframe fires onload.
    """

    def __init__(self, auto_load: bool = True):
        self.srcdoc: str | None = None
        self.src: str | None = None
        self.sandbox: str = LOCAL_SANDBOX
        self.paint_count = 0
        self.auto_load = auto_load
        self._loaded = asyncio.Event()

    def assign_srcdoc(self, html: str) -> None:
        """Replace the document in one step."""
        self._loaded.clear()
        self.src = None
        self.sandbox = LOCAL_SANDBOX
        self.srcdoc = html
        self.paint_count += 1
        if self.auto_load:
            self._loaded.set()

    def point_at(self, url: str) -> None:
        """Hand the frame to an external dev server."""
        self._loaded.clear()
        self.srcdoc = None
        self.src = url
        self.sandbox = DELEGATED_SANDBOX
        if self.auto_load:
            self._loaded.set()

    def notify_loaded(self) -> None:
        self._loaded.set()

    async def wait_loaded(self, timeout: float) -> bool:
        """True if the frame reported load within timeout."""
        try:
            await asyncio.wait_for(self._loaded.wait(), timeout)
        except TimeoutError:
            logger.warning("frame: load notification not received within %.1fs", timeout)
            return False
        return True
