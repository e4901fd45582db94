"""
RenderScheduler — decides when to compile and whether to paint.

State machine:
  IDLE ──file change──▶ SCHEDULED ──debounce──▶ COMPILING ──ok──▶ RENDERED
  COMPILING ──exception──▶ FAILED ──retry()──▶ COMPILING
  any ──delegate(url)──▶ DELEGATED ──resume_local()──▶ COMPILING

Rules:
  - The debounce window restarts on every change; only the last change in a
    window issues a compile.
  - Every compile gets the next seq. A result is applied only if its seq is
    the latest issued and newer than the last applied one; anything else is
    a stale discard. In-flight compiles are never cancelled by new edits.
  - Identical content_hash to the painted document → IDLE, frame untouched.
  - A paint is one assign_srcdoc call. Then: wait for load (bounded), record
    latency, write the cache.
  - Failures keep the current frame content. With nothing painted yet, the
    error view is painted instead so the preview is never blank.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

from preview_engine.config import settings
from preview_engine.kernel.error_view import render_error_view
from preview_engine.kernel.errors import PreviewError
from preview_engine.kernel.types import (
    CompiledDocument,
    CompileRequest,
    FlatFileMap,
    Framework,
    PreviewSession,
    SchedulerState,
)
from preview_engine.runtime.cache import PreviewCache
from preview_engine.runtime.frame import PreviewFrame
from preview_engine.runtime.presenter import ErrorPresenter
from preview_engine.runtime.transport import TransportStrategy

logger = logging.getLogger(__name__)


class RenderScheduler:
    def __init__(
        self,
        session: PreviewSession,
        frame: PreviewFrame,
        transport: TransportStrategy,
        cache: PreviewCache | None = None,
        presenter: ErrorPresenter | None = None,
        debounce_s: float | None = None,
        load_timeout_s: float | None = None,
    ):
        self.session = session
        self.frame = frame
        self.transport = transport
        self.cache = cache
        self.presenter = presenter or ErrorPresenter()
        self.debounce_s = debounce_s if debounce_s is not None else settings.DEBOUNCE_S
        self.load_timeout_s = load_timeout_s if load_timeout_s is not None else settings.LOAD_TIMEOUT_S

        self.state = SchedulerState.IDLE
        self.latencies_ms: list[float] = []
        self.compile_count = 0

        self._files: FlatFileMap = {}
        self._changed: dict[str, str] = {}
        self._dirty = False
        self._issued_seq = 0
        self._applied_seq = 0
        self._debounce_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    # ── inputs ───────────────────────────────────────────────────────────

    @property
    def issued_seq(self) -> int:
        return self._issued_seq

    @property
    def applied_seq(self) -> int:
        return self._applied_seq

    @property
    def outstanding(self) -> bool:
        """True while a compile is scheduled or a sequenced result is still owed."""
        pending_debounce = self._debounce_task is not None and not self._debounce_task.done()
        return pending_debounce or self._issued_seq > self._applied_seq

    def set_files(self, files: FlatFileMap) -> None:
        """Track the current snapshot without scheduling anything."""
        self._files = dict(files)

    def file_changed(self, files: FlatFileMap, changed: Iterable[str] = ()) -> None:
        """Record an edit and (re)start the debounce window."""
        self._files = dict(files)
        for path in changed:
            # Re-insert so the most recent edit is last
            self._changed.pop(path, None)
            self._changed[path] = files.get(path, "")
        self._dirty = True

        if self.state == SchedulerState.DELEGATED:
            logger.debug("scheduler: delegated to %s, edit tracked only", self.session.dev_server_url)
            return
        if not self.session.hot_reload_enabled:
            logger.debug("scheduler: hot reload off, edit tracked only")
            return
        self._schedule()

    def _schedule(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self.state = SchedulerState.SCHEDULED
        self._debounce_task = asyncio.create_task(self._debounce())

    async def _debounce(self) -> None:
        await asyncio.sleep(self.debounce_s)
        self._debounce_task = None
        self._start_compile()

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    # ── compiling ────────────────────────────────────────────────────────

    def _start_compile(self) -> CompileRequest:
        self._issued_seq += 1
        request = CompileRequest(seq=self._issued_seq, files=dict(self._files), changed=self._changed)
        self._changed = {}
        self._dirty = False
        self.compile_count += 1
        self.state = SchedulerState.COMPILING
        logger.debug("scheduler: compile seq=%d (%d changed)", request.seq, len(request.changed))
        self._spawn(self._run(request))
        return request

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _accepts(self, seq: int) -> bool:
        return seq == self._issued_seq and seq > self._applied_seq

    async def _run(self, request: CompileRequest) -> None:
        started = time.perf_counter()
        try:
            document = await self.transport.compile(request, self.session)
        except Exception as e:
            if not self._accepts(request.seq):
                logger.info("scheduler: discarding stale failure seq=%d (latest=%d)", request.seq, self._issued_seq)
                return
            self._applied_seq = request.seq
            if not isinstance(e, PreviewError):
                logger.exception("scheduler: unexpected compile failure seq=%d", request.seq)
            self._fail(e)
            return

        if not self._accepts(request.seq):
            logger.info("scheduler: discarding stale result seq=%d (latest=%d)", request.seq, self._issued_seq)
            return
        self._applied_seq = request.seq
        self.presenter.set_offline(self.session.connection_state == "offline")
        await self._paint(document, started)

    async def _paint(self, document: CompiledDocument, started: float) -> None:
        last = self.session.last_document
        if last is not None and last.content_hash == document.content_hash and self.frame.srcdoc is not None:
            logger.debug("scheduler: content unchanged (%s), skipping paint", document.content_hash)
            self.presenter.clear()
            self.state = SchedulerState.IDLE
            return

        self.frame.assign_srcdoc(document.html)
        self.session.last_document = document
        self.presenter.clear()
        self.state = SchedulerState.RENDERED

        await self.frame.wait_loaded(self.load_timeout_s)
        latency_ms = (time.perf_counter() - started) * 1000
        self.latencies_ms.append(latency_ms)
        logger.debug("scheduler: painted %s in %.1fms", document.content_hash, latency_ms)
        if self.cache is not None:
            self.cache.store(self.session, document)

    def _fail(self, error: BaseException) -> None:
        self.state = SchedulerState.FAILED
        banner = self.presenter.present(error)
        if self.session.last_document is None:
            # Nothing good painted yet; never leave the frame blank
            self.frame.assign_srcdoc(render_error_view(banner.message, banner.kind))

    # ── commands ─────────────────────────────────────────────────────────

    def retry(self) -> CompileRequest:
        """Recompile the current snapshot immediately."""
        self._cancel_debounce()
        return self._start_compile()

    def refresh(self) -> CompileRequest:
        """On-demand compile, regardless of the hot reload toggle."""
        self._cancel_debounce()
        return self._start_compile()

    def set_hot_reload(self, enabled: bool) -> None:
        self.session.hot_reload_enabled = enabled
        logger.info("scheduler: hot reload %s", "on" if enabled else "off")
        if enabled and self._dirty and self.state != SchedulerState.DELEGATED:
            self._schedule()

    async def paint_document(self, document: CompiledDocument) -> None:
        """Paint a document that did not come from a scheduled compile (cache, server snapshot)."""
        await self._paint(document, time.perf_counter())

    def apply_push(self, html: str) -> bool:
        """
        Paint an unsolicited document pushed by the compile authority.
        Dropped while a request is outstanding or the frame is delegated.
        """
        if self.state == SchedulerState.DELEGATED or self.outstanding:
            logger.info("scheduler: discarding server push, request outstanding")
            return False
        framework = self.session.last_document.framework if self.session.last_document else Framework.GENERIC
        self._spawn(self.paint_document(CompiledDocument.build(html, framework)))
        return True

    def delegate(self, url: str) -> None:
        """Hand the frame to an external dev server; local scheduling stops."""
        self._cancel_debounce()
        # Results still in flight belong to the local preview
        self._applied_seq = self._issued_seq
        self.session.dev_server_url = url
        self.frame.point_at(url)
        self.state = SchedulerState.DELEGATED
        logger.info("scheduler: delegated to %s", url)

    def resume_local(self) -> CompileRequest:
        self.session.dev_server_url = None
        logger.info("scheduler: resuming local preview")
        return self._start_compile()

    # ── lifecycle ────────────────────────────────────────────────────────

    async def wait_idle(self) -> None:
        """Wait until no debounce or compile task remains."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if self._debounce_task is not None and not self._debounce_task.done():
                pending.append(self._debounce_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        self._cancel_debounce()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
