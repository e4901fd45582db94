"""
PreviewEngine — one preview session, wired end to end.

Owns the session, frame, cache, presenter and scheduler, and picks the
transport (local or remote). The host UI talks only to this class:

  mount()          cache hit → paint; else server snapshot; else local compile
  on_edit()        flatten, diff, hand changed paths to the scheduler
  refresh/retry    on-demand compiles
  open_externally  delegate the frame to a dev server
  unmount()        stop tasks, leave the room, close clients
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from preview_engine.config import settings
from preview_engine.kernel.compilers import compile_project
from preview_engine.kernel.detector import detect_framework
from preview_engine.kernel.flatten import apply_override, changed_paths, flatten_tree
from preview_engine.kernel.types import (
    CompiledDocument,
    DocumentReady,
    FileNode,
    FlatFileMap,
    PreviewSession,
    SchedulerState,
)
from preview_engine.runtime.cache import PreviewCache
from preview_engine.runtime.frame import PreviewFrame
from preview_engine.runtime.http_client import PreviewApiClient
from preview_engine.runtime.presenter import ErrorPresenter
from preview_engine.runtime.scheduler import RenderScheduler
from preview_engine.runtime.sync import Connector, SyncChannel
from preview_engine.runtime.transport import LocalTransport, RemoteTransport, TransportStrategy

logger = logging.getLogger(__name__)

Tree = FileNode | Iterable[FileNode]


class PreviewEngine:
    def __init__(
        self,
        project_id: str,
        *,
        user_id: str | None = None,
        route: str | None = None,
        transport: TransportStrategy | None = None,
        frame: PreviewFrame | None = None,
        cache: PreviewCache | None = None,
        presenter: ErrorPresenter | None = None,
        debounce_s: float | None = None,
        load_timeout_s: float | None = None,
    ):
        self.session = PreviewSession(project_id=project_id, user_id=user_id, route=route)
        self.frame = frame or PreviewFrame()
        self.cache = cache or PreviewCache()
        self.presenter = presenter or ErrorPresenter()
        self.transport = transport or LocalTransport()
        self.scheduler = RenderScheduler(
            self.session,
            self.frame,
            self.transport,
            cache=self.cache,
            presenter=self.presenter,
            debounce_s=debounce_s,
            load_timeout_s=load_timeout_s,
        )
        self.files: FlatFileMap = {}
        if isinstance(self.transport, RemoteTransport):
            self.transport.on_push = self._on_push

    @classmethod
    def remote(
        cls,
        project_id: str,
        user_id: str,
        token: str,
        *,
        api_url: str | None = None,
        ws_url: str | None = None,
        connect: Connector | None = None,
        **kwargs,
    ) -> PreviewEngine:
        """An engine that compiles on the compile authority, with local fallback."""
        api = PreviewApiClient(api_url or settings.API_URL, token=token)
        channel = SyncChannel(ws_url or settings.WS_URL, project_id, user_id, token, connect=connect)
        return cls(project_id, user_id=user_id, transport=RemoteTransport(channel=channel, api=api), **kwargs)

    @property
    def state(self) -> SchedulerState:
        return self.scheduler.state

    def _snapshot(self, tree: Tree, active_file: str | None, active_file_content: str | None) -> FlatFileMap:
        return apply_override(flatten_tree(tree), active_file, active_file_content)

    def _on_push(self, message: DocumentReady) -> None:
        self.scheduler.apply_push(message.html)

    def _superseded(self, issued_seq: int) -> bool:
        return self.scheduler.issued_seq != issued_seq or self.scheduler.outstanding

    async def mount(
        self,
        tree: Tree = (),
        active_file: str | None = None,
        active_file_content: str | None = None,
    ) -> str:
        """
        First paint for the session. Returns where it came from:
        "cache", "server" or "local". Returns "superseded" when an edit
        arrived while the snapshot was in flight; that edit's compile paints.
        """
        self.files = self._snapshot(tree, active_file, active_file_content)
        self.scheduler.set_files(self.files)

        cached = self.cache.restore(self.session)
        if cached is not None:
            logger.info("engine: restored %s from cache", self.session.session_key)
            await self.scheduler.paint_document(cached)
            return "cache"

        issued_seq = self.scheduler.issued_seq
        html = await self.transport.fetch_snapshot(self.session)
        if self._superseded(issued_seq):
            logger.info("engine: discarding stale mount snapshot for %s, edit outstanding", self.session.session_key)
            await self.transport.start(self.session)
            return "superseded"

        if html:
            document = CompiledDocument.build(html, detect_framework(self.files))
            await self.scheduler.paint_document(document)
            await self.transport.start(self.session)
            return "server"

        await self.scheduler.paint_document(compile_project(self.files))
        await self.transport.start(self.session)
        return "local"

    async def on_edit(
        self,
        tree: Tree,
        active_file: str | None = None,
        active_file_content: str | None = None,
    ) -> list[str]:
        """Diff the new snapshot against the last one and schedule a compile if anything moved."""
        files = self._snapshot(tree, active_file, active_file_content)
        changed = changed_paths(self.files, files)
        removed = self.files.keys() - files.keys()
        self.files = files
        if not changed and not removed:
            return []
        self.scheduler.file_changed(files, changed)
        return changed

    def set_hot_reload(self, enabled: bool) -> None:
        self.scheduler.set_hot_reload(enabled)

    def refresh(self) -> None:
        self.scheduler.refresh()

    def retry(self) -> None:
        self.scheduler.retry()

    async def open_externally(self) -> str:
        """Start the project's dev server and point the frame at it."""
        url = await self.transport.start_dev_server(self.session)
        self.scheduler.delegate(url)
        return url

    def close_externally(self) -> None:
        self.scheduler.resume_local()

    async def wait_idle(self) -> None:
        await self.scheduler.wait_idle()

    async def unmount(self) -> None:
        await self.scheduler.close()
        await self.transport.close()
