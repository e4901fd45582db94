"""
TransportStrategy — where a compile actually runs.

LocalTransport compiles in-process with the kernel. RemoteTransport asks the
compile authority and degrades step by step:

  websocket (sequenced request) → HTTP (PUT file / GET html) → local compile

A remote compile that does not answer within the timeout is compiled
locally. Only a CompileFailed from the authority surfaces as a failure;
connectivity problems never do.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from preview_engine.config import settings
from preview_engine.kernel.compilers import compile_project
from preview_engine.kernel.detector import detect_framework
from preview_engine.kernel.errors import AuthError, CompileError, TransportError
from preview_engine.kernel.types import (
    CompileFailed,
    CompiledDocument,
    CompileRequest,
    ConnectionState,
    DocumentReady,
    FileUpdated,
    PreviewSession,
    RefreshRequested,
)
from preview_engine.runtime.http_client import PreviewApiClient
from preview_engine.runtime.sync import SyncChannel

logger = logging.getLogger(__name__)

PushListener = Callable[[DocumentReady], None]


class TransportStrategy:
    """Base class. One engine, parameterized by where compiles run."""

    name = "base"

    async def start(self, session: PreviewSession) -> None:
        """Prepare for compiles. Never raises."""

    async def compile(self, request: CompileRequest, session: PreviewSession) -> CompiledDocument:
        raise NotImplementedError

    async def fetch_snapshot(self, session: PreviewSession) -> str | None:
        """A precomputed document for mount, or None."""
        return None

    async def start_dev_server(self, session: PreviewSession) -> str:
        raise TransportError(f"{self.name} transport cannot start a dev server")

    async def close(self) -> None:
        pass


class LocalTransport(TransportStrategy):
    name = "local"

    async def start(self, session: PreviewSession) -> None:
        session.connection_state = "local"

    async def compile(self, request: CompileRequest, session: PreviewSession) -> CompiledDocument:
        return compile_project(request.files)


class RemoteTransport(TransportStrategy):
    name = "remote"

    def __init__(
        self,
        channel: SyncChannel | None = None,
        api: PreviewApiClient | None = None,
        timeout: float | None = None,
        local: LocalTransport | None = None,
    ):
        self.channel = channel
        self.api = api
        self.timeout = timeout if timeout is not None else settings.REMOTE_TIMEOUT_S
        self.local = local or LocalTransport()
        self.on_push: PushListener | None = None
        self._session: PreviewSession | None = None
        self._started = False
        if channel is not None:
            channel.on_push = self._handle_push
            channel.on_state = self._handle_state

    def _handle_state(self, state: ConnectionState) -> None:
        if self._session is not None:
            self._session.connection_state = state

    def _handle_push(self, message: DocumentReady | CompileFailed) -> None:
        if isinstance(message, CompileFailed):
            logger.info("transport: ignoring pushed compile error: %s", message.error)
            return
        if self.on_push is not None:
            self.on_push(message)

    async def start(self, session: PreviewSession) -> None:
        if self._started:
            return
        self._session = session
        self._started = True
        if self.channel is None:
            session.connection_state = "offline"
            return
        try:
            await self.channel.open()
        except AuthError as e:
            logger.warning("transport: join rejected for project=%s: %s", session.project_id, e)
        except TransportError as e:
            logger.warning("transport: channel unavailable for project=%s: %s", session.project_id, e)
        session.connection_state = self.channel.state

    async def compile(self, request: CompileRequest, session: PreviewSession) -> CompiledDocument:
        if not self._started:
            await self.start(session)

        if self.channel is not None and self.channel.connected:
            try:
                return await self._compile_over_channel(request)
            except TimeoutError:
                logger.warning(
                    "transport: remote compile seq=%d timed out after %.1fs, compiling locally",
                    request.seq,
                    self.timeout,
                )
                return await self.local.compile(request, session)
            except TransportError as e:
                logger.warning("transport: channel failed for seq=%d (%s), trying HTTP", request.seq, e)

        if self.api is not None and session.connection_state != "reconnect_required":
            try:
                return await self._compile_over_http(request, session)
            except AuthError as e:
                logger.warning("transport: HTTP auth rejected (%s), compiling locally", e)
                session.connection_state = "reconnect_required"
            except (TransportError, TimeoutError) as e:
                logger.warning("transport: HTTP fallback failed for seq=%d (%s), compiling locally", request.seq, e)

        return await self.local.compile(request, session)

    async def _compile_over_channel(self, request: CompileRequest) -> CompiledDocument:
        """
        Earlier edits coalesced into this request go out unsequenced; the last
        one carries the seq the response is matched on.
        """
        start = time.perf_counter()
        paths = list(request.changed)
        for path in paths[:-1]:
            await self.channel.send(FileUpdated(path, request.changed[path]))

        if paths:
            message: FileUpdated | RefreshRequested = FileUpdated(paths[-1], request.changed[paths[-1]], seq=request.seq)
        else:
            message = RefreshRequested(seq=request.seq)

        result = await asyncio.wait_for(self.channel.request(message), self.timeout)
        if isinstance(result, CompileFailed):
            raise CompileError(result.error)
        return CompiledDocument.build(
            result.html,
            detect_framework(request.files),
            (time.perf_counter() - start) * 1000,
        )

    async def _compile_over_http(self, request: CompileRequest, session: PreviewSession) -> CompiledDocument:
        start = time.perf_counter()
        html: str | None = None
        for path, content in request.changed.items():
            html = await asyncio.wait_for(self.api.update_file(session.project_id, path, content), self.timeout)
        if html is None:
            html = await asyncio.wait_for(self.api.fetch_snapshot(session.project_id), self.timeout)
        return CompiledDocument.build(html, detect_framework(request.files), (time.perf_counter() - start) * 1000)

    async def fetch_snapshot(self, session: PreviewSession) -> str | None:
        if self.api is None:
            return None
        try:
            return await asyncio.wait_for(self.api.fetch_snapshot(session.project_id), self.timeout)
        except (TransportError, AuthError, TimeoutError) as e:
            logger.info("transport: no server snapshot for project=%s: %s", session.project_id, e)
            return None

    async def start_dev_server(self, session: PreviewSession) -> str:
        if self.api is None:
            return await super().start_dev_server(session)
        return await self.api.start_dev_server(session.project_id)

    async def close(self) -> None:
        if self.channel is not None:
            await self.channel.close()
        if self.api is not None:
            await self.api.aclose()
