"""End-to-end tests for PreviewEngine: mount paths, edits, fallback and delegation."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from preview_engine.kernel.errors import TransportError
from preview_engine.kernel.types import FileNode, PreviewSession, SchedulerState
from preview_engine.runtime.cache import MemoryCacheStorage, PreviewCache
from preview_engine.runtime.engine import PreviewEngine
from preview_engine.runtime.sync import SyncChannel
from preview_engine.runtime.tests.fakes import FakeServer, http_client, wait_until
from preview_engine.runtime.transport import LocalTransport, RemoteTransport

pytestmark = pytest.mark.asyncio

DEBOUNCE_S = 0.02


def _tree(heading: str, *extra: FileNode) -> list[FileNode]:
    return [FileNode(name="index.html", content=f"<h1>{heading}</h1>"), *extra]


def _remote(server: FakeServer, handler, cache: PreviewCache | None = None) -> PreviewEngine:
    channel = SyncChannel(
        "ws://authority.test/ws/preview", "proj-1", "user-1", "tok", connect=server.connect, reconnect_delay=10.0
    )
    transport = RemoteTransport(channel=channel, api=http_client(handler))
    return PreviewEngine("proj-1", user_id="user-1", transport=transport, cache=cache, debounce_s=DEBOUNCE_S)


def _no_snapshot(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"detail": "Project not found"})


class SlowSnapshotTransport(LocalTransport):
    """Local compiles, but the mount snapshot takes a while to arrive."""

    def __init__(self, html: str | None, delay: float = 0.2):
        super().__init__()
        self.html = html
        self.delay = delay

    async def fetch_snapshot(self, session: PreviewSession) -> str | None:
        await asyncio.sleep(self.delay)
        return self.html


class TestMount:
    async def test_local_mount_compiles_and_caches(self):
        cache = PreviewCache()
        engine = PreviewEngine("proj-1", cache=cache, debounce_s=DEBOUNCE_S)

        source = await engine.mount(_tree("Hello"))

        assert source == "local"
        assert "<h1>Hello</h1>" in engine.frame.srcdoc
        assert engine.session.connection_state == "local"
        assert cache.restore(engine.session) is not None
        await engine.unmount()

    async def test_cache_hit_paints_without_network(self, server):
        storage = MemoryCacheStorage()
        first = PreviewEngine("proj-1", cache=PreviewCache(storage))
        await first.mount(_tree("Cached"))
        painted = first.frame.srcdoc
        await first.unmount()

        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="<html>server</html>")

        second = _remote(server, handler, cache=PreviewCache(storage))
        source = await second.mount(_tree("Cached"))

        assert source == "cache"
        assert second.frame.srcdoc == painted
        assert second.frame.paint_count == 1
        assert calls == []
        assert server.connects == 0
        assert second.transport.api.request_count == 0
        await second.unmount()

    async def test_server_snapshot_then_channel_joins(self, server):
        engine = _remote(server, lambda request: httpx.Response(200, text="<html>server snapshot</html>"))

        source = await engine.mount(_tree("Ignored"))

        assert source == "server"
        assert engine.frame.srcdoc == "<html>server snapshot</html>"
        assert engine.session.connection_state == "connected"
        assert server.connects == 1
        await engine.unmount()

    async def test_falls_back_to_local_compile(self, server):
        server.refuse = True
        engine = _remote(server, _no_snapshot)

        source = await engine.mount(_tree("Offline"))

        assert source == "local"
        assert "<h1>Offline</h1>" in engine.frame.srcdoc
        assert engine.session.connection_state == "offline"
        await engine.unmount()

    async def test_transport_started_after_first_paint(self):
        engine = PreviewEngine("proj-1")
        painted_before_start = []

        async def start(session):
            painted_before_start.append(engine.frame.paint_count)

        with patch.object(engine.transport, "start", AsyncMock(side_effect=start)) as mock_start:
            await engine.mount(_tree("First"))

        mock_start.assert_awaited_once_with(engine.session)
        assert painted_before_start == [1]
        await engine.unmount()

    @pytest.mark.parametrize("snapshot", ["<html><body><h1>Old snapshot</h1></body></html>", None])
    async def test_edit_during_snapshot_fetch_is_not_overwritten(self, snapshot):
        cache = PreviewCache()
        engine = PreviewEngine("proj-1", transport=SlowSnapshotTransport(snapshot), cache=cache, debounce_s=DEBOUNCE_S)

        mounting = asyncio.create_task(engine.mount(_tree("Mounted")))
        await asyncio.sleep(0.02)
        await engine.on_edit(_tree("Newest edit"))

        assert await mounting == "superseded"
        await engine.wait_idle()

        assert "<h1>Newest edit</h1>" in engine.frame.srcdoc
        assert engine.frame.paint_count == 1
        assert "<h1>Newest edit</h1>" in cache.restore(engine.session).html
        await engine.unmount()

    async def test_active_file_buffer_overrides_tree(self):
        engine = PreviewEngine("proj-1")
        await engine.mount(_tree("Saved"), "index.html", "<h1>Unsaved</h1>")
        assert "<h1>Unsaved</h1>" in engine.frame.srcdoc
        await engine.unmount()


class TestEdits:
    async def test_edit_schedules_compile(self):
        engine = PreviewEngine("proj-1", debounce_s=DEBOUNCE_S)
        await engine.mount(_tree("Before"))

        changed = await engine.on_edit(_tree("After"))
        await engine.wait_idle()

        assert changed == ["index.html"]
        assert "<h1>After</h1>" in engine.frame.srcdoc
        assert engine.state == SchedulerState.RENDERED
        await engine.unmount()

    async def test_unchanged_tree_schedules_nothing(self):
        engine = PreviewEngine("proj-1", debounce_s=DEBOUNCE_S)
        await engine.mount(_tree("Same"))

        assert await engine.on_edit(_tree("Same")) == []
        assert engine.scheduler.compile_count == 0
        await engine.unmount()

    async def test_removed_file_triggers_compile(self):
        engine = PreviewEngine("proj-1", debounce_s=DEBOUNCE_S)
        await engine.mount(_tree("Styled", FileNode(name="site.css", content="h1{color:red}")))
        assert "h1{color:red}" in engine.frame.srcdoc

        changed = await engine.on_edit(_tree("Styled"))
        await engine.wait_idle()

        assert changed == []
        assert engine.scheduler.compile_count == 1
        assert "h1{color:red}" not in engine.frame.srcdoc
        await engine.unmount()

    async def test_hot_reload_off_then_refresh(self):
        engine = PreviewEngine("proj-1", debounce_s=DEBOUNCE_S)
        await engine.mount(_tree("One"))
        engine.set_hot_reload(False)

        await engine.on_edit(_tree("Two"))
        await engine.wait_idle()
        assert "<h1>One</h1>" in engine.frame.srcdoc

        engine.refresh()
        await engine.wait_idle()
        assert "<h1>Two</h1>" in engine.frame.srcdoc
        await engine.unmount()

    async def test_disconnect_then_http_fallback_paints(self, server):
        puts = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(200, text="<html>server snapshot</html>")
            puts.append(request.url.path)
            return httpx.Response(200, json={"success": True, "html": "<html>via http</html>"})

        engine = _remote(server, handler)
        await engine.mount(_tree("v1"))
        server.last_socket.drop()
        await wait_until(lambda: engine.session.connection_state == "offline")

        await engine.on_edit(_tree("v2"))
        await engine.wait_idle()

        assert engine.frame.srcdoc == "<html>via http</html>"
        assert puts == ["/preview/project/proj-1/file"]
        assert engine.state == SchedulerState.RENDERED
        await engine.unmount()

    async def test_collaborator_push_painted(self, server):
        engine = _remote(server, lambda request: httpx.Response(200, text="<html>server snapshot</html>"))
        await engine.mount(_tree("Mine"))

        server.last_socket.push({"type": "preview-updated", "html": "<html>collaborator</html>", "seq": None})
        await wait_until(lambda: engine.frame.srcdoc == "<html>collaborator</html>")
        await engine.unmount()


class TestDevServer:
    async def test_open_and_close_externally(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/devserver/start/"):
                return httpx.Response(200, json={"url": "http://localhost:3001"})
            return httpx.Response(503)

        engine = PreviewEngine("proj-1", transport=RemoteTransport(api=http_client(handler)), debounce_s=DEBOUNCE_S)
        await engine.mount(_tree("Local"))

        url = await engine.open_externally()
        assert url == "http://localhost:3001"
        assert engine.state == SchedulerState.DELEGATED
        assert engine.frame.src == url

        await engine.on_edit(_tree("Edited while delegated"))
        await engine.wait_idle()
        assert engine.scheduler.compile_count == 0

        engine.close_externally()
        await engine.wait_idle()
        assert "<h1>Edited while delegated</h1>" in engine.frame.srcdoc
        assert engine.frame.src is None
        await engine.unmount()

    async def test_local_engine_cannot_delegate(self):
        engine = PreviewEngine("proj-1")
        await engine.mount(_tree("Local"))
        with pytest.raises(TransportError):
            await engine.open_externally()
        assert engine.state != SchedulerState.DELEGATED
        await engine.unmount()
