"""Tests for SyncChannel against an in-process fake of the compile authority socket."""

from __future__ import annotations

import asyncio

import pytest

from preview_engine.kernel.errors import AuthError, TransportError
from preview_engine.kernel.types import CompileFailed, DocumentReady, FileUpdated, RefreshRequested
from preview_engine.runtime.sync import SyncChannel, open_channel_for
from preview_engine.runtime.tests.fakes import FakeServer, wait_until

pytestmark = pytest.mark.asyncio


def _channel(server: FakeServer, user_id: str = "user-1", **kwargs) -> SyncChannel:
    kwargs.setdefault("reconnect_delay", 10.0)
    return SyncChannel("ws://authority.test/ws/preview", "proj-1", user_id, "tok", connect=server.connect, **kwargs)


class TestJoin:
    async def test_join_before_anything_else(self, server):
        channel = _channel(server)
        await channel.open()

        assert channel.connected
        assert server.last_socket.sent[0] == {
            "type": "join-project",
            "projectId": "proj-1",
            "userId": "user-1",
            "token": "tok",
        }
        assert open_channel_for("proj-1", "user-1") is channel
        await channel.close()

    async def test_close_leaves_room(self, server):
        channel = _channel(server)
        await channel.open()
        socket = server.last_socket

        await channel.close()

        assert socket.sent[-1] == {"type": "leave-project", "projectId": "proj-1"}
        assert socket.closed
        assert channel.state == "offline"
        assert open_channel_for("proj-1", "user-1") is None

    async def test_unreachable_server(self, server):
        server.refuse = True
        channel = _channel(server)

        with pytest.raises(TransportError):
            await channel.open()
        assert channel.state == "offline"
        await channel.close()

    async def test_state_changes_reported(self, server):
        states = []
        channel = _channel(server, on_state=states.append)
        await channel.open()
        await channel.close()
        assert states == ["connecting", "connected", "offline"]


class TestSingleChannel:
    async def test_second_open_closes_the_first(self, server):
        first = _channel(server)
        await first.open()
        first_socket = server.last_socket

        second = _channel(server)
        await second.open()

        assert first_socket.closed
        assert first.state == "offline"
        assert second.connected
        assert open_channel_for("proj-1", "user-1") is second
        await second.close()

    async def test_other_users_keep_their_channel(self, server):
        mine = _channel(server, user_id="user-1")
        theirs = _channel(server, user_id="user-2")
        await mine.open()
        await theirs.open()

        assert mine.connected
        assert theirs.connected
        await mine.close()
        await theirs.close()


class TestAuth:
    async def test_rejected_join_raises(self, server):
        server.reject_auth = True
        channel = _channel(server)

        with pytest.raises(AuthError):
            await channel.open()
        assert channel.auth_failures == 1
        assert channel.state == "offline"
        await channel.close()

    async def test_retries_capped_then_reconnect_required(self, server):
        server.reject_auth = True
        channel = _channel(server, max_auth_retries=3, reconnect_delay=0.01)

        with pytest.raises(AuthError):
            await channel.open()
        await wait_until(lambda: channel.state == "reconnect_required")
        await asyncio.sleep(0.05)

        assert server.connects == 3
        assert channel.auth_failures == 3
        await channel.close()

    async def test_explicit_reconnect_resets_budget(self, server):
        server.reject_auth = True
        channel = _channel(server, max_auth_retries=1)
        with pytest.raises(AuthError):
            await channel.open()
        assert channel.state == "reconnect_required"

        server.reject_auth = False
        await channel.reconnect(token="fresh")

        assert channel.connected
        assert channel.auth_failures == 0
        assert server.last_socket.sent[0]["token"] == "fresh"
        await channel.close()


class TestRequests:
    async def test_response_matched_by_seq(self, server):
        server.html = "<html>compiled</html>"
        channel = _channel(server)
        await channel.open()

        result = await channel.request(FileUpdated("app/page.tsx", "content", seq=7))

        assert isinstance(result, DocumentReady)
        assert result.seq == 7
        assert result.html == "<html>compiled</html>"
        assert server.updates[-1] == {
            "type": "update-file",
            "projectId": "proj-1",
            "filePath": "app/page.tsx",
            "content": "content",
            "seq": 7,
        }
        assert channel.pending_count == 0
        await channel.close()

    async def test_refresh_request(self, server):
        channel = _channel(server)
        await channel.open()
        result = await channel.request(RefreshRequested(seq=1))
        assert isinstance(result, DocumentReady)
        assert server.updates[-1]["type"] == "refresh-preview"
        await channel.close()

    async def test_compile_failure_returned(self, server):
        server.fail_with = "SyntaxError: Unexpected token"
        channel = _channel(server)
        await channel.open()

        result = await channel.request(FileUpdated("a.tsx", "x", seq=1))

        assert isinstance(result, CompileFailed)
        assert result.error == "SyntaxError: Unexpected token"
        await channel.close()

    async def test_unsequenced_request_rejected(self, server):
        channel = _channel(server)
        await channel.open()
        with pytest.raises(ValueError):
            await channel.request(FileUpdated("a.tsx", "x"))
        await channel.close()

    async def test_send_requires_connection(self, server):
        channel = _channel(server)
        with pytest.raises(TransportError):
            await channel.send(RefreshRequested())


class TestInbound:
    async def test_unsequenced_result_is_a_push(self, server):
        pushes = []
        channel = _channel(server, on_push=pushes.append)
        await channel.open()

        server.last_socket.push({"type": "preview-updated", "html": "<p>theirs</p>", "seq": None})
        await wait_until(lambda: len(pushes) == 1)

        assert pushes[0].html == "<p>theirs</p>"
        await channel.close()

    async def test_unmatched_and_malformed_messages_ignored(self, server):
        pushes = []
        channel = _channel(server, on_push=pushes.append)
        await channel.open()
        socket = server.last_socket

        socket.push({"type": "preview-updated", "html": "<p>late</p>", "seq": 99})
        socket.inbox.put_nowait("not json")
        socket.push({"type": "error", "code": "bad_request", "message": "nope"})
        result = await channel.request(RefreshRequested(seq=1))

        assert isinstance(result, DocumentReady)
        assert pushes == []
        assert channel.connected
        await channel.close()

    async def test_non_numeric_seq_dropped_and_reader_keeps_running(self, server):
        pushes = []
        channel = _channel(server, on_push=pushes.append)
        await channel.open()

        server.last_socket.push({"type": "preview-updated", "html": "<p>garbled</p>", "seq": "abc"})
        result = await channel.request(RefreshRequested(seq=1))

        assert isinstance(result, DocumentReady)
        assert pushes == []
        assert channel.connected
        await channel.close()


class TestDisconnect:
    async def test_pending_requests_fail(self, server):
        server.respond = False
        channel = _channel(server)
        await channel.open()

        task = asyncio.create_task(channel.request(FileUpdated("a.tsx", "x", seq=1)))
        await wait_until(lambda: channel.pending_count == 1 and len(server.updates) == 1)
        server.last_socket.drop()

        with pytest.raises(TransportError):
            await task
        assert channel.state == "offline"
        assert channel.pending_count == 0
        await channel.close()

    async def test_reconnects_and_rejoins(self, server):
        channel = _channel(server, reconnect_delay=0.01)
        await channel.open()

        server.last_socket.drop()
        await wait_until(lambda: server.connects == 2 and channel.connected)

        assert server.last_socket.sent[0]["type"] == "join-project"
        await channel.close()

    async def test_close_fails_pending(self, server):
        server.respond = False
        channel = _channel(server)
        await channel.open()

        task = asyncio.create_task(channel.request(RefreshRequested(seq=1)))
        await wait_until(lambda: channel.pending_count == 1)
        await channel.close()

        with pytest.raises(TransportError):
            await task
