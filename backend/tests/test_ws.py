"""
Integration tests for the preview WebSocket endpoint.

Tests /ws/preview — join handshake, sequenced update and refresh responses,
protocol errors, and room membership.
"""

from __future__ import annotations

import json
from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi import WebSocketDisconnect

from backend.auth import create_jwt
from backend.routes.ws import AUTH_CLOSE_CODE, SUPERSEDED_CLOSE_CODE, PreviewRoomManager, room_manager
from backend.services.project_store import project_store


def _join(project_id, user_id: str, token: str) -> dict:
    return {"type": "join-project", "projectId": str(project_id), "userId": user_id, "token": token}


def _joined(ws, project, user_id: str, token: str) -> dict:
    ws.send_json(_join(project.id, user_id, token))
    return ws.receive_json()


class FakeSocket:
    """Stands in for a server-side WebSocket inside the room manager."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.close_code: int | None = None
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000) -> None:
        self.close_code = code


class TestJoin:
    def test_join_confirms_membership(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            msg = _joined(ws, project, test_user_id, token)
            assert msg["type"] == "joined-project"
            assert msg["projectId"] == str(project.id)
            assert room_manager.members(project.id) == [test_user_id]

    def test_invalid_token_rejected_and_closed(self, client, project, test_user_id):
        with client.websocket_connect("/ws/preview") as ws:
            msg = _joined(ws, project, test_user_id, "not-a-jwt")
            assert msg == {"type": "error", "message": "Invalid session token. Please sign in again.", "code": "auth"}
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_text()
            assert exc.value.code == AUTH_CLOSE_CODE

    def test_token_for_another_user_rejected(self, client, project, test_user_id, second_user_id):
        with client.websocket_connect("/ws/preview") as ws:
            msg = _joined(ws, project, test_user_id, create_jwt(second_user_id))
            assert msg["code"] == "auth"

    def test_unknown_project(self, client, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            ws.send_json(_join(uuid4(), test_user_id, token))
            assert ws.receive_json()["code"] == "not_found"

    def test_other_users_project_not_found(self, client, project, second_user_id):
        with client.websocket_connect("/ws/preview") as ws:
            ws.send_json(_join(project.id, second_user_id, create_jwt(second_user_id)))
            assert ws.receive_json()["code"] == "not_found"

    def test_malformed_join(self, client, project):
        with client.websocket_connect("/ws/preview") as ws:
            ws.send_json({"type": "join-project", "projectId": str(project.id)})
            assert ws.receive_json()["code"] == "bad_request"

    def test_malformed_json_ignored(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            ws.send_text("{not json")
            assert _joined(ws, project, test_user_id, token)["type"] == "joined-project"


class TestUpdates:
    def test_update_echoes_seq_with_document(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            ws.send_json(
                {
                    "type": "update-file",
                    "projectId": str(project.id),
                    "filePath": "src/App.tsx",
                    "content": "export default function App() { return (<p>Live</p>); }",
                    "seq": 4,
                }
            )
            msg = ws.receive_json()
            assert msg["type"] == "preview-updated"
            assert msg["seq"] == 4
            assert msg["filePath"] == "src/App.tsx"
            assert "<p>Live</p>" in msg["html"]

    def test_compile_failure_reported_with_seq(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            with patch.object(project_store, "render", side_effect=RuntimeError("compiler crashed")):
                ws.send_json(
                    {
                        "type": "update-file",
                        "projectId": str(project.id),
                        "filePath": "src/App.tsx",
                        "content": "x",
                        "seq": 3,
                    }
                )
                msg = ws.receive_json()
            assert msg == {"type": "preview-error", "error": "compiler crashed", "filePath": "src/App.tsx", "seq": 3}

    def test_refresh_echoes_seq(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            ws.send_json({"type": "refresh-preview", "projectId": str(project.id), "seq": 9})
            msg = ws.receive_json()
            assert msg["type"] == "preview-updated"
            assert msg["seq"] == 9
            assert '<h1 class="title">Hello</h1>' in msg["html"]

    def test_update_before_join(self, client, project):
        with client.websocket_connect("/ws/preview") as ws:
            ws.send_json({"type": "refresh-preview", "projectId": str(project.id), "seq": 1})
            assert ws.receive_json()["code"] == "not_joined"

    def test_update_for_other_project(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            ws.send_json({"type": "refresh-preview", "projectId": str(uuid4()), "seq": 1})
            assert ws.receive_json()["code"] == "bad_request"

    def test_invalid_update(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            ws.send_json({"type": "update-file", "projectId": str(project.id), "filePath": "a.html", "seq": 1})
            assert ws.receive_json()["code"] == "bad_request"

    def test_leave_then_update(self, client, project, test_user_id, token):
        with client.websocket_connect("/ws/preview") as ws:
            _joined(ws, project, test_user_id, token)
            ws.send_json({"type": "leave-project", "projectId": str(project.id)})
            ws.send_json({"type": "refresh-preview", "projectId": str(project.id), "seq": 2})
            assert ws.receive_json()["code"] == "not_joined"
            assert room_manager.members(project.id) == []


class TestRoomManager:
    @pytest.mark.asyncio
    async def test_rejoin_closes_prior_socket(self):
        manager = PreviewRoomManager()
        project_id = uuid4()
        first, second = FakeSocket(), FakeSocket()

        await manager.join(project_id, "user-1", first)
        await manager.join(project_id, "user-1", second)

        assert first.close_code == SUPERSEDED_CLOSE_CODE
        assert second.close_code is None
        assert manager.members(project_id) == ["user-1"]

    @pytest.mark.asyncio
    async def test_leave_ignores_replaced_socket(self):
        manager = PreviewRoomManager()
        project_id = uuid4()
        first, second = FakeSocket(), FakeSocket()
        await manager.join(project_id, "user-1", first)
        await manager.join(project_id, "user-1", second)

        manager.leave(project_id, "user-1", first)
        assert manager.members(project_id) == ["user-1"]

        manager.leave(project_id, "user-1", second)
        assert manager.members(project_id) == []

    @pytest.mark.asyncio
    async def test_broadcast_excludes_sender_and_survives_dead_sockets(self):
        manager = PreviewRoomManager()
        project_id = uuid4()
        sender, other, dead = FakeSocket(), FakeSocket(), FakeSocket(fail=True)
        await manager.join(project_id, "user-1", sender)
        await manager.join(project_id, "user-2", dead)
        await manager.join(project_id, "user-3", other)

        await manager.broadcast(project_id, {"type": "preview-updated", "html": "<p/>", "seq": None}, exclude=sender)

        assert sender.sent == []
        assert other.sent == [{"type": "preview-updated", "html": "<p/>", "seq": None}]

    @pytest.mark.asyncio
    async def test_http_update_pushes_to_room(self, async_client, project, test_user_id, token):
        member = FakeSocket()
        await room_manager.join(project.id, test_user_id, member)

        res = await async_client.put(
            f"/preview/project/{project.id}/file",
            json={"filePath": "src/App.tsx", "content": "export default function App() { return (<p>Pushed</p>); }"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert res.status_code == 200
        assert len(member.sent) == 1
        push = member.sent[0]
        assert push["seq"] is None
        assert push["html"] == res.json()["html"]
