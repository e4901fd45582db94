"""
WebSocket endpoint for real-time preview sync.

Accepts connections at /ws/preview. A client joins one project room, then
streams file updates; each update is applied to the project store,
recompiled, and answered with the compiled document. The request's seq is
echoed so the client can discard superseded responses. Other members of
the room receive the same document as an unsequenced push.

Protocol:
  Client → Server:  {"type": "join-project", "projectId", "userId", "token"}
                    {"type": "update-file", "projectId", "filePath", "content", "seq"}
                    {"type": "refresh-preview", "projectId", "seq"}
                    {"type": "leave-project", "projectId"}
  Server → Client:  {"type": "joined-project", "projectId", "message"}
                    {"type": "preview-updated", "html", "filePath"?, "seq"}
                    {"type": "preview-error", "error", "filePath"?, "seq"}
                    {"type": "error", "message", "code"}
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError

from backend.auth import verify_token
from backend.config import settings
from backend.models.preview import JoinProjectMessage, RefreshPreviewMessage, UpdateFileMessage
from backend.services.project_store import project_store

logger = logging.getLogger(__name__)

# UUID regex for validation
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

# Close code sent to a socket replaced by a newer one for the same user
SUPERSEDED_CLOSE_CODE = 4000
AUTH_CLOSE_CODE = 4401


class PreviewRoomManager:
    """
    Room membership per project. Each (project, user) pair holds at most one
    socket; joining again closes the previous one.
    """

    def __init__(self) -> None:
        self._rooms: dict[UUID, dict[str, WebSocket]] = {}

    async def join(self, project_id: UUID, user_id: str, websocket: WebSocket) -> None:
        room = self._rooms.setdefault(project_id, {})
        prior = room.get(user_id)
        room[user_id] = websocket
        if prior is not None and prior is not websocket:
            logger.info("ws: closing superseded socket project=%s user=%s", project_id, user_id)
            try:
                await prior.close(code=SUPERSEDED_CLOSE_CODE)
            except RuntimeError:
                logger.debug("ws: superseded socket already closed", exc_info=True)

    def leave(self, project_id: UUID, user_id: str, websocket: WebSocket) -> None:
        room = self._rooms.get(project_id)
        if room is None or room.get(user_id) is not websocket:
            return
        del room[user_id]
        if not room:
            del self._rooms[project_id]

    def members(self, project_id: UUID) -> list[str]:
        return list(self._rooms.get(project_id, {}))

    async def broadcast(self, project_id: UUID, message: dict[str, Any], exclude: WebSocket | None = None) -> None:
        text = json.dumps(message)
        for user_id, websocket in list(self._rooms.get(project_id, {}).items()):
            if websocket is exclude:
                continue
            try:
                await websocket.send_text(text)
            except (RuntimeError, WebSocketDisconnect):
                logger.debug("ws: broadcast to user=%s failed", user_id, exc_info=True)

    def clear(self) -> None:
        self._rooms.clear()


room_manager = PreviewRoomManager()

router = APIRouter(tags=["websocket"])


async def _send(websocket: WebSocket, message: dict[str, Any]) -> None:
    await websocket.send_text(json.dumps(message))


async def _send_error(websocket: WebSocket, message: str, code: str) -> None:
    await _send(websocket, {"type": "error", "message": message, "code": code})


async def _handle_join(websocket: WebSocket, msg: dict[str, Any]) -> tuple[UUID, str] | None:
    """Validate a join-project message. Returns (project_id, user_id) or None after replying with an error."""
    try:
        join = JoinProjectMessage.model_validate(msg)
    except ValidationError as e:
        logger.warning("ws: invalid join-project: %s", e.errors()[:1])
        await _send_error(websocket, "Invalid join-project message.", "bad_request")
        return None

    user_id = verify_token(join.token)
    if user_id is None or user_id != join.user_id:
        logger.warning("ws: join rejected for user=%s project=%s", join.user_id, join.project_id)
        await _send_error(websocket, "Invalid session token. Please sign in again.", "auth")
        await websocket.close(code=AUTH_CLOSE_CODE)
        return None

    project = None
    if _UUID_RE.match(join.project_id):
        project = project_store.get_for_user(user_id, UUID(join.project_id))
    if project is None:
        await _send_error(websocket, "Project not found.", "not_found")
        return None

    await room_manager.join(project.id, user_id, websocket)
    await _send(
        websocket,
        {
            "type": "joined-project",
            "projectId": join.project_id,
            "message": f"Joined project {join.project_id}",
        },
    )
    logger.info("ws: user=%s joined project=%s", user_id, project.id)
    return project.id, user_id


async def _handle_update(websocket: WebSocket, project_id: UUID, msg: dict[str, Any]) -> None:
    try:
        update = UpdateFileMessage.model_validate(msg)
    except ValidationError as e:
        logger.warning("ws: invalid update-file: %s", e.errors()[:1])
        await _send_error(websocket, "Invalid update-file message.", "bad_request")
        return

    try:
        project = project_store.update_file(project_id, update.file_path, update.content)
        document = project_store.render(project)
    except Exception as e:
        logger.exception("ws: compile failed project=%s file=%s", project_id, update.file_path)
        await _send(
            websocket,
            {"type": "preview-error", "error": str(e), "filePath": update.file_path, "seq": update.seq},
        )
        return

    await _send(
        websocket,
        {"type": "preview-updated", "html": document.html, "filePath": update.file_path, "seq": update.seq},
    )
    await room_manager.broadcast(
        project_id,
        {"type": "preview-updated", "html": document.html, "filePath": update.file_path, "seq": None},
        exclude=websocket,
    )


async def _handle_refresh(websocket: WebSocket, project_id: UUID, msg: dict[str, Any]) -> None:
    try:
        refresh = RefreshPreviewMessage.model_validate(msg)
    except ValidationError as e:
        logger.warning("ws: invalid refresh-preview: %s", e.errors()[:1])
        await _send_error(websocket, "Invalid refresh-preview message.", "bad_request")
        return

    project = project_store.get(project_id)
    if project is None:
        await _send_error(websocket, "Project not found.", "not_found")
        return
    try:
        document = project_store.render(project)
    except Exception as e:
        logger.exception("ws: compile failed project=%s", project_id)
        await _send(websocket, {"type": "preview-error", "error": str(e), "seq": refresh.seq})
        return
    await _send(websocket, {"type": "preview-updated", "html": document.html, "seq": refresh.seq})


@router.websocket("/ws/preview")
async def preview_websocket(websocket: WebSocket) -> None:
    """
    Project-room preview sync. The first message must be join-project and
    must arrive within WEBSOCKET_JOIN_TIMEOUT_S.
    """
    await websocket.accept()
    membership: tuple[UUID, str] | None = None

    try:
        try:
            raw = await asyncio.wait_for(websocket.receive_text(), settings.WEBSOCKET_JOIN_TIMEOUT_S)
        except TimeoutError:
            logger.info("ws: no join-project within %.0fs, closing", settings.WEBSOCKET_JOIN_TIMEOUT_S)
            await websocket.close()
            return

        while True:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                msg = None

            if isinstance(msg, dict):
                msg_type = msg.get("type")

                # ── join-project ─────────────────────────────────────
                if msg_type == "join-project":
                    if membership is not None:
                        room_manager.leave(membership[0], membership[1], websocket)
                    membership = await _handle_join(websocket, msg)
                    if membership is None and websocket.application_state == WebSocketState.DISCONNECTED:
                        return

                # ── leave-project ────────────────────────────────────
                elif msg_type == "leave-project":
                    if membership is not None:
                        room_manager.leave(membership[0], membership[1], websocket)
                        logger.info("ws: user=%s left project=%s", membership[1], membership[0])
                    membership = None

                elif membership is None:
                    await _send_error(websocket, "Join a project first.", "not_joined")

                elif str(msg.get("projectId", "")).lower() != str(membership[0]):
                    await _send_error(websocket, "Message is for a project you have not joined.", "bad_request")

                # ── update-file ──────────────────────────────────────
                elif msg_type == "update-file":
                    await _handle_update(websocket, membership[0], msg)

                # ── refresh-preview ──────────────────────────────────
                elif msg_type == "refresh-preview":
                    await _handle_refresh(websocket, membership[0], msg)

                else:
                    logger.debug("ws: ignoring message type=%s", msg_type)

            raw = await websocket.receive_text()

    except WebSocketDisconnect:
        logger.info("ws: disconnected project=%s", membership[0] if membership else None)
    except RuntimeError:
        # Socket was closed from our side (superseded by a newer join)
        logger.info("ws: socket closed project=%s", membership[0] if membership else None)
    finally:
        if membership is not None:
            room_manager.leave(membership[0], membership[1], websocket)
