"""
SyncChannel — real-time link to the compile authority.

One websocket per (project, user), joined into the project room before any
update is sent. Compile requests carry a monotonically increasing seq that
the server echoes back; responses are matched to pending requests by seq.

Protocol (JSON objects with a "type" field):
  Client → Server:  join-project{projectId, userId, token}
                    update-file{projectId, filePath, content, seq}
                    refresh-preview{projectId, seq}
                    leave-project{projectId}
  Server → Client:  joined-project{projectId, message}
                    preview-updated{html, filePath?, seq}
                    preview-error{error, filePath?, seq}
                    error{message, code}

Disconnects fail every pending request with TransportError and start a
background loop that reconnects and rejoins. Auth rejections count towards
max_auth_retries; once exhausted the channel stays in reconnect_required
until reconnect() is called.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from preview_engine.config import settings
from preview_engine.kernel.errors import AuthError, TransportError
from preview_engine.kernel.types import (
    CompileFailed,
    ConnectionState,
    DocumentReady,
    FileUpdated,
    RefreshRequested,
    parse_server_message,
)

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]
PushHandler = Callable[[DocumentReady | CompileFailed], None]
StateHandler = Callable[[ConnectionState], None]

# (project_id, user_id) → the one open channel for that pair
_open_channels: dict[tuple[str, str], SyncChannel] = {}


def open_channel_for(project_id: str, user_id: str) -> SyncChannel | None:
    return _open_channels.get((project_id, user_id))


class SyncChannel:
    def __init__(
        self,
        url: str,
        project_id: str,
        user_id: str,
        token: str,
        *,
        connect: Connector | None = None,
        on_push: PushHandler | None = None,
        on_state: StateHandler | None = None,
        max_auth_retries: int | None = None,
        reconnect_delay: float | None = None,
        join_timeout: float = 10.0,
    ):
        self.url = url
        self.project_id = project_id
        self.user_id = user_id
        self.token = token
        self.on_push = on_push
        self.on_state = on_state
        self.max_auth_retries = max_auth_retries if max_auth_retries is not None else settings.MAX_AUTH_RETRIES
        self.reconnect_delay = reconnect_delay if reconnect_delay is not None else settings.RECONNECT_DELAY_S
        self.join_timeout = join_timeout

        self._connect = connect or websockets.connect
        self._ws: Any = None
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._closed = False

        self.state: ConnectionState = "offline"
        self.auth_failures = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.project_id, self.user_id)

    @property
    def connected(self) -> bool:
        return self.state == "connected"

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.info("sync: project=%s state %s → %s", self.project_id, self.state, state)
        self.state = state
        if self.on_state:
            self.on_state(state)

    # ── lifecycle ────────────────────────────────────────────────────────

    async def open(self) -> None:
        """
        Connect and join the project room. Any other open channel for the
        same project and user is closed first.

        Raises AuthError if the join is rejected, TransportError if the
        server cannot be reached. Either way a background reconnect is
        scheduled unless the auth retry budget is spent.
        """
        prior = _open_channels.get(self.key)
        if prior is not None and prior is not self:
            logger.info("sync: closing prior channel for project=%s user=%s", self.project_id, self.user_id)
            await prior.close()
        _open_channels[self.key] = self
        self._closed = False

        try:
            await self._connect_and_join()
        except AuthError:
            self._record_auth_failure()
            self._schedule_reconnect()
            raise
        except TransportError:
            self._set_state("offline")
            self._schedule_reconnect()
            raise

    async def _connect_and_join(self) -> None:
        self._set_state("connecting")
        try:
            ws = await self._connect(self.url)
        except (OSError, WebSocketException) as e:
            raise TransportError(f"could not connect to {self.url}: {e}") from e

        try:
            await ws.send(
                json.dumps(
                    {
                        "type": "join-project",
                        "projectId": self.project_id,
                        "userId": self.user_id,
                        "token": self.token,
                    }
                )
            )
            await asyncio.wait_for(self._await_joined(ws), self.join_timeout)
        except AuthError:
            await self._close_socket(ws)
            raise
        except (TimeoutError, ConnectionClosed, OSError) as e:
            await self._close_socket(ws)
            raise TransportError(f"join failed: {e or type(e).__name__}") from e

        self._ws = ws
        self.auth_failures = 0
        self._reader_task = asyncio.create_task(self._reader(ws))
        self._set_state("connected")
        logger.info("sync: joined project=%s as user=%s", self.project_id, self.user_id)

    async def _await_joined(self, ws: Any) -> None:
        while True:
            msg = self._decode(await ws.recv())
            if msg is None:
                continue
            msg_type = msg.get("type")
            if msg_type == "joined-project":
                return
            if msg_type == "error":
                if msg.get("code") == "auth":
                    raise AuthError(msg.get("message") or "join rejected")
                raise TransportError(msg.get("message") or "join failed")
            logger.debug("sync: ignoring %s before join completed", msg_type)

    def _record_auth_failure(self) -> None:
        self.auth_failures += 1
        if self.auth_failures >= self.max_auth_retries:
            logger.warning(
                "sync: auth rejected %d times for project=%s, reconnect required",
                self.auth_failures,
                self.project_id,
            )
            self._set_state("reconnect_required")
        else:
            self._set_state("offline")

    def _schedule_reconnect(self) -> None:
        if self._closed or self.state == "reconnect_required":
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.reconnect_delay)
            if self._closed:
                return
            try:
                await self._connect_and_join()
                return
            except AuthError as e:
                logger.warning("sync: rejoin rejected: %s", e)
                self._record_auth_failure()
                if self.state == "reconnect_required":
                    return
            except TransportError as e:
                logger.info("sync: reconnect attempt failed: %s", e)
                self._set_state("offline")

    async def reconnect(self, token: str | None = None) -> None:
        """Explicit reconnect, e.g. after the user signs in again. Resets the auth budget."""
        if token is not None:
            self.token = token
        self.auth_failures = 0
        await self._cancel_reconnect()
        await self._drop_socket()
        self._closed = False
        _open_channels[self.key] = self
        await self._connect_and_join()

    async def close(self) -> None:
        """Leave the room and close the socket. Safe to call twice."""
        self._closed = True
        await self._cancel_reconnect()
        ws = self._ws
        if ws is not None and self.state == "connected":
            try:
                await ws.send(json.dumps({"type": "leave-project", "projectId": self.project_id}))
            except (ConnectionClosed, OSError):
                logger.debug("sync: leave-project not delivered", exc_info=True)
        await self._drop_socket()
        self._fail_pending(TransportError("channel closed"))
        if _open_channels.get(self.key) is self:
            del _open_channels[self.key]
        self._set_state("offline")

    async def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _drop_socket(self) -> None:
        ws, self._ws = self._ws, None
        reader, self._reader_task = self._reader_task, None
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if ws is not None:
            await self._close_socket(ws)

    @staticmethod
    async def _close_socket(ws: Any) -> None:
        try:
            await ws.close()
        except (ConnectionClosed, OSError):
            logger.debug("sync: socket already closed", exc_info=True)

    # ── requests ─────────────────────────────────────────────────────────

    async def send(self, message: FileUpdated | RefreshRequested) -> None:
        """Fire-and-forget send; no response is awaited."""
        if self._ws is None or not self.connected:
            raise TransportError("channel is not connected")
        try:
            await self._ws.send(json.dumps(message.to_wire(self.project_id)))
        except (ConnectionClosed, OSError) as e:
            raise TransportError(f"send failed: {e}") from e

    async def request(self, message: FileUpdated | RefreshRequested) -> DocumentReady | CompileFailed:
        """Send a sequenced request and wait for the response carrying the same seq."""
        if message.seq is None:
            raise ValueError("request() needs a sequenced message")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[message.seq] = future
        try:
            await self.send(message)
            return await future
        finally:
            self._pending.pop(message.seq, None)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ── inbound ──────────────────────────────────────────────────────────

    @staticmethod
    def _decode(raw: Any) -> dict[str, Any] | None:
        try:
            msg = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("sync: malformed message from server: %r", str(raw)[:200])
            return None
        return msg if isinstance(msg, dict) else None

    async def _reader(self, ws: Any) -> None:
        try:
            while True:
                msg = self._decode(await ws.recv())
                if msg is not None:
                    self._dispatch(msg)
        except (ConnectionClosed, OSError) as e:
            logger.warning("sync: connection to project=%s lost: %s", self.project_id, e)
        if ws is self._ws:
            self._on_disconnect()

    def _dispatch(self, msg: dict[str, Any]) -> None:
        if msg.get("type") == "error":
            logger.warning("sync: server error code=%s: %s", msg.get("code"), msg.get("message"))
            return

        result = parse_server_message(msg)
        if result is None:
            logger.debug("sync: ignoring %s", msg.get("type"))
            return

        if result.seq is None:
            if self.on_push:
                self.on_push(result)
            return

        future = self._pending.get(result.seq)
        if future is None or future.done():
            logger.info("sync: discarding unmatched response seq=%s", result.seq)
            return
        future.set_result(result)

    def _on_disconnect(self) -> None:
        self._ws = None
        self._reader_task = None
        self._fail_pending(TransportError("connection lost"))
        if self._closed:
            return
        self._set_state("offline")
        self._schedule_reconnect()

    def _fail_pending(self, error: TransportError) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()
