"""Long-lived WebSocket and Socket.IO connections keyed by request id."""

import asyncio
import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import socketio
import websockets
from socketio.exceptions import BadNamespaceError
from socketio.exceptions import ConnectionError as SocketIOConnectionError
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException

from awsm_http.config import MessageType, WebSocketMessage, WebSocketMode
from awsm_http.errors import WebSocketNotConnectedError
from awsm_http.utils import logger, sanitize_url


MessageCallback = Callable[[WebSocketMessage], None]
StatusCallback = Callable[[bool], None]


@dataclass
class _Connection:
    id: str
    url: str
    mode: WebSocketMode
    on_message: Optional[MessageCallback] = None
    on_status: Optional[StatusCallback] = None
    ws: Optional[object] = None
    sio: Optional[socketio.AsyncClient] = None
    reader: Optional[asyncio.Task] = None
    connected: bool = False


class WebSocketManager:
    """At most one live connection per request id.

    Every event (connect, disconnect, sent, received, error) is appended to
    the id's ordered message log and forwarded to ``on_message``.
    """

    def __init__(self, connect_timeout: float = 10.0):
        self.connect_timeout = connect_timeout
        self._connections: Dict[str, _Connection] = {}
        self._logs: Dict[str, List[WebSocketMessage]] = {}

    def _record(self, conn: _Connection, kind: MessageType, data: str) -> WebSocketMessage:
        message = WebSocketMessage(type=kind, data=data)
        self._logs.setdefault(conn.id, []).append(message)
        if conn.on_message:
            conn.on_message(message)
        return message

    def _set_status(self, conn: _Connection, connected: bool) -> None:
        conn.connected = connected
        if conn.on_status:
            conn.on_status(connected)

    async def connect(
        self,
        connection_id: str,
        url: str,
        mode: WebSocketMode = WebSocketMode.RAW,
        on_message: Optional[MessageCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> bool:
        """Open a connection, replacing any existing one for ``connection_id``.

        Returns:
            True if the connection was established
        """
        await self.disconnect(connection_id)

        conn = _Connection(
            id=connection_id,
            url=url,
            mode=WebSocketMode(mode),
            on_message=on_message,
            on_status=on_status,
        )
        self._connections[connection_id] = conn
        logger.debug(f"Connecting {connection_id} to {sanitize_url(url)} ({conn.mode.value})")

        if conn.mode == WebSocketMode.SOCKET_IO:
            return await self._connect_socketio(conn)
        return await self._connect_raw(conn)

    async def _connect_raw(self, conn: _Connection) -> bool:
        try:
            conn.ws = await websockets.connect(conn.url, open_timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._connections.pop(conn.id, None)
            self._record(conn, MessageType.ERROR, f"Connection failed: {e}")
            return False

        self._set_status(conn, True)
        self._record(conn, MessageType.SYSTEM, f"Connected to {conn.url}")
        conn.reader = asyncio.create_task(self._read_raw(conn))
        return True

    async def _read_raw(self, conn: _Connection) -> None:
        ws = conn.ws
        try:
            async for data in ws:
                text = data if isinstance(data, str) else "Binary data"
                self._record(conn, MessageType.RECEIVED, text)
        except ConnectionClosedError:
            self._record(conn, MessageType.ERROR, "WebSocket Error")
        finally:
            self._set_status(conn, False)
            code = ws.close_code if ws.close_code is not None else 1006
            reason = f": {ws.close_reason}" if ws.close_reason else ""
            self._record(conn, MessageType.SYSTEM, f"Disconnected (Code: {code}{reason})")

    async def _connect_socketio(self, conn: _Connection) -> bool:
        sio = socketio.AsyncClient(reconnection=False)
        conn.sio = sio

        async def on_connect():
            self._set_status(conn, True)
            self._record(conn, MessageType.SYSTEM, f"Connected to {conn.url} (Socket.IO)")

        async def on_disconnect(*args):
            reason = args[0] if args else "io client disconnect"
            self._set_status(conn, False)
            self._record(conn, MessageType.SYSTEM, f"Disconnected: {reason}")

        async def on_connect_error(data=None):
            message = data.get("message") if isinstance(data, dict) else data
            self._record(conn, MessageType.ERROR, f"Connection Error: {message}")

        async def on_any(event, *args):
            payload = json.dumps({"event": event, "args": list(args)}, indent=2, default=str)
            self._record(conn, MessageType.RECEIVED, payload)

        sio.on("connect", on_connect)
        sio.on("disconnect", on_disconnect)
        sio.on("connect_error", on_connect_error)
        sio.on("*", on_any)

        try:
            await sio.connect(conn.url, transports=["websocket"], wait_timeout=self.connect_timeout)
        except (SocketIOConnectionError, OSError, ValueError) as e:
            self._connections.pop(conn.id, None)
            self._record(conn, MessageType.ERROR, f"Connection failed: {e}")
            return False
        return True

    async def send(self, connection_id: str, text: str) -> WebSocketMessage:
        """Send ``text`` on an open connection.

        Raises:
            WebSocketNotConnectedError: if there is no open connection
        """
        conn = self._connections.get(connection_id)
        if conn is None or not self.is_connected(connection_id):
            what = "Socket.IO" if conn is not None and conn.mode == WebSocketMode.SOCKET_IO else "WebSocket"
            message = f"{what} is not connected"
            self._record(conn or _Connection(connection_id, "", WebSocketMode.RAW), MessageType.ERROR, message)
            raise WebSocketNotConnectedError(message)

        try:
            if conn.mode == WebSocketMode.SOCKET_IO:
                await self._emit(conn.sio, text)
            else:
                await conn.ws.send(text)
        except (ConnectionClosed, BadNamespaceError) as e:
            logger.debug(f"[{connection_id}] send failed: {e}")
            what = "Socket.IO" if conn.mode == WebSocketMode.SOCKET_IO else "WebSocket"
            message = f"{what} is not connected"
            self._record(conn, MessageType.ERROR, message)
            raise WebSocketNotConnectedError(message) from e
        return self._record(conn, MessageType.SENT, text)

    @staticmethod
    async def _emit(sio: socketio.AsyncClient, text: str) -> None:
        try:
            parsed = json.loads(text)
        except ValueError:
            await sio.emit("message", text)
            return
        if isinstance(parsed, dict) and parsed.get("event") and parsed.get("data"):
            await sio.emit(parsed["event"], parsed["data"])
        else:
            await sio.emit("message", parsed)

    async def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return
        if conn.sio is not None:
            await conn.sio.disconnect()
        if conn.ws is not None:
            await conn.ws.close()
            if conn.reader is not None:
                await conn.reader

    def is_connected(self, connection_id: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        if conn.sio is not None:
            return conn.sio.connected
        return conn.connected

    def messages(self, connection_id: str) -> List[WebSocketMessage]:
        return list(self._logs.get(connection_id, []))

    def clear(self, connection_id: str) -> None:
        self._logs.pop(connection_id, None)

    async def close_all(self) -> None:
        for connection_id in list(self._connections):
            await self.disconnect(connection_id)
