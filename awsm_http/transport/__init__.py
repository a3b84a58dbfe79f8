"""Network collaborators: HTTP dispatch and WebSocket connections."""

from awsm_http.transport.http import HttpDispatcher
from awsm_http.transport.websocket import WebSocketManager

__all__ = [
    "HttpDispatcher",
    "WebSocketManager",
]
