"""Транспорт домена Export (WebSocket)."""

from .websocket_server import ExportWebSocketServer, WebSocketChannel

__all__ = [
    "ExportWebSocketServer",
    "WebSocketChannel",
]
