"""
WebSocket сервер для плагина Figma.

Принимает подключения плагина и передаёт события контроллеру сессии:
    {"type": "join", "channel": "..."}          -> on_join
    {"type": "message", "message": {"id": ...}}  -> on_response
Разрыв соединения -> on_disconnect.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import websockets
from loguru import logger
from pydantic import ValidationError

from config.settings import SERVER_HOST, SERVER_PORT
from contracts import JoinRequest
from ..domain.interfaces import IOutboundChannel
from ..session.controller import ExportSessionController


class WebSocketChannel(IOutboundChannel):
    """Исходящий канал поверх одного WebSocket соединения."""

    def __init__(self, websocket):
        self.websocket = websocket

    async def send(self, payload: Dict[str, Any]) -> None:
        await self.websocket.send(json.dumps(payload, ensure_ascii=False))


class ExportWebSocketServer:
    """
    Сервер экспорта: одно соединение = один обработчик.

    Сериализацию событий обеспечивает сам контроллер.
    """

    def __init__(
        self,
        controller: ExportSessionController,
        host: str = SERVER_HOST,
        port: int = SERVER_PORT,
    ):
        self.controller = controller
        self.host = host
        self.port = port
        self._stop: Optional[asyncio.Event] = None

    async def handler(self, websocket) -> None:
        """Обрабатывает сообщения одного клиента до закрытия соединения."""
        channel = WebSocketChannel(websocket)
        logger.info(f"[WebSocketServer] Клиент подключен: {websocket.remote_address}")
        try:
            async for raw in websocket:
                await self._route(channel, raw)
            logger.info("[WebSocketServer] Клиент закрыл соединение")
        except websockets.ConnectionClosed as e:
            logger.info(f"[WebSocketServer] Соединение закрыто с ошибкой: {e}")
        finally:
            await self.controller.on_disconnect(channel)

    async def _route(self, channel: WebSocketChannel, raw: Any) -> None:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.error(f"[WebSocketServer] Невалидный JSON: {e}")
            await self.controller.on_malformed(str(raw), e)
            return

        if not isinstance(data, dict):
            await self.controller.on_malformed(str(raw), ValueError("ожидался JSON объект"))
            return

        message_type = data.get("type")
        if message_type == "join":
            try:
                join = JoinRequest.model_validate(data)
            except ValidationError as e:
                logger.error(f"[WebSocketServer] Некорректный запрос join: {e}")
                return
            result = await self.controller.on_join(channel, join.channel)
            logger.info(f"[WebSocketServer] join '{join.channel}': {result.message}")
        elif message_type in ("message", "response"):
            await self.controller.on_response(data)
        elif message_type == "ping":
            await channel.send({"type": "pong"})
        else:
            logger.debug(f"[WebSocketServer] Служебное сообщение пропущено: {message_type}")

    async def serve(self) -> None:
        """Запускает сервер и работает до вызова stop()."""
        self._stop = asyncio.Event()
        logger.info(f"[WebSocketServer] Запуск на ws://{self.host}:{self.port}")
        async with websockets.serve(self.handler, self.host, self.port):
            logger.info(f"[WebSocketServer] Сервер слушает порт {self.port}")
            await self._stop.wait()
        logger.info("[WebSocketServer] Сервер остановлен")

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
