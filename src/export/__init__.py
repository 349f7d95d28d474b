"""
Домен Export: сессия экспорта документа Figma через WebSocket.

Этот домен отвечает за:
1. Приём подключения плагина и сериализацию его событий
2. Пошаговую отправку команд по стадиям сессии
3. Сохранение каждого ответа в фиксированную таксономию папок
4. Финализацию: статистика, отчёт валидации, запуск реорганизации

Граница домена: contracts.ExportStatistics, contracts.ReorganizationResult
"""

from .domain.exceptions import ExportError
from .infrastructure.artifact_store import ArtifactStore
from .session.controller import ExportSessionController, ExportSummary, JoinResult
from .transport.websocket_server import ExportWebSocketServer

__all__ = [
    "ExportError",
    "ArtifactStore",
    "ExportSessionController",
    "ExportSummary",
    "JoinResult",
    "ExportWebSocketServer",
]
