"""
Фабрика для создания компонентов домена Export.

Собирает сервер, контроллер сессии, хранилище артефактов и
проход реорганизации через единый интерфейс.
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from config.settings import (
    BATCH_SIZE,
    EXPORT_DIR,
    MAX_RESCAN_ROUNDS,
    SERVER_HOST,
    SERVER_PORT,
    STRUCTURE_TIMEOUT_SECONDS,
)
from src.reorganization.pipeline import ReorganizationPipeline
from ..domain.interfaces import IReorganizer
from ..infrastructure.artifact_store import ArtifactStore
from ..session.controller import ExportSessionController
from ..transport.websocket_server import ExportWebSocketServer


class ExportComponentFactory:
    """
    Фабрика для создания компонентов домена Export.

    Домен Export отвечает за:
    - Сессию обмена командами с плагином Figma
    - Сохранение сырых артефактов
    - Запуск реорганизации после завершения сессии
    """

    @staticmethod
    def create_artifact_store(export_dir: Optional[Path] = None) -> ArtifactStore:
        """
        Создает хранилище артефактов.

        Args:
            export_dir: Корневая папка экспорта (по умолчанию EXPORT_DIR)
        """
        logger.debug("[Export] Создание хранилища артефактов")
        return ArtifactStore(Path(export_dir or EXPORT_DIR))

    @staticmethod
    def create_reorganization_pipeline() -> IReorganizer:
        logger.debug("[Export] Создание пайплайна реорганизации")
        return ReorganizationPipeline()

    @staticmethod
    def create_controller(
        store: Optional[ArtifactStore] = None,
        reorganizer: Optional[IReorganizer] = None,
        reorganize: bool = True,
        batch_size: int = BATCH_SIZE,
        structure_timeout: float = STRUCTURE_TIMEOUT_SECONDS,
        max_rescan_rounds: int = MAX_RESCAN_ROUNDS,
    ) -> ExportSessionController:
        """
        Создает контроллер сессии экспорта.

        Args:
            store: Хранилище артефактов (опционально)
            reorganizer: Проход реорганизации (опционально)
            reorganize: False - не запускать реорганизацию после сессии
            batch_size: Размер батча get_nodes_info
            structure_timeout: Таймаут ответа на чтение структуры, секунды
            max_rescan_rounds: Предел раундов пересканирования

        Returns:
            Контроллер сессии
        """
        logger.debug("[Export] Создание контроллера сессии")

        if store is None:
            store = ExportComponentFactory.create_artifact_store()

        if reorganizer is None and reorganize:
            reorganizer = ExportComponentFactory.create_reorganization_pipeline()

        return ExportSessionController(
            store=store,
            reorganizer=reorganizer,
            batch_size=batch_size,
            structure_timeout=structure_timeout,
            max_rescan_rounds=max_rescan_rounds,
        )

    @staticmethod
    def create_server(
        controller: Optional[ExportSessionController] = None,
        host: str = SERVER_HOST,
        port: int = SERVER_PORT,
    ) -> ExportWebSocketServer:
        """
        Создает WebSocket сервер экспорта с настройками по умолчанию.

        Returns:
            Полностью сконфигурированный сервер
        """
        logger.info(f"[Export] Создание сервера экспорта ws://{host}:{port}")

        if controller is None:
            controller = ExportComponentFactory.create_controller()

        return ExportWebSocketServer(controller=controller, host=host, port=port)
