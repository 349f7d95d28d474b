#!/usr/bin/env python3
"""
Запуск WebSocket сервера экспорта Figma.

Использование:
    python scripts/run_export_server.py
    python scripts/run_export_server.py --port 3055 --export-dir export
    python scripts/run_export_server.py --no-reorganize

Сервер ждёт подключения плагина, проводит одну сессию экспорта
за раз и после финализации запускает реорганизацию.
"""

import sys
import asyncio
import argparse
from pathlib import Path

from loguru import logger

# Добавляем корень проекта в путь
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import (
    BATCH_SIZE,
    EXPORT_DIR,
    EXPORT_LOG_FILENAME,
    SERVER_HOST,
    SERVER_PORT,
    validate_config,
)
from src.export.application.factory import ExportComponentFactory


def setup_logging(export_dir: Path, level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level
    )
    export_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        export_dir / EXPORT_LOG_FILENAME,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
        level="DEBUG",
        encoding="utf-8"
    )


def main():
    """Главная функция."""
    parser = argparse.ArgumentParser(description="WebSocket сервер экспорта Figma")
    parser.add_argument("--host", default=SERVER_HOST, help=f"Хост (по умолчанию {SERVER_HOST})")
    parser.add_argument("--port", type=int, default=SERVER_PORT, help=f"Порт (по умолчанию {SERVER_PORT})")
    parser.add_argument("--export-dir", type=Path, default=EXPORT_DIR, help="Папка экспорта")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE, help="Размер батча get_nodes_info")
    parser.add_argument("--no-reorganize", action="store_true", help="Не запускать реорганизацию")
    parser.add_argument("--log-level", default="INFO", help="Уровень логов в консоли")
    args = parser.parse_args()

    setup_logging(args.export_dir, args.log_level)

    try:
        validate_config()
    except ValueError as e:
        logger.error(f"[ExportServer] Ошибка конфигурации:\n{e}")
        sys.exit(1)

    store = ExportComponentFactory.create_artifact_store(args.export_dir)
    controller = ExportComponentFactory.create_controller(
        store=store,
        reorganize=not args.no_reorganize,
        batch_size=args.batch_size,
    )
    server = ExportComponentFactory.create_server(controller, host=args.host, port=args.port)

    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logger.info("[ExportServer] Остановлено пользователем")


if __name__ == "__main__":
    main()
