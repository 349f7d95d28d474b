#!/usr/bin/env python3
"""
Ручной запуск реорганизации над существующей папкой экспорта.

Использование:
    python scripts/reorganize_export.py
    python scripts/reorganize_export.py path/to/export

Код выхода 1, если папки нет или проход завершился с ошибкой.
"""

import sys
import argparse
from pathlib import Path

from loguru import logger

# Добавляем корень проекта в путь
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import EXPORT_DIR, REORGANIZED_DIRNAME
from src.reorganization.domain.exceptions import ClassificationConfigError
from src.reorganization.pipeline import ReorganizationPipeline


def main():
    """Главная функция."""
    parser = argparse.ArgumentParser(description="Реорганизация экспорта Figma")
    parser.add_argument("export_dir", nargs="?", type=Path, default=EXPORT_DIR, help="Папка экспорта")
    parser.add_argument("--log-level", default="INFO", help="Уровень логов")
    args = parser.parse_args()

    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=args.log_level
    )

    export_dir: Path = args.export_dir
    if not export_dir.is_dir():
        logger.error(f"[Reorganize] Папка экспорта не найдена: {export_dir}")
        sys.exit(1)

    try:
        pipeline = ReorganizationPipeline()
    except ClassificationConfigError as e:
        logger.error(f"[Reorganize] {e}")
        sys.exit(1)

    result = pipeline.run(export_dir)
    statistics = result.statistics

    print("\n" + "=" * 60)
    print("  РЕОРГАНИЗАЦИЯ ЭКСПОРТА")
    print("=" * 60)
    print(f"  Исходные ноды:    {statistics.original_nodes}")
    print(f"  Сохранённые ноды: {statistics.saved_nodes}")
    print(f"  Потери данных:    {statistics.data_loss}")
    print(f"  Создано папок:    {statistics.created_folders}")
    print(f"  Создано файлов:   {statistics.created_files}")
    print(f"  Общий размер:     {statistics.total_size / 1024:.1f} KB")
    print(f"  Время:            {statistics.execution_time}ms")
    for warning in result.warnings:
        print(f"  [WARN] {warning}")
    for error in result.errors:
        print(f"  [ERROR] {error}")
    print(f"\n  Вывод: {export_dir / REORGANIZED_DIRNAME}")
    print("=" * 60)

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
