"""
Финализация сессии экспорта: статистика и отчёт валидации.

Отчёт валидации проверяет, что таксономия папок на месте и что
каждый JSON файл читается. Это информация для пользователя, а не
условие успешности сессии.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from loguru import logger

from contracts import ExportStatistics
from src.domain.contracts import ArtifactCategory
from ..infrastructure.artifact_store import ArtifactStore
from .export_session import ExportSession

# Признаки категорий данных по имени файла
DATA_MARKERS: Dict[str, tuple] = {
    "documentStructure": ("document_structure",),
    "styles": ("styles", "colors", "typography", "effects", "grids"),
    "components": ("components",),
    "nodes": ("nodes",),
    "annotations": ("annotations",),
    "reactions": ("reactions",),
    "overrides": ("overrides",),
    "connections": ("connections",),
    "images": ("images",),
    "batches": ("batch_",),
}


def build_export_statistics(session: ExportSession) -> ExportStatistics:
    """Собирает итоговую статистику сессии."""
    processed = sorted(session.dispatcher.processed)
    return ExportStatistics(
        totalProcessedNodes=len(processed),
        processedNodes=processed,
        nodeQueueLength=session.dispatcher.pending_count,
        savedFilesCount=len(session.saved_files),
        commandsUsed=list(session.commands_used),
        rescanRounds=session.rescan_round,
        exportDuration=session.duration_ms(),
    )


def build_validation_report(store: ArtifactStore) -> Dict[str, Any]:
    """
    Проверяет результат экспорта на диске.

    Args:
        store: Хранилище артефактов сессии

    Returns:
        Отчёт: найденные/отсутствующие папки, валидность JSON,
        флаги наличия категорий данных, количество элементов
    """
    required = [category.value for category in ArtifactCategory]
    found = [name for name in required if store.category_dir(ArtifactCategory(name)).is_dir()]

    data_analysis = {key: False for key in DATA_MARKERS}
    elements_by_type: Dict[str, int] = {}
    total_elements = 0
    valid_files = 0
    invalid_files = 0
    total_size = 0

    files = store.list_files()
    for file_path in files:
        relative = file_path.relative_to(store.export_dir).as_posix()
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            invalid_files += 1
            logger.warning(f"[ExportFinalizer] Невалидный JSON {relative}: {e}")
            continue

        valid_files += 1
        total_size += file_path.stat().st_size

        for key, markers in DATA_MARKERS.items():
            if any(marker in relative for marker in markers):
                data_analysis[key] = True

        if isinstance(data, list):
            total_elements += len(data)
        elif isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, list):
                    elements_by_type[key] = elements_by_type.get(key, 0) + len(value)

    missing = [name for name in required if name not in found]
    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "validationComplete": True,
        "structureValidation": {
            "requiredDirs": required,
            "foundDirs": found,
            "missingDirs": missing,
            "valid": not missing,
        },
        "fileValidation": {
            "totalFiles": len(files),
            "validJsonFiles": valid_files,
            "invalidJsonFiles": invalid_files,
            "totalSize": total_size,
        },
        "dataAnalysis": data_analysis,
        "statistics": {
            "totalElements": total_elements,
            "elementsByType": elements_by_type,
        },
    }

    status = "PASS" if report["structureValidation"]["valid"] and invalid_files == 0 else "FAIL"
    logger.info(
        f"[ExportFinalizer] Валидация экспорта: {status}, файлов: {len(files)}, "
        f"невалидных: {invalid_files}, размер: {total_size / 1024 / 1024:.2f} MB"
    )
    return report
