"""
Настройки проекта Figma Export.

Значения по умолчанию совпадают с протоколом плагина Figma.
Любой параметр можно переопределить через переменную окружения.
"""

import os
from pathlib import Path

# =============================================================================
# ПУТИ ПРОЕКТА
# =============================================================================
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Корневая папка экспорта (сырые артефакты сессии)
EXPORT_DIR = Path(os.getenv("FIGMA_EXPORT_DIR", str(PROJECT_ROOT / "export")))

# Имя подпапки с реорганизованными данными (внутри EXPORT_DIR)
REORGANIZED_DIRNAME = "reorganized"

# Лог-файл экспорта
EXPORT_LOG_FILENAME = "export_log.txt"

# Правила классификации компонентов
CLASSIFICATION_RULES_PATH = CONFIG_DIR / "classification.yaml"

# =============================================================================
# WEBSOCKET СЕРВЕР
# =============================================================================
SERVER_HOST = os.getenv("FIGMA_EXPORT_HOST", "localhost")
SERVER_PORT = int(os.getenv("FIGMA_EXPORT_PORT", "3055"))

# =============================================================================
# НАСТРОЙКИ СЕССИИ ЭКСПОРТА
# =============================================================================
# Размер батча для get_nodes_info
BATCH_SIZE = int(os.getenv("FIGMA_EXPORT_BATCH_SIZE", "4"))

# Сколько ждать ответа на read_my_design (секунды). Нет ответа = фатальная ошибка
STRUCTURE_TIMEOUT_SECONDS = float(os.getenv("FIGMA_EXPORT_STRUCTURE_TIMEOUT", "300"))

# Максимум раундов рекурсивного пересканирования
MAX_RESCAN_ROUNDS = int(os.getenv("FIGMA_EXPORT_MAX_RESCAN_ROUNDS", "5"))

# Длина превью данных в логах
LOG_PREVIEW_LENGTH = 100

# =============================================================================
# ЭКСПОРТ ИЗОБРАЖЕНИЙ
# =============================================================================
IMAGE_EXPORT_FORMAT = "PNG"
IMAGE_EXPORT_CONSTRAINT = "SCALE"
IMAGE_EXPORT_SCALE = 4  # 4x для высокого разрешения

# =============================================================================
# СПЕЦИАЛИЗИРОВАННЫЕ СКАНЫ
# =============================================================================
SCAN_NODE_TYPES = [
    "FRAME", "COMPONENT", "INSTANCE", "RECTANGLE", "TEXT", "ELLIPSE",
    "POLYGON", "STAR", "VECTOR", "LINE", "GROUP", "BOOLEAN_OPERATION",
    "REGULAR_POLYGON", "SLICE", "IMAGE",
]
SCAN_CHUNK_SIZE = 200
SCAN_MAX_DEPTH = 50


# =============================================================================
# ПРОВЕРКА КОНФИГУРАЦИИ
# =============================================================================
def validate_config():
    """Проверяет корректность конфигурации."""
    errors = []

    if BATCH_SIZE < 1:
        errors.append(f"BATCH_SIZE должен быть >= 1, получено: {BATCH_SIZE}")

    if STRUCTURE_TIMEOUT_SECONDS <= 0:
        errors.append(
            f"STRUCTURE_TIMEOUT_SECONDS должен быть > 0, получено: {STRUCTURE_TIMEOUT_SECONDS}"
        )

    if MAX_RESCAN_ROUNDS < 0:
        errors.append(f"MAX_RESCAN_ROUNDS не может быть отрицательным: {MAX_RESCAN_ROUNDS}")

    if not CLASSIFICATION_RULES_PATH.exists():
        errors.append(f"Файл правил классификации не найден: {CLASSIFICATION_RULES_PATH}")

    if errors:
        raise ValueError("\n".join(errors))

    # Создаём папку экспорта если не существует
    EXPORT_DIR.mkdir(parents=True, exist_ok=True)

    return True
