"""
Хранилище артефактов экспорта.

Каждый ответ плагина сохраняется сразу же, до продвижения стадии.
Артефакт адресуется парой (категория, логическое имя); повторная запись
с тем же ключом перезаписывает файл целиком, слияние выполняет
пайплайн реорганизации.
"""

import json
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from config.settings import LOG_PREVIEW_LENGTH, REORGANIZED_DIRNAME
from src.domain.contracts import ArtifactCategory
from ..domain.exceptions import ArtifactWriteError

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')

# Ключи ответа get_styles -> файлы в styles/
STYLE_SPLIT = {
    "colors": "colors.json",
    "textStyles": "typography.json",
    "effectStyles": "effects.json",
    "gridStyles": "grids.json",
}


def sanitize_filename(name: str) -> str:
    """Заменяет недопустимые в имени файла символы на '_'."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


class ArtifactStore:
    """
    Запись именованных JSON артефактов в фиксированную таксономию папок.

    Единственная абстракция, через которую контроллер сессии "сохраняет".
    """

    def __init__(self, export_dir: Path):
        self.export_dir = Path(export_dir)

    def category_dir(self, category: ArtifactCategory) -> Path:
        return self.export_dir / category.value

    def path_for(self, category: ArtifactCategory, name: str) -> Path:
        """Путь артефакта по категории и логическому имени."""
        return self.category_dir(category) / sanitize_filename(name)

    def reset(self) -> None:
        """
        Очищает результаты предыдущей сессии и заново создаёт таксономию.

        Лог-файл и прочие файлы в корне папки экспорта не трогаются.

        Raises:
            ArtifactWriteError: Если не удалось очистить или создать папки
        """
        try:
            for category in ArtifactCategory:
                directory = self.category_dir(category)
                if directory.exists():
                    shutil.rmtree(directory)
            reorganized = self.export_dir / REORGANIZED_DIRNAME
            if reorganized.exists():
                shutil.rmtree(reorganized)
            for category in ArtifactCategory:
                self.category_dir(category).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(
                message=f"Не удалось подготовить папку экспорта: {self.export_dir}",
                component="ArtifactStore",
                original_error=e
            )
        logger.info(f"[ArtifactStore] Папка экспорта подготовлена: {self.export_dir}")

    def save(self, category: ArtifactCategory, name: str, data: Any) -> Path:
        """
        Сохраняет данные в JSON файл категории.

        Args:
            category: Категория (папка таксономии)
            name: Логическое имя файла (будет очищено от недопустимых символов)
            data: JSON-совместимые данные (None сохраняется как null)

        Returns:
            Путь к сохраненному файлу

        Raises:
            ArtifactWriteError: Если не удалось сохранить файл
        """
        file_path = self.path_for(category, name)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            text = json.dumps(data, ensure_ascii=False, indent=2)
            with open(file_path, 'w', encoding='utf-8') as f:
                f.write(text)
        except (IOError, OSError, TypeError, ValueError) as e:
            raise ArtifactWriteError(
                message=f"Не удалось сохранить артефакт: {file_path}",
                component="ArtifactStore",
                original_error=e
            )

        preview = text if len(text) <= LOG_PREVIEW_LENGTH else text[:LOG_PREVIEW_LENGTH] + "..."
        logger.debug(
            f"[ArtifactStore] Сохранено {category.value}/{file_path.name} "
            f"({len(text.encode('utf-8')) / 1024:.2f} KB): {preview}"
        )
        return file_path

    # ------------------------------------------------------------------
    # Именованные артефакты
    # ------------------------------------------------------------------

    def save_document_structure(self, data: Any) -> Path:
        return self.save(ArtifactCategory.STRUCTURE, "document_structure.json", data)

    def save_styles(self, data: Any) -> List[Path]:
        """
        Раскладывает ответ get_styles по отдельным файлам.

        Отсутствующие в ответе группы стилей не записываются.

        Returns:
            Пути записанных файлов (может быть пустым)
        """
        if not isinstance(data, dict):
            logger.warning("[ArtifactStore] Ответ get_styles пуст, стили не сохранены")
            return []

        paths = []
        for key, filename in STYLE_SPLIT.items():
            if data.get(key) is not None:
                paths.append(self.save(ArtifactCategory.STYLES, filename, data[key]))
        return paths

    def save_local_components(self, data: Any) -> Path:
        return self.save(ArtifactCategory.COMPONENTS, "local_components.json", data)

    def save_document_info(self, data: Any) -> Path:
        return self.save(ArtifactCategory.METADATA, "document_info.json", data)

    def save_annotations(self, data: Any) -> Path:
        return self.save(ArtifactCategory.ANNOTATIONS, "all_annotations.json", data)

    def save_text_nodes(self, data: Any) -> Path:
        return self.save(ArtifactCategory.NODES, "text_nodes.json", data)

    def save_nodes_by_types(self, data: Any) -> Path:
        return self.save(ArtifactCategory.NODES, "nodes_by_types.json", data)

    def save_reactions(self, data: Any) -> Path:
        return self.save(ArtifactCategory.INTERACTIONS, "reactions.json", data)

    def save_connections(self, data: Any) -> Path:
        return self.save(ArtifactCategory.INTERACTIONS, "connections.json", data)

    def save_instance_overrides(self, data: Any) -> Path:
        return self.save(ArtifactCategory.OVERRIDES, "instance_overrides.json", data)

    def save_selection(self, data: Any) -> Path:
        return self.save(ArtifactCategory.METADATA, "selection.json", data)

    def save_batch(self, correlation_id: str, data: Any) -> Path:
        return self.save(ArtifactCategory.BATCHES, f"batch_{correlation_id}.json", data)

    def save_node_image(self, node_id: str, data: Any) -> Path:
        return self.save(ArtifactCategory.IMAGES, f"image_{node_id}.json", data)

    def save_export_statistics(self, statistics: Dict[str, Any]) -> Path:
        return self.save(ArtifactCategory.METADATA, "export_statistics.json", statistics)

    def save_validation_report(self, report: Dict[str, Any]) -> Path:
        return self.save(ArtifactCategory.METADATA, "validation_report.json", report)

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    def list_files(self, category: Optional[ArtifactCategory] = None) -> List[Path]:
        """JSON файлы категории (или всей таксономии) в отсортированном порядке."""
        categories = [category] if category else list(ArtifactCategory)
        files: List[Path] = []
        for item in categories:
            directory = self.category_dir(item)
            if directory.exists():
                files.extend(sorted(directory.rglob("*.json")))
        return files
