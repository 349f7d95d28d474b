"""
Менеджер файлов для домена Reorganization.

Чтение артефактов экспорта и запись дерева reorganized/.
"""

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

from ..domain.exceptions import ArtifactLoadError, ReorganizationWriteError


@dataclass
class DirectorySize:
    """Размер дерева файлов."""
    total_size: int = 0
    file_count: int = 0
    folder_count: int = 0
    files: List[tuple] = field(default_factory=list)  # (относительный путь, размер)

    @property
    def average_file_size(self) -> float:
        return self.total_size / self.file_count if self.file_count else 0.0


class ReorganizationFileManager:
    """Менеджер файлов для домена Reorganization."""

    def save_json(self, data: Any, file_path: Path) -> Path:
        """
        Сохраняет данные в JSON файл (indent 2, UTF-8).

        Args:
            data: Данные для сохранения
            file_path: Путь для сохранения

        Returns:
            Путь к сохраненному файлу

        Raises:
            ReorganizationWriteError: Если не удалось сохранить файл
        """
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)

            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)

            logger.debug(f"[Reorganization] Файл сохранен: {file_path}")
            return file_path

        except (IOError, OSError, TypeError, ValueError) as e:
            raise ReorganizationWriteError(
                message=f"Не удалось сохранить JSON файл: {file_path}",
                component="ReorganizationFileManager",
                original_error=e
            )

    def load_json(self, file_path: Path) -> Any:
        """
        Загружает данные из JSON файла.

        Returns:
            Загруженные данные или None, если файла нет

        Raises:
            ArtifactLoadError: Если файл есть, но не читается
        """
        if not file_path.exists():
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (IOError, OSError, json.JSONDecodeError) as e:
            raise ArtifactLoadError(
                message=f"Не удалось загрузить JSON файл: {file_path}",
                component="ReorganizationFileManager",
                original_error=e
            )

    def ensure_directory(self, directory_path: Path) -> Path:
        """
        Создает директорию если она не существует.

        Raises:
            ReorganizationWriteError: Если не удалось создать директорию
        """
        try:
            directory_path.mkdir(parents=True, exist_ok=True)
            return directory_path
        except (IOError, OSError) as e:
            raise ReorganizationWriteError(
                message=f"Не удалось создать директорию: {directory_path}",
                component="ReorganizationFileManager",
                original_error=e
            )

    def remove_directory(self, directory_path: Path) -> None:
        """Удаляет директорию вывода предыдущего прохода."""
        if not directory_path.exists():
            return
        try:
            shutil.rmtree(directory_path)
        except OSError as e:
            raise ReorganizationWriteError(
                message=f"Не удалось очистить директорию: {directory_path}",
                component="ReorganizationFileManager",
                original_error=e
            )

    def copy_file(self, source: Path, destination_dir: Path) -> Optional[Path]:
        """
        Копирует файл в директорию (директория создаётся).

        Returns:
            Путь копии или None, если исходного файла нет
        """
        if not source.is_file():
            return None
        self.ensure_directory(destination_dir)
        destination = destination_dir / source.name
        try:
            shutil.copyfile(source, destination)
        except OSError as e:
            raise ReorganizationWriteError(
                message=f"Не удалось скопировать {source} -> {destination}",
                component="ReorganizationFileManager",
                original_error=e
            )
        return destination

    def analyze_directory_size(self, directory_path: Path, exclude: Optional[Path] = None) -> DirectorySize:
        """
        Рекурсивно считает размер, файлы и папки.

        Args:
            directory_path: Корень подсчёта
            exclude: Поддерево, которое не учитывается
        """
        result = DirectorySize()
        if not directory_path.exists():
            return result

        for path in sorted(directory_path.rglob("*")):
            if exclude is not None and (path == exclude or exclude in path.parents):
                continue
            if path.is_dir():
                result.folder_count += 1
            elif path.is_file():
                try:
                    size = path.stat().st_size
                except OSError as e:
                    logger.warning(f"[Reorganization] Нет доступа к {path}: {e}")
                    continue
                result.total_size += size
                result.file_count += 1
                result.files.append((path.relative_to(directory_path).as_posix(), size))
        return result
