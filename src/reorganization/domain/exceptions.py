"""
Исключения для домена Reorganization.

Отсутствующая категория артефактов ошибкой не является (ноль вкладов).
Ошибка записи собственного дерева вывода фатальна только для прохода
реорганизации и не влияет на уже завершённую сессию экспорта.
"""

from typing import Optional


class ReorganizationError(Exception):
    """Базовое исключение для ошибок домена Reorganization."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message
        self.component = component
        self.original_error = original_error
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Reorganization Error: {self.message}"
        if self.component:
            msg += f" (Component: {self.component})"
        if self.original_error:
            msg += f" [Original: {type(self.original_error).__name__}: {str(self.original_error)}]"
        return msg


class ReorganizationWriteError(ReorganizationError):
    """Ошибка записи в дерево reorganized/."""
    pass


class ArtifactLoadError(ReorganizationError):
    """Артефакт экспорта не читается (битый JSON, нет доступа)."""
    pass


class ClassificationConfigError(ReorganizationError):
    """Ошибка в файле правил классификации."""
    pass
