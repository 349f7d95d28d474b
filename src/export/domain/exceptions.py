"""
Исключения для домена Export.

Фатальные ошибки сессии экспорта: после любой из них сессия
переходит в IDLE, уже записанные артефакты остаются на диске.
"""

from typing import Optional


class ExportError(Exception):
    """Базовое исключение для ошибок домена Export."""

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
        msg = f"Export Error: {self.message}"
        if self.component:
            msg += f" (Component: {self.component})"
        if self.original_error:
            msg += f" [Original: {type(self.original_error).__name__}: {str(self.original_error)}]"
        return msg


class EnvelopeError(ExportError):
    """Некорректный конверт входящего сообщения."""
    pass


class StructureFetchError(ExportError):
    """Ответ на чтение структуры отсутствует или не распознан."""
    pass


class StructureTimeoutError(StructureFetchError):
    """Ответ на чтение структуры не пришёл за отведённое время."""
    pass


class ArtifactWriteError(ExportError):
    """Ошибка записи артефакта на диск."""
    pass


class StageTransitionError(ExportError):
    """Попытка перехода между стадиями вне порядка."""
    pass


class BatchInFlightError(ExportError):
    """Попытка отправить батч, пока предыдущий не разрешён."""
    pass


class SessionAbortedError(ExportError):
    """Сессия прервана (разрыв соединения или явная отмена)."""
    pass
