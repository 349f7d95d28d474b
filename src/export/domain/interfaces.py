"""
Интерфейсы (абстрактные классы) для домена Export.

Домен Export отвечает за:
1. Проведение сессии экспорта по стадиям через канал плагина
2. Немедленное сохранение каждого ответа в хранилище артефактов
3. Передачу результата реорганизации после финализации
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

from contracts import ReorganizationResult


class IOutboundChannel(ABC):
    """Исходящий канал к плагину Figma (одно соединение)."""

    @abstractmethod
    async def send(self, payload: Dict[str, Any]) -> None:
        """
        Отправляет JSON-совместимое сообщение плагину.

        Args:
            payload: Сообщение (конверт команды или системное сообщение)
        """
        pass


class IReorganizer(ABC):
    """Проход реорганизации, запускаемый после финализации сессии."""

    @abstractmethod
    def run(self, export_dir: Path) -> ReorganizationResult:
        """
        Реорганизует артефакты экспорта.

        Args:
            export_dir: Папка с сырыми артефактами сессии

        Returns:
            Результат прохода (успех, статистика, предупреждения)
        """
        pass
