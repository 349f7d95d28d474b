"""
Domain слой домена Export.

Содержит интерфейсы (абстрактные классы) и исключения для Export домена.
"""

from .interfaces import IOutboundChannel, IReorganizer

from .exceptions import (
    ExportError,
    EnvelopeError,
    StructureFetchError,
    StructureTimeoutError,
    ArtifactWriteError,
    StageTransitionError,
    BatchInFlightError,
    SessionAbortedError,
)

__all__ = [
    # Интерфейсы
    "IOutboundChannel",
    "IReorganizer",

    # Исключения
    "ExportError",
    "EnvelopeError",
    "StructureFetchError",
    "StructureTimeoutError",
    "ArtifactWriteError",
    "StageTransitionError",
    "BatchInFlightError",
    "SessionAbortedError",
]
