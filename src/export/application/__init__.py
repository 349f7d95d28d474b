"""
Application слой домена Export.

Содержит фабрику для сборки компонентов.
"""

from .factory import ExportComponentFactory

__all__ = [
    "ExportComponentFactory",
]
