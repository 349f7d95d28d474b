"""Инфраструктурный слой домена Reorganization."""

from .file_manager import ReorganizationFileManager, DirectorySize
from .classification_rules import ClassificationRules, CategoryRule, TypedKeywords

__all__ = [
    "ReorganizationFileManager",
    "DirectorySize",
    "ClassificationRules",
    "CategoryRule",
    "TypedKeywords",
]
