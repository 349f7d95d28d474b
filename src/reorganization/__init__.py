"""
Домен Reorganization: офлайн-проход над артефактами экспорта.

Архитектура: 7-этапный пайплайн
- Stage 1: Catalog (плоские списки нод из структуры документа)
- Stage 2: Loading (загрузка категорий нод и батч-фрагментов)
- Stage 3: Reconciliation (дедупликация и наложение фрагментов)
- Stage 4: Classification (эвристические группы компонентов)
- Stage 5: Layers (пять файлов на корневой фрейм)
- Stage 6: Tokens (дизайн-токены и группы компонентов)
- Stage 7: Audit (сохранность, копия артефактов, размеры)

Вход: папка экспорта
Выход: reorganized/ + contracts.ReorganizationResult
"""

from src.reorganization.pipeline import ReorganizationPipeline, PipelineTrace

__all__ = [
    "ReorganizationPipeline",
    "PipelineTrace",
]
