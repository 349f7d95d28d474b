"""Конфигурация проекта Figma Export."""
