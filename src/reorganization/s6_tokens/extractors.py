"""
Извлечение дизайн-токенов из набора нод.

Дедупликация по точному структурному равенству значения
(JSON с сортировкой ключей), порядок - первого появления.
"""

import json
from typing import Any, Dict, Iterable, List

SPACING_KEYS = ("x", "y", "width", "height")


def _unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    unique = []
    for value in values:
        key = json.dumps(value, sort_keys=True, ensure_ascii=False)
        if key in seen:
            continue
        seen.add(key)
        unique.append(value)
    return unique


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def extract_colors(nodes: List[Dict[str, Any]]) -> List[Any]:
    """Уникальные значения fill.color."""
    return _unique(
        fill["color"]
        for node in nodes
        for fill in _dicts(node.get("fills"))
        if fill.get("color") is not None
    )


def extract_typography(nodes: List[Dict[str, Any]]) -> List[Any]:
    """Уникальные объекты style."""
    return _unique(node["style"] for node in nodes if isinstance(node.get("style"), dict))


def extract_spacing(nodes: List[Dict[str, Any]]) -> List[float]:
    """Уникальные x/y/width/height всех bounding box, по возрастанию."""
    values = set()
    for node in nodes:
        box = node.get("absoluteBoundingBox")
        if not isinstance(box, dict):
            continue
        for key in SPACING_KEYS:
            value = box.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                values.add(value)
    return sorted(values)


def extract_shadows(nodes: List[Dict[str, Any]]) -> List[Any]:
    """Уникальные обводки и эффекты-тени."""
    def candidates():
        for node in nodes:
            yield from _dicts(node.get("strokes"))
            for effect in _dicts(node.get("effects")):
                if "SHADOW" in str(effect.get("type", "")):
                    yield effect
    return _unique(candidates())


def extract_style_tokens(nodes: List[Dict[str, Any]]) -> Dict[str, List[Any]]:
    return {
        "colors": extract_colors(nodes),
        "typography": extract_typography(nodes),
        "spacing": extract_spacing(nodes),
        "shadows": extract_shadows(nodes),
    }


def background_hex(node: Dict[str, Any], default: str = "#ffffff") -> str:
    """Цвет первой заливки в виде #rrggbb (каналы 0..1, округление half-up)."""
    fills = node.get("fills")
    if not isinstance(fills, list) or not fills or not isinstance(fills[0], dict):
        return default
    color = fills[0].get("color")
    if not isinstance(color, dict):
        return default
    try:
        return "#" + "".join(
            f"{max(0, min(255, int(float(color.get(channel, 0)) * 255 + 0.5))):02x}"
            for channel in ("r", "g", "b")
        )
    except (TypeError, ValueError):
        return default
