"""
Stage 5: Layers (Разделение по слоям).

Для каждого корневого фрейма собирает поддерево по смежности
parent -> children и пишет пять файлов в reorganized/layers/layer-<имя>/:
structure.json, components.json, styles.json, content.json, metadata.json.

Корневой фрейм: нода FRAME без родителя либо с родителем-страницей
(DOCUMENT / CANVAS / PAGE).
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from src.export.infrastructure.artifact_store import sanitize_filename
from ..infrastructure.file_manager import ReorganizationFileManager
from ..s3_reconciliation.stage import ReconciliationResult
from ..s4_classification.stage import ComponentClassifier
from ..s6_tokens.extractors import background_hex, extract_style_tokens

LAYERS_DIRNAME = "layers"
LAYER_FILES = ("structure", "components", "styles", "content", "metadata")
PAGE_TYPES = {"DOCUMENT", "CANVAS", "PAGE"}


@dataclass
class LayerSummary:
    id: str
    name: str
    folder: str
    node_count: int
    component_count: int


@dataclass
class LayersResult:
    """Результат Stage 5."""
    layers: List[LayerSummary] = field(default_factory=list)
    created_folders: int = 0
    created_files: int = 0

    def to_dict(self) -> dict:
        return {
            "layers": [layer.__dict__ for layer in self.layers],
            "created_folders": self.created_folders,
            "created_files": self.created_files,
        }


def build_adjacency(nodes: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """parentId -> [id детей] в порядке записей."""
    adjacency: Dict[str, List[str]] = defaultdict(list)
    for node in nodes:
        parent_id = node.get("parentId")
        if parent_id:
            adjacency[parent_id].append(node["id"])
    return adjacency


def find_root_frames(records: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    roots = []
    for node in records.values():
        if node.get("type") != "FRAME":
            continue
        parent_id = node.get("parentId")
        if not parent_id:
            roots.append(node)
            continue
        parent = records.get(parent_id)
        if parent is not None and parent.get("type") in PAGE_TYPES:
            roots.append(node)
    return roots


def collect_subtree(root_id: str, records: Dict[str, Dict[str, Any]],
                    adjacency: Dict[str, List[str]]) -> List[Dict[str, Any]]:
    """Поддерево корня (pre-order), каждая нода ровно один раз."""
    collected = []
    visited = set()
    stack = [root_id]
    while stack:
        node_id = stack.pop()
        if node_id in visited or node_id not in records:
            continue
        visited.add(node_id)
        collected.append(records[node_id])
        stack.extend(reversed(adjacency.get(node_id, [])))
    return collected


def layer_folder_name(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.lower())
    return sanitize_filename(f"layer-{slug}")


class LayersStage:
    """Stage 5: Layers."""

    def __init__(
        self,
        classifier: Optional[ComponentClassifier] = None,
        file_manager: Optional[ReorganizationFileManager] = None,
    ):
        self.classifier = classifier or ComponentClassifier()
        self.file_manager = file_manager or ReorganizationFileManager()

    def process(self, reconciled: ReconciliationResult, reorganized_dir: Path) -> LayersResult:
        result = LayersResult()
        layers_dir = self.file_manager.ensure_directory(reorganized_dir / LAYERS_DIRNAME)
        result.created_folders += 1

        records = reconciled.records
        adjacency = build_adjacency(reconciled.nodes)
        roots = find_root_frames(records)
        logger.info(f"[Stage 5: Layers] Корневых фреймов: {len(roots)}")

        used_folders = set()
        for root in roots:
            layer_nodes = collect_subtree(root["id"], records, adjacency)
            folder = layer_folder_name(root.get("name") or "")
            if folder in used_folders:
                folder = f"{folder}-{sanitize_filename(root['id'])}"
            used_folders.add(folder)

            layer_dir = self.file_manager.ensure_directory(layers_dir / folder)
            result.created_folders += 1

            layer_data = self.build_layer(root, layer_nodes)
            for name in LAYER_FILES:
                self.file_manager.save_json(layer_data[name], layer_dir / f"{name}.json")
                result.created_files += 1

            summary = LayerSummary(
                id=root["id"],
                name=root.get("name") or "",
                folder=folder,
                node_count=len(layer_nodes),
                component_count=layer_data["metadata"]["componentCount"],
            )
            result.layers.append(summary)
            logger.debug(
                f"[Stage 5: Layers] {folder}: нод {summary.node_count}, "
                f"компонентов {summary.component_count}"
            )

        return result

    def build_layer(self, root: Dict[str, Any], nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Собирает содержимое пяти файлов слоя.

        Args:
            root: Корневой фрейм
            nodes: Поддерево корня (корень первым)

        Returns:
            {"structure", "components", "styles", "content", "metadata"}
        """
        member_ids = {node["id"] for node in nodes}
        hierarchy: Dict[str, List[str]] = {}
        for node in nodes:
            parent_id = node.get("parentId")
            if parent_id and parent_id in member_ids:
                hierarchy.setdefault(parent_id, []).append(node["id"])

        components = self.classifier.group(nodes)
        styles = extract_style_tokens(nodes)
        content = {
            "text": [node for node in nodes if node.get("type") == "TEXT"],
            "labels": [node for node in nodes if self.classifier.is_label(node)],
            "data": [],
        }
        metadata = {
            "id": root["id"],
            "name": root.get("name") or "",
            "type": root.get("type"),
            "dimensions": root.get("absoluteBoundingBox") or {"width": 0, "height": 0},
            "background": background_hex(root),
            "nodeCount": len(nodes),
            "componentCount": sum(len(items) for items in components.values()),
            "styleCount": sum(len(items) for items in styles.values()),
        }
        structure = {
            "rootFrame": root,
            "children": [node for node in nodes if node.get("parentId") == root["id"]],
            "hierarchy": hierarchy,
        }
        return {
            "structure": structure,
            "components": components,
            "styles": styles,
            "content": content,
            "metadata": metadata,
        }
