"""
Словарь команд сессии экспорта.

Каждая стадия посылает фиксированный набор команд плагину.
Correlation id имеет вид "<префикс стадии>-<kind>-<номер>",
например "stage3-styles-000002" или "stage4-nodes-000007".
"""

from typing import Any, Dict, List, NamedTuple, Optional

from config.settings import (
    IMAGE_EXPORT_CONSTRAINT,
    IMAGE_EXPORT_FORMAT,
    IMAGE_EXPORT_SCALE,
    SCAN_CHUNK_SIZE,
    SCAN_MAX_DEPTH,
    SCAN_NODE_TYPES,
)
from contracts import CommandEnvelope, CommandMessage
from src.domain.contracts import Command, PendingCommand, StageName


class CommandSpec(NamedTuple):
    """Команда, которую нужно отправить (ещё без correlation id)."""
    kind: str
    command: Command
    params: Optional[Dict[str, Any]] = None


STAGE_PREFIXES: Dict[StageName, str] = {
    StageName.STRUCTURE_FETCH: "stage2",
    StageName.METADATA_FANOUT: "stage3",
    StageName.RECURSIVE_NODE_BATCHES: "stage4",
    StageName.SPECIALIZED_SCANS: "stage5",
    StageName.SELECTION_AND_IMAGES: "stage5",
    StageName.RECURSIVE_RESCAN: "stage6",
}

# kind-значения, по которым контроллер выбирает обработчик ответа
KIND_STRUCTURE = "structure"
KIND_STYLES = "styles"
KIND_COMPONENTS = "components"
KIND_DOCINFO = "docinfo"
KIND_ANNOTATIONS = "annotations"
KIND_NODES = "nodes"
KIND_TEXT = "text"
KIND_TYPES = "types"
KIND_REACTIONS = "reactions"
KIND_OVERRIDES = "overrides"
KIND_CONNECTIONS = "connections"
KIND_SELECTION = "selection"
KIND_IMAGE = "image-export"


def structure_command() -> CommandSpec:
    return CommandSpec(KIND_STRUCTURE, Command.READ_MY_DESIGN)


def metadata_commands() -> List[CommandSpec]:
    """Четыре независимых запроса метаданных документа."""
    return [
        CommandSpec(KIND_STYLES, Command.GET_STYLES),
        CommandSpec(KIND_COMPONENTS, Command.GET_LOCAL_COMPONENTS),
        CommandSpec(KIND_DOCINFO, Command.GET_DOCUMENT_INFO),
        CommandSpec(KIND_ANNOTATIONS, Command.GET_ANNOTATIONS),
    ]


def nodes_info_command(node_ids: List[str]) -> CommandSpec:
    return CommandSpec(KIND_NODES, Command.GET_NODES_INFO, {"nodeIds": list(node_ids)})


def specialized_scan_commands(document_node_ids: List[str]) -> List[CommandSpec]:
    """
    Специализированные сканы документа.

    Текст и типы сканируются от текущей страницы; реакции и связи
    запрашиваются для всех нод (пустой nodeIds), переопределения
    инстансов для всех ID документа.
    """
    return [
        CommandSpec(KIND_TEXT, Command.SCAN_TEXT_NODES, {
            "nodeId": "current",
            "useChunking": True,
            "chunkSize": SCAN_CHUNK_SIZE,
            "maxDepth": SCAN_MAX_DEPTH,
            "includeInvisible": False,
            "includeLocked": False,
        }),
        CommandSpec(KIND_TYPES, Command.SCAN_NODES_BY_TYPES, {
            "nodeId": "current",
            "types": list(SCAN_NODE_TYPES),
        }),
        CommandSpec(KIND_REACTIONS, Command.GET_REACTIONS, {"nodeIds": []}),
        CommandSpec(KIND_OVERRIDES, Command.GET_INSTANCE_OVERRIDES, {"nodeIds": list(document_node_ids)}),
        CommandSpec(KIND_CONNECTIONS, Command.CREATE_CONNECTIONS, {"nodeIds": []}),
    ]


def selection_command() -> CommandSpec:
    return CommandSpec(KIND_SELECTION, Command.GET_SELECTION)


def image_export_command(node_id: str) -> CommandSpec:
    return CommandSpec(KIND_IMAGE, Command.EXPORT_NODE_AS_IMAGE, {
        "nodeId": node_id,
        "format": IMAGE_EXPORT_FORMAT,
        "constraint": IMAGE_EXPORT_CONSTRAINT,
        "value": IMAGE_EXPORT_SCALE,
    })


def build_envelope(pending: PendingCommand, channel: str) -> CommandEnvelope:
    """Конверт исходящей команды для зарегистрированного PendingCommand."""
    return CommandEnvelope(
        id=pending.correlation_id,
        channel=channel,
        message=CommandMessage(
            id=pending.correlation_id,
            command=pending.command.value,
            params=pending.params or None,
        ),
    )
