"""
DTO контракт: сообщения WebSocket канала между сервером и плагином Figma.

Исходящая команда:
    { id, type: "message", channel, message: { id, command, params? } }

Входящий ответ повторяет эту форму, но с заполненным message.result.
ID команд имеют префикс стадии ("stage2-…", "stage4-nodes-…"),
по нему контроллер маршрутизирует ответ без отдельной таблицы.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommandMessage(BaseModel):
    """Тело исходящей команды."""

    id: str = Field(..., min_length=1, description="Correlation id команды")
    command: str = Field(..., min_length=1, description="Имя команды плагина")
    params: Optional[Dict[str, Any]] = Field(None, description="Параметры команды")

    model_config = ConfigDict(frozen=True)


class CommandEnvelope(BaseModel):
    """Конверт исходящей команды."""

    id: str = Field(..., min_length=1)
    type: Literal["message"] = "message"
    channel: str = Field(..., description="Канал плагина")
    message: CommandMessage

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dict для json.dumps (без пустых params)."""
        return self.model_dump(exclude_none=True)


class ResponseMessage(BaseModel):
    """Тело входящего ответа."""

    id: str = Field(..., min_length=1, description="Correlation id исходной команды")
    command: Optional[str] = None
    result: Any = None
    error: Any = None

    model_config = ConfigDict(frozen=True, extra="allow")


class ResponseEnvelope(BaseModel):
    """Конверт входящего ответа плагина."""

    type: str = Field(..., description="Тип сообщения (message / response)")
    id: Optional[str] = None
    channel: Optional[str] = None
    message: ResponseMessage

    model_config = ConfigDict(frozen=True, extra="allow")

    @field_validator("type")
    @classmethod
    def supported_type(cls, v: str) -> str:
        if v not in ("message", "response"):
            raise ValueError(f"Неподдерживаемый тип ответа: {v}")
        return v

    @property
    def correlation_id(self) -> str:
        return self.message.id

    @property
    def result(self) -> Any:
        return self.message.result


class JoinRequest(BaseModel):
    """Запрос плагина на подключение к каналу."""

    type: Literal["join"]
    channel: str = Field("figma", min_length=1)

    model_config = ConfigDict(frozen=True, extra="allow")


class SystemMessage(BaseModel):
    """Служебное сообщение сервера (handshake, конфликт сессии)."""

    type: Literal["system"] = "system"
    channel: Optional[str] = None
    message: Any = None

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
