"""Runtime models for the UI event boundary."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

UIEventName = Literal["action", "navigate", "input-change", "state-mutate", "interaction"]


class UIEventRequest(BaseModel):
    """What the client sends to POST /api/events."""

    model_config = {"extra": "forbid"}

    name: UIEventName
    detail: Any = None  # any legacy or canonical shape; the normalizer decides


class StateResponse(BaseModel):
    """Derived state as served to the client."""

    state: dict[str, Any]
    raw_count: int = Field(serialization_alias="rawCount")


class UIEventResponse(BaseModel):
    """What the events endpoint returns."""

    state: dict[str, Any]
    raw_count: int = Field(serialization_alias="rawCount")
    navigated: list[str] = Field(default_factory=list)


class LogResponse(BaseModel):
    """The event log in its persisted format."""

    events: list[dict[str, Any]]


class DiagnosticResponse(BaseModel):
    stage: str
    status: Literal["pass", "fail"]
    details: dict[str, Any] | None = None


class WSClientMessage(BaseModel):
    """A UI event arriving over the WebSocket."""

    type: UIEventName
    detail: Any = None
