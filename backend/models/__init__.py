"""
Pydantic models for the screen runtime service.

All data shapes defined here. No imports from services or routes.
"""

from backend.models.runtime import (
    DiagnosticResponse,
    LogResponse,
    StateResponse,
    UIEventRequest,
    UIEventResponse,
    WSClientMessage,
)

__all__ = [
    "UIEventRequest",
    "UIEventResponse",
    "StateResponse",
    "LogResponse",
    "DiagnosticResponse",
    "WSClientMessage",
]
