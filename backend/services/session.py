"""
Runtime session service.

One RuntimeSession = one Runtime + the UI event channel + an installed
DispatchBridge. The service is the browser-side adapter: HTTP and WebSocket
frames are emitted onto the channel exactly as a rendering layer would.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from backend.config import Settings
from runtime.core import (
    ContractVerbRunner,
    DiagnosticsRecorder,
    DispatchBridge,
    EventChannel,
    FileStorage,
    LogStorage,
    MemoryStorage,
    Runtime,
    RuntimeVerbInterpreter,
)
from runtime.core.hub import SubscriptionHub

logger = logging.getLogger(__name__)


class RuntimeSession:
    """Owns the runtime and routes navigation out to whoever listens."""

    def __init__(
        self,
        storage: LogStorage | None = None,
        *,
        storage_key: str = "__app_state_log__",
        diagnostics_limit: int = 300,
        contract_runner: ContractVerbRunner | None = None,
        interpreter_factory: Callable[[], RuntimeVerbInterpreter] | None = None,
    ) -> None:
        self.runtime = Runtime(
            storage,
            storage_key=storage_key,
            diagnostics=DiagnosticsRecorder(limit=diagnostics_limit),
        )
        self.channel = EventChannel()
        self.navigations: SubscriptionHub[str] = SubscriptionHub()
        self.last_destination: str | None = None
        self.bridge = DispatchBridge(
            self.runtime,
            self._navigate,
            contract_runner=contract_runner,
            interpreter_factory=interpreter_factory,
        )
        self.bridge.install(self.channel)

    def start(self, default_view: str) -> None:
        """Rehydrate from storage, then seed the initial view if none exists."""
        state = self.runtime.rehydrate()
        self.runtime.ensure_initial_view(default_view)
        logger.info(
            "session: started with %d events, currentView=%s",
            state.raw_count,
            self.runtime.state.current_view,
        )

    def emit(self, name: str, detail: Any) -> list[str]:
        """Emit one UI event. Returns the destinations navigated to while handling it."""
        navigated: list[str] = []
        unsubscribe = self.navigations.subscribe(navigated.append)
        try:
            self.channel.emit(name, detail)
        finally:
            unsubscribe()
        return navigated

    def _navigate(self, to: str) -> None:
        self.last_destination = to
        logger.info("session: navigate → %s", to)
        self.navigations.notify(to)


def build_session(settings: Settings) -> RuntimeSession:
    storage: LogStorage = FileStorage(settings.RUNTIME_STORAGE_DIR) if settings.persistent else MemoryStorage()
    return RuntimeSession(
        storage,
        storage_key=settings.RUNTIME_STORAGE_KEY,
        diagnostics_limit=settings.RUNTIME_DIAGNOSTICS_LIMIT,
    )
