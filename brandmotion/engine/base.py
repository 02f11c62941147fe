"""Capability interface of the external processing engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

from ..components.branding.filtergraph import StageCommand
from ..utils.logger import logger

EventHandler = Callable[[Any], None]

LOG_EVENT = "log"
PROGRESS_EVENT = "progress"


class ProcessingEngine(ABC):
    """Black-box decode/filter/encode engine driven by the job orchestrator.

    Subscribers receive ``log`` events (one str per line) and ``progress``
    events (a float ratio for the stage currently executing). Handlers are
    called synchronously from the engine's event stream and must not block.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = {LOG_EVENT: [], PROGRESS_EVENT: []}

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._handlers:
            raise ValueError(f"Unknown engine event: {event}")
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear_handlers(self) -> None:
        for handlers in self._handlers.values():
            handlers.clear()

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.warning("Engine %s handler raised; ignoring.", event, exc_info=True)

    @abstractmethod
    async def load(self) -> None:
        """Initialize the engine. Raises AcquisitionError when it cannot start."""

    @abstractmethod
    async def write_artifact(self, name: str, data: bytes) -> None: ...

    @abstractmethod
    async def execute(self, command: StageCommand) -> int:
        """Run one stage and return the engine's result code (0 on success)."""

    @abstractmethod
    async def read_artifact(self, name: str) -> bytes: ...

    @abstractmethod
    async def has_artifact(self, name: str) -> bool: ...

    @abstractmethod
    async def delete_artifact(self, name: str) -> None: ...

    @abstractmethod
    async def terminate(self) -> None:
        """Stop any running work and release engine storage. Safe to call twice."""
