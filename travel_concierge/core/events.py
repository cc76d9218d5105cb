"""Progress events emitted while a query is orchestrated.

Events are advisory: the orchestrator behaves identically with or without a
listener, and a listener that raises is logged and ignored.
"""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from travel_concierge.core.schemas import CanonicalRecord, Domain

logger = logging.getLogger(__name__)

EventType = Literal[
    "analyzing",
    "agent_start",
    "agent_complete",
    "finalizing",
    "complete",
    "error",
    "end",
]


class ProgressEvent(BaseModel):
    type: EventType
    domain: Optional[Domain] = None
    records_found: Optional[int] = None
    message: Optional[str] = None
    records: Optional[List[CanonicalRecord]] = None
    data: Dict[str, Any] = Field(default_factory=dict)


ProgressListener = Callable[[ProgressEvent], Union[None, Awaitable[None]]]


class ProgressReporter:
    """Fan progress events out to an optional listener."""

    def __init__(self, listener: Optional[ProgressListener] = None) -> None:
        self._listener = listener

    async def emit(self, event: ProgressEvent) -> None:
        if self._listener is None:
            return
        try:
            outcome = self._listener(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.warning(f"Progress listener failed on '{event.type}' event: {exc}")

    async def analyzing(self) -> None:
        await self.emit(ProgressEvent(type="analyzing"))

    async def agent_start(self, domain: Domain) -> None:
        await self.emit(ProgressEvent(type="agent_start", domain=domain))

    async def agent_complete(self, domain: Domain, records_found: int) -> None:
        await self.emit(ProgressEvent(type="agent_complete", domain=domain, records_found=records_found))

    async def finalizing(self) -> None:
        await self.emit(ProgressEvent(type="finalizing"))

    async def complete(self, message: str, records: List[CanonicalRecord]) -> None:
        await self.emit(ProgressEvent(type="complete", message=message, records=records))

    async def error(self, message: str) -> None:
        await self.emit(ProgressEvent(type="error", message=message))

    async def end(self) -> None:
        await self.emit(ProgressEvent(type="end"))


NULL_REPORTER = ProgressReporter()
