"""FastAPI surface for the travel concierge orchestrator."""
from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env file before any other imports that might need environment variables
load_dotenv()

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

import sentry_sdk
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from travel_concierge.api.dependencies import get_orchestrator_bundle, lifespan
from travel_concierge.api.schemas import OrchestrateRequest
from travel_concierge.core.events import ProgressEvent
from travel_concierge.core.schemas import OrchestratorResult

logger = logging.getLogger(__name__)

sentry_sdk.init(
    dsn=os.getenv("SENTRY_DSN"),
    enable_logs=True,
    send_default_pii=False,
    traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "1.0")),
)

app = FastAPI(title="Travel Concierge API", version="0.1.0", lifespan=lifespan)

origins = [
    "http://localhost:3000",
    "http://localhost:3001",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/orchestrate", response_model=OrchestratorResult)
async def orchestrate(payload: OrchestrateRequest) -> OrchestratorResult:
    """Answer one user turn across the lodging, dining, activity and transport agents.

    The query is analysed to pick the domains to search, the matching domain
    agents run (in parallel for broad requests, sequentially otherwise) and
    their records are merged into one deduplicated list with a short summary.

    Raises:
        HTTPException: 400 for an empty query, 500 for unexpected errors

    Example JSON payload:
        ```json
        {
            "query": "ristorante romantico a Roma per due",
            "history": [
                {"role": "user", "content": "Cerco un hotel a Roma"},
                {"role": "assistant", "content": "Ho trovato 4 hotel..."}
            ]
        }
        ```
    """

    logger.info(f"Orchestrate request: {payload.query!r} ({len(payload.history)} history messages)")
    bundle = get_orchestrator_bundle()
    try:
        result = await bundle.orchestrate(payload.query, payload.history)
    except ValueError as exc:
        logger.error(f"Value error during orchestrate: {str(exc)}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Unexpected error during orchestrate: {str(exc)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    logger.info(
        f"Orchestrate finished: success={result.success} records={len(result.records)} "
        f"in {result.execution_summary.total_execution_time_ms:.0f} ms"
    )
    return result


def _sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.model_dump(mode='json', exclude_none=True))}\n\n"


@app.post("/orchestrate/stream")
async def orchestrate_stream(payload: OrchestrateRequest) -> StreamingResponse:
    """Same as ``/orchestrate`` but streams progress events as server-sent events.

    One ``data:`` line per event: ``analyzing``, ``agent_start``,
    ``agent_complete``, ``finalizing``, ``complete`` or ``error``, and always
    ``end`` last.
    """

    if not payload.query or not payload.query.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")

    bundle = get_orchestrator_bundle()
    queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()

    async def _listener(event: ProgressEvent) -> None:
        await queue.put(event)

    async def _events() -> AsyncIterator[str]:
        task = asyncio.create_task(bundle.orchestrate(payload.query, payload.history, _listener))
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    event = getter.result()
                    yield _sse(event)
                    if event.type == "end":
                        break
                    continue
                getter.cancel()
                # orchestrate returned or raised without a final end event
                exc = task.exception()
                if exc is not None:
                    logger.error(f"Unexpected error during stream: {exc}")
                    yield _sse(ProgressEvent(type="error", message=str(exc)))
                pending = [queue.get_nowait() for _ in range(queue.qsize())]
                for event in pending:
                    yield _sse(event)
                if not any(event.type == "end" for event in pending):
                    yield _sse(ProgressEvent(type="end"))
                break
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(_events(), media_type="text/event-stream")


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Simple health endpoint used for readiness checks."""

    return {"status": "healthy", "service": "travel-concierge-api"}


@app.get("/orchestrator/info")
async def get_orchestrator_info() -> Dict[str, Any]:
    """Get detailed information about the orchestrator configuration."""

    bundle = get_orchestrator_bundle()
    return {"orchestrator_info": bundle.info()}
