"""Exception taxonomy for the orchestration core.

Only ``EmptyQueryError`` is meant to reach callers of ``orchestrate``; the
other failures are captured at the layer that owns them (search responses,
agent results, orchestrator results) and reported as data.
"""
from __future__ import annotations

from typing import Optional


class OrchestrationError(Exception):
    """Base class for every error raised by the core."""


class EmptyQueryError(OrchestrationError, ValueError):
    """The user query was empty or whitespace only."""


class BackendFailure(OrchestrationError):
    """A domain search backend call failed."""

    def __init__(self, message: str, *, domain: Optional[str] = None) -> None:
        super().__init__(message)
        self.domain = domain


class RateLimitedError(BackendFailure):
    """The backend asked us to slow down; safe to retry after a pause."""


class ExtractionFailure(OrchestrationError):
    """A trace entry could not be decoded into records."""


class OrchestrationTimeout(OrchestrationError):
    """The whole orchestration call exceeded its time budget."""
