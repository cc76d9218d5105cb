"""Configuration helpers for API keys, tuning knobs and environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from travel_concierge.core.schemas import Domain

DEFAULT_TURN_BUDGETS: Dict[Domain, int] = {
    Domain.LODGING: 3,
    Domain.DINING: 3,
    Domain.ACTIVITY: 6,
    Domain.TRANSPORT: 6,
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


@dataclass(slots=True)
class AnalyzerThresholds:
    """Empirical cut-offs used by the query analyzer.

    The defaults were tuned by hand against a small set of Italian and English
    queries; they are configuration, not a model.
    """

    general_trip: float = 0.2
    domain_selectivity: float = 0.15
    low_domain: float = 0.2
    general_minimum: float = 0.1
    broad_max: float = 0.4
    hit_weight: float = 0.15  # a single hit clears domain_selectivity


@dataclass(slots=True)
class CacheSettings:
    embeddings_max_size: int = 500
    embeddings_ttl_s: float = 24 * 60 * 60
    retrieval_max_size: int = 1000
    retrieval_ttl_s: float = 5 * 60
    responses_max_size: int = 200
    responses_ttl_s: float = 2 * 60
    sweep_interval_s: float = 5 * 60


@dataclass(slots=True)
class OrchestratorSettings:
    """Centralised container for credentials and orchestration tuning."""

    openai_api_key: Optional[str] = None
    xai_api_key: Optional[str] = None
    llm_model: str = "grok-4-fast-reasoning"
    embedding_model: str = "text-embedding-3-small"
    inventory_base_url: Optional[str] = None
    inventory_api_key: Optional[str] = None
    agent_mode: str = "llm"
    orchestration_timeout_s: float = 60.0
    history_window: int = 3
    early_termination_min: int = 3
    max_concurrent_agents: int = 4
    search_retry_attempts: int = 3
    search_retry_backoff_s: float = 1.0
    lexicon_path: Optional[str] = None
    log_level: str = "INFO"
    turn_budgets: Dict[Domain, int] = field(default_factory=lambda: dict(DEFAULT_TURN_BUDGETS))
    thresholds: AnalyzerThresholds = field(default_factory=AnalyzerThresholds)
    cache: CacheSettings = field(default_factory=CacheSettings)

    @classmethod
    def from_env(cls) -> "OrchestratorSettings":
        """Load settings from environment variables."""

        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            xai_api_key=os.getenv("XAI_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", "grok-4-fast-reasoning"),
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            inventory_base_url=os.getenv("INVENTORY_BASE_URL"),
            inventory_api_key=os.getenv("INVENTORY_API_KEY"),
            agent_mode=os.getenv("AGENT_MODE", "llm").lower(),
            orchestration_timeout_s=_env_float("ORCHESTRATION_TIMEOUT_S", 60.0),
            history_window=_env_int("HISTORY_WINDOW", 3),
            early_termination_min=_env_int("EARLY_TERMINATION_MIN", 3),
            max_concurrent_agents=_env_int("MAX_CONCURRENT_AGENTS", 4),
            search_retry_attempts=_env_int("SEARCH_RETRY_ATTEMPTS", 3),
            search_retry_backoff_s=_env_float("SEARCH_RETRY_BACKOFF_S", 1.0),
            lexicon_path=os.getenv("LEXICON_PATH"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cache=CacheSettings(sweep_interval_s=_env_float("CACHE_SWEEP_INTERVAL_S", 5 * 60)),
        )

    def ensure(self, field: str) -> str:
        """Return the requested field and fail fast if it is missing."""

        value = getattr(self, field)
        if not value:
            raise RuntimeError(f"Missing configuration value: {field}")
        return value


def configure_logging(level: str = "INFO") -> None:
    """Install a basic log format for the service process."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
