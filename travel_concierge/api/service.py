from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel

from travel_concierge.core.agents_builder import build_domain_agents, build_policy_agents
from travel_concierge.core.aggregator import Aggregator, SummaryWriter
from travel_concierge.core.analyzer import QueryAnalyzer
from travel_concierge.core.cache import CacheRegistry, CachedEmbeddings
from travel_concierge.core.config import OrchestratorSettings
from travel_concierge.core.dispatcher import Dispatcher
from travel_concierge.core.events import ProgressListener
from travel_concierge.core.extractor import ResultExtractor
from travel_concierge.core.lexicon import load_lexicon
from travel_concierge.core.orchestrator import HistoryItem, Orchestrator
from travel_concierge.core.schemas import OrchestratorResult
from travel_concierge.services.inventory import (
    InventoryBackend,
    create_all_search_tools,
    create_inventory_client,
)

logger = logging.getLogger(__name__)

AGENT_MODES = ("llm", "direct")

REQUIRED_SETTINGS = {
    "llm": ["xai_api_key"],
    "direct": [],
}


def _ensure_configuration(settings: OrchestratorSettings, *, needs_backend: bool, needs_llm: bool) -> None:
    if settings.agent_mode not in AGENT_MODES:
        raise RuntimeError(f"Unknown AGENT_MODE '{settings.agent_mode}', expected one of {AGENT_MODES}")
    required = list(REQUIRED_SETTINGS[settings.agent_mode]) if needs_llm else []
    if needs_backend:
        required.append("inventory_base_url")
    missing = [field for field in required if not getattr(settings, field)]
    if missing:
        joined = ", ".join(missing)
        raise RuntimeError(f"Missing required environment variables for the orchestrator: {joined}")


class OrchestratorBundle:
    """Container for the orchestrator and everything it is wired to.

    Attributes:
        settings: Tuning knobs and credentials
        caches: Embedding, retrieval and response caches
        backend: Inventory search backend shared by every domain tool
        llm: Chat model behind the domain agents, ``None`` in direct mode
        orchestrator: The assembled query orchestrator
    """

    def __init__(
        self,
        settings: OrchestratorSettings,
        *,
        backend: Optional[InventoryBackend] = None,
        llm: Optional[BaseChatModel] = None,
        embeddings: Optional[Embeddings] = None,
        caches: Optional[CacheRegistry] = None,
    ) -> None:
        use_llm = settings.agent_mode == "llm"
        _ensure_configuration(settings, needs_backend=backend is None, needs_llm=use_llm and llm is None)

        self.settings = settings
        self.caches = caches or CacheRegistry.from_settings(settings.cache)

        self.embeddings = self._build_embeddings(embeddings)
        self.backend = backend or create_inventory_client(settings, embeddings=self.embeddings)
        self.tools = create_all_search_tools(self.backend, cache=self.caches.retrieval)

        analyzer = QueryAnalyzer(load_lexicon(settings.lexicon_path), settings.thresholds)
        extractor = ResultExtractor()

        self.llm: Optional[BaseChatModel] = None
        writer: Optional[SummaryWriter] = None
        if use_llm:
            self.llm = llm or self._build_llm()
            agents = build_domain_agents(
                self.llm, self.tools, turn_budgets=settings.turn_budgets, extractor=extractor
            )
            writer = SummaryWriter(self.llm, cache=self.caches.responses)
        else:
            agents = build_policy_agents(
                self.tools, analyzer=analyzer, turn_budgets=settings.turn_budgets, extractor=extractor
            )

        self.orchestrator = Orchestrator(
            analyzer,
            Dispatcher(
                agents,
                early_termination_min=settings.early_termination_min,
                max_concurrency=settings.max_concurrent_agents,
            ),
            Aggregator(writer=writer),
            timeout_s=settings.orchestration_timeout_s,
            history_window=settings.history_window,
        )
        self._started = False

    def _build_llm(self) -> BaseChatModel:
        from langchain_xai import ChatXAI

        return ChatXAI(
            model=self.settings.llm_model,
            temperature=0,
            api_key=self.settings.ensure("xai_api_key"),
        )

    def _build_embeddings(self, embeddings: Optional[Embeddings]) -> Optional[Embeddings]:
        if embeddings is None and self.settings.openai_api_key:
            from langchain_openai import OpenAIEmbeddings

            embeddings = OpenAIEmbeddings(
                model=self.settings.embedding_model,
                api_key=self.settings.openai_api_key,
            )
        if embeddings is None:
            logger.warning("No embeddings configured; semantic search will report failures")
            return None
        return CachedEmbeddings(embeddings, self.caches.embeddings, namespace=self.settings.embedding_model)

    def __repr__(self) -> str:
        llm_name = getattr(self.llm, "model_name", None) or getattr(self.llm, "model", None) or "none"
        return (
            f"OrchestratorBundle(mode='{self.settings.agent_mode}', llm='{llm_name}', "
            f"backend={type(self.backend).__name__}, timeout_s={self.settings.orchestration_timeout_s})"
        )

    def start(self) -> None:
        """Start the background cache sweepers; needs a running event loop.

        Called on the first orchestrated query, so building the bundle outside
        an event loop stays safe.
        """

        if not self._started:
            self.caches.start_sweepers(self.settings.cache.sweep_interval_s)
            self._started = True

    async def close(self) -> None:
        await self.caches.stop_sweepers()
        await self.backend.aclose()
        self._started = False

    async def orchestrate(
        self,
        query: str,
        history: Sequence[HistoryItem] = (),
        listener: Optional[ProgressListener] = None,
    ) -> OrchestratorResult:
        self.start()
        return await self.orchestrator.orchestrate(query, history, listener)

    def info(self) -> Dict[str, Any]:
        llm_name = getattr(self.llm, "model_name", None) or getattr(self.llm, "model", None)
        return {
            "agent_mode": self.settings.agent_mode,
            "llm_model": llm_name,
            "backend": type(self.backend).__name__,
            "timeout_s": self.settings.orchestration_timeout_s,
            "early_termination_min": self.settings.early_termination_min,
            "max_concurrent_agents": self.settings.max_concurrent_agents,
            "turn_budgets": {domain.value: budget for domain, budget in self.settings.turn_budgets.items()},
            "caches": {cache.name: len(cache) for cache in self.caches.all()},
        }
