from typing import Dict, Mapping, Optional

from langchain_core.language_models.chat_models import BaseChatModel

from travel_concierge.core.analyzer import QueryAnalyzer
from travel_concierge.core.config import DEFAULT_TURN_BUDGETS
from travel_concierge.core.domain_agent import DomainAgent, PolicySearchAgent
from travel_concierge.core.extractor import ResultExtractor
from travel_concierge.core.prompts import domain_instructions
from travel_concierge.core.schemas import Domain
from travel_concierge.services.inventory.tools import DomainTools


def build_domain_agents(
    llm: BaseChatModel,
    tools_by_domain: Mapping[Domain, DomainTools],
    *,
    turn_budgets: Optional[Mapping[Domain, int]] = None,
    extractor: Optional[ResultExtractor] = None,
) -> Dict[Domain, DomainAgent]:
    """Instantiate one REACT agent per domain, each seeing only its own tools."""

    from langgraph.prebuilt import create_react_agent

    budgets = turn_budgets or DEFAULT_TURN_BUDGETS
    extractor = extractor or ResultExtractor()
    return {
        domain: DomainAgent(
            domain,
            create_react_agent(
                llm,
                tools=tools.as_list(),
                prompt=domain_instructions(domain),
                name=f"{domain.value}_agent",
            ),
            turn_budget=budgets[domain],
            extractor=extractor,
        )
        for domain, tools in tools_by_domain.items()
    }


def build_policy_agents(
    tools_by_domain: Mapping[Domain, DomainTools],
    *,
    analyzer: Optional[QueryAnalyzer] = None,
    turn_budgets: Optional[Mapping[Domain, int]] = None,
    extractor: Optional[ResultExtractor] = None,
) -> Dict[Domain, DomainAgent]:
    """Same agents as ``build_domain_agents`` but driven by ``PolicySearchAgent``."""

    budgets = turn_budgets or DEFAULT_TURN_BUDGETS
    extractor = extractor or ResultExtractor()
    return {
        domain: DomainAgent(
            domain,
            PolicySearchAgent(tools, analyzer=analyzer),
            turn_budget=budgets[domain],
            extractor=extractor,
        )
        for domain, tools in tools_by_domain.items()
    }
