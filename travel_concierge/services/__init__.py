"""External service integrations for the travel concierge.

- inventory: domain search capability (filtered + semantic) over the partner
  inventory, exposed as LangChain tools for the domain agents
"""
