from typing import List

from pydantic import BaseModel, Field

from travel_concierge.core.schemas import Message


class OrchestrateRequest(BaseModel):
    """Request payload for one user turn."""

    query: str = Field(..., description="The user's current message")
    history: List[Message] = Field(
        default_factory=list,
        description="Earlier turns of the conversation, oldest first.",
    )
