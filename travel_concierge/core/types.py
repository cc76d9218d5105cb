"""Shared type aliases used across the orchestration modules."""
from __future__ import annotations

from typing import Annotated

from pydantic import Field

Lat = Annotated[float, Field(ge=-90, le=90)]
Lng = Annotated[float, Field(ge=-180, le=180)]
Rating = Annotated[float, Field(ge=0, le=5)]
Confidence = Annotated[float, Field(ge=0, le=1)]
NonNegMillis = Annotated[float, Field(ge=0)]
