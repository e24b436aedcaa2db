"""Decision schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DecisionCreate(BaseModel):
    session_id: UUID
    user_id: str
    decision_type: str
    entity_id: str | None = None
    decision: dict[str, Any]
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    impact_value: float | None = None


class DecisionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    user_id: str
    decision_type: str
    entity_id: str | None = None
    decision: dict[str, Any]
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    impact_value: float | None = None
    created_at: datetime
