"""Prompt schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from sitebrain.models.prompt import PromptType


class PromptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    user_id: str
    name: str
    type: PromptType = PromptType.SYSTEM
    content: str
    priority: int = 0
    active: bool = True
    created_at: datetime | None = None
