"""Chat schemas (turn records and the turn request)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from sitebrain.models.chat_message import ChatRole
from sitebrain.schemas.prompt import PromptRead

# ── Chat turns ───────────────────────────────────────────────────────

class ChatTurnCreate(BaseModel):
    session_id: UUID
    role: ChatRole
    content: str
    metadata: dict | None = None


class ChatTurnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    role: ChatRole
    content: str
    # ORM attribute is metadata_ (metadata is reserved by SQLAlchemy)
    metadata: dict | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )
    created_at: datetime


# ── Turn request ─────────────────────────────────────────────────────

class AttachmentInput(BaseModel):
    """Pre-extracted attachment text; parsing happens upstream."""

    file_name: str
    content: str | None = None


class TurnRequest(BaseModel):
    """Input of the turn orchestrator."""

    session_id: UUID | None = None  # generated when absent
    user_id: str
    user_message: str
    # None loads the user's stored prompts; an empty list disables them
    system_prompts: list[PromptRead] | None = None
    project_prompts: list[PromptRead] | None = None
    attachments: list[AttachmentInput] = Field(default_factory=list)
    data_context: dict[str, Any] | None = None
    selected_model: str | None = None
