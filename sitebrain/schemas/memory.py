"""Memory schemas (long-term memory, short-term memory, session context)."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# ── Long-term memory ─────────────────────────────────────────────────

class LongTermMemoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    category: str
    key: str
    value: Any = None
    confidence: float = Field(ge=0.0, le=1.0)
    last_used_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class LongTermMemoryUpsert(BaseModel):
    """Create-or-update payload keyed by (user_id, category, key)."""

    user_id: str
    category: str
    key: str
    value: Any = None
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


# ── Short-term memory ────────────────────────────────────────────────

class ShortTermMemoryCreate(BaseModel):
    user_id: str
    session_id: UUID | None = None
    key: str
    value: Any = None
    expires_at: datetime | None = None


class ShortTermMemoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    session_id: UUID | None = None
    key: str
    value: Any = None
    expires_at: datetime | None = None
    created_at: datetime


# ── Session context ──────────────────────────────────────────────────

class SessionContextCreate(BaseModel):
    session_id: UUID
    user_id: str
    type: str  # deal | property | market | competitor | strategy
    entity_id: str | None = None
    context: Any
    relevance: float | None = Field(ge=0.0, le=1.0, default=None)
    expires_at: datetime | None = None


class SessionContextRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: UUID
    user_id: str
    type: str
    entity_id: str | None = None
    context: Any
    relevance: float | None = Field(ge=0.0, le=1.0, default=None)
    expires_at: datetime | None = None
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now
