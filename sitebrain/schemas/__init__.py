"""Pydantic schemas package."""

from sitebrain.schemas.chat import AttachmentInput, ChatTurnCreate, ChatTurnRead, TurnRequest
from sitebrain.schemas.decision import DecisionCreate, DecisionRead
from sitebrain.schemas.memory import (
    LongTermMemoryRead,
    LongTermMemoryUpsert,
    SessionContextCreate,
    SessionContextRead,
    ShortTermMemoryCreate,
    ShortTermMemoryRead,
)
from sitebrain.schemas.prompt import PromptRead

__all__ = [
    "AttachmentInput",
    "ChatTurnCreate",
    "ChatTurnRead",
    "DecisionCreate",
    "DecisionRead",
    "LongTermMemoryRead",
    "LongTermMemoryUpsert",
    "PromptRead",
    "SessionContextCreate",
    "SessionContextRead",
    "ShortTermMemoryCreate",
    "ShortTermMemoryRead",
    "TurnRequest",
]
