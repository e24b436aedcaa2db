"""SQLAlchemy models package."""

from sitebrain.models.chat_message import ChatMessage, ChatRole
from sitebrain.models.decision import AgentDecision
from sitebrain.models.memory import MemoryLong, MemoryShort
from sitebrain.models.prompt import AgentPrompt, PromptType
from sitebrain.models.session_context import SessionContext

__all__ = [
    "AgentDecision",
    "AgentPrompt",
    "ChatMessage",
    "ChatRole",
    "MemoryLong",
    "MemoryShort",
    "PromptType",
    "SessionContext",
]
