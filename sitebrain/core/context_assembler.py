"""Context assembler — builds the ordered instruction set for one model call.

Order is fixed:
1. base instructions
2. custom system prompts (priority desc)
3. project prompts (priority desc)
4. known facts about the user (long-term memory above the threshold)
5. current session / deal context
6. recent decisions in the session
7. attached documents
8. live data
9. bounded history
10. the current user turn, unless it already ends the history

Sections 4-8 are skipped when they have nothing to say; assembly never fails
because an optional input is missing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sitebrain.config import Settings, get_settings
from sitebrain.core.logging import get_logger
from sitebrain.models.chat_message import ChatRole
from sitebrain.schemas.chat import AttachmentInput, ChatTurnRead
from sitebrain.schemas.decision import DecisionRead
from sitebrain.schemas.memory import LongTermMemoryRead, SessionContextRead
from sitebrain.schemas.prompt import PromptRead
from sitebrain.services.store import BrainStore

logger = get_logger(__name__)

BASE_INSTRUCTIONS = """You are the site intelligence analyst of a real estate development and investment firm.

# ROLE
Act as a senior partner in commercial real estate and private equity. You evaluate sites, \
deals and markets for an investment committee, not for beginners.

# EXPERTISE
- Deal analysis: IRR, NPV, cap rates, waterfalls, LP/GP structures, preferred returns
- Market intelligence: demographics, employment, migration, supply pipeline
- Risk: construction, market, regulatory, counterparty and capital stack risk
- Strategy: core, core plus, value-add and opportunistic positioning, exit planning

# METHOD
- Quantify every claim and show the numbers behind it
- Model base, upside, downside and stress cases
- Weigh risk-adjusted returns, never yield alone
- Relate each opportunity to the existing portfolio

# STYLE
Be decisive and professional. State a clear recommendation, the confidence behind it, \
and the concrete next steps."""

PROJECT_PREFIX = "PROJECT CONTEXT: "
MISSING_ATTACHMENT_CONTENT = "Processing..."


# ── Assembled output ────────────────────────────────────────────────


class BlockKind:
    BASE = "base"
    SYSTEM_PROMPT = "system_prompt"
    PROJECT_PROMPT = "project_prompt"
    USER_MEMORY = "user_memory"
    SESSION_CONTEXT = "session_context"
    RECENT_DECISIONS = "recent_decisions"
    ATTACHMENTS = "attachments"
    LIVE_DATA = "live_data"


# Blocks merged into a single system message after the prompts
ENRICHMENT_KINDS = frozenset({
    BlockKind.USER_MEMORY,
    BlockKind.SESSION_CONTEXT,
    BlockKind.RECENT_DECISIONS,
    BlockKind.ATTACHMENTS,
    BlockKind.LIVE_DATA,
})


@dataclass
class ContextBlock:
    kind: str
    content: str


@dataclass
class AssembledContext:
    """Instruction blocks, bounded history and the trailing user turn."""

    blocks: list[ContextBlock] = field(default_factory=list)
    history: list[ChatTurnRead] = field(default_factory=list)
    current_message: str | None = None  # None when already the tail of history

    def kinds(self) -> list[str]:
        return [b.kind for b in self.blocks]

    def has_block(self, kind: str) -> bool:
        return any(b.kind == kind for b in self.blocks)

    def to_messages(self) -> list[dict]:
        """Render as chat-completions messages."""
        messages: list[dict] = []
        enrichment: list[str] = []

        for block in self.blocks:
            if block.kind in ENRICHMENT_KINDS:
                enrichment.append(block.content)
            else:
                messages.append({"role": ChatRole.SYSTEM.value, "content": block.content})

        if enrichment:
            messages.append({"role": ChatRole.SYSTEM.value, "content": "\n\n".join(enrichment)})

        for turn in self.history:
            messages.append({"role": turn.role.value, "content": turn.content})

        if self.current_message is not None:
            messages.append({"role": ChatRole.USER.value, "content": self.current_message})

        return messages


# ── Rendering helpers ───────────────────────────────────────────────


def _to_json(value: Any, *, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


def order_prompts(prompts: list[PromptRead]) -> list[PromptRead]:
    """Active prompts, highest priority first (stable for equal priorities)."""
    return sorted((p for p in prompts if p.active), key=lambda p: -p.priority)


def select_known_facts(
    memories: list[LongTermMemoryRead],
    *,
    threshold: float,
    limit: int,
) -> list[LongTermMemoryRead]:
    """Memories strictly above ``threshold``, by confidence then recency."""
    qualifying = [m for m in memories if m.confidence > threshold]
    qualifying.sort(key=lambda m: m.updated_at, reverse=True)
    qualifying.sort(key=lambda m: m.confidence, reverse=True)
    return qualifying[:limit]


def bound_history(turns: list[ChatTurnRead], window: int) -> list[ChatTurnRead]:
    """Last ``window`` non-system turns, oldest first."""
    if window <= 0:
        return []
    non_system = [t for t in turns if t.role != ChatRole.SYSTEM]
    return non_system[-window:]


def ends_with_user_turn(history: list[ChatTurnRead], message: str) -> bool:
    if not history:
        return False
    tail = history[-1]
    return tail.role == ChatRole.USER and tail.content == message


def format_known_facts(memories: list[LongTermMemoryRead]) -> str:
    lines = ["# KNOWN FACTS ABOUT THIS USER"]
    for memory in memories:
        lines.append(f"- {memory.key}: {_to_json(memory.value)}")
    return "\n".join(lines)


def format_session_context(entries: list[SessionContextRead]) -> str:
    lines = ["# CURRENT SESSION / DEAL CONTEXT"]
    for entry in entries:
        lines.append(f"- {entry.type.upper()}: {_to_json(entry.context)}")
    return "\n".join(lines)


def format_recent_decisions(decisions: list[DecisionRead]) -> str:
    lines = ["# RECENT DECISIONS IN THIS SESSION"]
    for decision in decisions:
        lines.append(f"- {decision.decision_type}: {decision.reasoning}")
    return "\n".join(lines)


def format_attachments(attachments: list[AttachmentInput], budget: int) -> str:
    lines = ["# ATTACHED DOCUMENTS"]
    for attachment in attachments:
        content = (attachment.content or "")[:budget] or MISSING_ATTACHMENT_CONTENT
        lines.append(f"- {attachment.file_name}: {content}")
    return "\n".join(lines)


def format_live_data(data_context: dict[str, Any]) -> str:
    return "# LIVE DATA\n" + _to_json(data_context, indent=2)


# ── Assembler ───────────────────────────────────────────────────────


class ContextAssembler:
    """Merges instructions, memory, session state and history for one turn."""

    def __init__(self, store: BrainStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    async def assemble(
        self,
        *,
        session_id: UUID,
        user_id: str,
        user_message: str,
        system_prompts: list[PromptRead] | None = None,
        project_prompts: list[PromptRead] | None = None,
        attachments: list[AttachmentInput] | None = None,
        data_context: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> AssembledContext:
        settings = self._settings
        now = now or datetime.now(UTC)
        blocks: list[ContextBlock] = [ContextBlock(BlockKind.BASE, BASE_INSTRUCTIONS)]

        # ── Prompts ─────────────────────────────────────────────
        for prompt in order_prompts(system_prompts or []):
            blocks.append(ContextBlock(BlockKind.SYSTEM_PROMPT, prompt.content))

        for prompt in order_prompts(project_prompts or []):
            blocks.append(ContextBlock(BlockKind.PROJECT_PROMPT, PROJECT_PREFIX + prompt.content))

        # ── Long-term memory ────────────────────────────────────
        facts = select_known_facts(
            await self._store.get_memory_long(user_id),
            threshold=settings.memory_inclusion_threshold,
            limit=settings.memory_top_k,
        )
        if facts:
            blocks.append(ContextBlock(BlockKind.USER_MEMORY, format_known_facts(facts)))

        # ── Session ledger ──────────────────────────────────────
        session_entries = [
            e for e in await self._store.get_session_context(session_id)
            if not e.is_expired(now)
        ]
        if session_entries:
            blocks.append(
                ContextBlock(BlockKind.SESSION_CONTEXT, format_session_context(session_entries))
            )

        # ── Recent decisions ────────────────────────────────────
        limit = settings.recent_decision_limit
        decisions = (await self._store.get_recent_decisions(session_id, limit))[:limit]
        if decisions:
            blocks.append(
                ContextBlock(BlockKind.RECENT_DECISIONS, format_recent_decisions(decisions))
            )

        # ── Attachments & live data ─────────────────────────────
        if attachments:
            blocks.append(
                ContextBlock(
                    BlockKind.ATTACHMENTS,
                    format_attachments(attachments, settings.attachment_char_budget),
                )
            )

        if data_context is not None:
            blocks.append(ContextBlock(BlockKind.LIVE_DATA, format_live_data(data_context)))

        # ── History ─────────────────────────────────────────────
        history = bound_history(
            await self._store.get_session_messages(session_id),
            settings.history_window,
        )
        current = None if ends_with_user_turn(history, user_message) else user_message

        logger.debug(
            "context_assembled",
            session_id=str(session_id),
            blocks=[b.kind for b in blocks],
            facts=len(facts),
            history_turns=len(history),
        )
        return AssembledContext(blocks=blocks, history=history, current_message=current)
