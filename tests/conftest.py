"""Shared fixtures: in-memory brain store and scripted inference client."""

from __future__ import annotations

import asyncio
import itertools
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from sitebrain.config import Settings
from sitebrain.core.errors import InferenceError, PersistenceError
from sitebrain.core.learning import reinforce
from sitebrain.models.chat_message import ChatRole
from sitebrain.models.prompt import PromptType
from sitebrain.schemas.chat import ChatTurnCreate, ChatTurnRead
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


class StoreClock:
    """Strictly increasing timestamps, like a database ``now()`` per statement."""

    def __init__(self) -> None:
        self._base = datetime(2026, 1, 1, tzinfo=UTC)
        self._ticks = itertools.count(1)

    def now(self) -> datetime:
        return self._base + timedelta(milliseconds=next(self._ticks))


class InMemoryBrainStore:
    """``BrainStore`` fake with the same ordering and upsert semantics as SQL."""

    def __init__(self) -> None:
        self.clock = StoreClock()
        self.memory_long: dict[tuple[str, str, str], LongTermMemoryRead] = {}
        self.memory_short: list[ShortTermMemoryRead] = []
        self.session_context: list[SessionContextRead] = []
        self.turns: list[ChatTurnRead] = []
        self.decisions: list[DecisionRead] = []
        self.prompts: list[PromptRead] = []
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self.yield_on_call = False  # hand control to the event loop on every call

    async def _enter(self, operation: str) -> None:
        if self.yield_on_call:
            await asyncio.sleep(0)
        self.calls.append(operation)
        if operation in self.fail_on:
            raise PersistenceError(operation, "simulated outage")

    # ── Long-term memory ─────────────────────────────────────────

    async def get_memory_long(self, user_id, category=None):
        await self._enter("get_memory_long")
        return [
            m for (uid, cat, _), m in self.memory_long.items()
            if uid == user_id and (category is None or cat == category)
        ]

    async def upsert_memory_long(self, entry: LongTermMemoryUpsert):
        await self._enter("upsert_memory_long")
        existing = self.memory_long.get((entry.user_id, entry.category, entry.key))
        if existing is None:
            return self._put_memory(entry, entry.value, entry.confidence)
        return self._put_memory(
            entry,
            {**existing.value, **entry.value},
            max(existing.confidence, entry.confidence),
            existing,
        )

    async def reinforce_memory_long(self, entry: LongTermMemoryUpsert, *, increment, patch):
        await self._enter("reinforce_memory_long")
        existing = self.memory_long.get((entry.user_id, entry.category, entry.key))
        if existing is None:
            return self._put_memory(entry, entry.value, entry.confidence)
        return self._put_memory(
            entry,
            {**existing.value, **patch},
            reinforce(existing.confidence, increment),
            existing,
        )

    def _put_memory(self, entry, value, confidence, existing=None):
        now = self.clock.now()
        record = LongTermMemoryRead(
            id=existing.id if existing else uuid4(),
            user_id=entry.user_id,
            category=entry.category,
            key=entry.key,
            value=value,
            confidence=confidence,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.memory_long[(entry.user_id, entry.category, entry.key)] = record
        return record

    def seed_memory(self, user_id: str, key: str, confidence: float, *, category="preferences", value=None):
        now = self.clock.now()
        record = LongTermMemoryRead(
            id=uuid4(),
            user_id=user_id,
            category=category,
            key=key,
            value=value if value is not None else {"note": key},
            confidence=confidence,
            created_at=now,
            updated_at=now,
        )
        self.memory_long[(user_id, category, key)] = record
        return record

    # ── Session context ──────────────────────────────────────────

    async def get_session_context(self, session_id: UUID):
        await self._enter("get_session_context")
        now = datetime.now(UTC)
        return [
            e for e in self.session_context
            if e.session_id == session_id and not e.is_expired(now)
        ]

    async def add_session_context(self, entry: SessionContextCreate):
        await self._enter("add_session_context")
        record = SessionContextRead(id=uuid4(), created_at=self.clock.now(), **entry.model_dump())
        self.session_context.append(record)
        return record

    # ── Chat log ─────────────────────────────────────────────────

    async def get_session_messages(self, session_id: UUID):
        await self._enter("get_session_messages")
        return sorted(
            (t for t in self.turns if t.session_id == session_id),
            key=lambda t: t.created_at,
        )

    async def append_chat_turn(self, turn: ChatTurnCreate):
        await self._enter("append_chat_turn")
        record = ChatTurnRead(
            id=uuid4(),
            session_id=turn.session_id,
            role=turn.role,
            content=turn.content,
            metadata=turn.metadata,
            created_at=self.clock.now(),
        )
        self.turns.append(record)
        return record

    def seed_turn(self, session_id: UUID, role: ChatRole, content: str) -> ChatTurnRead:
        record = ChatTurnRead(
            id=uuid4(),
            session_id=session_id,
            role=role,
            content=content,
            created_at=self.clock.now(),
        )
        self.turns.append(record)
        return record

    # ── Decisions ────────────────────────────────────────────────

    async def create_decision(self, decision: DecisionCreate):
        await self._enter("create_decision")
        record = DecisionRead(id=uuid4(), created_at=self.clock.now(), **decision.model_dump())
        self.decisions.append(record)
        return record

    async def get_recent_decisions(self, session_id: UUID, limit: int):
        await self._enter("get_recent_decisions")
        matching = [d for d in self.decisions if d.session_id == session_id]
        matching.sort(key=lambda d: d.created_at, reverse=True)
        return matching[:limit]

    def seed_decision(self, session_id: UUID, reasoning: str) -> DecisionRead:
        record = DecisionRead(
            id=uuid4(),
            session_id=session_id,
            user_id="user-1",
            decision_type="recommendation",
            decision={"fullResponse": reasoning},
            reasoning=reasoning,
            confidence=0.75,
            created_at=self.clock.now(),
        )
        self.decisions.append(record)
        return record

    # ── Prompts ──────────────────────────────────────────────────

    async def get_prompts(self, user_id: str, type: PromptType | None = None):
        await self._enter("get_prompts")
        matching = [
            p for p in self.prompts
            if p.user_id == user_id and p.active and (type is None or p.type == type)
        ]
        return sorted(matching, key=lambda p: -p.priority)

    # ── Short-term memory ────────────────────────────────────────

    async def set_memory_short(self, entry: ShortTermMemoryCreate):
        await self._enter("set_memory_short")
        record = ShortTermMemoryRead(id=uuid4(), created_at=self.clock.now(), **entry.model_dump())
        self.memory_short.append(record)
        return record

    async def get_memory_short(self, user_id: str, key: str | None = None):
        await self._enter("get_memory_short")
        now = datetime.now(UTC)
        return [
            m for m in self.memory_short
            if m.user_id == user_id
            and (key is None or m.key == key)
            and (m.expires_at is None or m.expires_at > now)
        ]

    async def delete_expired_memory_short(self) -> int:
        await self._enter("delete_expired_memory_short")
        now = datetime.now(UTC)
        kept = [m for m in self.memory_short if m.expires_at is None or m.expires_at > now]
        purged = len(self.memory_short) - len(kept)
        self.memory_short = kept
        return purged

    async def delete_expired_session_context(self) -> int:
        await self._enter("delete_expired_session_context")
        now = datetime.now(UTC)
        kept = [e for e in self.session_context if not e.is_expired(now)]
        purged = len(self.session_context) - len(kept)
        self.session_context = kept
        return purged

    # ── Helpers ──────────────────────────────────────────────────

    def turns_for(self, session_id: UUID) -> list[ChatTurnRead]:
        return [t for t in self.turns if t.session_id == session_id]


class ScriptedInference:
    """Inference client returning a canned reply or raising a canned error."""

    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[list[dict], str | None]] = []

    async def generate(self, messages: list[dict], model: str | None = None) -> str:
        self.calls.append((messages, model))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def store() -> InMemoryBrainStore:
    return InMemoryBrainStore()


@pytest.fixture
def session_id() -> UUID:
    return uuid4()


@pytest.fixture
def failing_inference() -> ScriptedInference:
    return ScriptedInference(error=InferenceError("upstream timeout", model="openai/gpt-4o"))


@pytest.fixture
def scripted():
    """Factory for ``ScriptedInference`` clients."""
    return ScriptedInference
