"""Brain store — persistence collaborator for memory, context, chat and decisions.

The turn pipeline only talks to the ``BrainStore`` protocol and exchanges
pydantic records with it. ``SqlBrainStore`` is the PostgreSQL implementation:
each call opens its own session and commits before returning, so a reply is
never persisted on top of an uncommitted user turn.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import Numeric, cast, delete, func, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitebrain.core.errors import PersistenceError
from sitebrain.core.logging import get_logger
from sitebrain.models.chat_message import ChatMessage
from sitebrain.models.decision import AgentDecision
from sitebrain.models.memory import MemoryLong, MemoryShort
from sitebrain.models.prompt import AgentPrompt, PromptType
from sitebrain.models.session_context import SessionContext
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

logger = get_logger(__name__)

T = TypeVar("T")


class BrainStore(Protocol):
    """Storage operations consumed by the turn pipeline."""

    async def get_memory_long(
        self, user_id: str, category: str | None = None,
    ) -> list[LongTermMemoryRead]: ...

    async def upsert_memory_long(self, entry: LongTermMemoryUpsert) -> LongTermMemoryRead: ...

    async def reinforce_memory_long(
        self,
        entry: LongTermMemoryUpsert,
        *,
        increment: float,
        patch: dict[str, Any],
    ) -> LongTermMemoryRead: ...

    async def get_session_context(self, session_id: UUID) -> list[SessionContextRead]: ...

    async def add_session_context(self, entry: SessionContextCreate) -> SessionContextRead: ...

    async def get_session_messages(self, session_id: UUID) -> list[ChatTurnRead]: ...

    async def append_chat_turn(self, turn: ChatTurnCreate) -> ChatTurnRead: ...

    async def create_decision(self, decision: DecisionCreate) -> DecisionRead: ...

    async def get_recent_decisions(self, session_id: UUID, limit: int) -> list[DecisionRead]: ...

    async def get_prompts(
        self, user_id: str, type: PromptType | None = None,
    ) -> list[PromptRead]: ...

    async def set_memory_short(self, entry: ShortTermMemoryCreate) -> ShortTermMemoryRead: ...

    async def get_memory_short(
        self, user_id: str, key: str | None = None,
    ) -> list[ShortTermMemoryRead]: ...

    async def delete_expired_memory_short(self) -> int: ...

    async def delete_expired_session_context(self) -> int: ...


class SqlBrainStore:
    """``BrainStore`` backed by PostgreSQL through SQLAlchemy async sessions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        commit: bool = False,
    ) -> T:
        """Run ``work`` in a fresh session, wrapping driver errors."""
        try:
            async with self._session_maker() as db:
                result = await work(db)
                if commit:
                    await db.commit()
                return result
        except SQLAlchemyError as exc:
            logger.error("store_operation_failed", operation=operation, error=str(exc))
            raise PersistenceError(operation, str(exc)) from exc

    # ── Long-term memory ─────────────────────────────────────────

    async def get_memory_long(
        self,
        user_id: str,
        category: str | None = None,
    ) -> list[LongTermMemoryRead]:
        async def work(db: AsyncSession) -> list[LongTermMemoryRead]:
            stmt = select(MemoryLong).where(MemoryLong.user_id == user_id)
            if category is not None:
                stmt = stmt.where(MemoryLong.category == category)
            stmt = stmt.order_by(MemoryLong.confidence.desc(), MemoryLong.updated_at.desc())
            result = await db.execute(stmt)
            return [LongTermMemoryRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_memory_long", work)

    async def upsert_memory_long(self, entry: LongTermMemoryUpsert) -> LongTermMemoryRead:
        """Create or merge on the (user_id, category, key) unique constraint.

        On conflict the JSON value is merged key by key and confidence keeps
        the higher of the stored and incoming values.
        """
        confidence = min(max(entry.confidence, 0.0), 1.0)

        async def work(db: AsyncSession) -> LongTermMemoryRead:
            insert_stmt = pg_insert(MemoryLong).values(
                user_id=entry.user_id,
                category=entry.category,
                key=entry.key,
                value=entry.value,
                confidence=confidence,
            )
            stmt = insert_stmt.on_conflict_do_update(
                constraint="uq_memory_long_user_category_key",
                set_={
                    "value": MemoryLong.value.op("||")(insert_stmt.excluded.value),
                    "confidence": func.greatest(MemoryLong.confidence, insert_stmt.excluded.confidence),
                    "updated_at": func.now(),
                },
            ).returning(MemoryLong)
            result = await db.execute(stmt)
            return LongTermMemoryRead.model_validate(result.scalar_one())

        return await self._run("upsert_memory_long", work, commit=True)

    async def reinforce_memory_long(
        self,
        entry: LongTermMemoryUpsert,
        *,
        increment: float,
        patch: dict[str, Any],
    ) -> LongTermMemoryRead:
        """Insert ``entry`` or bump an existing row in one statement.

        New rows take ``entry.value`` and ``entry.confidence``. Existing rows get
        ``confidence + increment`` capped at 1.0 and ``patch`` merged into their
        value, computed by the database so concurrent turns never lose a step.
        """
        baseline = min(max(entry.confidence, 0.0), 1.0)

        async def work(db: AsyncSession) -> LongTermMemoryRead:
            stmt = (
                pg_insert(MemoryLong)
                .values(
                    user_id=entry.user_id,
                    category=entry.category,
                    key=entry.key,
                    value=entry.value,
                    confidence=baseline,
                )
                .on_conflict_do_update(
                    constraint="uq_memory_long_user_category_key",
                    set_={
                        "value": MemoryLong.value.op("||")(cast(patch, JSONB)),
                        "confidence": func.least(
                            func.round(cast(MemoryLong.confidence + increment, Numeric), 6),
                            1.0,
                        ),
                        "updated_at": func.now(),
                    },
                )
                .returning(MemoryLong)
            )
            result = await db.execute(stmt)
            return LongTermMemoryRead.model_validate(result.scalar_one())

        return await self._run("reinforce_memory_long", work, commit=True)

    # ── Session context ──────────────────────────────────────────

    async def get_session_context(self, session_id: UUID) -> list[SessionContextRead]:
        """Non-expired entries for the session, oldest first."""

        async def work(db: AsyncSession) -> list[SessionContextRead]:
            result = await db.execute(
                select(SessionContext)
                .where(SessionContext.session_id == session_id)
                .where(
                    or_(
                        SessionContext.expires_at.is_(None),
                        SessionContext.expires_at > datetime.now(UTC),
                    )
                )
                .order_by(SessionContext.created_at)
            )
            return [SessionContextRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_session_context", work)

    async def add_session_context(self, entry: SessionContextCreate) -> SessionContextRead:
        async def work(db: AsyncSession) -> SessionContextRead:
            row = SessionContext(**entry.model_dump())
            db.add(row)
            await db.flush()
            await db.refresh(row)
            return SessionContextRead.model_validate(row)

        return await self._run("add_session_context", work, commit=True)

    # ── Chat log ─────────────────────────────────────────────────

    async def get_session_messages(self, session_id: UUID) -> list[ChatTurnRead]:
        async def work(db: AsyncSession) -> list[ChatTurnRead]:
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.created_at)
            )
            return [ChatTurnRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_session_messages", work)

    async def append_chat_turn(self, turn: ChatTurnCreate) -> ChatTurnRead:
        async def work(db: AsyncSession) -> ChatTurnRead:
            row = ChatMessage(
                session_id=turn.session_id,
                role=turn.role.value,
                content=turn.content,
                metadata_=turn.metadata,
            )
            db.add(row)
            await db.flush()
            await db.refresh(row)
            return ChatTurnRead.model_validate(row)

        return await self._run("append_chat_turn", work, commit=True)

    # ── Decisions ────────────────────────────────────────────────

    async def create_decision(self, decision: DecisionCreate) -> DecisionRead:
        async def work(db: AsyncSession) -> DecisionRead:
            row = AgentDecision(**decision.model_dump())
            db.add(row)
            await db.flush()
            await db.refresh(row)
            return DecisionRead.model_validate(row)

        return await self._run("create_decision", work, commit=True)

    async def get_recent_decisions(self, session_id: UUID, limit: int) -> list[DecisionRead]:
        """Most recent decisions first."""

        async def work(db: AsyncSession) -> list[DecisionRead]:
            result = await db.execute(
                select(AgentDecision)
                .where(AgentDecision.session_id == session_id)
                .order_by(AgentDecision.created_at.desc())
                .limit(limit)
            )
            return [DecisionRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_recent_decisions", work)

    # ── Prompts ──────────────────────────────────────────────────

    async def get_prompts(
        self,
        user_id: str,
        type: PromptType | None = None,
    ) -> list[PromptRead]:
        """Active prompts, highest priority first."""

        async def work(db: AsyncSession) -> list[PromptRead]:
            stmt = (
                select(AgentPrompt)
                .where(AgentPrompt.user_id == user_id)
                .where(AgentPrompt.active.is_(True))
            )
            if type is not None:
                stmt = stmt.where(AgentPrompt.type == type.value)
            stmt = stmt.order_by(AgentPrompt.priority.desc(), AgentPrompt.created_at)
            result = await db.execute(stmt)
            return [PromptRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_prompts", work)

    # ── Short-term memory ────────────────────────────────────────

    async def set_memory_short(self, entry: ShortTermMemoryCreate) -> ShortTermMemoryRead:
        async def work(db: AsyncSession) -> ShortTermMemoryRead:
            row = MemoryShort(**entry.model_dump())
            db.add(row)
            await db.flush()
            await db.refresh(row)
            return ShortTermMemoryRead.model_validate(row)

        return await self._run("set_memory_short", work, commit=True)

    async def get_memory_short(
        self,
        user_id: str,
        key: str | None = None,
    ) -> list[ShortTermMemoryRead]:
        """Non-expired short-term entries, newest first."""

        async def work(db: AsyncSession) -> list[ShortTermMemoryRead]:
            stmt = (
                select(MemoryShort)
                .where(MemoryShort.user_id == user_id)
                .where(
                    or_(
                        MemoryShort.expires_at.is_(None),
                        MemoryShort.expires_at > datetime.now(UTC),
                    )
                )
            )
            if key is not None:
                stmt = stmt.where(MemoryShort.key == key)
            stmt = stmt.order_by(MemoryShort.created_at.desc())
            result = await db.execute(stmt)
            return [ShortTermMemoryRead.model_validate(row) for row in result.scalars().all()]

        return await self._run("get_memory_short", work)

    # ── Expiry purges ────────────────────────────────────────────

    async def delete_expired_memory_short(self) -> int:
        async def work(db: AsyncSession) -> int:
            result = await db.execute(
                delete(MemoryShort).where(MemoryShort.expires_at <= datetime.now(UTC))
            )
            return result.rowcount or 0

        return await self._run("delete_expired_memory_short", work, commit=True)

    async def delete_expired_session_context(self) -> int:
        async def work(db: AsyncSession) -> int:
            result = await db.execute(
                delete(SessionContext).where(SessionContext.expires_at <= datetime.now(UTC))
            )
            return result.rowcount or 0

        return await self._run("delete_expired_session_context", work, commit=True)
