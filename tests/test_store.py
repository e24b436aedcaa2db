"""Tests for the SQL brain store (mocked session maker, no database required)."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from sitebrain.core.errors import PersistenceError
from sitebrain.models.chat_message import ChatRole
from sitebrain.models.memory import MemoryLong, MemoryShort
from sitebrain.models.session_context import SessionContext
from sitebrain.schemas.chat import ChatTurnCreate
from sitebrain.schemas.memory import LongTermMemoryUpsert, SessionContextCreate, ShortTermMemoryCreate
from sitebrain.services.maintenance import purge_expired_memory
from sitebrain.services.store import SqlBrainStore


def _mock_session_maker():
    db = MagicMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()

    maker = MagicMock()
    maker.return_value.__aenter__.return_value = db
    maker.return_value.__aexit__.return_value = False
    return maker, db


def _scalars_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


# ─── Reads ──────────────────────────────────────────────────────────


class TestReads:
    @pytest.mark.asyncio
    async def test_get_memory_long_returns_records(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)
        row = MemoryLong(
            id=uuid4(), user_id="user-1", category="preferences", key="irr",
            value={"firstMentioned": "2026-01-01"}, confidence=0.8,
            created_at=now, updated_at=now,
        )
        db.execute.return_value = _scalars_result([row])

        records = await SqlBrainStore(maker).get_memory_long("user-1", "preferences")

        assert len(records) == 1
        assert records[0].key == "irr"
        assert records[0].confidence == 0.8
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_session_messages_empty(self):
        maker, db = _mock_session_maker()
        db.execute.return_value = _scalars_result([])

        assert await SqlBrainStore(maker).get_session_messages(uuid4()) == []


# ─── Writes ─────────────────────────────────────────────────────────


class TestWrites:
    @pytest.mark.asyncio
    async def test_append_chat_turn_commits(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)

        async def _refresh(row):
            row.id = uuid4()
            row.created_at = now

        db.refresh.side_effect = _refresh
        session_id = uuid4()

        turn = await SqlBrainStore(maker).append_chat_turn(
            ChatTurnCreate(
                session_id=session_id,
                role=ChatRole.ASSISTANT,
                content="Hold the asset.",
                metadata={"model": "openai/gpt-4o"},
            )
        )

        added = db.add.call_args[0][0]
        assert added.role == "assistant"
        assert added.metadata_ == {"model": "openai/gpt-4o"}
        assert turn.session_id == session_id
        assert turn.role == ChatRole.ASSISTANT
        assert turn.metadata == {"model": "openai/gpt-4o"}
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upsert_memory_long_returns_row(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)
        result = MagicMock()
        result.scalar_one.return_value = MemoryLong(
            id=uuid4(), user_id="user-1", category="preferences", key="industrial",
            value={}, confidence=0.6, created_at=now, updated_at=now,
        )
        db.execute.return_value = result

        record = await SqlBrainStore(maker).upsert_memory_long(
            LongTermMemoryUpsert(user_id="user-1", category="preferences", key="industrial", confidence=0.6)
        )

        assert record.key == "industrial"
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_purges_return_rowcounts(self):
        maker, db = _mock_session_maker()
        first, second = MagicMock(rowcount=4), MagicMock(rowcount=0)
        db.execute.side_effect = [first, second]

        purged = await purge_expired_memory(SqlBrainStore(maker))

        assert purged == {"memory_short": 4, "session_context": 0}
        assert db.commit.await_count == 2


# ─── Errors ─────────────────────────────────────────────────────────


class TestErrors:
    @pytest.mark.asyncio
    async def test_driver_error_wrapped(self):
        maker, db = _mock_session_maker()
        db.execute.side_effect = SQLAlchemyError("connection reset")

        with pytest.raises(PersistenceError, match="get_recent_decisions failed") as exc_info:
            await SqlBrainStore(maker).get_recent_decisions(uuid4(), 3)

        assert exc_info.value.operation == "get_recent_decisions"
        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)

    @pytest.mark.asyncio
    async def test_commit_failure_wrapped(self):
        maker, db = _mock_session_maker()
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("server closed"))

        with pytest.raises(PersistenceError) as exc_info:
            await SqlBrainStore(maker).delete_expired_session_context()

        assert exc_info.value.operation == "delete_expired_session_context"


# ─── Long-term Memory Statements ────────────────────────────────────


def _memory_row(confidence=0.6):
    now = datetime.now(UTC)
    return MemoryLong(
        id=uuid4(), user_id="user-1", category="preferences", key="irr",
        value={"firstMentioned": "2026-01-01"}, confidence=confidence,
        created_at=now, updated_at=now,
    )


def _compiled_sql(db) -> str:
    stmt = db.execute.call_args[0][0]
    return str(stmt.compile(dialect=postgresql.dialect())).lower()


class TestLongTermMemoryStatements:
    @pytest.mark.asyncio
    async def test_reinforce_increments_in_the_database(self):
        maker, db = _mock_session_maker()
        result = MagicMock()
        result.scalar_one.return_value = _memory_row(0.6)
        db.execute.return_value = result

        record = await SqlBrainStore(maker).reinforce_memory_long(
            LongTermMemoryUpsert(user_id="user-1", category="preferences", key="irr", value={}),
            increment=0.1,
            patch={"lastDiscussed": "2026-04-02"},
        )

        sql = _compiled_sql(db)
        assert "on conflict on constraint uq_memory_long_user_category_key do update" in sql
        assert "least(round(cast(memory_long.confidence +" in sql
        assert "memory_long.value ||" in sql
        assert record.confidence == 0.6
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_upsert_never_lowers_confidence(self):
        maker, db = _mock_session_maker()
        result = MagicMock()
        result.scalar_one.return_value = _memory_row(0.9)
        db.execute.return_value = result

        await SqlBrainStore(maker).upsert_memory_long(
            LongTermMemoryUpsert(user_id="user-1", category="preferences", key="irr", confidence=0.5)
        )

        sql = _compiled_sql(db)
        assert "greatest(memory_long.confidence, excluded.confidence)" in sql
        assert "memory_long.value || excluded.value" in sql

    def test_confidence_check_constraint_on_model(self):
        names = {c.name for c in MemoryLong.__table__.constraints}
        assert "ck_memory_long_confidence" in names
        assert "uq_memory_long_user_category_key" in names


# ─── Session Context & Short-term Memory ────────────────────────────


class TestSessionAndShortTermMemory:
    @pytest.mark.asyncio
    async def test_add_session_context(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)

        async def _refresh(row):
            row.id = uuid4()
            row.created_at = now

        db.refresh.side_effect = _refresh
        session_id = uuid4()

        record = await SqlBrainStore(maker).add_session_context(
            SessionContextCreate(
                session_id=session_id, user_id="user-1", type="deal",
                entity_id="deal-7", context={"price": 4_200_000}, relevance=0.8,
            )
        )

        added = db.add.call_args[0][0]
        assert isinstance(added, SessionContext)
        assert added.type == "deal"
        assert record.session_id == session_id
        assert record.context == {"price": 4_200_000}
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_set_memory_short(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)

        async def _refresh(row):
            row.id = uuid4()
            row.created_at = now

        db.refresh.side_effect = _refresh
        expires = now + timedelta(hours=1)

        record = await SqlBrainStore(maker).set_memory_short(
            ShortTermMemoryCreate(user_id="user-1", key="draft", value={"step": 2}, expires_at=expires)
        )

        added = db.add.call_args[0][0]
        assert isinstance(added, MemoryShort)
        assert record.key == "draft"
        assert record.expires_at == expires
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_memory_short_filters_expired_and_key(self):
        maker, db = _mock_session_maker()
        now = datetime.now(UTC)
        db.execute.return_value = _scalars_result([
            MemoryShort(
                id=uuid4(), user_id="user-1", key="draft", value={"step": 2},
                expires_at=now + timedelta(hours=1), created_at=now,
            ),
        ])

        records = await SqlBrainStore(maker).get_memory_short("user-1", key="draft")

        sql = _compiled_sql(db)
        assert "memory_short.expires_at is null or memory_short.expires_at >" in sql
        assert "memory_short.key =" in sql
        assert [r.key for r in records] == ["draft"]
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_term_write_failure_wrapped(self):
        maker, db = _mock_session_maker()
        db.flush.side_effect = SQLAlchemyError("disk full")

        with pytest.raises(PersistenceError, match="set_memory_short failed"):
            await SqlBrainStore(maker).set_memory_short(ShortTermMemoryCreate(user_id="user-1", key="k"))
