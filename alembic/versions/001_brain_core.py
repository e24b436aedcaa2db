"""Brain core: memory, session context, chat log, decisions, prompts.

Revision ID: 001
Revises:
Create Date: 2026-10-18

Tables:
- memory_long: confidence-weighted user facts, unique per (user, category, key)
- memory_short: expiring user facts
- session_contexts: per-session deal/property context ledger
- chat_messages: append-only conversation log
- agent_decisions: append-only decision audit trail
- agent_prompts: custom system and project prompts
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"))


def upgrade() -> None:
    # --- memory_long ---
    op.create_table(
        "memory_long",
        _id_column(),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_memory_long_confidence"),
    )
    op.create_index("ix_memory_long_user_id", "memory_long", ["user_id"])
    op.create_unique_constraint(
        "uq_memory_long_user_category_key", "memory_long", ["user_id", "category", "key"],
    )

    # --- memory_short ---
    op.create_table(
        "memory_short",
        _id_column(),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_memory_short_user_id", "memory_short", ["user_id"])
    op.create_index("ix_memory_short_session_id", "memory_short", ["session_id"])
    op.create_index("ix_memory_short_expires_at", "memory_short", ["expires_at"])

    # --- session_contexts ---
    op.create_table(
        "session_contexts",
        _id_column(),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("context", postgresql.JSONB(), nullable=False),
        sa.Column("relevance", sa.Float(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_session_contexts_session_id", "session_contexts", ["session_id"])
    op.create_index("ix_session_contexts_expires_at", "session_contexts", ["expires_at"])

    # --- chat_messages ---
    op.create_table(
        "chat_messages",
        _id_column(),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_chat_messages_session_id", "chat_messages", ["session_id"])
    op.create_index("ix_chat_messages_created_at", "chat_messages", ["created_at"])

    # --- agent_decisions ---
    op.create_table(
        "agent_decisions",
        _id_column(),
        sa.Column("session_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("decision_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("decision", postgresql.JSONB(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("impact_value", sa.Float(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_agent_decisions_session_id", "agent_decisions", ["session_id"])
    op.create_index("ix_agent_decisions_created_at", "agent_decisions", ["created_at"])

    # --- agent_prompts ---
    op.create_table(
        "agent_prompts",
        _id_column(),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="system"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_agent_prompts_user_id", "agent_prompts", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_agent_prompts_user_id", table_name="agent_prompts")
    op.drop_table("agent_prompts")

    op.drop_index("ix_agent_decisions_created_at", table_name="agent_decisions")
    op.drop_index("ix_agent_decisions_session_id", table_name="agent_decisions")
    op.drop_table("agent_decisions")

    op.drop_index("ix_chat_messages_created_at", table_name="chat_messages")
    op.drop_index("ix_chat_messages_session_id", table_name="chat_messages")
    op.drop_table("chat_messages")

    op.drop_index("ix_session_contexts_expires_at", table_name="session_contexts")
    op.drop_index("ix_session_contexts_session_id", table_name="session_contexts")
    op.drop_table("session_contexts")

    op.drop_index("ix_memory_short_expires_at", table_name="memory_short")
    op.drop_index("ix_memory_short_session_id", table_name="memory_short")
    op.drop_index("ix_memory_short_user_id", table_name="memory_short")
    op.drop_table("memory_short")

    op.drop_constraint("uq_memory_long_user_category_key", "memory_long", type_="unique")
    op.drop_index("ix_memory_long_user_id", table_name="memory_long")
    op.drop_table("memory_long")
