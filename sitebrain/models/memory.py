"""Memory models — short-lived and confidence-weighted long-lived user facts."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, Float, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database import Base


class MemoryLong(Base):
    """Long-term memory scoped to a user + category + key triple.

    Confidence grows through reinforcement (capped at 1.0) and is never
    lowered by the turn pipeline. Entries above the inclusion threshold are
    injected into the system context.
    """

    __tablename__ = "memory_long"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "category", "key",
            name="uq_memory_long_user_category_key",
        ),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_memory_long_confidence"),
    )

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    category: Mapped[str] = mapped_column(String(50), nullable=False)
    # preferences | patterns | insights

    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)

    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


class MemoryShort(Base):
    """Short-term memory with an optional expiry.

    Expired rows stay in place until the maintenance purge removes them.
    """

    __tablename__ = "memory_short"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    session_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), index=True)

    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
