"""Session context model — small facts scoped to one conversation or deal."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database import Base


class SessionContext(Base):
    """Append-only ledger entry for a session (deal, property, market...).

    Every non-expired entry is injected into the system context; relevance is
    informational only.
    """

    __tablename__ = "session_contexts"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    session_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    # deal | property | market | competitor | strategy

    entity_id: Mapped[str | None] = mapped_column(String(255))
    context: Mapped[dict] = mapped_column(JSONB, nullable=False)
    relevance: Mapped[float | None] = mapped_column(Float)

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
