"""Learning updater — reinforces long-term topic memory from a finished turn."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime

from sitebrain.config import Settings, get_settings
from sitebrain.core.logging import get_logger
from sitebrain.schemas.memory import LongTermMemoryRead, LongTermMemoryUpsert
from sitebrain.services.store import BrainStore

logger = get_logger(__name__)

PREFERENCES_CATEGORY = "preferences"


@dataclass(frozen=True)
class TopicPattern:
    """Domain topic and the wording that signals it."""

    topic: str
    pattern: re.Pattern[str]


TOPIC_PATTERNS: tuple[TopicPattern, ...] = (
    TopicPattern("cap rate", re.compile(r"cap rate", re.IGNORECASE)),
    TopicPattern("irr", re.compile(r"\bIRR\b|internal rate of return", re.IGNORECASE)),
    TopicPattern("multifamily", re.compile(r"multifamily|multi-family", re.IGNORECASE)),
    TopicPattern("office space", re.compile(r"office space", re.IGNORECASE)),
    TopicPattern("retail property", re.compile(r"retail property", re.IGNORECASE)),
    TopicPattern("industrial", re.compile(r"industrial", re.IGNORECASE)),
    TopicPattern("value-add", re.compile(r"value-add", re.IGNORECASE)),
    TopicPattern("core plus", re.compile(r"core plus", re.IGNORECASE)),
    TopicPattern("opportunistic", re.compile(r"opportunistic", re.IGNORECASE)),
)


def extract_topics(text: str) -> list[str]:
    """Distinct topics mentioned in ``text``, in table order.

    Repeated mentions collapse to one entry.
    """
    return [rule.topic for rule in TOPIC_PATTERNS if rule.pattern.search(text)]


def reinforce(confidence: float, increment: float) -> float:
    # rounded so repeated 0.1 steps land on exact tenths
    return round(min(confidence + increment, 1.0), 6)


class LearningUpdater:
    """Creates or reinforces ``preferences`` memories for discussed topics."""

    def __init__(self, store: BrainStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    async def update(
        self,
        user_id: str,
        user_message: str,
        reply: str,
        *,
        now: datetime | None = None,
    ) -> list[LongTermMemoryRead]:
        """Apply one reinforcement per distinct topic found in the exchange."""
        topics = extract_topics(f"{user_message} {reply}")
        if not topics:
            return []

        now = now or datetime.now(UTC)
        settings = self._settings

        # one atomic store call per topic; the increment is applied by the store
        updated: list[LongTermMemoryRead] = []
        for topic in topics:
            entry = LongTermMemoryUpsert(
                user_id=user_id,
                category=PREFERENCES_CATEGORY,
                key=topic,
                value={
                    "firstMentioned": now.isoformat(),
                    "context": user_message[: settings.learning_context_chars],
                },
                confidence=settings.baseline_confidence,
            )
            updated.append(
                await self._store.reinforce_memory_long(
                    entry,
                    increment=settings.reinforcement_increment,
                    patch={"lastDiscussed": now.isoformat()},
                )
            )

        logger.info("learning_updated", user_id=user_id, topics=topics)
        return updated
