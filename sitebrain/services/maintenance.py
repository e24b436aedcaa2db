"""Expiry purges for short-term memory and the session context ledger."""

from sitebrain.core.logging import get_logger
from sitebrain.services.store import BrainStore

logger = get_logger(__name__)


async def purge_expired_memory(store: BrainStore) -> dict[str, int]:
    """Delete expired short-term memory and session context rows.

    Long-term memory and the chat/decision logs are never purged here.
    """
    purged = {
        "memory_short": await store.delete_expired_memory_short(),
        "session_context": await store.delete_expired_session_context(),
    }
    logger.info("memory_cleanup_completed", **purged)
    return purged
