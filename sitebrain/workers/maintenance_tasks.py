"""Arq maintenance tasks — scheduled expiry purges."""

from __future__ import annotations

from sitebrain.database import async_session_maker
from sitebrain.services.maintenance import purge_expired_memory
from sitebrain.services.store import BrainStore, SqlBrainStore


async def purge_expired_memory_task(ctx: dict) -> dict:
    """Arq job: purge expired short-term memory and session context."""
    store: BrainStore = ctx.get("store") or SqlBrainStore(async_session_maker)
    purged = await purge_expired_memory(store)
    return {"status": "ok", **purged}
