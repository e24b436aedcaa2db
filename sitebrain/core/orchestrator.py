"""Turn orchestrator — runs one user turn through the brain pipeline.

Stages:
1. persist the user turn
2. assemble context
3. call the model
4. extract and persist a decision      } run concurrently
5. reinforce long-term topic memory    }
6. persist the assistant turn

Outcomes:
- success: the assistant reply is persisted with decision metadata
- inference failure: a fixed fallback reply is persisted with
  ``metadata.error``; the caller never sees the exception
- persistence failure: the store error propagates unchanged, after both
  concurrent stages have settled
"""

from __future__ import annotations

import asyncio
import json
from typing import Any
from uuid import UUID, uuid4

from sitebrain.config import Settings, get_settings
from sitebrain.core.context_assembler import ContextAssembler
from sitebrain.core.decisions import DecisionCandidate, extract_decision
from sitebrain.core.inference import InferenceClient
from sitebrain.core.learning import LearningUpdater
from sitebrain.core.logging import get_logger, session_id_var, user_id_var
from sitebrain.models.chat_message import ChatRole
from sitebrain.models.prompt import PromptType
from sitebrain.schemas.chat import ChatTurnCreate, ChatTurnRead, TurnRequest
from sitebrain.schemas.decision import DecisionCreate, DecisionRead
from sitebrain.schemas.prompt import PromptRead
from sitebrain.services.maintenance import purge_expired_memory
from sitebrain.services.store import BrainStore

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "I encountered an issue analyzing this request. Let me recalibrate and try a "
    "different approach. Please rephrase your question or provide additional context."
)
EMPTY_REPLY = "I need to analyze this further. Please provide additional context."


class TurnOrchestrator:
    """Top-level entry point for a chat turn.

    Holds no per-session state; every read and write goes through the store,
    so concurrent turns for different sessions never interact.
    """

    def __init__(
        self,
        store: BrainStore,
        inference: InferenceClient,
        settings: Settings | None = None,
        *,
        assembler: ContextAssembler | None = None,
        learning: LearningUpdater | None = None,
    ) -> None:
        self._store = store
        self._inference = inference
        self._settings = settings or get_settings()
        self._assembler = assembler or ContextAssembler(store, self._settings)
        self._learning = learning or LearningUpdater(store, self._settings)

    async def process_message(self, request: TurnRequest) -> ChatTurnRead:
        """Run a full turn and return the persisted assistant turn."""
        session_id = request.session_id or uuid4()
        session_id_var.set(str(session_id))
        user_id_var.set(request.user_id)

        # ── 1. User turn ────────────────────────────────────────
        await self._store.append_chat_turn(
            ChatTurnCreate(
                session_id=session_id,
                role=ChatRole.USER,
                content=request.user_message,
            )
        )

        # ── 2. Context ──────────────────────────────────────────
        system_prompts, project_prompts = await self._resolve_prompts(request)
        context = await self._assembler.assemble(
            session_id=session_id,
            user_id=request.user_id,
            user_message=request.user_message,
            system_prompts=system_prompts,
            project_prompts=project_prompts,
            attachments=request.attachments,
            data_context=request.data_context,
        )

        # ── 3. Model call ───────────────────────────────────────
        try:
            reply = await self._inference.generate(context.to_messages(), request.selected_model)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.warning(
                "inference_failed",
                session_id=str(session_id),
                model=request.selected_model,
                error=error,
            )
            return await self._store.append_chat_turn(
                ChatTurnCreate(
                    session_id=session_id,
                    role=ChatRole.ASSISTANT,
                    content=FALLBACK_REPLY,
                    metadata={"error": error},
                )
            )

        if not reply.strip():
            reply = EMPTY_REPLY

        # ── 4 + 5. Decision and learning ────────────────────────
        # both stages settle before any error is raised
        recorded, learned = await asyncio.gather(
            self._record_decision(session_id, request.user_id, reply),
            self._learning.update(request.user_id, request.user_message, reply),
            return_exceptions=True,
        )
        errors = [r for r in (recorded, learned) if isinstance(r, BaseException)]
        if errors:
            logger.error(
                "turn_stage_failed",
                session_id=str(session_id),
                errors=[str(e) for e in errors],
            )
            raise errors[0]

        # ── 6. Assistant turn ───────────────────────────────────
        metadata: dict[str, Any] = {}
        if request.selected_model:
            metadata["model"] = request.selected_model
        if recorded is not None:
            candidate, decision = recorded
            metadata["decision"] = {"id": str(decision.id), **candidate.summary()}

        assistant_turn = await self._store.append_chat_turn(
            ChatTurnCreate(
                session_id=session_id,
                role=ChatRole.ASSISTANT,
                content=reply,
                metadata=metadata or None,
            )
        )
        logger.info(
            "turn_completed",
            session_id=str(session_id),
            decision=recorded is not None,
            history_turns=len(context.history),
        )
        return assistant_turn

    async def analyze_deal(
        self,
        session_id: UUID,
        user_id: str,
        deal_data: dict[str, Any],
    ) -> str:
        """Run a deal-analysis turn with the deal as live data; returns the reply text."""
        turn = await self.process_message(
            TurnRequest(
                session_id=session_id,
                user_id=user_id,
                user_message=f"Analyze this deal: {json.dumps(deal_data, default=str)}",
                data_context=deal_data,
            )
        )
        return turn.content

    async def cleanup_memory(self) -> dict[str, int]:
        """Purge expired short-term memory and session context."""
        return await purge_expired_memory(self._store)

    # ── Stages ───────────────────────────────────────────────────

    async def _resolve_prompts(
        self,
        request: TurnRequest,
    ) -> tuple[list[PromptRead], list[PromptRead]]:
        """Request prompts win; ``None`` falls back to the user's stored prompts."""
        system_prompts = request.system_prompts
        if system_prompts is None:
            system_prompts = await self._store.get_prompts(request.user_id, PromptType.SYSTEM)

        project_prompts = request.project_prompts
        if project_prompts is None:
            project_prompts = await self._store.get_prompts(request.user_id, PromptType.PROJECT)

        return system_prompts, project_prompts

    async def _record_decision(
        self,
        session_id: UUID,
        user_id: str,
        reply: str,
    ) -> tuple[DecisionCandidate, DecisionRead] | None:
        candidate = extract_decision(
            reply, reasoning_chars=self._settings.reasoning_excerpt_chars,
        )
        if candidate is None:
            return None

        decision = await self._store.create_decision(
            DecisionCreate(
                session_id=session_id,
                user_id=user_id,
                decision_type=candidate.decision_type,
                decision=candidate.decision,
                reasoning=candidate.reasoning,
                confidence=candidate.confidence,
                impact_value=candidate.impact_value,
            )
        )
        logger.info(
            "decision_recorded",
            session_id=str(session_id),
            pattern=candidate.pattern,
            confidence=candidate.confidence,
            impact_value=candidate.impact_value,
        )
        return candidate, decision
