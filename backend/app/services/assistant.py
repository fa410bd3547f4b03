from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict

from app.services.advisor import AdviceOrchestrator, AdviceResponse, ContextSource
from app.services.chat_store import ConversationStore
from app.services.common import iso_utc

logger = logging.getLogger(__name__)


@dataclass
class ChatTurn:
    conversation_id: str | None
    user_message: Dict[str, Any]
    ai_message: Dict[str, Any]
    advice: AdviceResponse
    warnings: list[str] = field(default_factory=list)


def _ephemeral_message(conversation_id: str | None, user_id: str, **values: Any) -> Dict[str, Any]:
    return {
        "id": f"local-{uuid.uuid4().hex[:12]}",
        "conversation_id": conversation_id,
        "user_id": user_id,
        "created_at": iso_utc(),
        "persisted": False,
        **values,
    }


class AssistantService:
    """One chat turn: persist the user message, generate advice, persist the reply.

    History writes and advice generation are independent. A failed write is
    logged and replaced by an ephemeral message so the user still gets an
    answer.
    """

    def __init__(self, store: ConversationStore, orchestrator: AdviceOrchestrator) -> None:
        self.store = store
        self.orchestrator = orchestrator

    def _persist(
        self,
        conversation_id: str | None,
        user_id: str,
        warnings: list[str],
        **values: Any,
    ) -> Dict[str, Any]:
        if conversation_id:
            try:
                message = self.store.add_message(conversation_id, user_id, **values)
                return {**message, "persisted": True}
            except Exception as exc:
                logger.warning(
                    "message_persist_failed conversation=%s role=%s error=%s",
                    conversation_id,
                    values.get("role"),
                    exc,
                )
                warnings.append(f"{values.get('role')}_message_not_saved")
        return _ephemeral_message(conversation_id, user_id, **values)

    def send_message(self, user_id: str, content: str, *, conversation_id: str | None = None) -> ChatTurn:
        warnings: list[str] = []
        if not conversation_id:
            try:
                conversation_id = str(self.store.create_conversation(user_id)["id"])
            except Exception as exc:
                logger.warning("conversation_create_failed user=%s error=%s", user_id, exc)
                warnings.append("conversation_not_saved")

        user_message = self._persist(
            conversation_id,
            user_id,
            warnings,
            role="user",
            content=content,
            type="text",
        )

        advice = self.orchestrator.generate_advice(
            content,
            user_id=user_id,
            source=ContextSource.MUST_REFRESH,
        )

        ai_message = self._persist(
            conversation_id,
            user_id,
            warnings,
            role="ai",
            content=advice.content,
            type=advice.type,
            quick_actions=[action.model_dump() for action in advice.quick_actions],
            provider=advice.provider,
            metadata=advice.metadata,
        )
        return ChatTurn(
            conversation_id=conversation_id,
            user_message=user_message,
            ai_message=ai_message,
            advice=advice,
            warnings=warnings,
        )
