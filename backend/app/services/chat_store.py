from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Sequence

from app.services.common import iso_utc, now_utc

logger = logging.getLogger(__name__)

CONVERSATIONS_TABLE = "ai_conversations"
MESSAGES_TABLE = "ai_messages"
CONVERSATION_COLUMNS = "id,user_id,title,is_archived,created_at,updated_at"
MESSAGE_COLUMNS = "id,conversation_id,user_id,role,content,type,quick_actions,provider,metadata,created_at"

TITLE_MAX_LENGTH = 60
MESSAGE_ROLES = {"user", "ai"}
MESSAGE_TYPES = {"text", "chart", "recommendation"}


class ConversationNotFoundError(LookupError):
    pass


def title_from_message(content: str) -> str:
    return str(content or "").strip()[:TITLE_MAX_LENGTH]


class ConversationStore:
    """Conversation and message history in ``ai_conversations`` / ``ai_messages``.

    Persistence errors propagate to the caller. Messages are append-only.
    """

    def __init__(self, client: Any, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.client = client
        self.clock = clock

    def _timestamp(self) -> str:
        return iso_utc(self.clock())

    def list_conversations(self, user_id: str, *, include_archived: bool = False) -> List[Dict[str, Any]]:
        filters = {"user_id": f"eq.{user_id}"}
        if not include_archived:
            filters["is_archived"] = "eq.false"
        return self.client.fetch_rows(
            CONVERSATIONS_TABLE,
            select=CONVERSATION_COLUMNS,
            filters=filters,
            order="updated_at.desc",
        )

    def get_conversation(self, conversation_id: str, *, user_id: str | None = None) -> Dict[str, Any]:
        filters = {"id": f"eq.{conversation_id}"}
        if user_id:
            filters["user_id"] = f"eq.{user_id}"
        row = self.client.fetch_one(CONVERSATIONS_TABLE, select=CONVERSATION_COLUMNS, filters=filters)
        if row is None:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return row

    def create_conversation(self, user_id: str, *, title: str | None = None) -> Dict[str, Any]:
        stamp = self._timestamp()
        return self.client.insert_row(
            CONVERSATIONS_TABLE,
            {
                "user_id": user_id,
                "title": title,
                "is_archived": False,
                "created_at": stamp,
                "updated_at": stamp,
            },
        )

    def _update(self, conversation_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        updated = self.client.update_rows(
            CONVERSATIONS_TABLE,
            {**values, "updated_at": self._timestamp()},
            filters={"id": f"eq.{conversation_id}"},
        )
        if not updated:
            raise ConversationNotFoundError(f"Conversation not found: {conversation_id}")
        return updated[0]

    def archive_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return self._update(conversation_id, {"is_archived": True})

    def unarchive_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return self._update(conversation_id, {"is_archived": False})

    def update_conversation_title(self, conversation_id: str, title: str) -> Dict[str, Any]:
        return self._update(conversation_id, {"title": title})

    def delete_conversation(self, conversation_id: str) -> bool:
        # The database cascades too; deleting messages first keeps stores without FKs consistent.
        self.client.delete_rows(MESSAGES_TABLE, filters={"conversation_id": f"eq.{conversation_id}"})
        self.client.delete_rows(CONVERSATIONS_TABLE, filters={"id": f"eq.{conversation_id}"})
        return True

    def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return self.client.fetch_rows(
            MESSAGES_TABLE,
            select=MESSAGE_COLUMNS,
            filters={"conversation_id": f"eq.{conversation_id}"},
            order="created_at.asc",
        )

    def add_message(
        self,
        conversation_id: str,
        user_id: str,
        *,
        role: str,
        content: str,
        type: str = "text",
        quick_actions: Sequence[Dict[str, Any]] | None = None,
        provider: str | None = None,
        metadata: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unsupported message role: {role}")
        if type not in MESSAGE_TYPES:
            raise ValueError(f"Unsupported message type: {type}")
        if not conversation_id:
            raise ValueError("conversation_id is required")

        conversation = self.get_conversation(conversation_id)
        message = self.client.insert_row(
            MESSAGES_TABLE,
            {
                "conversation_id": conversation_id,
                "user_id": user_id,
                "role": role,
                "content": content,
                "type": type,
                "quick_actions": list(quick_actions) if quick_actions is not None else None,
                "provider": provider,
                "metadata": metadata,
                "created_at": self._timestamp(),
            },
        )

        values: Dict[str, Any] = {}
        if role == "user" and not conversation.get("title"):
            title = title_from_message(content)
            if title:
                values["title"] = title
        try:
            self._update(conversation_id, values)
        except Exception as exc:
            logger.warning("conversation_touch_failed conversation=%s error=%s", conversation_id, exc)
        return message
