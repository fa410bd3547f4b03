from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.dependencies import get_assistant, get_conversation_store
from app.services.advisor import NoFinancialDataError
from app.services.assistant import AssistantService
from app.services.auth import current_user
from app.services.chat_store import ConversationNotFoundError, ConversationStore
from app.services.supabase_rest import SupabaseRestError

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class ConversationCreateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)


class ConversationTitleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1, max_length=4000)
    conversation_id: str | None = None


def _owned(store: ConversationStore, conversation_id: str, user_id: str) -> Dict[str, Any]:
    try:
        return store.get_conversation(conversation_id, user_id=user_id)
    except ConversationNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SupabaseRestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


def _bad_gateway(exc: SupabaseRestError) -> HTTPException:
    logger.warning("chat_store_failed error=%s", exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.get("/conversations")
def list_conversations(
    include_archived: bool = False,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    try:
        items = store.list_conversations(user.get("sub"), include_archived=include_archived)
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc
    return {"items": items}


@router.post("/conversations", status_code=status.HTTP_201_CREATED)
def create_conversation(
    payload: ConversationCreateRequest,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    try:
        conversation = store.create_conversation(user.get("sub"), title=payload.title)
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc
    return {"conversation": conversation}


@router.post("/conversations/{conversation_id}/archive")
def archive_conversation(
    conversation_id: str,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    _owned(store, conversation_id, user.get("sub"))
    try:
        return {"conversation": store.archive_conversation(conversation_id)}
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc


@router.post("/conversations/{conversation_id}/unarchive")
def unarchive_conversation(
    conversation_id: str,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    _owned(store, conversation_id, user.get("sub"))
    try:
        return {"conversation": store.unarchive_conversation(conversation_id)}
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc


@router.patch("/conversations/{conversation_id}")
def rename_conversation(
    conversation_id: str,
    payload: ConversationTitleRequest,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    _owned(store, conversation_id, user.get("sub"))
    try:
        return {"conversation": store.update_conversation_title(conversation_id, payload.title)}
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc


@router.delete("/conversations/{conversation_id}")
def delete_conversation(
    conversation_id: str,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    _owned(store, conversation_id, user.get("sub"))
    try:
        store.delete_conversation(conversation_id)
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc
    return {"status": "ok"}


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
):
    _owned(store, conversation_id, user.get("sub"))
    try:
        return {"items": store.list_messages(conversation_id)}
    except SupabaseRestError as exc:
        raise _bad_gateway(exc) from exc


@router.post("/messages")
def send_message(
    payload: SendMessageRequest,
    user=Depends(current_user),
    store: ConversationStore = Depends(get_conversation_store),
    assistant: AssistantService = Depends(get_assistant),
):
    user_id = user.get("sub")
    if payload.conversation_id:
        _owned(store, payload.conversation_id, user_id)
    try:
        turn = assistant.send_message(user_id, payload.content, conversation_id=payload.conversation_id)
    except NoFinancialDataError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return {
        "conversation_id": turn.conversation_id,
        "user_message": turn.user_message,
        "ai_message": turn.ai_message,
        "advice": turn.advice.model_dump(mode="json"),
        "warnings": turn.warnings,
    }
