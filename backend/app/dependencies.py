from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from app.config import AdvisorSettings
from app.services.advisor import (
    AdviceOrchestrator,
    QuickActionExecutor,
    UserContextBuilder,
    build_providers,
)
from app.services.assistant import AssistantService
from app.services.chat_store import ConversationStore
from app.services.store import InMemoryTables
from app.services.supabase_rest import SupabaseRestClient

logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> AdvisorSettings:
    return AdvisorSettings.from_env()


@lru_cache
def get_data_client() -> Any:
    settings = get_settings()
    if settings.use_in_memory_store:
        logger.warning("Using in-memory table store; data is lost on restart.")
        return InMemoryTables()
    client = SupabaseRestClient(
        supabase_url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        timeout=settings.sql_timeout_sec,
    )
    if not client.configured:
        logger.warning("Supabase is not configured; data reads will degrade and writes will fail.")
    return client


@lru_cache
def get_context_builder() -> UserContextBuilder:
    settings = get_settings()
    return UserContextBuilder(get_data_client(), window_days=settings.context_window_days)


@lru_cache
def get_orchestrator() -> AdviceOrchestrator:
    settings = get_settings()
    providers = build_providers(settings)
    configured = [provider.name for provider in providers if provider.configured]
    logger.info("Advice providers configured: %s", ", ".join(configured) or "none (fallback only)")
    return AdviceOrchestrator(
        providers,
        context_builder=get_context_builder(),
        currency=settings.currency,
        locale=settings.locale,
    )


@lru_cache
def get_quick_action_executor() -> QuickActionExecutor:
    return QuickActionExecutor(get_data_client())


@lru_cache
def get_conversation_store() -> ConversationStore:
    return ConversationStore(get_data_client())


@lru_cache
def get_assistant() -> AssistantService:
    return AssistantService(get_conversation_store(), get_orchestrator())
