from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from app.services.formatting import DEFAULT_CURRENCY, DEFAULT_LOCALE

from .classifier import KeywordResponseClassifier, ResponseClassifier, build_fallback_response
from .context import UserContextBuilder
from .contracts import AdviceResponse, ContextSource, FinancialSnapshot
from .providers import AdviceProvider

logger = logging.getLogger(__name__)


class NoFinancialDataError(RuntimeError):
    """No financial snapshot could be obtained for the request."""


class AdviceOrchestrator:
    def __init__(
        self,
        providers: Sequence[AdviceProvider],
        *,
        context_builder: UserContextBuilder | None = None,
        classifier: ResponseClassifier | None = None,
        currency: str = DEFAULT_CURRENCY,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self.providers = list(providers)
        self.context_builder = context_builder
        self.classifier = classifier or KeywordResponseClassifier()
        self.currency = currency
        self.locale = locale

    def _refresh(self, user_id: str) -> FinancialSnapshot | None:
        if self.context_builder is None:
            return None
        try:
            return self.context_builder.get_context(user_id)
        except Exception as exc:
            logger.warning("context_refresh_failed user=%s error=%s", user_id, exc)
            return None

    def resolve_snapshot(
        self,
        snapshot: FinancialSnapshot | None,
        *,
        user_id: str | None,
        source: ContextSource,
    ) -> FinancialSnapshot:
        if user_id and (source == ContextSource.MUST_REFRESH or snapshot is None):
            refreshed = self._refresh(user_id)
            if refreshed is not None:
                snapshot = refreshed
        if snapshot is None or snapshot.is_empty():
            raise NoFinancialDataError("No financial data available for this user.")
        return snapshot

    def generate_advice(
        self,
        user_message: str,
        snapshot: FinancialSnapshot | None = None,
        *,
        user_id: str | None = None,
        source: ContextSource = ContextSource.PROVIDED,
    ) -> AdviceResponse:
        snapshot = self.resolve_snapshot(snapshot, user_id=user_id, source=source)

        attempts: List[Dict[str, Any]] = []
        for provider in self.providers:
            try:
                result = provider.generate(user_message, snapshot)
            except Exception as exc:
                logger.warning("provider_raised provider=%s error=%s", provider.name, exc)
                attempts.append({"provider": provider.name, "error": str(exc) or type(exc).__name__})
                continue
            if result.success and result.content:
                response_type, quick_actions = self.classifier.classify(result.content)
                logger.info("advice_generated provider=%s model=%s", result.provider_name, result.model)
                return AdviceResponse(
                    type=response_type,
                    content=result.content,
                    quick_actions=quick_actions,
                    provider=result.provider_name,
                    metadata={"model": result.model, "attempts": attempts},
                )
            attempts.append({"provider": result.provider_name, "error": result.error or "empty response"})
            logger.warning("provider_failed provider=%s error=%s", result.provider_name, result.error)

        logger.info("advice_fallback attempts=%d", len(attempts))
        response = build_fallback_response(user_message, snapshot, self.currency, self.locale)
        response.metadata["attempts"] = attempts
        return response
