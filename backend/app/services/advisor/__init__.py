from .classifier import (
    FALLBACK_PROVIDER,
    KeywordResponseClassifier,
    ResponseClassifier,
    build_fallback_response,
    classify_response,
    topic_of,
)
from .context import UserContextBuilder
from .contracts import (
    AdviceResponse,
    BudgetSummary,
    ContextSource,
    FinancialSnapshot,
    ProviderResult,
    QuickAction,
    QuickActionResult,
    TransactionSummary,
    UserProfileSummary,
)
from .orchestrator import AdviceOrchestrator, NoFinancialDataError
from .prompt import build_context_note, build_system_prompt
from .providers import AdviceProvider, GatewayProvider, GeminiProvider, OpenAIProvider, build_providers
from .quick_actions import NAVIGATION_TARGETS, QuickActionExecutor

__all__ = [
    "FALLBACK_PROVIDER",
    "NAVIGATION_TARGETS",
    "AdviceOrchestrator",
    "AdviceProvider",
    "AdviceResponse",
    "BudgetSummary",
    "ContextSource",
    "FinancialSnapshot",
    "GatewayProvider",
    "GeminiProvider",
    "KeywordResponseClassifier",
    "NoFinancialDataError",
    "OpenAIProvider",
    "ProviderResult",
    "QuickAction",
    "QuickActionExecutor",
    "QuickActionResult",
    "ResponseClassifier",
    "TransactionSummary",
    "UserContextBuilder",
    "UserProfileSummary",
    "build_context_note",
    "build_fallback_response",
    "build_providers",
    "build_system_prompt",
    "classify_response",
    "topic_of",
]
