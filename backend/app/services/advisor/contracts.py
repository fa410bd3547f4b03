from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, field_validator

from app.services.common import now_utc

ResponseType = Literal["text", "recommendation"]
MessageRole = Literal["user", "ai"]
MessageType = Literal["text", "chart", "recommendation"]

MAX_SNAPSHOT_BUDGETS = 10
MAX_SNAPSHOT_TRANSACTIONS = 10


class ContextSource(str, Enum):
    """How the orchestrator should obtain the financial snapshot."""

    PROVIDED = "provided"
    MUST_REFRESH = "must_refresh"


class BudgetSummary(BaseModel):
    id: str | None = None
    name: str = ""
    total_amount: float = 0.0
    period_type: str = ""


class TransactionSummary(BaseModel):
    id: str | None = None
    amount: float = 0.0
    type: str = ""
    date: str = ""
    category_id: str | None = None
    account_id: str | None = None


class UserProfileSummary(BaseModel):
    id: str | None = None
    display_name: str | None = None
    currency: str | None = None
    locale: str | None = None


class FinancialSnapshot(BaseModel):
    total_balance: float | None = None
    monthly_income: float | None = None
    monthly_expenses: float | None = None
    budgets: List[BudgetSummary] = Field(default_factory=list)
    recent_transactions: List[TransactionSummary] = Field(default_factory=list)
    financial_goals: List[Dict[str, Any]] = Field(default_factory=list)
    user_profile: UserProfileSummary | None = None

    @field_validator("budgets")
    @classmethod
    def _cap_budgets(cls, value: List[BudgetSummary]) -> List[BudgetSummary]:
        return value[:MAX_SNAPSHOT_BUDGETS]

    @field_validator("recent_transactions")
    @classmethod
    def _cap_transactions(cls, value: List[TransactionSummary]) -> List[TransactionSummary]:
        return value[:MAX_SNAPSHOT_TRANSACTIONS]

    def is_empty(self) -> bool:
        return self.total_balance is None and self.monthly_income is None and self.monthly_expenses is None

    @classmethod
    def zero(cls) -> "FinancialSnapshot":
        return cls(total_balance=0.0, monthly_income=0.0, monthly_expenses=0.0)


class QuickAction(BaseModel):
    label: str
    icon: str = ""
    type: str


class ProviderResult(BaseModel):
    success: bool
    provider_name: str
    content: str | None = None
    error: str | None = None
    model: str | None = None


class AdviceResponse(BaseModel):
    type: ResponseType = "text"
    content: str
    quick_actions: List[QuickAction] = Field(default_factory=list)
    provider: str
    timestamp: datetime = Field(default_factory=now_utc)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class QuickActionResult(BaseModel):
    ok: bool
    data: Dict[str, Any] | None = None
    navigate_to: str | None = None
    error: str | None = None
