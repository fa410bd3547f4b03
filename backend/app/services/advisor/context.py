from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List

from app.services.common import iso_utc, now_utc, safe_float, window_start

from .contracts import (
    MAX_SNAPSHOT_BUDGETS,
    MAX_SNAPSHOT_TRANSACTIONS,
    BudgetSummary,
    FinancialSnapshot,
    TransactionSummary,
    UserProfileSummary,
)

logger = logging.getLogger(__name__)


class UserContextBuilder:
    """Reduces a user's accounts, transactions, budgets and goals into a snapshot.

    The five reads run concurrently and are isolated from each other: a failed
    read degrades its own field to an empty default and never aborts the
    snapshot.
    """

    def __init__(
        self,
        client: Any,
        *,
        window_days: int = 30,
        max_workers: int = 5,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.client = client
        self.window_days = max(1, window_days)
        self.max_workers = max(1, max_workers)
        self.clock = clock

    def _fetch_accounts(self, user_id: str) -> List[Dict[str, Any]]:
        return self.client.fetch_rows(
            "accounts",
            select="id,name,balance,currency",
            filters={"user_id": f"eq.{user_id}"},
        )

    def _fetch_transactions(self, user_id: str) -> List[Dict[str, Any]]:
        since = window_start(self.clock(), self.window_days)
        return self.client.fetch_rows(
            "transactions",
            select="id,amount,transaction_type,transaction_date,created_at,category_id,account_id",
            filters={"user_id": f"eq.{user_id}", "transaction_date": f"gte.{iso_utc(since)}"},
            order="transaction_date.desc",
        )

    def _fetch_budgets(self, user_id: str) -> List[Dict[str, Any]]:
        return self.client.fetch_rows(
            "budgets",
            filters={"user_id": f"eq.{user_id}", "is_active": "eq.true"},
        )

    def _fetch_goals(self, user_id: str) -> List[Dict[str, Any]]:
        return self.client.fetch_rows(
            "financial_goals",
            filters={"user_id": f"eq.{user_id}", "is_achieved": "eq.false"},
        )

    def _fetch_profile(self, user_id: str) -> Dict[str, Any] | None:
        return self.client.fetch_one("user_profiles", filters={"id": f"eq.{user_id}"})

    def get_context(self, user_id: str | None) -> FinancialSnapshot:
        if not str(user_id or "").strip():
            logger.warning("context_skipped reason=missing_user_id")
            return FinancialSnapshot.zero()

        queries: Dict[str, Callable[[str], Any]] = {
            "accounts": self._fetch_accounts,
            "transactions": self._fetch_transactions,
            "budgets": self._fetch_budgets,
            "goals": self._fetch_goals,
            "profile": self._fetch_profile,
        }
        results: Dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(queries))) as executor:
            futures = {name: executor.submit(fetch, user_id) for name, fetch in queries.items()}
            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except Exception as exc:
                    logger.warning("context_query_failed query=%s user=%s error=%s", name, user_id, exc)

        if not results:
            logger.warning("context_unavailable user=%s", user_id)
            return FinancialSnapshot.zero()
        return self._reduce(results)

    def _reduce(self, results: Dict[str, Any]) -> FinancialSnapshot:
        accounts = results.get("accounts") or []
        transactions = results.get("transactions") or []
        budgets = results.get("budgets") or []
        goals = results.get("goals") or []
        profile = results.get("profile")

        total_balance = sum(safe_float(account.get("balance")) for account in accounts)
        monthly_expenses = sum(
            abs(safe_float(txn.get("amount")))
            for txn in transactions
            if str(txn.get("transaction_type") or "").lower() == "expense"
        )
        monthly_income = sum(
            abs(safe_float(txn.get("amount")))
            for txn in transactions
            if str(txn.get("transaction_type") or "").lower() == "income"
        )

        budget_summary = [
            BudgetSummary(
                id=_optional_str(budget.get("id")),
                name=str(budget.get("name") or ""),
                total_amount=safe_float(budget.get("total_amount")),
                period_type=str(budget.get("period_type") or ""),
            )
            for budget in budgets[:MAX_SNAPSHOT_BUDGETS]
        ]
        recent = [
            TransactionSummary(
                id=_optional_str(txn.get("id")),
                amount=safe_float(txn.get("amount")),
                type=str(txn.get("transaction_type") or ""),
                date=str(txn.get("transaction_date") or txn.get("created_at") or ""),
                category_id=_optional_str(txn.get("category_id")),
                account_id=_optional_str(txn.get("account_id")),
            )
            for txn in transactions[:MAX_SNAPSHOT_TRANSACTIONS]
        ]

        user_profile = None
        if isinstance(profile, dict):
            user_profile = UserProfileSummary(
                id=_optional_str(profile.get("id")),
                display_name=_optional_str(profile.get("full_name") or profile.get("display_name")),
                currency=_optional_str(profile.get("currency")),
                locale=_optional_str(profile.get("locale")),
            )

        return FinancialSnapshot(
            total_balance=round(total_balance, 2),
            monthly_income=round(monthly_income, 2),
            monthly_expenses=round(monthly_expenses, 2),
            budgets=budget_summary,
            recent_transactions=recent,
            financial_goals=[dict(goal) for goal in goals],
            user_profile=user_profile,
        )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
