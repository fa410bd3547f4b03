from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping

from app.services.common import now_utc, safe_float

from .contracts import QuickAction, QuickActionResult

logger = logging.getLogger(__name__)

BUDGET_PAGE = "/budget-planning"
REPORTS_PAGE = "/financial-reports"
SETTINGS_PAGE = "/profile-settings"

NAVIGATION_TARGETS: Dict[str, str] = {
    "view_budget": BUDGET_PAGE,
    "budget_help": BUDGET_PAGE,
    "savings_plan": BUDGET_PAGE,
    "emergency_calc": BUDGET_PAGE,
    "set_alert": SETTINGS_PAGE,
    "investment_guide": REPORTS_PAGE,
    "risk_assessment": REPORTS_PAGE,
    "view_progress": REPORTS_PAGE,
}

GOAL_ACTIONS = {"create_goal", "set_goal"}
BUDGET_ACTIONS = {"create_budget"}

DEFAULT_GOAL_NAME = "New Savings Goal"
DEFAULT_BUDGET_NAME = "New Budget"


def _action_type(action: QuickAction | Mapping[str, Any] | str) -> str:
    if isinstance(action, QuickAction):
        return action.type
    if isinstance(action, Mapping):
        return str(action.get("type") or "")
    return str(action or "")


class QuickActionExecutor:
    """Applies the quick actions attached to advice messages.

    Navigation actions only return a route hint. Goal and budget actions write a
    row owned by ``user_id``; failures are returned, not raised.
    """

    def __init__(self, client: Any, *, clock: Callable[[], datetime] = now_utc) -> None:
        self.client = client
        self.clock = clock

    def apply(
        self,
        action: QuickAction | Mapping[str, Any] | str,
        user_id: str | None,
        extra: Mapping[str, Any] | None = None,
    ) -> QuickActionResult:
        action_type = _action_type(action).strip()
        extra = dict(extra or {})

        if action_type in NAVIGATION_TARGETS:
            return QuickActionResult(ok=True, navigate_to=NAVIGATION_TARGETS[action_type])

        if action_type in GOAL_ACTIONS or action_type in BUDGET_ACTIONS:
            if not str(user_id or "").strip():
                return QuickActionResult(ok=False, error=f"User is required for action: {action_type}")
            if action_type in GOAL_ACTIONS:
                return self._write("financial_goals", self._goal_row(str(user_id), extra), action_type)
            return self._write("budgets", self._budget_row(str(user_id), extra), action_type)

        return QuickActionResult(ok=False, error=f"Unsupported action: {action_type}")

    def _goal_row(self, user_id: str, extra: Dict[str, Any]) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "user_id": user_id,
            "name": str(extra.get("name") or DEFAULT_GOAL_NAME),
            "target_amount": max(0.0, safe_float(extra.get("target_amount"))),
            "current_amount": 0.0,
            "is_achieved": False,
        }
        for optional in ("target_date", "category", "description"):
            if extra.get(optional):
                row[optional] = extra[optional]
        return row

    def _budget_row(self, user_id: str, extra: Dict[str, Any]) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "user_id": user_id,
            "name": str(extra.get("name") or DEFAULT_BUDGET_NAME),
            "total_amount": max(0.0, safe_float(extra.get("total_amount"))),
            "period_type": str(extra.get("period_type") or "monthly"),
            "is_active": True,
            "start_date": str(extra.get("start_date") or self.clock().date().isoformat()),
        }
        if extra.get("end_date"):
            row["end_date"] = extra["end_date"]
        return row

    def _write(self, table: str, row: Dict[str, Any], action_type: str) -> QuickActionResult:
        try:
            created = self.client.insert_row(table, row)
        except Exception as exc:
            logger.warning("quick_action_write_failed action=%s table=%s error=%s", action_type, table, exc)
            return QuickActionResult(ok=False, error=str(exc))
        logger.info("quick_action_applied action=%s table=%s user=%s", action_type, table, row["user_id"])
        return QuickActionResult(ok=True, data=created, navigate_to=BUDGET_PAGE)
