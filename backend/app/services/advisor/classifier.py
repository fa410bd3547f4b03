from __future__ import annotations

from typing import List, Protocol, Sequence, Tuple

from app.services.formatting import DEFAULT_CURRENCY, DEFAULT_LOCALE, format_currency

from .contracts import AdviceResponse, FinancialSnapshot, QuickAction, ResponseType

FALLBACK_PROVIDER = "fallback"

BUDGET_KEYWORDS = ("budget", "spending")
GOAL_KEYWORDS = ("goal", "save")
INVEST_KEYWORDS = ("invest", "portfolio")

BUDGET_ACTIONS = [
    QuickAction(label="View Budget Details", icon="PieChart", type="view_budget"),
    QuickAction(label="Set Spending Alert", icon="Bell", type="set_alert"),
]
GOAL_ACTIONS = [
    QuickAction(label="Create Goal", icon="Target", type="create_goal"),
    QuickAction(label="View Progress", icon="TrendingUp", type="view_progress"),
]
INVEST_ACTIONS = [
    QuickAction(label="Investment Guide", icon="TrendingUp", type="investment_guide"),
    QuickAction(label="Risk Assessment", icon="Shield", type="risk_assessment"),
]


def _mentions(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def topic_of(text: str) -> str:
    """Keyword family of ``text``: budget, goal, invest or general (first match wins)."""
    lowered = (text or "").lower()
    if _mentions(lowered, BUDGET_KEYWORDS):
        return "budget"
    if _mentions(lowered, GOAL_KEYWORDS):
        return "goal"
    if _mentions(lowered, INVEST_KEYWORDS):
        return "invest"
    return "general"


def classify_response(text: str) -> Tuple[ResponseType, List[QuickAction]]:
    topic = topic_of(text)
    if topic == "budget":
        return "recommendation", [action.model_copy() for action in BUDGET_ACTIONS]
    if topic == "goal":
        return "text", [action.model_copy() for action in GOAL_ACTIONS]
    if topic == "invest":
        return "text", [action.model_copy() for action in INVEST_ACTIONS]
    return "text", []


class ResponseClassifier(Protocol):
    def classify(self, text: str) -> Tuple[ResponseType, List[QuickAction]]:
        ...


class KeywordResponseClassifier:
    def classify(self, text: str) -> Tuple[ResponseType, List[QuickAction]]:
        return classify_response(text)


def build_fallback_response(
    user_message: str,
    snapshot: FinancialSnapshot,
    currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> AdviceResponse:
    """Templated reply used when no provider produced an answer.

    Only figures taken from ``snapshot`` appear in the text.
    """
    topic = topic_of(user_message)
    balance = format_currency(snapshot.total_balance or 0, currency, locale)
    expenses = format_currency(snapshot.monthly_expenses or 0, currency, locale)

    if topic == "budget":
        budget_line = ""
        if snapshot.budgets:
            budget_line = f" You currently have {len(snapshot.budgets)} active budget(s)."
        content = (
            f"Based on your current financial data, you have {balance} in total balance with monthly "
            f"expenses of {expenses}.{budget_line}\n\n"
            "Here are some budget optimization suggestions:\n\n"
            "• Review your highest spending categories\n"
            "• Set up automated savings transfers\n"
            "• Consider the 50/30/20 budgeting rule\n"
            "• Track discretionary spending more closely"
        )
        actions = [
            QuickAction(label="View Budget Details", icon="PieChart", type="view_budget"),
            QuickAction(label="Create Budget Plan", icon="Target", type="create_budget"),
        ]
    elif topic == "goal":
        emergency_fund = format_currency((snapshot.monthly_expenses or 0) * 6, currency, locale)
        content = (
            f"Let's work on your savings goals! Based on your monthly expenses of {expenses}, I recommend:\n\n"
            f"• Emergency Fund: Target {emergency_fund} (6 months of expenses)\n"
            "• Automate savings: Set up automatic transfers\n"
            "• High-yield savings account for better returns\n"
            "• Consider investment options for long-term goals"
        )
        actions = [
            QuickAction(label="Set Savings Goal", icon="Target", type="set_goal"),
            QuickAction(label="Emergency Fund Calculator", icon="Shield", type="emergency_calc"),
        ]
    else:
        content = (
            "I'm here to help with your financial questions! While I'm currently operating in offline mode, "
            f"I can still provide guidance based on your financial data: a total balance of {balance} and "
            f"monthly expenses of {expenses}.\n\n"
            "I can help you with:\n"
            "• Budget planning and optimization\n"
            "• Savings and investment strategies\n"
            "• Expense analysis and tracking\n"
            "• Financial goal setting\n\n"
            "What specific area would you like to focus on?"
        )
        actions = [
            QuickAction(label="Budget Help", icon="PieChart", type="budget_help"),
            QuickAction(label="Savings Plan", icon="PiggyBank", type="savings_plan"),
        ]

    return AdviceResponse(
        type="text",
        content=content,
        quick_actions=actions,
        provider=FALLBACK_PROVIDER,
        metadata={"topic": topic},
    )
