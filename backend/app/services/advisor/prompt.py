from __future__ import annotations

from typing import List

from app.services.formatting import DEFAULT_CURRENCY, DEFAULT_LOCALE, format_currency

from .contracts import MAX_SNAPSHOT_BUDGETS, MAX_SNAPSHOT_TRANSACTIONS, FinancialSnapshot

DATA_UNAVAILABLE = "data unavailable"

_NO_DATA_PROMPT = (
    "You are FinanceFlow's AI Financial Assistant.\n"
    f"The user's financial {DATA_UNAVAILABLE}: no verified records were supplied for this session.\n"
    "Do not give personalized financial advice and do not guess any balances, incomes or expenses.\n"
    "Politely ask the user to sign in so their accounts can be loaded, and offer only general, "
    "non-personalized financial education until then."
)

_STRICT_INSTRUCTIONS = (
    "STRICT INSTRUCTIONS:\n"
    "- Use ONLY the figures listed under USER FINANCIAL DATA. Never invent, estimate or round up values "
    "that are not listed.\n"
    "- Never reference, compare with or speculate about any other user's data.\n"
    f"- If a figure the user asks about is missing or marked '{DATA_UNAVAILABLE}', say that the data is "
    "not available instead of guessing.\n"
    "- Quote amounts exactly as they are formatted below."
)

_CLOSING = (
    "You may give four kinds of advice:\n"
    "1. Budget optimization: where spending can be trimmed against the listed budgets.\n"
    "2. Savings and goals: how to move toward the listed goals or build an emergency fund.\n"
    "3. Spending insights: patterns visible in the listed recent transactions.\n"
    "4. General education: investment and risk concepts, without recommending specific securities.\n"
    "Be conversational but professional, keep answers concise, and base every recommendation on the "
    "data above."
)


def _money(value: float | None, currency: str, locale: str) -> str:
    if value is None:
        return DATA_UNAVAILABLE
    return format_currency(value, currency, locale)


def _budget_lines(snapshot: FinancialSnapshot, currency: str, locale: str) -> List[str]:
    if not snapshot.budgets:
        return [f"- Active budgets: {DATA_UNAVAILABLE} (no active budgets on record)"]
    lines = [f"- Active budgets ({len(snapshot.budgets)}):"]
    for budget in snapshot.budgets[:MAX_SNAPSHOT_BUDGETS]:
        name = budget.name or "Unnamed budget"
        period = budget.period_type or "unspecified period"
        lines.append(f"  * {name}: {format_currency(budget.total_amount, currency, locale)} ({period})")
    return lines


def _transaction_lines(snapshot: FinancialSnapshot, currency: str, locale: str) -> List[str]:
    if not snapshot.recent_transactions:
        return [f"- Recent transactions: {DATA_UNAVAILABLE} (none recorded in the current window)"]
    lines = [f"- Recent transactions (newest first, {len(snapshot.recent_transactions)} shown):"]
    for txn in snapshot.recent_transactions[:MAX_SNAPSHOT_TRANSACTIONS]:
        day = (txn.date or "unknown date")[:10]
        kind = txn.type or "unclassified"
        lines.append(f"  * {day} {kind} {format_currency(txn.amount, currency, locale)}")
    return lines


def build_system_prompt(
    snapshot: FinancialSnapshot | None,
    currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """Render the snapshot into the system prompt sent to every provider.

    Deterministic for a given snapshot, currency and locale. An empty snapshot
    yields a short prompt that tells the model to refuse personalized advice.
    """
    if snapshot is None or snapshot.is_empty():
        return _NO_DATA_PROMPT

    greeting = ""
    if snapshot.user_profile and snapshot.user_profile.display_name:
        greeting = f" You are speaking with {snapshot.user_profile.display_name}."

    lines = [
        "You are FinanceFlow's AI Financial Assistant, an expert in personal budgeting, saving and "
        f"financial planning.{greeting}",
        "",
        _STRICT_INSTRUCTIONS,
        "",
        "USER FINANCIAL DATA:",
        f"- Total balance: {_money(snapshot.total_balance, currency, locale)}",
        f"- Monthly income: {_money(snapshot.monthly_income, currency, locale)}",
        f"- Monthly expenses: {_money(snapshot.monthly_expenses, currency, locale)}",
        *_budget_lines(snapshot, currency, locale),
        *_transaction_lines(snapshot, currency, locale),
        f"- Open financial goals: {len(snapshot.financial_goals)}",
        "",
        _CLOSING,
    ]
    return "\n".join(lines)


def build_context_note(
    snapshot: FinancialSnapshot,
    currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> str:
    lines = [
        f"Total Balance: {format_currency(snapshot.total_balance or 0, currency, locale)}",
        f"Monthly Income: {format_currency(snapshot.monthly_income or 0, currency, locale)}",
        f"Monthly Expenses: {format_currency(snapshot.monthly_expenses or 0, currency, locale)}",
    ]
    if snapshot.budgets:
        names = ", ".join(
            f"{budget.name or 'Unnamed budget'} ({budget.period_type or 'unspecified'})"
            for budget in snapshot.budgets[:5]
        )
        lines.append(f"Active Budgets: {len(snapshot.budgets)} [{names}]")
    if snapshot.financial_goals:
        lines.append(f"Active Goals: {len(snapshot.financial_goals)}")
    return "\n".join(lines)
