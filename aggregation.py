"""
Pure finance calculations.

Nothing in here touches storage: every function takes the collections it
needs plus an optional ``today``/``now`` so results can be reproduced in tests.
"""
from datetime import date, datetime
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from schemas import (
    AlertStatus,
    Budget,
    BudgetAlert,
    BudgetAlertCreate,
    Summary,
    Transaction,
    TransactionType,
)

# (ratio floor, threshold percent, status), highest band first
ALERT_BANDS = [
    (1.0, 100, AlertStatus.DANGER),
    (0.9, 90, AlertStatus.WARNING),
    (0.8, 80, AlertStatus.INFO),
]

PERCENT_DISPLAY_CAP = 1000


def same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def _spent(budget: Budget) -> float:
    return budget.spent or 0.0


def month_total(
    transactions: Iterable[Transaction],
    kind: TransactionType,
    month: date,
    category: Optional[str] = None,
) -> float:
    """Sum ``kind`` transactions dated in the month of ``month``."""
    return sum(
        t.amount
        for t in transactions
        if t.type == kind
        and same_month(t.date, month)
        and (category is None or t.category == category)
    )


def compute_budget_spent(
    transactions: Iterable[Transaction],
    budgets: Iterable[Budget],
    today: Optional[date] = None,
) -> list[Budget]:
    """
    Return copies of ``budgets`` with ``spent`` set to this month's expense
    total for each budget's category. Income and other months never count.
    """
    today = today or date.today()
    transactions = list(transactions)
    return [
        budget.model_copy(
            update={
                "spent": month_total(
                    transactions, TransactionType.EXPENSE, today, budget.category
                )
            }
        )
        for budget in budgets
    ]


def classify_budget(amount: float, spent: Optional[float]):
    """
    Map a budget's usage onto an alert band.

    Returns ``(threshold, status)`` for the highest band reached or None when
    usage is below 80% or the budget has no positive amount.
    """
    if not amount or amount <= 0:
        return None
    ratio = (spent or 0.0) / amount
    for floor, threshold, status in ALERT_BANDS:
        if ratio >= floor:
            return threshold, status
    return None


def alert_message(category: str, amount: float, spent: Optional[float], threshold: int) -> str:
    if threshold >= 100:
        return f"You have exceeded your {category} budget!"
    percent = round((spent or 0.0) / amount * 100)
    return f"You have used {percent}% of your {category} budget."


def has_alert_this_month(
    alerts: Iterable[BudgetAlert], budget_id: int, threshold: int, now: datetime
) -> bool:
    return any(
        alert.budget_id == budget_id
        and alert.threshold == threshold
        and same_month(alert.timestamp, now)
        for alert in alerts
    )


def derive_alerts(
    budgets: Iterable[Budget],
    existing: Iterable[BudgetAlert],
    user_id: int,
    now: Optional[datetime] = None,
) -> list[BudgetAlertCreate]:
    """
    Build the alerts that should be raised for ``budgets`` right now.

    A budget only produces an alert for the band it currently sits in, and
    never for a (budget, threshold) pair already alerted this calendar month.
    """
    now = now or datetime.now()
    existing = list(existing)
    fresh = []
    for budget in budgets:
        band = classify_budget(budget.amount, budget.spent)
        if band is None:
            continue
        threshold, status = band
        if has_alert_this_month(existing, budget.id, threshold, now):
            continue
        category = getattr(budget.category, "value", budget.category)
        fresh.append(
            BudgetAlertCreate(
                user_id=user_id,
                budget_id=budget.id,
                category=category,
                threshold=threshold,
                message=alert_message(category, budget.amount, _spent(budget), threshold),
                status=status,
                timestamp=now,
            )
        )
    return fresh


def percentage_change(current: float, previous: float) -> float:
    """
    Percent change from ``previous`` to ``current``.

    A zero previous value reports a flat +/-100 depending on the sign of
    ``current``; both zero is 0.
    """
    if previous != 0:
        return (current - previous) / abs(previous) * 100
    if current > 0:
        return 100.0
    if current < 0:
        return -100.0
    return 0.0


def format_percentage(percent: float) -> str:
    if percent == 0:
        return "0.0%"
    if abs(percent) > PERCENT_DISPLAY_CAP:
        return "999+%"
    return f"{abs(percent):.1f}%"


def compute_summary(
    transactions: Iterable[Transaction], today: Optional[date] = None
) -> Summary:
    today = today or date.today()
    last_month = today - relativedelta(months=1)
    transactions = list(transactions)

    total_balance = sum(
        t.amount if t.type == TransactionType.INCOME else -t.amount
        for t in transactions
    )

    income = month_total(transactions, TransactionType.INCOME, today)
    expenses = month_total(transactions, TransactionType.EXPENSE, today)
    last_income = month_total(transactions, TransactionType.INCOME, last_month)
    last_expenses = month_total(transactions, TransactionType.EXPENSE, last_month)

    balance_change = percentage_change(income - expenses, last_income - last_expenses)
    income_change = percentage_change(income, last_income)
    expense_change = percentage_change(expenses, last_expenses)

    return Summary(
        total_balance=total_balance,
        monthly_income=income,
        monthly_expenses=expenses,
        balance_change=balance_change,
        income_change=income_change,
        expense_change=expense_change,
        balance_change_display=format_percentage(balance_change),
        income_change_display=format_percentage(income_change),
        expense_change_display=format_percentage(expense_change),
    )
