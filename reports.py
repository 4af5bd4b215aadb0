from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from aggregation import month_total, percentage_change
from schemas import (
    Budget,
    Category,
    Goal,
    GoalOut,
    Insight,
    MonthlyTotals,
    NamedValue,
    Report,
    Transaction,
    TransactionType,
)

TIME_FRAMES = ("week", "month", "quarter", "year")
TREND_MONTHS = 6

FOOD_SAVINGS_FLOOR = 350
FOOD_SAVINGS_RATE = 0.25


def time_frame_start(time_frame: str, today: date) -> date:
    if time_frame == "week":
        return today - timedelta(days=7)
    if time_frame == "quarter":
        return today - relativedelta(months=3)
    if time_frame == "year":
        return date(today.year, 1, 1)
    # "month" and anything unrecognised
    return today.replace(day=1)


def filter_by_time_frame(
    transactions: Iterable[Transaction], time_frame: str, today: Optional[date] = None
) -> list[Transaction]:
    start = time_frame_start(time_frame, today or date.today())
    return [t for t in transactions if t.date >= start]


def expenses_by_category(transactions: Iterable[Transaction]) -> list[NamedValue]:
    totals = defaultdict(float)
    for t in transactions:
        if t.type == TransactionType.EXPENSE:
            totals[t.category.value] += t.amount
    return [NamedValue(name=name, value=round(value, 2)) for name, value in totals.items()]


def income_vs_expense(transactions: Iterable[Transaction]) -> list[NamedValue]:
    income = expense = 0.0
    for t in transactions:
        if t.type == TransactionType.INCOME:
            income += t.amount
        else:
            expense += t.amount
    return [
        NamedValue(name="Income", value=round(income, 2)),
        NamedValue(name="Expenses", value=round(expense, 2)),
    ]


def monthly_trend(
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
    months: int = TREND_MONTHS,
) -> list[MonthlyTotals]:
    """Income and expenses for the last ``months`` months, oldest first."""
    today = today or date.today()
    transactions = list(transactions)
    trend = []
    for offset in reversed(range(months)):
        month = today.replace(day=1) - relativedelta(months=offset)
        trend.append(
            MonthlyTotals(
                name=month.strftime("%b %Y"),
                income=round(month_total(transactions, TransactionType.INCOME, month), 2),
                expenses=round(month_total(transactions, TransactionType.EXPENSE, month), 2),
            )
        )
    return trend


def build_report(
    transactions: Iterable[Transaction], time_frame: str, today: Optional[date] = None
) -> Report:
    today = today or date.today()
    if time_frame not in TIME_FRAMES:
        time_frame = "month"
    transactions = list(transactions)
    in_frame = filter_by_time_frame(transactions, time_frame, today)
    return Report(
        time_frame=time_frame,
        expenses_by_category=expenses_by_category(in_frame),
        income_vs_expense=income_vs_expense(in_frame),
        trend=monthly_trend(transactions, today),
    )


def goal_progress(current: Optional[float], target: Optional[float]) -> float:
    current = current or 0.0
    target = target or 0.0
    if target == 0:
        return 0.0
    return min(current / target * 100, 100.0)


def goal_overdue(goal: Goal, today: Optional[date] = None) -> bool:
    if goal.is_completed:
        return False
    return (today or date.today()) > goal.deadline


def describe_goal(goal: Goal, today: Optional[date] = None) -> GoalOut:
    return GoalOut(
        **goal.model_dump(),
        progress=goal_progress(goal.current_amount, goal.target_amount),
        overdue=goal_overdue(goal, today),
    )


def generate_insights(
    transactions: Iterable[Transaction],
    budgets: Iterable[Budget],
    today: Optional[date] = None,
) -> list[Insight]:
    """
    Short advice cards for the dashboard. ``budgets`` should already carry
    their derived ``spent`` values.
    """
    today = today or date.today()
    transactions = list(transactions)
    insights = []

    over_budget = [b for b in budgets if (b.spent or 0.0) > b.amount]
    if over_budget:
        worst = max(over_budget, key=lambda b: (b.spent or 0.0) - b.amount)
        overspent = (worst.spent or 0.0) - worst.amount
        category = worst.category.value
        insights.append(
            Insight(
                type="warning",
                title=f"{category} Budget Alert",
                message=f"You've exceeded your {category.lower()} budget by ${overspent:.2f} this month.",
                icon="warning",
            )
        )

    food = month_total(transactions, TransactionType.EXPENSE, today, Category.FOOD_AND_DINING)
    if food > FOOD_SAVINGS_FLOOR:
        insights.append(
            Insight(
                type="success",
                title="Savings Opportunity",
                message=f"You could save ${round(food * FOOD_SAVINGS_RATE)} by reducing restaurant expenses.",
                icon="savings",
            )
        )

    last_month = today - relativedelta(months=1)
    utilities = month_total(transactions, TransactionType.EXPENSE, today, Category.UTILITIES)
    last_utilities = month_total(transactions, TransactionType.EXPENSE, last_month, Category.UTILITIES)
    if last_utilities > 0 and utilities < last_utilities:
        decrease = round(-percentage_change(utilities, last_utilities))
        insights.append(
            Insight(
                type="info",
                title="Spending Pattern",
                message=f"Your utility bills have decreased {decrease}% compared to last month.",
                icon="insights",
            )
        )

    if not insights:
        insights.append(
            Insight(
                type="info",
                title="Welcome to FinTrack",
                message="Add more transactions to see personalized financial insights here.",
                icon="tips_and_updates",
            )
        )
    return insights
