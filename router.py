from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from collections import defaultdict
from typing import Optional
import csv
import logging
from io import StringIO

from aggregation import compute_summary
from reports import build_report, describe_goal, generate_insights
from schemas import (
    AlertList,
    Budget,
    BudgetIn,
    BudgetList,
    BudgetSpentUpdate,
    Category,
    FinancialData,
    GoalCompleteUpdate,
    GoalIn,
    GoalList,
    GoalOut,
    GoalProgressUpdate,
    InsightList,
    Report,
    Summary,
    Transaction,
    TransactionIn,
    TransactionList,
    TransactionType,
)
from services import budgets_with_spent, check_budget_alerts, refresh_budget_spent
from storage import DuplicateBudgetError, Storage, get_storage

logger = logging.getLogger("fintrack")

router = APIRouter()


def require_user(storage: Storage, user_id: int):
    user = storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def owned_goal(storage: Storage, goal_id: int, user_id: int):
    goal = storage.get_goal(goal_id)
    if goal is None or goal.user_id != user_id:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.get("/categories")
async def get_categories():
    return {"categories": [c.value for c in Category]}


# transactions


@router.get("/transactions", response_model=TransactionList)
async def get_transactions(
    user_id: int = Query(..., alias="userId"),
    kind: Optional[TransactionType] = Query(None, alias="type"),
    category: Optional[Category] = None,
    storage: Storage = Depends(get_storage),
):
    if kind is not None:
        transactions = storage.get_transactions_by_type(user_id, kind)
    else:
        transactions = storage.get_transactions(user_id)
    if category is not None:
        transactions = [t for t in transactions if t.category == category]

    transactions.sort(key=lambda t: (t.date, t.id), reverse=True)
    return TransactionList(transactions=transactions)


@router.post("/transactions", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    transaction: TransactionIn, storage: Storage = Depends(get_storage)
):
    require_user(storage, transaction.user_id)
    new_transaction = storage.add_transaction(transaction)
    refresh_budget_spent(storage, new_transaction)
    return new_transaction


# budgets


@router.get("/budgets", response_model=BudgetList)
async def get_budgets(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    return BudgetList(budgets=budgets_with_spent(storage, user_id))


@router.post("/budgets", response_model=Budget, status_code=status.HTTP_201_CREATED)
async def create_budget(budget: BudgetIn, storage: Storage = Depends(get_storage)):
    require_user(storage, budget.user_id)
    if storage.get_budget_by_category(budget.user_id, budget.category):
        raise HTTPException(
            status_code=409,
            detail=f"A budget for {budget.category.value} already exists",
        )
    try:
        return storage.add_budget(budget)
    except DuplicateBudgetError:
        raise HTTPException(
            status_code=409,
            detail=f"A budget for {budget.category.value} already exists",
        )


@router.patch("/budgets/{budget_id}/spent", response_model=Budget)
async def update_budget_spent(
    budget_id: int, update: BudgetSpentUpdate, storage: Storage = Depends(get_storage)
):
    budget = storage.update_budget_spent(budget_id, update.spent)
    if budget is None:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


# goals


@router.get("/goals", response_model=GoalList)
async def get_goals(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    return GoalList(goals=[describe_goal(g) for g in storage.get_goals(user_id)])


@router.post("/goals", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
async def create_goal(goal: GoalIn, storage: Storage = Depends(get_storage)):
    require_user(storage, goal.user_id)
    return describe_goal(storage.add_goal(goal))


@router.patch("/goals/{goal_id}/progress", response_model=GoalOut)
async def update_goal_progress(
    goal_id: int, update: GoalProgressUpdate, storage: Storage = Depends(get_storage)
):
    owned_goal(storage, goal_id, update.user_id)
    return describe_goal(storage.update_goal_progress(goal_id, update.current_amount))


@router.patch("/goals/{goal_id}/complete", response_model=GoalOut)
async def complete_goal(
    goal_id: int, update: GoalCompleteUpdate, storage: Storage = Depends(get_storage)
):
    owned_goal(storage, goal_id, update.user_id)
    return describe_goal(storage.set_goal_completed(goal_id, update.is_completed))


@router.delete("/goals/{goal_id}")
async def delete_goal(
    goal_id: int,
    user_id: int = Query(..., alias="userId"),
    storage: Storage = Depends(get_storage),
):
    owned_goal(storage, goal_id, user_id)
    storage.delete_goal(goal_id)
    return {"message": "Goal deleted successfully"}


# dashboard data


@router.get("/finance/data", response_model=FinancialData)
async def get_financial_data(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    # the dashboard shows "no data" rather than an error state
    try:
        transactions = storage.get_transactions(user_id)
        budgets = budgets_with_spent(storage, user_id)
    except Exception:
        logger.exception("Failed to load financial data for user %s", user_id)
        return FinancialData()
    return FinancialData(transactions=transactions, budgets=budgets)


@router.get("/finance/summary", response_model=Summary)
async def get_summary(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    return compute_summary(storage.get_transactions(user_id))


@router.get("/reports", response_model=Report)
async def get_report(
    user_id: int = Query(..., alias="userId"),
    time_frame: str = Query("month", alias="timeFrame"),
    storage: Storage = Depends(get_storage),
):
    return build_report(storage.get_transactions(user_id), time_frame)


@router.get("/insights", response_model=InsightList)
async def get_insights(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    transactions = storage.get_transactions(user_id)
    budgets = budgets_with_spent(storage, user_id)
    return InsightList(insights=generate_insights(transactions, budgets))


# alerts


@router.get("/alerts", response_model=AlertList)
async def get_alerts(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    alerts = sorted(storage.get_alerts(user_id), key=lambda a: (a.timestamp, a.id), reverse=True)
    return AlertList(alerts=alerts, unread_count=sum(1 for a in alerts if not a.read))


@router.post("/alerts/check", response_model=AlertList)
async def run_alert_check(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    fresh = check_budget_alerts(storage, user_id)
    return AlertList(alerts=fresh, unread_count=len(fresh))


@router.patch("/alerts/{alert_id}/read")
async def mark_alert_read(
    alert_id: int,
    user_id: int = Query(..., alias="userId"),
    storage: Storage = Depends(get_storage),
):
    if storage.mark_alert_read(alert_id, user_id) is None:
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"message": "Alert marked as read"}


@router.post("/alerts/read-all")
async def mark_all_alerts_read(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    count = storage.mark_all_alerts_read(user_id)
    return {"message": f"{count} alert(s) marked as read"}


@router.delete("/alerts")
async def clear_alerts(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    count = storage.clear_alerts(user_id)
    return {"message": f"{count} alert(s) cleared"}


@router.get("/export-report")
async def export_financial_report(
    user_id: int = Query(..., alias="userId"), storage: Storage = Depends(get_storage)
):
    """
    Exports financial report as CSV containing:
    - All transactions
    - Expense totals per category
    """
    user = require_user(storage, user_id)
    transactions = sorted(storage.get_transactions(user_id), key=lambda t: (t.date, t.id))

    csv_data = StringIO()
    writer = csv.writer(csv_data)

    writer.writerow(["Date", "Type", "Category", "Amount", "Description"])
    for t in transactions:
        writer.writerow([t.date.isoformat(), t.type.value, t.category.value, t.amount, t.description])

    writer.writerow([])
    writer.writerow(["Category", "Total Spending"])

    totals = defaultdict(float)
    for t in transactions:
        if t.type == TransactionType.EXPENSE:
            totals[t.category.value] += t.amount
    for category, total in sorted(totals.items()):
        writer.writerow([category, round(total, 2)])

    csv_data.seek(0)

    return StreamingResponse(
        iter([csv_data.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={user.username}_financial_report.csv"
        },
    )
