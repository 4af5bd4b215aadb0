import logging
from datetime import date, datetime
from typing import Optional

from aggregation import compute_budget_spent, derive_alerts
from schemas import Budget, BudgetAlert, Transaction, TransactionType
from storage import Storage

logger = logging.getLogger("fintrack")


def budgets_with_spent(
    storage: Storage, user_id: int, today: Optional[date] = None
) -> list[Budget]:
    return compute_budget_spent(
        storage.get_transactions(user_id), storage.get_budgets(user_id), today
    )


def refresh_budget_spent(
    storage: Storage, transaction: Transaction, today: Optional[date] = None
) -> Optional[Budget]:
    """Recompute and store ``spent`` for the budget an expense falls under."""
    if transaction.type != TransactionType.EXPENSE:
        return None
    budget = storage.get_budget_by_category(transaction.user_id, transaction.category)
    if budget is None:
        return None
    [fresh] = compute_budget_spent(storage.get_transactions(transaction.user_id), [budget], today)
    return storage.update_budget_spent(budget.id, fresh.spent)


def check_budget_alerts(
    storage: Storage, user_id: int, now: Optional[datetime] = None
) -> list[BudgetAlert]:
    now = now or datetime.now()
    budgets = budgets_with_spent(storage, user_id, now.date())
    fresh = derive_alerts(budgets, storage.get_alerts(user_id), user_id, now)
    stored = [storage.add_alert(alert) for alert in fresh]
    for alert in stored:
        logger.info(
            "Budget alert for user %s: %s (%s%%)", user_id, alert.category, alert.threshold
        )
    return stored


def check_all_budget_alerts(storage: Storage, now: Optional[datetime] = None) -> int:
    """Run the alert check for every user; returns how many alerts were raised."""
    raised = 0
    for user in storage.list_users():
        raised += len(check_budget_alerts(storage, user.id, now))
    logger.info("Scheduled budget check raised %d alert(s)", raised)
    return raised
