from datetime import date, datetime

from conftest import make_budget, make_transaction
from main import create_scheduler, scheduled_budget_check
from schemas import UserCreate
from services import (
    budgets_with_spent,
    check_all_budget_alerts,
    check_budget_alerts,
    refresh_budget_spent,
)
import main

OCTOBER = datetime(2026, 10, 19, 8, 0)
NOVEMBER = datetime(2026, 11, 2, 8, 0)


def test_budgets_with_spent(storage, user):
    storage.add_budget(make_budget(user.id, "Housing", 1300))
    storage.add_transaction(make_transaction(user.id, "expense", 1250, "Housing", date(2026, 10, 3)))
    [housing] = budgets_with_spent(storage, user.id, date(2026, 10, 19))
    assert housing.spent == 1250


def test_refresh_ignores_income_and_unbudgeted(storage, user):
    income = storage.add_transaction(make_transaction(user.id, "income", 10, "Income"))
    assert refresh_budget_spent(storage, income) is None
    stray = storage.add_transaction(make_transaction(user.id, "expense", 10, "Other"))
    assert refresh_budget_spent(storage, stray) is None


def test_alerts_reset_in_a_new_month(storage, user):
    storage.add_budget(make_budget(user.id, "Shopping", 300))
    storage.add_transaction(make_transaction(user.id, "expense", 380, "Shopping", date(2026, 10, 5)))
    storage.add_transaction(make_transaction(user.id, "expense", 290, "Shopping", date(2026, 11, 1)))

    [october] = check_budget_alerts(storage, user.id, OCTOBER)
    assert october.threshold == 100
    assert check_budget_alerts(storage, user.id, OCTOBER) == []

    [november] = check_budget_alerts(storage, user.id, NOVEMBER)
    assert november.threshold == 90
    assert len(storage.get_alerts(user.id)) == 2


def test_check_all_users(storage, user):
    other = storage.create_user(UserCreate(username="erin", password="pw"))
    for owner in (user, other):
        storage.add_budget(make_budget(owner.id, "Utilities", 100))
        storage.add_transaction(make_transaction(owner.id, "expense", 85, "Utilities", date(2026, 10, 1)))

    assert check_all_budget_alerts(storage, OCTOBER) == 2
    assert check_all_budget_alerts(storage, OCTOBER) == 0


def test_scheduler_job_registered():
    scheduler = create_scheduler()
    [job] = scheduler.get_jobs()
    assert job.id == "budget-alerts"


def test_scheduled_check_survives_errors(monkeypatch):
    def explode():
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(main, "get_storage", explode)
    scheduled_budget_check()
