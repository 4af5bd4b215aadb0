import os

os.environ["ALERT_CHECK_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["FINTRACK_STORAGE"] = "memory"

from datetime import date

import pytest
from fastapi.testclient import TestClient

from main import app
from schemas import BudgetIn, TransactionIn, UserCreate
from storage import MemStorage, get_storage


@pytest.fixture
def storage():
    return MemStorage()


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(storage):
    return storage.create_user(UserCreate(username="alice", password="secret"))


def make_transaction(user_id, kind, amount, category, when=None, description=""):
    return TransactionIn(
        user_id=user_id,
        type=kind,
        amount=amount,
        category=category,
        description=description,
        date=when or date.today(),
    )


def make_budget(user_id, category, amount):
    return BudgetIn(user_id=user_id, category=category, amount=amount)
