import itertools
import logging
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

import config
import database
from schemas import (
    Budget,
    BudgetAlert,
    BudgetAlertCreate,
    BudgetIn,
    Goal,
    GoalIn,
    Transaction,
    TransactionIn,
    TransactionType,
    User,
    UserCreate,
)

logger = logging.getLogger("fintrack")


class StorageError(Exception):
    pass


class DuplicateUserError(StorageError):
    pass


class DuplicateBudgetError(StorageError):
    pass


class Storage(ABC):
    """Everything the API needs from a backing store, scoped per user."""

    # users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, user: UserCreate) -> User: ...

    @abstractmethod
    def list_users(self) -> list[User]: ...

    # transactions
    @abstractmethod
    def get_transactions(self, user_id: int) -> list[Transaction]: ...

    def get_transactions_by_type(self, user_id: int, kind: TransactionType) -> list[Transaction]:
        return [t for t in self.get_transactions(user_id) if t.type == kind]

    def get_transactions_by_category(self, user_id: int, category: str) -> list[Transaction]:
        return [t for t in self.get_transactions(user_id) if t.category == category]

    @abstractmethod
    def add_transaction(self, transaction: TransactionIn) -> Transaction: ...

    # budgets
    @abstractmethod
    def get_budgets(self, user_id: int) -> list[Budget]: ...

    @abstractmethod
    def get_budget(self, budget_id: int) -> Optional[Budget]: ...

    def get_budget_by_category(self, user_id: int, category: str) -> Optional[Budget]:
        for budget in self.get_budgets(user_id):
            if budget.category == category:
                return budget
        return None

    @abstractmethod
    def add_budget(self, budget: BudgetIn) -> Budget: ...

    @abstractmethod
    def update_budget_spent(self, budget_id: int, spent: float) -> Optional[Budget]: ...

    # goals
    @abstractmethod
    def get_goals(self, user_id: int) -> list[Goal]: ...

    @abstractmethod
    def get_goal(self, goal_id: int) -> Optional[Goal]: ...

    @abstractmethod
    def add_goal(self, goal: GoalIn) -> Goal: ...

    @abstractmethod
    def update_goal_progress(self, goal_id: int, current_amount: float) -> Optional[Goal]: ...

    @abstractmethod
    def set_goal_completed(self, goal_id: int, is_completed: bool) -> Optional[Goal]: ...

    @abstractmethod
    def delete_goal(self, goal_id: int) -> bool: ...

    # alerts
    @abstractmethod
    def get_alerts(self, user_id: int) -> list[BudgetAlert]: ...

    @abstractmethod
    def add_alert(self, alert: BudgetAlertCreate) -> BudgetAlert: ...

    @abstractmethod
    def mark_alert_read(self, alert_id: int, user_id: int) -> Optional[BudgetAlert]: ...

    @abstractmethod
    def mark_all_alerts_read(self, user_id: int) -> int: ...

    @abstractmethod
    def clear_alerts(self, user_id: int) -> int: ...


def _reaches_target(current: Optional[float], target: float) -> bool:
    return (current or 0.0) >= target


class MemStorage(Storage):
    """Dict-per-entity store; everything is lost on restart."""

    def __init__(self):
        self.users: dict[int, User] = {}
        self.transactions: dict[int, Transaction] = {}
        self.budgets: dict[int, Budget] = {}
        self.goals: dict[int, Goal] = {}
        self.alerts: dict[int, BudgetAlert] = {}
        self._user_ids = itertools.count(1)
        self._transaction_ids = itertools.count(1)
        self._budget_ids = itertools.count(1)
        self._goal_ids = itertools.count(1)
        self._alert_ids = itertools.count(1)

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_user_by_username(self, username):
        return next((u for u in self.users.values() if u.username == username), None)

    def create_user(self, user):
        if self.get_user_by_username(user.username):
            raise DuplicateUserError(user.username)
        new_user = User(id=next(self._user_ids), **user.model_dump())
        self.users[new_user.id] = new_user
        return new_user

    def list_users(self):
        return list(self.users.values())

    def get_transactions(self, user_id):
        return [t for t in self.transactions.values() if t.user_id == user_id]

    def add_transaction(self, transaction):
        new_transaction = Transaction(id=next(self._transaction_ids), **transaction.model_dump())
        self.transactions[new_transaction.id] = new_transaction
        return new_transaction

    def get_budgets(self, user_id):
        return [b for b in self.budgets.values() if b.user_id == user_id]

    def get_budget(self, budget_id):
        return self.budgets.get(budget_id)

    def add_budget(self, budget):
        if self.get_budget_by_category(budget.user_id, budget.category):
            raise DuplicateBudgetError(budget.category.value)
        new_budget = Budget(id=next(self._budget_ids), spent=0.0, **budget.model_dump())
        self.budgets[new_budget.id] = new_budget
        return new_budget

    def update_budget_spent(self, budget_id, spent):
        budget = self.budgets.get(budget_id)
        if budget is None:
            return None
        self.budgets[budget_id] = budget.model_copy(update={"spent": spent})
        return self.budgets[budget_id]

    def get_goals(self, user_id):
        return [g for g in self.goals.values() if g.user_id == user_id]

    def get_goal(self, goal_id):
        return self.goals.get(goal_id)

    def add_goal(self, goal):
        new_goal = Goal(
            id=next(self._goal_ids),
            is_completed=_reaches_target(goal.current_amount, goal.target_amount),
            **goal.model_dump(),
        )
        self.goals[new_goal.id] = new_goal
        return new_goal

    def update_goal_progress(self, goal_id, current_amount):
        goal = self.goals.get(goal_id)
        if goal is None:
            return None
        self.goals[goal_id] = goal.model_copy(
            update={
                "current_amount": current_amount,
                "is_completed": goal.is_completed
                or _reaches_target(current_amount, goal.target_amount),
            }
        )
        return self.goals[goal_id]

    def set_goal_completed(self, goal_id, is_completed):
        goal = self.goals.get(goal_id)
        if goal is None:
            return None
        self.goals[goal_id] = goal.model_copy(update={"is_completed": is_completed})
        return self.goals[goal_id]

    def delete_goal(self, goal_id):
        return self.goals.pop(goal_id, None) is not None

    def get_alerts(self, user_id):
        return [a for a in self.alerts.values() if a.user_id == user_id]

    def add_alert(self, alert):
        new_alert = BudgetAlert(id=next(self._alert_ids), read=False, **alert.model_dump())
        self.alerts[new_alert.id] = new_alert
        return new_alert

    def mark_alert_read(self, alert_id, user_id):
        alert = self.alerts.get(alert_id)
        if alert is None or alert.user_id != user_id:
            return None
        self.alerts[alert_id] = alert.model_copy(update={"read": True})
        return self.alerts[alert_id]

    def mark_all_alerts_read(self, user_id):
        unread = [a for a in self.get_alerts(user_id) if not a.read]
        for alert in unread:
            self.alerts[alert.id] = alert.model_copy(update={"read": True})
        return len(unread)

    def clear_alerts(self, user_id):
        doomed = [a.id for a in self.get_alerts(user_id)]
        for alert_id in doomed:
            del self.alerts[alert_id]
        return len(doomed)


def _to_schema(schema, row):
    return schema.model_validate({c.name: getattr(row, c.name) for c in row.__table__.columns})


class SqlStorage(Storage):
    """SQLAlchemy-backed store over the tables in ``database``."""

    def __init__(self, session_factory):
        self.SessionLocal = session_factory

    def get_user(self, user_id):
        with self.SessionLocal() as db:
            user = db.get(database.User, user_id)
            return _to_schema(User, user) if user else None

    def get_user_by_username(self, username):
        with self.SessionLocal() as db:
            user = db.query(database.User).filter(database.User.username == username).first()
            return _to_schema(User, user) if user else None

    def create_user(self, user):
        with self.SessionLocal() as db:
            db_user = database.User(username=user.username, password=user.password)
            db.add(db_user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateUserError(user.username) from exc
            db.refresh(db_user)
            return _to_schema(User, db_user)

    def list_users(self):
        with self.SessionLocal() as db:
            return [_to_schema(User, u) for u in db.query(database.User).all()]

    def get_transactions(self, user_id):
        with self.SessionLocal() as db:
            rows = db.query(database.Transaction).filter(database.Transaction.user_id == user_id).all()
            return [_to_schema(Transaction, t) for t in rows]

    def get_transactions_by_type(self, user_id, kind):
        with self.SessionLocal() as db:
            rows = (
                db.query(database.Transaction)
                .filter(
                    database.Transaction.user_id == user_id,
                    database.Transaction.type == TransactionType(kind).value,
                )
                .all()
            )
            return [_to_schema(Transaction, t) for t in rows]

    def get_transactions_by_category(self, user_id, category):
        category = getattr(category, "value", category)
        with self.SessionLocal() as db:
            rows = (
                db.query(database.Transaction)
                .filter(
                    database.Transaction.user_id == user_id,
                    database.Transaction.category == category,
                )
                .all()
            )
            return [_to_schema(Transaction, t) for t in rows]

    def add_transaction(self, transaction):
        with self.SessionLocal() as db:
            db_transaction = database.Transaction(
                user_id=transaction.user_id,
                type=transaction.type.value,
                amount=transaction.amount,
                category=transaction.category.value,
                description=transaction.description,
                date=transaction.date,
            )
            db.add(db_transaction)
            db.commit()
            db.refresh(db_transaction)
            return _to_schema(Transaction, db_transaction)

    def get_budgets(self, user_id):
        with self.SessionLocal() as db:
            rows = db.query(database.Budget).filter(database.Budget.user_id == user_id).all()
            return [_to_schema(Budget, b) for b in rows]

    def get_budget(self, budget_id):
        with self.SessionLocal() as db:
            budget = db.get(database.Budget, budget_id)
            return _to_schema(Budget, budget) if budget else None

    def get_budget_by_category(self, user_id, category):
        category = getattr(category, "value", category)
        with self.SessionLocal() as db:
            budget = (
                db.query(database.Budget)
                .filter(database.Budget.user_id == user_id, database.Budget.category == category)
                .first()
            )
            return _to_schema(Budget, budget) if budget else None

    def add_budget(self, budget):
        with self.SessionLocal() as db:
            db_budget = database.Budget(
                user_id=budget.user_id,
                category=budget.category.value,
                amount=budget.amount,
                spent=0.0,
            )
            db.add(db_budget)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateBudgetError(budget.category.value) from exc
            db.refresh(db_budget)
            return _to_schema(Budget, db_budget)

    def update_budget_spent(self, budget_id, spent):
        with self.SessionLocal() as db:
            budget = db.get(database.Budget, budget_id)
            if budget is None:
                return None
            budget.spent = spent
            db.commit()
            db.refresh(budget)
            return _to_schema(Budget, budget)

    def get_goals(self, user_id):
        with self.SessionLocal() as db:
            rows = db.query(database.Goal).filter(database.Goal.user_id == user_id).all()
            return [_to_schema(Goal, g) for g in rows]

    def get_goal(self, goal_id):
        with self.SessionLocal() as db:
            goal = db.get(database.Goal, goal_id)
            return _to_schema(Goal, goal) if goal else None

    def add_goal(self, goal):
        with self.SessionLocal() as db:
            db_goal = database.Goal(
                is_completed=_reaches_target(goal.current_amount, goal.target_amount),
                **goal.model_dump(),
            )
            db.add(db_goal)
            db.commit()
            db.refresh(db_goal)
            return _to_schema(Goal, db_goal)

    def update_goal_progress(self, goal_id, current_amount):
        with self.SessionLocal() as db:
            goal = db.get(database.Goal, goal_id)
            if goal is None:
                return None
            goal.current_amount = current_amount
            if _reaches_target(current_amount, goal.target_amount):
                goal.is_completed = True
            db.commit()
            db.refresh(goal)
            return _to_schema(Goal, goal)

    def set_goal_completed(self, goal_id, is_completed):
        with self.SessionLocal() as db:
            goal = db.get(database.Goal, goal_id)
            if goal is None:
                return None
            goal.is_completed = is_completed
            db.commit()
            db.refresh(goal)
            return _to_schema(Goal, goal)

    def delete_goal(self, goal_id):
        with self.SessionLocal() as db:
            goal = db.get(database.Goal, goal_id)
            if goal is None:
                return False
            db.delete(goal)
            db.commit()
            return True

    def get_alerts(self, user_id):
        with self.SessionLocal() as db:
            rows = db.query(database.BudgetAlert).filter(database.BudgetAlert.user_id == user_id).all()
            return [_to_schema(BudgetAlert, a) for a in rows]

    def add_alert(self, alert):
        with self.SessionLocal() as db:
            data = alert.model_dump()
            data["status"] = alert.status.value
            db_alert = database.BudgetAlert(read=False, **data)
            db.add(db_alert)
            db.commit()
            db.refresh(db_alert)
            return _to_schema(BudgetAlert, db_alert)

    def mark_alert_read(self, alert_id, user_id):
        with self.SessionLocal() as db:
            alert = db.get(database.BudgetAlert, alert_id)
            if alert is None or alert.user_id != user_id:
                return None
            alert.read = True
            db.commit()
            db.refresh(alert)
            return _to_schema(BudgetAlert, alert)

    def mark_all_alerts_read(self, user_id):
        with self.SessionLocal() as db:
            count = (
                db.query(database.BudgetAlert)
                .filter(database.BudgetAlert.user_id == user_id, database.BudgetAlert.read.is_(False))
                .update({"read": True})
            )
            db.commit()
            return count

    def clear_alerts(self, user_id):
        with self.SessionLocal() as db:
            count = (
                db.query(database.BudgetAlert)
                .filter(database.BudgetAlert.user_id == user_id)
                .delete()
            )
            db.commit()
            return count


DEMO_TRANSACTIONS = [
    # (days ago, type, amount, category, description)
    (0, "expense", 65.40, "Food & Dining", "Grocery Store"),
    (0, "income", 2250.00, "Income", "Salary Deposit"),
    (1, "expense", 45.82, "Transportation", "Gas Station"),
    (2, "expense", 128.75, "Shopping", "Department Store"),
    (3, "expense", 1250.00, "Housing", "Rent Payment"),
]

DEMO_BUDGETS = [
    ("Food & Dining", 500),
    ("Housing", 1300),
    ("Transportation", 350),
    ("Shopping", 300),
]


def seed_demo_data(storage: Storage, today: Optional[date] = None) -> Optional[User]:
    """Install the demo account once. Returns the new user, or None if it already exists."""
    if storage.get_user_by_username("demo"):
        return None
    today = today or date.today()
    user = storage.create_user(UserCreate(username="demo", password="demo123"))
    for days_ago, kind, amount, category, description in DEMO_TRANSACTIONS:
        storage.add_transaction(
            TransactionIn(
                user_id=user.id,
                type=kind,
                amount=amount,
                category=category,
                description=description,
                date=today - timedelta(days=days_ago),
            )
        )
    for category, amount in DEMO_BUDGETS:
        storage.add_budget(BudgetIn(user_id=user.id, category=category, amount=amount))
    logger.info("Seeded demo user %s", user.id)
    return user


def create_storage(backend: str = config.STORAGE_BACKEND, url: str = config.DATABASE_URL) -> Storage:
    if backend == "sqlite":
        logger.info("Using SQL storage at %s", url)
        return SqlStorage(database.init_db(database.make_engine(url)))
    if backend != "memory":
        raise ValueError(f"Unknown storage backend: {backend}")
    logger.info("Using in-memory storage")
    return MemStorage()


_storage: Optional[Storage] = None


def get_storage() -> Storage:
    global _storage
    if _storage is None:
        _storage = create_storage()
        if config.SEED_DEMO_DATA:
            seed_demo_data(_storage)
    return _storage
