from pydantic import BaseModel, Field, constr, field_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from enum import Enum
from typing import Optional


class CamelModel(BaseModel):
    """Base for everything that goes over the wire as camelCase JSON."""

    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


class Category(str, Enum):
    FOOD_AND_DINING = "Food & Dining"
    HOUSING = "Housing"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    INCOME = "Income"
    OTHER = "Other"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class AlertStatus(str, Enum):
    INFO = "info"
    WARNING = "warning"
    DANGER = "danger"


# users


class UserBase(CamelModel):
    username: constr(strip_whitespace=True, min_length=3, max_length=50)


class UserCreate(UserBase):
    password: constr(min_length=1)


class UserLogin(UserBase):
    password: str


class UserOut(UserBase):
    id: int


class User(UserOut):
    password: str


class UserResponse(CamelModel):
    user: UserOut


# transactions


class TransactionCreate(CamelModel):
    type: TransactionType
    amount: float = Field(..., gt=0)
    category: Category
    description: str = ""
    date: date


class TransactionIn(TransactionCreate):
    user_id: int


class Transaction(TransactionCreate):
    id: int
    user_id: int


class TransactionList(CamelModel):
    transactions: list[Transaction]


# budgets


class BudgetCreate(CamelModel):
    category: Category
    amount: float = Field(..., gt=0)

    @field_validator("category")
    @classmethod
    def not_income(cls, value: Category) -> Category:
        if value == Category.INCOME:
            raise ValueError("Income is not a spending category")
        return value


class BudgetIn(BudgetCreate):
    user_id: int


class Budget(CamelModel):
    id: int
    user_id: int
    category: Category
    amount: float
    spent: Optional[float] = 0.0


class BudgetList(CamelModel):
    budgets: list[Budget]


class BudgetSpentUpdate(CamelModel):
    spent: float = Field(..., ge=0)


# goals


class GoalCreate(CamelModel):
    name: constr(strip_whitespace=True, min_length=1)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(0.0, ge=0)
    deadline: date
    category: constr(strip_whitespace=True, min_length=1)
    note: str = ""


class GoalIn(GoalCreate):
    user_id: int


class Goal(GoalCreate):
    id: int
    user_id: int
    is_completed: bool = False


class GoalOut(Goal):
    progress: float
    overdue: bool


class GoalList(CamelModel):
    goals: list[GoalOut]


class GoalProgressUpdate(CamelModel):
    current_amount: float = Field(..., ge=0)
    user_id: int


class GoalCompleteUpdate(CamelModel):
    is_completed: bool
    user_id: int


# alerts


class BudgetAlertCreate(CamelModel):
    user_id: int
    budget_id: int
    category: str
    threshold: int
    message: str
    status: AlertStatus
    timestamp: datetime


class BudgetAlert(BudgetAlertCreate):
    id: int
    read: bool = False


class AlertList(CamelModel):
    alerts: list[BudgetAlert]
    unread_count: int = 0


# aggregates


class FinancialData(CamelModel):
    transactions: list[Transaction] = []
    budgets: list[Budget] = []


class Summary(CamelModel):
    total_balance: float
    monthly_income: float
    monthly_expenses: float
    balance_change: float
    income_change: float
    expense_change: float
    balance_change_display: str
    income_change_display: str
    expense_change_display: str


class NamedValue(CamelModel):
    name: str
    value: float


class MonthlyTotals(CamelModel):
    name: str
    income: float
    expenses: float


class Report(CamelModel):
    time_frame: str
    expenses_by_category: list[NamedValue]
    income_vs_expense: list[NamedValue]
    trend: list[MonthlyTotals]


class Insight(CamelModel):
    type: str
    title: str
    message: str
    icon: str


class InsightList(CamelModel):
    insights: list[Insight]
