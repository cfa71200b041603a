"""
App Schemas

Pydantic request/response models for the finance API.
Each resource has an ``In`` model (what the client sends), an optional
``Update`` model (partial changes) and an ``Out`` model (stored fields plus
the values derived for the reference date).
"""

import datetime as dt
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr, field_validator, model_validator

EXPENSE_CATEGORIES = ["food", "transport", "entertainment", "shopping", "health", "education", "bills", "home", "other"]
INCOME_CATEGORIES = ["salary", "freelance", "investment", "other"]
SUBSCRIPTION_CATEGORIES = ["home", "entertainment", "service", "health", "education", "other"]
GOAL_ICONS = ["vacation", "car", "home", "education", "emergency", "retirement", "gadget", "wedding", "health", "other"]
SUPPORTED_CURRENCIES = ["MXN", "USD", "EUR", "COP", "VES", "ARS", "BRL", "CLP"]

DEFAULT_CATEGORY = "other"

TypeLiteral = Literal["income", "expense"]
FrequencyLiteral = Literal["weekly", "biweekly", "monthly", "bimonthly", "quarterly", "semiannual", "annual"]
StatusLiteral = Literal["active", "paused", "cancelled"]
PeriodLiteral = Literal["weekly", "biweekly", "monthly", "yearly"]

Name = constr(strip_whitespace=True, min_length=1, max_length=120)
DayOfMonth = Annotated[int, Field(ge=1, le=31)]


def normalize_category(value: Optional[str], allowed: List[str]) -> str:
    """Lower-case a category and fall back to ``other`` when it is unknown."""
    if not value:
        return DEFAULT_CATEGORY
    value = value.strip().lower()
    return value if value in allowed else DEFAULT_CATEGORY


# ----------------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------------
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserRegister(BaseModel):
    name: Name
    email: EmailStr
    password: str = Field(..., min_length=6)


class UserUpdate(BaseModel):
    name: Optional[Name] = None
    currency: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def check_currency(cls, v):
        if v is None:
            return v
        v = v.upper()
        if v not in SUPPORTED_CURRENCIES:
            raise ValueError(f"currency must be one of {', '.join(SUPPORTED_CURRENCIES)}")
        return v


class UserOut(BaseModel):
    id: int
    name: str
    email: EmailStr
    currency: str

    model_config = ConfigDict(from_attributes=True)


# ----------------------------------------------------------------------------
# Transactions
# ----------------------------------------------------------------------------
class TransactionIn(BaseModel):
    type: TypeLiteral
    category: Optional[str] = None
    amount: float = Field(..., gt=0)
    description: str = ""
    date: Optional[dt.date] = None

    @model_validator(mode="after")
    def check_category(self):
        allowed = INCOME_CATEGORIES if self.type == "income" else EXPENSE_CATEGORIES
        self.category = normalize_category(self.category, allowed)
        return self


class TransactionUpdate(BaseModel):
    type: Optional[TypeLiteral] = None
    category: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    description: Optional[str] = None
    date: Optional[dt.date] = None


class TransactionOut(BaseModel):
    id: int
    type: TypeLiteral
    category: str
    amount: float
    description: str
    date: dt.date
    created_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ----------------------------------------------------------------------------
# Credit cards
# ----------------------------------------------------------------------------
class CardIn(BaseModel):
    name: Name
    limit: float = Field(..., gt=0)
    current_debt: float = Field(0, ge=0)
    cutoff_day: DayOfMonth
    payment_day: DayOfMonth
    color_tag: Optional[str] = None

    @model_validator(mode="after")
    def check_debt(self):
        if self.current_debt > self.limit:
            raise ValueError("current_debt cannot exceed the card limit")
        return self


class CardUpdate(BaseModel):
    name: Optional[Name] = None
    limit: Optional[float] = Field(None, gt=0)
    current_debt: Optional[float] = Field(None, ge=0)
    cutoff_day: Optional[DayOfMonth] = None
    payment_day: Optional[DayOfMonth] = None
    color_tag: Optional[str] = None


class CardOut(BaseModel):
    id: int
    name: str
    limit: float
    current_debt: float
    cutoff_day: int
    payment_day: int
    color_tag: Optional[str] = None
    days_to_cutoff: int
    days_to_payment: int
    utilization: float
    is_high_utilization: bool


# ----------------------------------------------------------------------------
# Subscriptions
# ----------------------------------------------------------------------------
class SubscriptionIn(BaseModel):
    name: Name
    amount: float = Field(..., gt=0)
    payment_day: DayOfMonth
    category: Optional[str] = Field(None, validate_default=True)
    frequency: FrequencyLiteral = "monthly"
    status: StatusLiteral = "active"
    last_paid_date: Optional[dt.date] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, v):
        return normalize_category(v, SUBSCRIPTION_CATEGORIES)


class SubscriptionUpdate(BaseModel):
    name: Optional[Name] = None
    amount: Optional[float] = Field(None, gt=0)
    payment_day: Optional[DayOfMonth] = None
    category: Optional[str] = None
    frequency: Optional[FrequencyLiteral] = None
    status: Optional[StatusLiteral] = None
    last_paid_date: Optional[dt.date] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, v):
        return v if v is None else normalize_category(v, SUBSCRIPTION_CATEGORIES)


class SubscriptionOut(BaseModel):
    id: int
    name: str
    amount: float
    payment_day: int
    category: str
    frequency: FrequencyLiteral
    status: StatusLiteral
    last_paid_date: Optional[dt.date] = None
    next_payment_date: dt.date
    days_left: int
    is_overdue: bool
    urgency: str
    monthly_amount: float
    annual_amount: float


# ----------------------------------------------------------------------------
# Budgets
# ----------------------------------------------------------------------------
class BudgetIn(BaseModel):
    name: Name
    amount: float = Field(..., gt=0)
    category: Optional[str] = Field(None, validate_default=True)
    period: PeriodLiteral = "monthly"

    @field_validator("category")
    @classmethod
    def check_category(cls, v):
        return normalize_category(v, EXPENSE_CATEGORIES)


class BudgetUpdate(BaseModel):
    name: Optional[Name] = None
    amount: Optional[float] = Field(None, gt=0)
    period: Optional[PeriodLiteral] = None


class BudgetOut(BaseModel):
    id: int
    name: str
    amount: float
    spent: float
    category: str
    period: PeriodLiteral
    start_date: dt.date
    remaining: float
    percent_used: float
    is_over_budget: bool
    is_near_limit: bool


# ----------------------------------------------------------------------------
# Savings goals
# ----------------------------------------------------------------------------
class GoalIn(BaseModel):
    name: Name
    target_amount: float = Field(..., gt=0)
    icon: Optional[str] = Field(None, validate_default=True)
    target_date: Optional[dt.date] = None

    @field_validator("icon")
    @classmethod
    def check_icon(cls, v):
        return normalize_category(v, GOAL_ICONS)


class GoalUpdate(BaseModel):
    name: Optional[Name] = None
    target_amount: Optional[float] = Field(None, gt=0)
    icon: Optional[str] = None
    target_date: Optional[dt.date] = None

    @field_validator("icon")
    @classmethod
    def check_icon(cls, v):
        return v if v is None else normalize_category(v, GOAL_ICONS)


class GoalMovement(BaseModel):
    amount: float = Field(..., gt=0)


class GoalOut(BaseModel):
    id: int
    name: str
    target_amount: float
    current_amount: float
    icon: str
    target_date: Optional[dt.date] = None
    progress: float
    days_left: Optional[int] = None
    is_overdue: bool
    is_completed: bool
    monthly_needed: float


# ----------------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------------
class Totals(BaseModel):
    income: float
    expense: float
    balance: float


class CategoryShare(BaseModel):
    category: str
    amount: float
    count: int
    percentage: float


class TrendItem(BaseModel):
    label: str
    income: float
    expense: float
    balance: float
    savings_rate: float


class HealthReport(BaseModel):
    score: int
    status: str
    savings_rate: float
    fixed_expense_ratio: float
    debt_to_income_ratio: float = 0
    recommendations: List[str]


class SubscriptionTotals(BaseModel):
    monthly_total: float
    annual_total: float
    this_month_total: float
    next_7_days_total: float
    by_category: Dict[str, Dict[str, float]]
    count: int
    average_per_subscription: float


class CardTotals(BaseModel):
    total_cards: int
    total_limit: float
    total_debt: float
    available_credit: float
    utilization: float
    average_utilization: float
    health_status: str
