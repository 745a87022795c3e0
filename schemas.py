"""Pydantic/SQLModel schemas for API payloads and validation."""
from typing import Literal, Optional
from decimal import Decimal
import datetime as dt

from sqlmodel import SQLModel, Field
from pydantic import field_validator, BaseModel, ConfigDict, constr

from utils import normalize_iso_date

NAME_MAX_LEN = 50
DESCRIPTION_MAX_LEN = 300
COLOR_PATTERN = r"^#[0-9a-fA-F]{3,8}$"

TransactionType = Literal["income", "expense"]


class DateMixin:
    """Normalize ISO date strings ('date' / 'deadline') before validation."""
    @field_validator("date", "deadline", mode="before", check_fields=False)
    @classmethod
    def normalize_date(cls, v):
        if v is None or v == "":
            return None
        return normalize_iso_date(v)


class CategoryCreate(BaseModel):
    """Payload for creating a category."""
    name: constr(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LEN)
    type: TransactionType
    icon: constr(strip_whitespace=True, min_length=1, max_length=16) = "💰"
    color: constr(pattern=COLOR_PATTERN) = "#6366f1"


class CategoryRead(BaseModel):
    """Response model for a category."""
    id: int
    name: str
    type: str
    icon: str
    color: str

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(DateMixin, SQLModel):
    """Payload for creating a transaction."""
    type: TransactionType
    category: str = Field(min_length=1, max_length=NAME_MAX_LEN)
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LEN)
    date: dt.date

    @field_validator("category", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class TransactionRead(BaseModel):
    """A transaction joined with its category display metadata."""
    id: int
    type: str
    category: str
    amount: float
    description: Optional[str] = None
    date: dt.date
    created_at: Optional[dt.datetime] = None
    icon: str
    color: str


class GoalCreate(DateMixin, SQLModel):
    """Payload for creating a savings goal."""
    name: str = Field(min_length=1, max_length=NAME_MAX_LEN)
    target_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    deadline: Optional[dt.date] = None
    color: constr(pattern=COLOR_PATTERN) = "#6366f1"

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class GoalUpdate(DateMixin, SQLModel):
    """Update payload for goals. Fields left out keep their stored value."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)
    target_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    current_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    deadline: Optional[dt.date] = None
    color: Optional[constr(pattern=COLOR_PATTERN)] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class GoalRead(BaseModel):
    """Response model for a goal with its computed progress."""
    id: int
    name: str
    target_amount: float
    current_amount: float
    deadline: Optional[dt.date] = None
    color: str
    created_at: Optional[dt.datetime] = None
    progress: float
    remaining: float


class TrendPoint(BaseModel):
    month: str
    income: float
    expense: float


class CategoryTotal(BaseModel):
    category: str
    icon: str
    color: str
    total: float


class Dashboard(BaseModel):
    """Aggregated payload served by /api/dashboard."""
    month: str
    monthly_income: float
    monthly_expense: float
    monthly_balance: float
    all_time_balance: float
    recent_transactions: list[TransactionRead]
    goals: list[GoalRead]
    monthly_trend: list[TrendPoint]
    expense_by_category: list[CategoryTotal]
