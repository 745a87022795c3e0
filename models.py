from typing import Optional
from decimal import Decimal
import datetime as dt
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# These classes describe what data will be stored in the database.
# Each class = one table.
# Each variable inside becomes a column in that table.
class Category(SQLModel, table=True):
    """Table for transaction categories.
    Stores categories like ('Salary', 'Food & Dining', or 'Bills & Utilities')
    together with the icon and color the dashboard shows for them.
    Each category has a unique name.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True, min_length=1, max_length=50)
    type: str = Field(regex="^(income|expense)$")
    icon: str = "💰"
    color: str = "#6366f1"


class Transaction(SQLModel, table=True):
    """Main table that stores all transactions.
    It records both income and expenses.
    - 'type' = either 'income' or 'expense'
    - 'category' = the category *name*; there is no foreign key, so deleting
      a category leaves its transactions untouched.
    Rows are never updated in place, only created or deleted.
    """
    id: Optional[int] = Field(default=None, primary_key=True) # unique ID
    type: str = Field(regex="^(income|expense)$") # makes sure it’s only 'income' or 'expense'
    category: str = Field(index=True) # name of the category (e.g., 'Salary')
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2) # must be a positive number
    description: Optional[str] = None # an optional text note from the user
    date: dt.date = Field(index=True) # when the transaction happened
    created_at: datetime = Field(default_factory=utc_now)


class Goal(SQLModel, table=True):
    """Savings goal. 'current_amount' is moved directly by the user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    target_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    deadline: Optional[dt.date] = None
    color: str = "#6366f1"
    created_at: datetime = Field(default_factory=utc_now)
