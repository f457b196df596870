from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional, List
from datetime import datetime, date as Date
from enum import Enum


class TransactionKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class PreferredView(str, Enum):
    CALENDAR = "calendar"
    BILLING = "billing"


class User(BaseModel):
    id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Categories

class CategoryBase(BaseModel):
    name: str = Field(min_length=3, max_length=20)
    icon: str = Field(max_length=20)
    type: TransactionKind
    description: Optional[str] = Field(default=None, max_length=255)


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(CategoryBase):
    pass


class Category(BaseModel):
    id: str
    user_id: str
    # Not re-validated on output; "Imported" categories are created by the importer
    name: str
    icon: str
    type: TransactionKind
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Transactions

class TransactionBase(BaseModel):
    amount: float = Field(gt=0)
    date: Date
    type: TransactionKind
    category_id: str
    description: str = Field(default="", max_length=500)


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0)
    date: Optional[Date] = None
    type: Optional[TransactionKind] = None
    category_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)


class Transaction(BaseModel):
    id: str
    user_id: str
    amount: float
    date: Date
    type: TransactionKind
    category_id: str
    description: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Statement import

class ImportResponse(BaseModel):
    success: bool = True
    imported: int
    skipped: int
    message: str


# User settings

class UserSettings(BaseModel):
    user_id: str
    currency: str
    billing_cycle_day: int
    preferred_view: PreferredView
    initial_balance: float
    savings_goal: float
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BillingCycleUpdate(BaseModel):
    billing_cycle_day: int = Field(ge=1, le=28)
    preferred_view: PreferredView


class InitialBalanceUpdate(BaseModel):
    initial_balance: float


class CurrencyUpdate(BaseModel):
    currency: str = Field(min_length=3, max_length=3, description="ISO 4217 code, e.g. EUR")

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value):
        value = value.strip().upper()
        if not value.isascii() or not value.isalpha():
            raise ValueError("currency must be a three-letter code")
        return value


class SavingsGoalUpdate(BaseModel):
    savings_goal: float = Field(ge=0)


# Stats

class BalanceStats(BaseModel):
    income: float
    expense: float
    savings: float
    savings_rate: float


class CategoryStat(BaseModel):
    type: TransactionKind
    category: str
    category_icon: str
    amount: float


class HistoryPoint(BaseModel):
    year: int
    month: int
    day: Optional[int] = None
    income: float
    expense: float


class Period(BaseModel):
    start: datetime
    end: datetime
    label: str


class Overview(BaseModel):
    period: Period
    view: PreferredView
    balance: BalanceStats
    initial_balance: float
    current_balance: float
    savings_goal: float
    spending_budget: float
    remaining_budget: float
    budget_used_percent: float
    on_track: bool


# Assistant tools

class ToolDescriptor(BaseModel):
    name: str
    description: str
    parameters: dict


class ToolList(BaseModel):
    tools: List[ToolDescriptor]


# Assistant chat history

class ChatMessageBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_id: str = Field(min_length=1, max_length=255)
    role: Literal["user", "assistant", "system", "tool"]
    content: str = ""
    tool_name: Optional[str] = None
    timestamp: datetime


class ChatMessage(ChatMessageBase):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str


class ChatHistory(BaseModel):
    messages: List[ChatMessage]


class ChatHistorySave(BaseModel):
    messages: List[ChatMessageBase]
