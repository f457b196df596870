"""
SQLAlchemy ORM Models
"""
from sqlalchemy import Column, String, Float, Date, DateTime, ForeignKey, Text, Enum as SQLEnum, Integer, Index, UniqueConstraint
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

Base = declarative_base()


class TransactionKindEnum(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class PreferredViewEnum(str, enum.Enum):
    CALENDAR = "calendar"  # Calendar months
    BILLING = "billing"  # Billing cycle starting on billing_cycle_day


def _enum_values(enum_class):
    return [e.value for e in enum_class]


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    settings = relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="user", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    chat_messages = relationship("ChatMessage", cascade="all, delete-orphan")


class UserSettings(Base):
    __tablename__ = "user_settings"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    currency = Column(String(8), nullable=False, default="EUR")
    billing_cycle_day = Column(Integer, nullable=False, default=1)  # 1..28
    preferred_view = Column(SQLEnum(PreferredViewEnum, values_callable=_enum_values), nullable=False, default=PreferredViewEnum.CALENDAR)
    initial_balance = Column(Float, nullable=False, default=0.0)
    savings_goal = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)

    # Relationships
    user = relationship("User", back_populates="settings")


class Category(Base):
    __tablename__ = "categories"
    # One "Imported" category per user and kind relies on this constraint
    __table_args__ = (
        UniqueConstraint("user_id", "name", "type", name="uq_categories_user_name_type"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(20), nullable=False)
    icon = Column(String(20), nullable=False, default="")
    type = Column(SQLEnum(TransactionKindEnum, values_callable=_enum_values), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="categories")
    transactions = relationship("Transaction", back_populates="category")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(String, ForeignKey("categories.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(Date, nullable=False, index=True)
    type = Column(SQLEnum(TransactionKindEnum, values_callable=_enum_values), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)

    # Relationships
    user = relationship("User", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")


# Date-range queries are always scoped to one user
Index('ix_transactions_user_date', Transaction.user_id, Transaction.date)


class MonthHistory(Base):
    """Per-day income/expense totals, read as a month series."""
    __tablename__ = "month_history"
    __table_args__ = (
        UniqueConstraint("user_id", "day", "month", "year", name="uq_month_history_day"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)  # 1..12
    year = Column(Integer, nullable=False)
    income = Column(Float, nullable=False, default=0.0)
    expense = Column(Float, nullable=False, default=0.0)


class YearHistory(Base):
    """Per-month income/expense totals, read as a year series."""
    __tablename__ = "year_history"
    __table_args__ = (
        UniqueConstraint("user_id", "month", "year", name="uq_year_history_month"),
    )

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(Integer, nullable=False)  # 1..12
    year = Column(Integer, nullable=False)
    income = Column(Float, nullable=False, default=0.0)
    expense = Column(Float, nullable=False, default=0.0)


class ChatMessage(Base):
    """Stored assistant conversation, replaced wholesale by the client."""
    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String, nullable=False)  # Client-side id
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False, default="")
    tool_name = Column(String, nullable=True)
    timestamp = Column(DateTime, nullable=False)


Index('ix_chat_messages_user_timestamp', ChatMessage.user_id, ChatMessage.timestamp)
