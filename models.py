from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Date,
    DateTime,
    Text,
    ForeignKey,
    text,
)
from sqlalchemy.orm import relationship

from database import Base

# ----------------------------------------------------------------------------
# DB Models
# ----------------------------------------------------------------------------
# Every row belongs to exactly one user; queries always filter on user_id.


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    currency = Column(String(3), nullable=False, default="MXN")
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    transactions = relationship("TransactionModel", back_populates="user", cascade="all, delete-orphan")
    cards = relationship("CardModel", cascade="all, delete-orphan")
    subscriptions = relationship("SubscriptionModel", cascade="all, delete-orphan")
    budgets = relationship("BudgetModel", cascade="all, delete-orphan")
    goals = relationship("GoalModel", cascade="all, delete-orphan")


class TransactionModel(Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # income | expense
    category = Column(String(64), nullable=False, default="other")
    amount = Column(Float, nullable=False)
    description = Column(Text, nullable=False, default="")
    date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    user = relationship("UserModel", back_populates="transactions")


class CardModel(Base):
    __tablename__ = "credit_cards"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    limit = Column("credit_limit", Float, nullable=False)
    current_debt = Column(Float, nullable=False, default=0)
    cutoff_day = Column(Integer, nullable=False)
    payment_day = Column(Integer, nullable=False)
    color_tag = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class SubscriptionModel(Base):
    __tablename__ = "subscriptions"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    amount = Column(Float, nullable=False)
    payment_day = Column(Integer, nullable=False)
    category = Column(String(64), nullable=False, default="other")
    frequency = Column(String(16), nullable=False, default="monthly")
    status = Column(String(16), nullable=False, default="active")  # active | paused | cancelled
    last_paid_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class BudgetModel(Base):
    __tablename__ = "budgets"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    amount = Column(Float, nullable=False)
    spent = Column(Float, nullable=False, default=0)
    category = Column(String(64), nullable=False, default="other", index=True)
    period = Column(String(16), nullable=False, default="monthly")
    start_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))


class GoalModel(Base):
    __tablename__ = "savings_goals"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    target_amount = Column(Float, nullable=False)
    current_amount = Column(Float, nullable=False, default=0)
    icon = Column(String(32), nullable=False, default="other")
    target_date = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
