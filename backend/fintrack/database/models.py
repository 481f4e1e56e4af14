"""
SQLAlchemy ORM Models for PostgreSQL
"""
from sqlalchemy import Column, String, Float, Date, DateTime, Text, Enum as SQLEnum, Boolean, JSON, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime
import enum

Base = declarative_base()


class AccountTypeEnum(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"  # balance stored as a negative amount owed
    SAVINGS = "savings"
    INVESTMENT = "investment"


class BudgetPeriodEnum(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, index=True)
    account_type = Column(SQLEnum(AccountTypeEnum, values_callable=lambda x: [e.value for e in x]), nullable=False)
    balance = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="USD")
    last_imported = Column(DateTime, nullable=True)  # Stamped after a CSV import writes at least one row
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True)
    # Soft reference: accounts may be deleted without touching their transactions
    account_id = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    # Category name, matched against Category.name by string equality
    category = Column(String, nullable=False, default="Uncategorized", index=True)
    is_debit = Column(Boolean, nullable=False, default=False)
    source = Column(String, default="manual", nullable=False, index=True)  # manual, import

    # Import provenance
    file_name = Column(String, nullable=True)
    load_date_time = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)


Index('ix_transactions_date_created', Transaction.date.desc(), Transaction.created_at.desc())


class Category(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    name_lower = Column(String, nullable=False, unique=True, index=True)  # Case-insensitive uniqueness
    icon = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, index=True)
    is_default = Column(Boolean, default=False, nullable=False)
    time_period = Column(SQLEnum(BudgetPeriodEnum, values_callable=lambda x: [e.value for e in x]), nullable=False)
    # Ordered list of {"category_id": str, "limit": float}
    category_limits = Column(JSON, nullable=False, default=list)
    total_budget_amount = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=datetime.utcnow, nullable=True)
