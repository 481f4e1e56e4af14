from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime, date as CalendarDate
from enum import Enum


class AccountType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"
    SAVINGS = "savings"
    INVESTMENT = "investment"


class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PeriodOption(str, Enum):
    CURRENT_MONTH = "current_month"
    LAST_MONTH = "last_month"
    YEAR_TO_DATE = "year_to_date"
    ALL_TIME = "all_time"
    CURRENT_WEEK = "current_week"
    LAST_WEEK = "last_week"
    TODAY = "today"
    YESTERDAY = "yesterday"


class AccountBase(BaseModel):
    name: str
    account_type: AccountType
    balance: float = 0.0
    currency: str = "USD"

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("Account name cannot be empty")
        return value

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value):
        value = value.strip().upper()
        if len(value) != 3:
            raise ValueError("Currency must be a 3-letter code")
        return value

class AccountCreate(AccountBase):
    pass

class AccountUpdate(BaseModel):
    # account_type is fixed once the account exists
    name: Optional[str] = None
    balance: Optional[float] = None
    currency: Optional[str] = None

class Account(AccountBase):
    id: str
    last_imported: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TransactionBase(BaseModel):
    account_id: str
    date: CalendarDate
    description: str
    amount: float
    category: str = "Uncategorized"

class TransactionCreate(TransactionBase):
    pass

class TransactionUpdate(BaseModel):
    account_id: Optional[str] = None
    date: Optional[CalendarDate] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None

class Transaction(TransactionBase):
    id: str
    is_debit: bool
    source: str = "manual"  # Transaction source: manual, import
    file_name: Optional[str] = None  # Source CSV for imported rows
    load_date_time: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TransactionBulkUpdate(BaseModel):
    ids: List[str]
    category: str

class TransactionBulkDelete(BaseModel):
    ids: List[str]

class DuplicateGroup(BaseModel):
    key: str
    transaction_ids: List[str]

class CategoryBase(BaseModel):
    name: str
    icon: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    icon: Optional[str] = None

class Category(CategoryBase):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BudgetCategoryLimit(BaseModel):
    category_id: str
    limit: float = Field(ge=0)

class BudgetBase(BaseModel):
    name: str
    is_default: bool = False
    time_period: BudgetPeriod = BudgetPeriod.MONTHLY
    category_limits: List[BudgetCategoryLimit] = []
    total_budget_amount: Optional[float] = None  # Defaults to the sum of limits

class BudgetCreate(BudgetBase):
    pass

class Budget(BudgetBase):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# --- LLM output schemas ---

class ColumnMapping(BaseModel):
    csv_header: str = Field(alias="csvHeader")
    transaction_field: str = Field(default="", alias="transactionField")

    class Config:
        populate_by_name = True

class ColumnMappingResult(BaseModel):
    column_mappings: List[ColumnMapping] = Field(alias="columnMappings")

    class Config:
        populate_by_name = True

class CategorySuggestion(BaseModel):
    suggested_category: str = Field(alias="suggestedCategory")
    confidence: float = Field(ge=0, le=1)

    class Config:
        populate_by_name = True

# --- Import ---

class ImportPreview(BaseModel):
    file_name: str
    headers: List[str]
    preview_rows: List[Dict[str, str]]
    column_map: Dict[str, str]
    mapping_error: Optional[str] = None

class ReconciliationSummary(BaseModel):
    transactions_updated: int = 0
    categories_created: int = 0
    decisions: List[str] = []

class ImportSummary(BaseModel):
    file_name: str
    imported_count: int
    error_count: int
    errors: List[str]
    error_summary: List[str]  # First N errors plus a "more" line
    warnings: List[str] = []
    reconciliation: Optional[ReconciliationSummary] = None

# --- Dashboard ---

class DateWindow(BaseModel):
    start_date: Optional[CalendarDate] = None
    end_date: Optional[CalendarDate] = None

class CategorySpend(BaseModel):
    name: str
    value: float

class DashboardSummary(BaseModel):
    period: PeriodOption
    window: DateWindow
    previous_window: Optional[DateWindow] = None
    total_balance: float
    period_income: float
    period_spending: float
    previous_period_income: Optional[float] = None
    previous_period_spending: Optional[float] = None
    budget_id: Optional[str] = None
    budget_total: Optional[float] = None
    budget_spent: Optional[float] = None
    budget_progress: Optional[float] = None
    is_over_budget: bool = False
    spending_by_category: Dict[str, float] = {}
    top_spending_categories: List[CategorySpend] = []
    recent_transactions: List[Transaction] = []
