"""
Dashboard metrics.

Pure read-side computation over already loaded accounts, transactions,
budgets and categories. Nothing here touches the database.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from fintrack.services.periods import DateRange, in_window, previous_window, resolve_period

TOP_CATEGORY_COUNT = 5
RECENT_TRANSACTION_COUNT = 5
UNKNOWN_CATEGORY = "Unknown Category"


@dataclass
class DashboardMetrics:
    period: str
    window: DateRange
    previous_window: Optional[DateRange]
    total_balance: float = 0.0
    period_income: float = 0.0
    period_spending: float = 0.0
    previous_period_income: Optional[float] = None
    previous_period_spending: Optional[float] = None
    budget_id: Optional[str] = None
    budget_total: Optional[float] = None
    budget_spent: Optional[float] = None
    budget_progress: Optional[float] = None
    is_over_budget: bool = False
    spending_by_category: Dict[str, float] = field(default_factory=dict)
    top_spending_categories: List[Dict[str, Any]] = field(default_factory=list)
    recent_transactions: List[Dict[str, Any]] = field(default_factory=list)


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _income(transactions: List[Dict[str, Any]]) -> float:
    return sum(t["amount"] for t in transactions if t["amount"] > 0)


def _spending(transactions: List[Dict[str, Any]]) -> float:
    return sum(abs(t["amount"]) for t in transactions if t["amount"] < 0)


def select_budget(budgets: List[Dict[str, Any]], budget_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Explicit id first, then the default budget, then the first budget."""
    if budget_id:
        return next((b for b in budgets if b["id"] == budget_id), None)
    default = next((b for b in budgets if b.get("is_default")), None)
    if default:
        return default
    return budgets[0] if budgets else None


def budget_utilization(spent: float, total: float):
    """
    Returns:
        (progress percentage, over-budget flag); a zero total is fully used by any spend
    """
    if total > 0:
        return (spent / total) * 100, spent > total
    return (100.0 if spent > 0 else 0.0), spent > 0


def compute_dashboard_metrics(
    transactions: List[Dict[str, Any]],
    accounts: List[Dict[str, Any]],
    budgets: List[Dict[str, Any]],
    categories: List[Dict[str, Any]],
    selected_budget_id: Optional[str] = None,
    period: str = "current_month",
    today: Optional[date] = None,
) -> DashboardMetrics:
    """
    Compute the dashboard summary for one period and budget.

    Args:
        transactions: Transaction dicts (date may be a date or an ISO string)
        accounts: Account dicts; balances are summed as stored
        budgets: Budget dicts with category_limits
        categories: Category dicts, used to turn budget category ids into names
        selected_budget_id: Budget to report on; falls back to the default budget
        period: Named period, see fintrack.services.periods
        today: Reference date, defaults to today
    """
    today = today or date.today()
    window = resolve_period(period, today)
    earlier = previous_window(period, today)

    in_period = [t for t in transactions if in_window(_as_date(t["date"]), window)]

    metrics = DashboardMetrics(period=period, window=window, previous_window=earlier)
    metrics.total_balance = sum(a.get("balance") or 0.0 for a in accounts)
    metrics.period_income = _income(in_period)
    metrics.period_spending = _spending(in_period)

    if earlier is not None:
        in_previous = [t for t in transactions if in_window(_as_date(t["date"]), earlier)]
        metrics.previous_period_income = _income(in_previous)
        metrics.previous_period_spending = _spending(in_previous)

    budget = select_budget(budgets, selected_budget_id)
    if budget is not None:
        limits = budget.get("category_limits") or []
        names_by_id = {c["id"]: c["name"] for c in categories}

        metrics.budget_id = budget["id"]
        metrics.budget_total = budget.get("total_budget_amount") or sum(l["limit"] for l in limits)

        spent_total = 0.0
        for limit in limits:
            name = names_by_id.get(limit["category_id"], UNKNOWN_CATEGORY)
            spent = sum(
                abs(t["amount"]) for t in in_period
                if t["category"] == name and t["amount"] < 0
            )
            spent_total += spent
            metrics.spending_by_category[name] = metrics.spending_by_category.get(name, 0.0) + spent

        metrics.budget_spent = spent_total
        metrics.budget_progress, metrics.is_over_budget = budget_utilization(spent_total, metrics.budget_total)

        ranked = sorted(
            ((name, value) for name, value in metrics.spending_by_category.items() if value > 0),
            key=lambda item: item[1],
            reverse=True,
        )
        metrics.top_spending_categories = [
            {"name": name, "value": value} for name, value in ranked[:TOP_CATEGORY_COUNT]
        ]

    metrics.recent_transactions = sorted(
        transactions,
        key=lambda t: (_as_date(t["date"]), t.get("created_at") or ""),
        reverse=True,
    )[:RECENT_TRANSACTION_COUNT]

    return metrics
