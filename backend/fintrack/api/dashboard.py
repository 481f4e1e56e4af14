from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from fintrack.database.postgres_db import get_db as get_session
from fintrack.database.db_service import get_db_service
from fintrack.models.schemas import DashboardSummary, DateWindow, PeriodOption, Transaction
from fintrack.services.dashboard_metrics import compute_dashboard_metrics
from fintrack.services.periods import list_periods

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _window(window) -> Optional[DateWindow]:
    if window is None:
        return None
    start_date, end_date = window
    return DateWindow(start_date=start_date, end_date=end_date)


@router.get("/periods")
async def get_periods() -> List[Dict[str, str]]:
    return list_periods()


@router.get("/summary", response_model=DashboardSummary)
async def get_dashboard_summary(
    period: PeriodOption = Query(PeriodOption.CURRENT_MONTH),
    budget_id: Optional[str] = Query(None),
    session: Session = Depends(get_session)
):
    db = get_db_service(session)

    budgets = db.find("budgets")
    if budget_id and not any(b["id"] == budget_id for b in budgets):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Budget not found"
        )

    metrics = compute_dashboard_metrics(
        transactions=db.find("transactions"),
        accounts=db.find("accounts"),
        budgets=budgets,
        categories=db.find("categories"),
        selected_budget_id=budget_id,
        period=period.value,
    )

    return DashboardSummary(
        period=period,
        window=_window(metrics.window),
        previous_window=_window(metrics.previous_window),
        total_balance=metrics.total_balance,
        period_income=metrics.period_income,
        period_spending=metrics.period_spending,
        previous_period_income=metrics.previous_period_income,
        previous_period_spending=metrics.previous_period_spending,
        budget_id=metrics.budget_id,
        budget_total=metrics.budget_total,
        budget_spent=metrics.budget_spent,
        budget_progress=metrics.budget_progress,
        is_over_budget=metrics.is_over_budget,
        spending_by_category=metrics.spending_by_category,
        top_spending_categories=metrics.top_spending_categories,
        recent_transactions=[Transaction(**t) for t in metrics.recent_transactions],
    )
