"""
Dashboard statistics

Balance and category totals are computed from transactions in a date range;
history series and all-time totals come from the month/year rollups.
"""
import calendar
import logging
from collections import defaultdict
from datetime import datetime, date
from typing import Dict, Any, List, Optional, Union

from app.database.db_service import DatabaseService
from app.services.billing_period import get_billing_period, get_billing_period_label, get_calendar_period
from app.services.category_service import category_lookup, UNKNOWN_CATEGORY_NAME, UNKNOWN_CATEGORY_ICON
from app.services.transaction_classifier import INCOME, EXPENSE
from app.services.user_settings_service import get_or_create_settings

logger = logging.getLogger(__name__)

TIMEFRAME_MONTH = "month"
TIMEFRAME_YEAR = "year"


def _as_day(value: Optional[Union[date, datetime]]) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


def _money(value: float) -> float:
    return round(value or 0.0, 2)


def summarize(income: float, expense: float) -> Dict[str, float]:
    savings = income - expense
    savings_rate = (savings / income) * 100 if income > 0 else 0.0
    return {
        "income": _money(income),
        "expense": _money(expense),
        "savings": _money(savings),
        "savings_rate": _money(savings_rate),
    }


def get_transactions_in_range(db: DatabaseService, user_id: str, start=None, end=None) -> List[Dict[str, Any]]:
    return db.find_range("transactions", {"user_id": user_id}, "date", _as_day(start), _as_day(end))


def get_balance_stats(db: DatabaseService, user_id: str, start=None, end=None) -> Dict[str, float]:
    """Income, expense, savings and savings rate (% of income) for [start, end]."""
    totals = {INCOME: 0.0, EXPENSE: 0.0}
    for transaction in get_transactions_in_range(db, user_id, start, end):
        totals[transaction["type"]] += transaction["amount"]
    return summarize(totals[INCOME], totals[EXPENSE])


def get_category_stats(db: DatabaseService, user_id: str, start=None, end=None) -> List[Dict[str, Any]]:
    """Totals grouped by (type, category), largest first."""
    sums: Dict[tuple, float] = defaultdict(float)
    for transaction in get_transactions_in_range(db, user_id, start, end):
        sums[(transaction["type"], transaction["category_id"])] += transaction["amount"]

    categories = category_lookup(db, user_id)
    stats = []
    for (kind, category_id), amount in sums.items():
        category = categories.get(category_id)
        stats.append({
            "type": kind,
            "category": category["name"] if category else UNKNOWN_CATEGORY_NAME,
            "category_icon": (category["icon"] if category else "") or UNKNOWN_CATEGORY_ICON,
            "amount": _money(amount),
        })

    stats.sort(key=lambda stat: stat["amount"], reverse=True)
    return stats


def get_history_periods(db: DatabaseService, user_id: str) -> List[int]:
    """Years that have history, oldest first; the current year when there is none."""
    years = sorted({row["year"] for row in db.find("year_history", {"user_id": user_id})})
    return years or [datetime.now().year]


def get_history_data(db: DatabaseService, user_id: str, timeframe: str, year: int,
                     month: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Zero-filled income/expense series.

    Args:
        timeframe: "month" for one point per day of ``month``, "year" for
            one point per month of ``year``
        year: Calendar year
        month: 1-based month, required for the month timeframe
    """
    if timeframe == TIMEFRAME_MONTH:
        if month is None or not 1 <= month <= 12:
            raise ValueError("month must be between 1 and 12 for the month timeframe")
        rows = db.find("month_history", {"user_id": user_id, "year": year, "month": month})
        by_day = {row["day"]: row for row in rows}
        days_in_month = calendar.monthrange(year, month)[1]
        return [
            {
                "year": year,
                "month": month,
                "day": day,
                "income": _money(by_day.get(day, {}).get("income", 0.0)),
                "expense": _money(by_day.get(day, {}).get("expense", 0.0)),
            }
            for day in range(1, days_in_month + 1)
        ]

    if timeframe == TIMEFRAME_YEAR:
        rows = db.find("year_history", {"user_id": user_id, "year": year})
        by_month = {row["month"]: row for row in rows}
        return [
            {
                "year": year,
                "month": month_number,
                "income": _money(by_month.get(month_number, {}).get("income", 0.0)),
                "expense": _money(by_month.get(month_number, {}).get("expense", 0.0)),
            }
            for month_number in range(1, 13)
        ]

    raise ValueError(f"Unknown timeframe: {timeframe}")


def get_all_time_totals(db: DatabaseService, user_id: str) -> Dict[str, float]:
    income = expense = 0.0
    for row in db.find("year_history", {"user_id": user_id}):
        income += row["income"] or 0.0
        expense += row["expense"] or 0.0
    return {"income": income, "expense": expense}


def resolve_period(user_settings: Dict[str, Any], reference: Optional[datetime] = None) -> Dict[str, Any]:
    """Current period for the user's preferred view."""
    reference = reference or datetime.now()
    if user_settings["preferred_view"] == "billing":
        cycle_day = user_settings["billing_cycle_day"]
        start, end = get_billing_period(cycle_day, reference)
        label = get_billing_period_label(cycle_day, reference)
    else:
        start, end = get_calendar_period(reference)
        label = start.strftime("%B %Y")
    return {"start": start, "end": end, "label": label}


def get_overview(db: DatabaseService, user_id: str, reference: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Dashboard overview for the period containing ``reference``.

    The spending budget is income minus the savings goal; the remaining
    budget is what can still be spent this period without missing the goal.
    """
    user_settings = get_or_create_settings(db, user_id)
    period = resolve_period(user_settings, reference)
    balance = get_balance_stats(db, user_id, period["start"], period["end"])

    totals = get_all_time_totals(db, user_id)
    initial_balance = user_settings["initial_balance"] or 0.0
    current_balance = initial_balance + totals["income"] - totals["expense"]

    savings_goal = user_settings["savings_goal"] or 0.0
    spending_budget = balance["income"] - savings_goal if savings_goal > 0 else balance["income"]
    budget_used_percent = (balance["expense"] / spending_budget) * 100 if spending_budget > 0 else 0.0

    return {
        "period": period,
        "view": user_settings["preferred_view"],
        "balance": balance,
        "initial_balance": _money(initial_balance),
        "current_balance": _money(current_balance),
        "savings_goal": _money(savings_goal),
        "spending_budget": _money(spending_budget),
        "remaining_budget": _money(spending_budget - balance["expense"]),
        "budget_used_percent": _money(budget_used_percent),
        "on_track": balance["savings"] >= savings_goal,
    }
