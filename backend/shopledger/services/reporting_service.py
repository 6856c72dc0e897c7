# Overview: Service-layer operations for reporting; read-only aggregates over the ledger.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func

from ..errors import ValidationError
from ..extensions import db
from ..models import Transaction
from ..models.ledger import TYPE_EXPENSE, TYPE_SALE
from ..time_utils import start_of_day, subtract_months, utcnow


FILTER_TODAY = "today"
FILTER_WEEK = "week"
FILTER_MONTH = "month"
FILTER_ALL = "all"

ALL_TIME_START = datetime(2000, 1, 1)

METRIC_COUNT = "count"
METRIC_AMOUNT = "amount"
VALID_METRICS = {METRIC_COUNT, METRIC_AMOUNT}

DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def window_start(filter_name: str | None, now: datetime | None = None) -> datetime:
    """
    Lower bound (inclusive) of a dashboard time window.

    today -> 00:00 today, week -> 00:00 seven days ago,
    month -> 00:00 on the same day last month. Anything else, "all"
    included, is all time (2000-01-01).
    """
    key = (filter_name or "").strip().lower()

    today = start_of_day(now or utcnow())
    if key == FILTER_TODAY:
        return today
    if key == FILTER_WEEK:
        return today - timedelta(days=7)
    if key == FILTER_MONTH:
        return subtract_months(today, 1)
    return ALL_TIME_START


def stats_summary(filter_name: str = FILTER_WEEK, now: datetime | None = None) -> dict:
    start = window_start(filter_name, now)

    row = db.session.query(
        func.coalesce(func.sum(case((Transaction.type == TYPE_SALE, Transaction.amount_cents), else_=0)), 0)
        .label("revenue"),
        func.coalesce(func.sum(case((Transaction.type == TYPE_EXPENSE, Transaction.amount_cents), else_=0)), 0)
        .label("expenses"),
        func.coalesce(func.sum(case((Transaction.type == TYPE_SALE, 1), else_=0)), 0)
        .label("sales_count"),
    ).filter(Transaction.created_at >= start).one()

    revenue = int(row.revenue or 0)
    expenses = int(row.expenses or 0)
    return {
        "filter": filter_name.strip().lower(),
        "total_revenue_cents": revenue,
        "total_expenses_cents": expenses,
        "total_sales_count": int(row.sales_count or 0),
        "net_profit_cents": revenue - expenses,
    }


def weekly_sales(now: datetime | None = None) -> list[dict]:
    """
    Sales totals for the last seven calendar days, oldest first, today last.
    Days without sales are present with 0.
    """
    today = start_of_day(now or utcnow())
    first_day = today - timedelta(days=6)

    day_expr = func.date(Transaction.created_at)
    rows = db.session.query(
        day_expr.label("day"),
        func.coalesce(func.sum(Transaction.amount_cents), 0).label("sales_cents"),
    ).filter(
        Transaction.type == TYPE_SALE,
        Transaction.created_at >= first_day,
        Transaction.created_at < today + timedelta(days=1),
    ).group_by(day_expr).all()

    # SQLite returns 'YYYY-MM-DD' strings, other backends return date objects
    totals = {str(row.day)[:10]: int(row.sales_cents or 0) for row in rows}

    series = []
    for offset in range(7):
        day = first_day + timedelta(days=offset)
        key = day.date().isoformat()
        series.append({
            "date": key,
            "name": DAY_NAMES[day.weekday()],
            "sales_cents": totals.get(key, 0),
        })
    return series


def category_distribution(
    filter_name: str = FILTER_MONTH,
    now: datetime | None = None,
    metric: str = METRIC_COUNT,
) -> list[dict]:
    """Sales grouped by the category captured at sale time (deleted products still count)."""
    start = window_start(filter_name, now)

    metric_key = (metric or METRIC_COUNT).strip().lower()
    if metric_key not in VALID_METRICS:
        raise ValidationError(f"metric must be one of {sorted(VALID_METRICS)}")

    value_expr = (
        func.count(Transaction.id) if metric_key == METRIC_COUNT
        else func.coalesce(func.sum(Transaction.amount_cents), 0)
    )

    rows = db.session.query(
        Transaction.snapshot_category.label("name"),
        value_expr.label("value"),
    ).filter(
        Transaction.type == TYPE_SALE,
        Transaction.created_at >= start,
    ).group_by(Transaction.snapshot_category).order_by(Transaction.snapshot_category.asc()).all()

    return [{"name": row.name, "value": int(row.value or 0)} for row in rows]
