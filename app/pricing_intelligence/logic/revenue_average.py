"""
Trailing revenue average over a monthly revenue history.
"""

import calendar
from datetime import date, datetime
from typing import Iterable, List, Optional

from app.pricing_intelligence.models.markup_schemas import PeriodFilter, RevenueEntry


def months_ago(today: date, months: int) -> date:
    """Same day `months` calendar months earlier, clamped to the month's last day."""
    total = today.year * 12 + (today.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(today.day, last_day))


def sort_revenue_history(entries: Iterable[RevenueEntry]) -> List[RevenueEntry]:
    """Most recent month first; entries of the same month newest id first."""
    return sorted(entries, key=lambda e: (e.month, e.id), reverse=True)


def filter_by_period(
    entries: Iterable[RevenueEntry],
    period: PeriodFilter,
    now: Optional[datetime] = None,
) -> List[RevenueEntry]:
    today = (now or datetime.now()).date()
    entries = list(entries)

    if period.kind == "all":
        return entries
    if period.kind == "last_n_months":
        limit = months_ago(today, period.months or 12)
        return [e for e in entries if e.month >= limit]
    if period.kind == "current_month":
        first = today.replace(day=1)
        last = today.replace(day=calendar.monthrange(today.year, today.month)[1])
        return [e for e in entries if first <= e.month <= last]
    # custom_range
    return [e for e in entries if period.start <= e.month <= period.end]


def trailing_average(
    entries: Iterable[RevenueEntry],
    period: PeriodFilter,
    now: Optional[datetime] = None,
) -> float:
    """Average monthly revenue within the period, 0 when no entry matches."""
    selected = filter_by_period(entries, period, now)
    if not selected:
        return 0.0
    return sum(e.amount for e in selected) / len(selected)
