"""
Test trailing revenue average and period filters
"""
from datetime import date, datetime

import pytest
from pydantic import ValidationError

from app.pricing_intelligence.logic.revenue_average import (
    filter_by_period,
    months_ago,
    sort_revenue_history,
    trailing_average,
)
from app.pricing_intelligence.models.markup_schemas import PeriodFilter, RevenueEntry

NOW = datetime(2024, 6, 15, 10, 30)


@pytest.fixture
def history():
    return [
        RevenueEntry(id="a", month=date(2024, 6, 1), amount=12000),
        RevenueEntry(id="b", month=date(2024, 1, 1), amount=9000),
        RevenueEntry(id="c", month=date(2023, 7, 1), amount=6000),
        RevenueEntry(id="d", month=date(2023, 6, 1), amount=3000),
        RevenueEntry(id="e", month=date(2021, 1, 1), amount=1000),
    ]


class TestMonthsAgo:
    def test_simple(self):
        assert months_ago(date(2024, 6, 15), 12) == date(2023, 6, 15)

    def test_crosses_year(self):
        assert months_ago(date(2024, 2, 10), 3) == date(2023, 11, 10)

    def test_clamps_to_month_end(self):
        assert months_ago(date(2024, 3, 31), 1) == date(2024, 2, 29)


class TestFilterByPeriod:
    def test_last_n_months_uses_calendar_cutoff(self, history):
        """Cutoff is the same day N months back; June 2023 falls before it"""
        selected = filter_by_period(history, PeriodFilter(kind="last_n_months", months=12), NOW)
        assert [e.id for e in selected] == ["a", "b", "c"]

    def test_all(self, history):
        assert len(filter_by_period(history, PeriodFilter(kind="all"), NOW)) == 5

    def test_current_month(self, history):
        selected = filter_by_period(history, PeriodFilter(kind="current_month"), NOW)
        assert [e.id for e in selected] == ["a"]

    def test_custom_range_is_inclusive(self, history):
        period = PeriodFilter(kind="custom_range", start=date(2023, 6, 1), end=date(2024, 1, 1))
        assert [e.id for e in filter_by_period(history, period, NOW)] == ["b", "c", "d"]


class TestTrailingAverage:
    def test_average_of_selected(self, history):
        average = trailing_average(history, PeriodFilter(kind="last_n_months", months=12), NOW)
        assert average == 9000

    def test_no_entries_is_zero(self):
        assert trailing_average([], PeriodFilter(kind="all"), NOW) == 0.0

    def test_nothing_in_period_is_zero(self, history):
        period = PeriodFilter(kind="custom_range", start=date(2022, 1, 1), end=date(2022, 12, 1))
        assert trailing_average(history, period, NOW) == 0.0


class TestSortRevenueHistory:
    def test_most_recent_first(self, history):
        shuffled = [history[3], history[0], history[4], history[2], history[1]]
        assert [e.id for e in sort_revenue_history(shuffled)] == ["a", "b", "c", "d", "e"]

    def test_month_is_truncated_to_first_day(self):
        assert RevenueEntry(id="x", month=date(2024, 5, 20), amount=1).month == date(2024, 5, 1)


class TestPeriodFilterParse:
    @pytest.mark.parametrize("value,kind,months", [
        (None, "last_n_months", 12),
        ("12", "last_n_months", 12),
        ("6", "last_n_months", 6),
        (3, "last_n_months", 3),
        ("todos", "all", None),
        ("all", "all", None),
        ("mes_atual", "current_month", None),
        ({"kind": "last_n_months"}, "last_n_months", 12),
    ])
    def test_legacy_and_structured_values(self, value, kind, months):
        period = PeriodFilter.parse(value)
        assert period.kind == kind
        assert period.months == months

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            PeriodFilter.parse("forever")

    def test_custom_range_requires_ordered_bounds(self):
        with pytest.raises(ValidationError):
            PeriodFilter(kind="custom_range", start=date(2024, 2, 1), end=date(2024, 1, 1))
        with pytest.raises(ValidationError):
            PeriodFilter(kind="custom_range", start=date(2024, 2, 1))
