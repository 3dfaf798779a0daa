"""
Cost Aggregation Logic
======================

Turns a markup block's selected cost records into percentage buckets.
Pure calculations over already loaded data - no database access.

HOW IT WORKS:
1. Keep only records that are active AND selected for the block
2. Fixed expenses + indirect payroll -> spend as % of average revenue
3. Sales charges -> taxes / payment fees / commissions / other buckets
4. Flat per-sale charges -> value in currency
"""

from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from app.config import DEFAULT_MONTHLY_HOURS
from app.pricing_intelligence.models.markup_schemas import (
    AggregatedFigures,
    FixedExpense,
    PayrollEntry,
    SalesCharge,
)

SelectionState = Dict[str, bool]

TAXES = "taxes"
PAYMENT_FEES = "payment_fees"
COMMISSIONS = "commissions"
OTHER = "other"

# Exact charge names; anything else is bucketed as "other"
CHARGE_CATEGORIES: Dict[str, frozenset] = {
    TAXES: frozenset({"ICMS", "ISS", "PIS/COFINS", "IRPJ/CSLL", "IPI"}),
    PAYMENT_FEES: frozenset({
        "Cartão de débito",
        "Cartão de crédito",
        "Boleto bancário",
        "PIX",
        "Gateway de pagamento",
    }),
    COMMISSIONS: frozenset({
        "Marketing",
        "Aplicativo de delivery",
        "Plataforma SaaS",
        "Colaboradores (comissão)",
    }),
}

_Record = TypeVar("_Record", FixedExpense, PayrollEntry, SalesCharge)


def classify_sales_charge(name: str) -> str:
    """Return the bucket for a sales charge name (exact match)."""
    for category, names in CHARGE_CATEGORIES.items():
        if name in names:
            return category
    return OTHER


def select_records(records: Optional[Iterable[_Record]], selection: SelectionState) -> List[_Record]:
    """Records that are active and marked as included; missing ids are excluded."""
    return [r for r in (records or []) if r.active and selection.get(r.id, False)]


def payroll_monthly_cost(entry: PayrollEntry, default_hours: float = DEFAULT_MONTHLY_HOURS) -> float:
    """
    Monthly cost of a payroll entry

    FORMULA:
    - hourly: cost_per_hour * (total_monthly_hours or default_hours)
    - salaried: base_salary
    """
    if entry.cost_per_hour > 0:
        return entry.cost_per_hour * (entry.total_monthly_hours or default_hours)
    return entry.base_salary


def spend_on_revenue_percent(total_spend: float, average_revenue: float) -> float:
    if average_revenue > 0 and total_spend > 0:
        return round(total_spend / average_revenue * 100.0, 2)
    return 0.0


def aggregate_costs(
    selection: SelectionState,
    fixed_expenses: Optional[Sequence[FixedExpense]],
    payroll_entries: Optional[Sequence[PayrollEntry]],
    sales_charges: Optional[Sequence[SalesCharge]],
    average_revenue: float,
) -> AggregatedFigures:
    """
    Aggregate the selected cost records of one markup block

    FORMULAS:
    - spend_on_revenue = (fixed + payroll) / average_revenue * 100, rounded
      to 2 decimals; 0 when either side is not positive
    - each charge bucket = sum of value_percentual of its selected charges
    - value_in_currency = sum of value_fixed of the selected charges

    RETURNS:
    AggregatedFigures; only spend_on_revenue is rounded
    """
    selection = selection or {}

    total_fixed = sum(float(e.value) for e in select_records(fixed_expenses, selection))
    total_payroll = sum(payroll_monthly_cost(p) for p in select_records(payroll_entries, selection))

    buckets = {TAXES: 0.0, PAYMENT_FEES: 0.0, COMMISSIONS: 0.0, OTHER: 0.0}
    value_in_currency = 0.0
    for charge in select_records(sales_charges, selection):
        value_in_currency += float(charge.value_fixed or 0)
        buckets[classify_sales_charge(charge.name)] += float(charge.value_percentual or 0)

    return AggregatedFigures(
        spend_on_revenue=spend_on_revenue_percent(total_fixed + total_payroll, average_revenue),
        taxes=buckets[TAXES],
        payment_fees=buckets[PAYMENT_FEES],
        commissions=buckets[COMMISSIONS],
        other=buckets[OTHER],
        value_in_currency=value_in_currency,
    )
