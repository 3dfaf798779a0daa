"""
Markup Pricing Logic
====================

Ideal markup and suggested sale price for a recipe.
Pure mathematical calculations - no database access.

HOW IT WORKS:
1. Ideal markup = 1 / (1 - (five percentages + desired profit) / 100)
2. Cost basis = total recipe cost, or cost per unit when the yield is known
   (sub-recipe blocks always use the total cost)
3. With a flat per-sale charge the price is (cost basis + charge) / divisor,
   otherwise cost basis * ideal markup
4. When the percentages reach 100% the price falls back to doubling the base
"""

from typing import Optional

from app.pricing_intelligence.models.markup_schemas import (
    AggregatedFigures,
    MarkupBlock,
    RecipeCostBreakdown,
    SimulationResult,
)

INFINITE_MARKUP_DISPLAY = "∞"
PERCENT_PRECISION = 6


def total_percentage(figures: AggregatedFigures, desired_profit: float) -> float:
    # Rounded so decimal inputs adding up to 100 compare as exactly 100
    return round(figures.percent_total + desired_profit, PERCENT_PRECISION)


def markup_divisor(figures: AggregatedFigures, desired_profit: float) -> float:
    return 1.0 - total_percentage(figures, desired_profit) / 100.0


def ideal_markup(figures: AggregatedFigures, desired_profit: float) -> Optional[float]:
    """
    Ideal markup ratio for a block

    RETURNS:
    The ratio, or None when the percentages sum to 100 or more
    """
    if total_percentage(figures, desired_profit) >= 100:
        return None
    return 1.0 / markup_divisor(figures, desired_profit)


def format_markup(markup: Optional[float], decimals: int = 4) -> str:
    if markup is None:
        return INFINITE_MARKUP_DISPLAY
    return f"{markup:.{decimals}f}"


def recipe_total_cost(breakdown: RecipeCostBreakdown) -> float:
    return (
        (breakdown.ingredients or 0)
        + (breakdown.packaging or 0)
        + (breakdown.labor or 0)
        + (breakdown.sub_recipes or 0)
    )


def cost_basis(breakdown: RecipeCostBreakdown, block: MarkupBlock) -> float:
    total = recipe_total_cost(breakdown)
    if block.is_sub_recipe:
        return total
    if breakdown.yield_quantity and breakdown.yield_quantity > 0:
        return total / breakdown.yield_quantity
    return total


def suggested_price(basis: float, block: MarkupBlock) -> float:
    figures = block.figures()
    if figures.value_in_currency > 0:
        base = basis + figures.value_in_currency
        divisor = markup_divisor(figures, block.desired_profit)
        return base / divisor if divisor > 0 else base * 2

    markup = ideal_markup(figures, block.desired_profit)
    if markup is None:
        return basis * 2
    return basis * markup


def simulate_pricing(breakdown: RecipeCostBreakdown, block: MarkupBlock) -> SimulationResult:
    """
    Simulate the sale price of a recipe under a markup block

    FORMULAS:
    - gross_profit = price - cost_basis
    - net_profit = price - (cost_basis + value_in_currency)
                   - sum(price * each percentage / 100)

    RETURNS:
    SimulationResult, always finite
    """
    total = recipe_total_cost(breakdown)
    basis = cost_basis(breakdown, block)
    price = suggested_price(basis, block)
    figures = block.figures()

    percent_charges = sum(
        price * pct / 100.0
        for pct in (
            figures.spend_on_revenue,
            figures.taxes,
            figures.payment_fees,
            figures.commissions,
            figures.other,
        )
    )
    markup = ideal_markup(figures, block.desired_profit)

    return SimulationResult(
        total_cost=round(total, 2),
        cost_basis=round(basis, 2),
        suggested_price=round(price, 2),
        gross_profit=round(price - basis, 2),
        net_profit=round(price - (basis + figures.value_in_currency) - percent_charges, 2),
        ideal_markup=round(markup, 4) if markup is not None else None,
        ideal_markup_display=format_markup(markup),
    )
