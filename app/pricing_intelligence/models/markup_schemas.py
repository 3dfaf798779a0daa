"""
Markup Engine Schemas
=====================

Schemas for cost records, revenue history, markup blocks and the
pricing simulator.

Percentages are expressed on a 0-100 scale (10 means 10%).
Currency amounts are plain floats in the tenant's currency.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# COST RECORDS
# ============================================================================

class FixedExpense(BaseModel):
    """Monthly fixed expense (rent, utilities, software...)"""
    id: str
    name: str
    value: float = Field(0, description="Monthly amount")
    active: bool = True


class PayrollEntry(BaseModel):
    """Payroll entry; only indirect labor is used for markup aggregation"""
    id: str
    name: str
    base_salary: float = Field(0, description="Monthly base salary")
    cost_per_hour: float = Field(0, description="Loaded cost per hour, 0 when paid by salary")
    total_monthly_hours: Optional[float] = Field(None, description="Hours worked per month")
    labor_type: Literal["indirect", "direct"] = "indirect"
    active: bool = True


class SalesCharge(BaseModel):
    """Charge levied on each sale (tax, payment fee, commission...)"""
    id: str
    name: str
    value_percentual: Optional[float] = Field(None, description="Percentage of the sale price")
    value_fixed: Optional[float] = Field(None, description="Flat amount per sale")
    active: bool = True


class FixedExpenseInput(BaseModel):
    name: str = Field(..., min_length=1)
    value: float = Field(0, ge=0)
    active: bool = True


class PayrollEntryInput(BaseModel):
    name: str = Field(..., min_length=1)
    base_salary: float = Field(0, ge=0)
    cost_per_hour: float = Field(0, ge=0)
    total_monthly_hours: Optional[float] = Field(None, ge=0)
    labor_type: Literal["indirect", "direct"] = "indirect"
    active: bool = True


class SalesChargeInput(BaseModel):
    name: str = Field(..., min_length=1)
    value_percentual: Optional[float] = Field(None, ge=0)
    value_fixed: Optional[float] = Field(None, ge=0)
    active: bool = True


class CostRecordUpdate(BaseModel):
    """Partial update; only fields that are set are written"""
    name: Optional[str] = Field(None, min_length=1)
    value: Optional[float] = Field(None, ge=0)
    base_salary: Optional[float] = Field(None, ge=0)
    cost_per_hour: Optional[float] = Field(None, ge=0)
    total_monthly_hours: Optional[float] = Field(None, ge=0)
    labor_type: Optional[Literal["indirect", "direct"]] = None
    value_percentual: Optional[float] = Field(None, ge=0)
    value_fixed: Optional[float] = Field(None, ge=0)
    active: Optional[bool] = None


# ============================================================================
# REVENUE
# ============================================================================

class RevenueEntry(BaseModel):
    id: str
    month: date = Field(..., description="First day of the month")
    amount: float = 0

    @field_validator("month", mode="after")
    @classmethod
    def _truncate_to_month(cls, value: date) -> date:
        return value.replace(day=1)


class RevenueEntryInput(BaseModel):
    month: date
    amount: float = Field(..., ge=0)


class PeriodFilter(BaseModel):
    """
    Averaging period for the trailing revenue average.

    kind:
    - last_n_months: entries from `months` months ago up to now
    - all: every entry
    - custom_range: entries with start <= month <= end
    - current_month: entries of the current calendar month
    """
    kind: Literal["last_n_months", "all", "custom_range", "current_month"] = "last_n_months"
    months: Optional[int] = Field(None, ge=1)
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def _check_fields(self) -> "PeriodFilter":
        if self.kind == "last_n_months" and self.months is None:
            self.months = 12
        if self.kind == "custom_range":
            if self.start is None or self.end is None:
                raise ValueError("custom_range requires start and end")
            if self.start > self.end:
                raise ValueError("custom_range start must not be after end")
        return self

    @classmethod
    def parse(cls, value: Any, default_months: int = 12) -> "PeriodFilter":
        """Accept a PeriodFilter, a dict, or a legacy string like '12' / 'todos'."""
        if isinstance(value, PeriodFilter):
            return value
        if value is None or value == "":
            return cls(kind="last_n_months", months=default_months)
        if isinstance(value, dict):
            return cls.model_validate(value)
        if isinstance(value, int):
            return cls(kind="last_n_months", months=value)
        text = str(value).strip().lower()
        if text in ("todos", "all"):
            return cls(kind="all")
        if text in ("mes_atual", "current_month"):
            return cls(kind="current_month")
        if text.isdigit() and int(text) > 0:
            return cls(kind="last_n_months", months=int(text))
        raise ValueError(f"Unknown period: {value!r}")


# ============================================================================
# MARKUP BLOCKS
# ============================================================================

class AggregatedFigures(BaseModel):
    """The five percentage buckets plus the flat per-sale amount"""
    spend_on_revenue: float = 0
    taxes: float = 0
    payment_fees: float = 0
    commissions: float = 0
    other: float = 0
    value_in_currency: float = 0

    @property
    def percent_total(self) -> float:
        return self.spend_on_revenue + self.taxes + self.payment_fees + self.commissions + self.other

    @property
    def charges_on_sales(self) -> float:
        return self.taxes + self.payment_fees + self.commissions + self.other


class MarkupBlock(AggregatedFigures):
    """A named pricing scenario"""
    id: str
    name: str
    kind: Literal["normal", "sub_recipe"] = "normal"
    desired_profit: float = 0
    period: PeriodFilter = Field(default_factory=PeriodFilter)

    @field_validator("period", mode="before")
    @classmethod
    def _coerce_period(cls, value: Any) -> Any:
        return PeriodFilter.parse(value)

    @property
    def is_sub_recipe(self) -> bool:
        return self.kind == "sub_recipe"

    def figures(self) -> AggregatedFigures:
        return AggregatedFigures(
            spend_on_revenue=self.spend_on_revenue,
            taxes=self.taxes,
            payment_fees=self.payment_fees,
            commissions=self.commissions,
            other=self.other,
            value_in_currency=self.value_in_currency,
        )


class MarkupBlockCreate(BaseModel):
    name: str = Field(..., min_length=1)
    desired_profit: float = Field(0, ge=0, le=100)
    period: Optional[PeriodFilter] = None


class MarkupBlockUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    desired_profit: Optional[float] = Field(None, ge=0, le=100)
    period: Optional[PeriodFilter] = None


class SelectionUpdate(BaseModel):
    """Selection to save; ids outside visible_record_ids keep their saved value"""
    states: Dict[str, bool] = Field(default_factory=dict)
    visible_record_ids: Optional[List[str]] = Field(
        None, description="Ids shown in the editor; defaults to the keys of states"
    )


class SelectionResponse(BaseModel):
    block_id: str
    states: Dict[str, bool]


class Notification(BaseModel):
    """Non-fatal message for the user (e.g. a data source failed to load)"""
    level: Literal["info", "warning", "error"] = "warning"
    title: str
    message: str


class BlockCalculation(BaseModel):
    block: MarkupBlock
    figures: AggregatedFigures
    average_revenue: float = 0
    ideal_markup: Optional[float] = None
    ideal_markup_display: str = "∞"
    notifications: List[Notification] = Field(default_factory=list)


class BlockListResponse(BaseModel):
    blocks: List[BlockCalculation]
    notifications: List[Notification] = Field(default_factory=list)


class MarkupSnapshot(BaseModel):
    """Published result of a block computation"""
    user_id: str
    block_id: str
    name: str
    kind: Literal["normal", "sub_recipe"] = "normal"
    period: PeriodFilter
    desired_profit: float
    spend_on_revenue: float
    charges_on_sales: float
    ideal_markup: Optional[float] = None
    applied_markup: Optional[float] = None
    value_in_currency: float = 0
    selected_fixed_expenses: List[str] = Field(default_factory=list)
    selected_payroll_entries: List[str] = Field(default_factory=list)
    selected_sales_charges: List[str] = Field(default_factory=list)
    active: bool = True


class PublishResponse(BaseModel):
    published: List[MarkupSnapshot]
    notifications: List[Notification] = Field(default_factory=list)


# ============================================================================
# PRICING SIMULATOR
# ============================================================================

class RecipeCostBreakdown(BaseModel):
    ingredients: float = Field(0, ge=0)
    packaging: float = Field(0, ge=0)
    labor: float = Field(0, ge=0)
    sub_recipes: float = Field(0, ge=0)
    yield_quantity: Optional[float] = Field(None, ge=0, description="Units produced by the recipe")


class SimulationRequest(BaseModel):
    block_id: str
    breakdown: RecipeCostBreakdown


class SimulationResult(BaseModel):
    total_cost: float
    cost_basis: float
    suggested_price: float
    gross_profit: float
    net_profit: float
    ideal_markup: Optional[float] = None
    ideal_markup_display: str = "∞"
