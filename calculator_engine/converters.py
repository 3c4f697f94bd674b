"""
Closed-form converters: rates, margins, units and small arithmetic helpers.

Each function maps inputs straight to outputs. Where a formula would divide by zero
(zero cost, zero shares, zero rate) the affected figure is 0.0.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Tuple

from .utils import effective_annual_rate, nominal_from_effective


def calculate_apy(nominal_rate: float, compounding_frequency: int) -> float:
    """APY in percent for a nominal percent rate compounded `compounding_frequency` times a year."""
    return effective_annual_rate(nominal_rate / 100.0, compounding_frequency) * 100.0


def nominal_rate_from_apy(apy: float, compounding_frequency: int) -> float:
    """Inverse of calculate_apy (percent in, percent out)."""
    return nominal_from_effective(apy / 100.0, compounding_frequency) * 100.0


def calculate_cagr(beginning_value: float, ending_value: float, years: float) -> float:
    """Compound annual growth rate in percent. CAGR(10000, 15000, 3) = 14.47."""
    if beginning_value <= 0 or years <= 0 or ending_value < 0:
        return 0.0
    return ((ending_value / beginning_value) ** (1.0 / years) - 1.0) * 100.0


# ---- Stock margin account ----

@dataclass(frozen=True)
class MarginParams:
    stock_price: float
    shares: float
    margin_rate: float        # initial margin, percent
    maintenance_margin: float  # percent


@dataclass(frozen=True)
class MarginResult:
    total_value: float
    margin_required: float
    buying_power: float
    maintenance_required: float
    margin_call_price: float


def calculate_margin(params: MarginParams) -> MarginResult:
    """
    Margin purchase figures.

    The margin call price is where equity / value falls to the maintenance margin:
      price = loan / (shares * (1 - maintenance))
    """
    p = params
    total_value = p.stock_price * p.shares
    margin_required = total_value * p.margin_rate / 100.0
    buying_power = total_value / (p.margin_rate / 100.0) if p.margin_rate > 0 else 0.0
    maintenance_required = total_value * p.maintenance_margin / 100.0

    loan = total_value - margin_required
    denom = p.shares * (1.0 - p.maintenance_margin / 100.0)
    margin_call_price = loan / denom if denom > 0 else 0.0

    return MarginResult(total_value, margin_required, buying_power, maintenance_required, margin_call_price)


# ---- Profit margin / markup ----

@dataclass(frozen=True)
class ProfitMarginResult:
    profit: float
    margin: float  # percent of revenue
    markup: float  # percent of cost


def calculate_profit_margin(cost: float, revenue: float) -> ProfitMarginResult:
    profit = revenue - cost
    margin = profit / revenue * 100.0 if revenue != 0 else 0.0
    markup = profit / cost * 100.0 if cost != 0 else 0.0
    return ProfitMarginResult(profit, margin, markup)


def price_from_markup(cost: float, markup: float) -> float:
    return cost * (1.0 + markup / 100.0)


def price_from_margin(cost: float, margin: float) -> float:
    """Selling price giving `margin` percent of revenue as profit; 0.0 for margins of 100 % or more."""
    if margin >= 100.0:
        return 0.0
    return cost / (1.0 - margin / 100.0)


# ---- Units ----

LARGE_NUMBER_UNITS = {
    "ones": 1.0,
    "thousands": 1e3,
    "millions": 1e6,
    "billions": 1e9,
    "trillions": 1e12,
}


def convert_large_numbers(value: float, from_unit: str, to_unit: str) -> float:
    """Rescale between ones/thousands/millions/billions/trillions (unknown units count as ones)."""
    src = LARGE_NUMBER_UNITS.get(from_unit, 1.0)
    dst = LARGE_NUMBER_UNITS.get(to_unit, 1.0)
    return value * src / dst


DENOMINATION_VALUES = {
    "pennies": 0.01,
    "nickels": 0.05,
    "dimes": 0.10,
    "quarters": 0.25,
    "half_dollars": 0.50,
    "dollars": 1.0,
    "twos": 2.0,
    "fives": 5.0,
    "tens": 10.0,
    "twenties": 20.0,
    "fifties": 50.0,
    "hundreds": 100.0,
}


@dataclass(frozen=True)
class DenominationCount:
    count: float
    value: float
    total: float


@dataclass
class MoneyCountResult:
    total: float
    breakdown: Dict[str, DenominationCount] = field(default_factory=dict)


def calculate_money_count(denominations: Mapping[str, float]) -> MoneyCountResult:
    """Total of counted notes and coins; unknown denominations are worth 0."""
    total = 0.0
    breakdown: Dict[str, DenominationCount] = {}
    for name, count in denominations.items():
        value = DENOMINATION_VALUES.get(name, 0.0)
        subtotal = count * value
        total += subtotal
        breakdown[name] = DenominationCount(count, value, subtotal)
    return MoneyCountResult(total, breakdown)


def calculate_price_per_square_foot(total_price: float, square_feet: float) -> float:
    return total_price / square_feet if square_feet else 0.0


def calculate_square_feet_from_price(total_price: float, price_per_sq_ft: float) -> float:
    return total_price / price_per_sq_ft if price_per_sq_ft else 0.0


def calculate_total_price_from_sq_ft(square_feet: float, price_per_sq_ft: float) -> float:
    return square_feet * price_per_sq_ft


# ---- Cash back ----

@dataclass(frozen=True)
class CashBackParams:
    purchase_amount: float
    cash_back_rate: float  # percent
    annual_spending: float
    timeframe: float       # years


@dataclass(frozen=True)
class CashBackResult:
    cash_back_earned: float
    total_spending: float
    total_cash_back: float
    effective_discount: float
    annual_cash_back: float


def calculate_cash_back(params: CashBackParams) -> CashBackResult:
    p = params
    rate = p.cash_back_rate / 100.0
    total_spending = p.annual_spending * p.timeframe
    total_cash_back = total_spending * rate
    discount = total_cash_back / total_spending * 100.0 if total_spending else 0.0
    return CashBackResult(
        cash_back_earned=p.purchase_amount * rate,
        total_spending=total_spending,
        total_cash_back=total_cash_back,
        effective_discount=discount,
        annual_cash_back=p.annual_spending * rate,
    )


# ---- Stock averaging ----

@dataclass(frozen=True)
class StockAverageResult:
    average_price: float
    total_shares: float
    total_cost: float
    number_of_purchases: int


def calculate_stock_average(purchases: Iterable[Tuple[float, float]]) -> StockAverageResult:
    """Average cost basis of (shares, price) purchases."""
    lots = list(purchases)
    total_shares = sum(shares for shares, _ in lots)
    total_cost = sum(shares * price for shares, price in lots)
    average = total_cost / total_shares if total_shares > 0 else 0.0
    return StockAverageResult(average, total_shares, total_cost, len(lots))


# ---- Currency ----

@dataclass(frozen=True)
class CurrencyConversion:
    amount: float
    from_currency: str
    to_currency: str
    converted_amount: float
    exchange_rate: float
    inverse_rate: float
    rates_date: str = ""


def convert_currency(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, float],
    rates_date: str = "",
) -> CurrencyConversion:
    """
    Convert with a rate table quoted against `from_currency` ({code: units per 1 from_currency}),
    as returned by a /latest?from=<code> rate service. Missing or non-positive rates give zeros.
    """
    src = from_currency.upper()
    dst = to_currency.upper()
    rate = 1.0 if src == dst else float(rates.get(dst, 0.0))
    if rate <= 0:
        return CurrencyConversion(amount, src, dst, 0.0, 0.0, 0.0, rates_date)
    return CurrencyConversion(amount, src, dst, amount * rate, rate, 1.0 / rate, rates_date)
