from __future__ import annotations

import numpy as np
import pandas as pd
import structlog
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import get_settings
from .utils import (
    WEEKDAY_CODES,
    add_months,
    annualize_rate,
    equivalent_monthly_rate,
    months_per_interval,
    nominal_from_effective,
    payment_dates,
    periods_per_year,
    to_timestamp,
    total_months,
    weekday_code,
)

logger = structlog.get_logger(__name__)

WITHDRAWAL_TYPES = ("fixed-amount", "percent-of-balance", "percent-of-interest")

_EPS = 1e-9


def _compounding_periods(periods_per_year: int) -> int:
    if int(periods_per_year) <= 0:
        raise ValueError(f"Unsupported compounding frequency: {periods_per_year}")
    return int(periods_per_year)


@dataclass(frozen=True)
class YearlyBreakdown:
    """Balance at a year end with cumulative totals since the start."""
    year: float
    balance: float
    interest_earned: float
    deposits: float
    withdrawals: float


@dataclass(frozen=True)
class MonthlyBreakdown:
    """Balance at a month end with the flows of that month only."""
    month: int
    balance: float
    interest_earned: float
    deposits: float
    withdrawals: float


class InterestAccrual:
    """
    Interest at a nominal decimal rate compounded `periods_per_year` times,
    advanced one calendar month at a time.

    Each month covers periods_per_year / 12 compounding periods. The month is cut
    into chunks ending on compounding boundaries: inside a period interest accrues
    simply on the balance, and it is credited (starts compounding) when the period
    completes. Weekly compounding therefore credits 4 whole periods plus a third of
    a period per month; quarterly compounding credits once every third month.
    """

    def __init__(self, rate: float, periods_per_year: int):
        m = _compounding_periods(periods_per_year)
        self.period_rate = rate / m
        self.step = m / 12.0
        self.progress = 0.0
        self.accrued = 0.0

    def advance(self, balance: float) -> float:
        """Advance one month on `balance`; return the interest credited during the month."""
        remaining = self.step
        credited = 0.0
        while remaining > _EPS:
            chunk = min(remaining, 1.0 - self.progress)
            self.accrued += (balance + credited) * self.period_rate * chunk
            self.progress += chunk
            remaining -= chunk
            if self.progress >= 1.0 - _EPS:
                credited += self.accrued
                self.accrued = 0.0
                self.progress = 0.0
        return credited

    def flush(self) -> float:
        """Credit interest accrued in an unfinished period (end of term)."""
        credited = self.accrued
        self.accrued = 0.0
        self.progress = 0.0
        return credited


# ---- Compound interest ----

@dataclass(frozen=True)
class CompoundInterestParams:
    principal: float
    rate: float
    compounding_frequency: int = 12
    time: float = 1.0
    monthly_deposit: float = 0.0
    monthly_withdrawal: float = 0.0


@dataclass
class CompoundInterestResult:
    final_amount: float
    total_interest: float
    total_deposits: float
    total_withdrawals: float
    yearly_breakdown: List[YearlyBreakdown] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CompoundInterestResult":
        return cls(0.0, 0.0, 0.0, 0.0, [])


def calculate_compound_interest(params: CompoundInterestParams) -> CompoundInterestResult:
    """
    Monthly simulation: deposit, then withdrawal (clamped to the balance), then interest
    at the requested compounding frequency. total_deposits includes the principal.
    """
    p = params
    _compounding_periods(p.compounding_frequency)
    if min(p.principal, p.rate, p.monthly_deposit, p.monthly_withdrawal) < 0:
        logger.debug("compound_interest_negative_input", params=p)
        return CompoundInterestResult.empty()

    n = total_months(p.time)
    if n == 0:
        return CompoundInterestResult(p.principal, 0.0, p.principal, 0.0, [])

    accrual = InterestAccrual(p.rate / 100.0, p.compounding_frequency)

    balance = p.principal
    total_interest = 0.0
    total_deposits = p.principal
    total_withdrawals = 0.0
    yearly: List[YearlyBreakdown] = []

    for month in range(1, n + 1):
        if p.monthly_deposit > 0:
            balance += p.monthly_deposit
            total_deposits += p.monthly_deposit

        if p.monthly_withdrawal > 0:
            withdrawal = min(p.monthly_withdrawal, balance)
            balance -= withdrawal
            total_withdrawals += withdrawal

        interest = accrual.advance(balance)
        if month == n:
            interest += accrual.flush()
        balance += interest
        total_interest += interest

        if month % 12 == 0 or month == n:
            yearly.append(
                YearlyBreakdown(
                    year=month / 12,
                    balance=balance,
                    interest_earned=total_interest,
                    deposits=total_deposits,
                    withdrawals=total_withdrawals,
                )
            )

    return CompoundInterestResult(balance, total_interest, total_deposits, total_withdrawals, yearly)


def calculate_simple_interest(principal: float, rate: float, time: float) -> float:
    return principal * (rate / 100.0) * time


def calculate_future_value(
    present_value: float,
    rate: float,
    periods: float,
    payment_per_period: float = 0.0,
) -> float:
    """Lump sum plus ordinary annuity at `rate` percent per period."""
    i = rate / 100.0
    if i == 0:
        return present_value + payment_per_period * periods

    growth = (1.0 + i) ** periods
    return present_value * growth + payment_per_period * (growth - 1.0) / i


# ---- Savings / investment with deposits and withdrawals ----

@dataclass(frozen=True)
class SavingsParams:
    initial_balance: float
    rate: float
    rate_interval: str = "yearly"          # monthly | yearly
    rate_type: str = "nominal"             # nominal | apy (yearly rates only)
    compounding_frequency: int = 12
    years: int = 5
    months: int = 0
    deposit_amount: float = 0.0
    deposit_frequency: str = "monthly"
    deposit_increase_rate: float = 0.0     # % per year
    withdrawal_amount: float = 0.0         # currency, or % for the percent-of-* types
    withdrawal_frequency: str = "monthly"
    withdrawal_type: str = "fixed-amount"
    withdrawal_increase_rate: float = 0.0  # % per year, fixed-amount only


@dataclass
class SavingsResult:
    initial_balance: float
    final_balance: float
    total_interest: float
    additional_deposits: float
    total_withdrawals: float
    monthly_breakdown: List[MonthlyBreakdown] = field(default_factory=list)
    yearly_breakdown: List[YearlyBreakdown] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "SavingsResult":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, [], [])


def _savings_nominal_rate(p: SavingsParams) -> float:
    """
    Nominal annual decimal rate. An APY is an annual figure, so rate_type="apy"
    is only accepted with a yearly rate interval.
    """
    if p.rate_type not in ("nominal", "apy"):
        raise ValueError(f"Unsupported rate type: {p.rate_type}")
    if p.rate_interval not in ("monthly", "yearly"):
        raise ValueError(f"Unsupported rate interval: {p.rate_interval}")

    if p.rate_interval == "monthly":
        if p.rate_type == "apy":
            raise ValueError("rate_type apy requires a yearly rate interval")
        return annualize_rate(p.rate, "monthly") / 100.0

    if p.rate_type == "apy":
        return nominal_from_effective(p.rate / 100.0, p.compounding_frequency)
    return p.rate / 100.0


def calculate_savings(params: SavingsParams) -> SavingsResult:
    """
    Month-by-month savings simulation.

    Order within a month:
      1. deposit, on the first month of each deposit interval, grown yearly by deposit_increase_rate
      2. interest accrual (InterestAccrual), unfinished period credited in the last month
      3. withdrawal, on the last month of each withdrawal interval:
         - fixed-amount: amount grown yearly by withdrawal_increase_rate
         - percent-of-balance: share of the current balance
         - percent-of-interest: share of interest credited since the previous withdrawal
         always clamped to the balance, so the balance never goes negative.
    """
    p = params
    if p.withdrawal_type not in WITHDRAWAL_TYPES:
        raise ValueError(f"Unsupported withdrawal type: {p.withdrawal_type}")
    _compounding_periods(p.compounding_frequency)

    rate = _savings_nominal_rate(p)
    deposit_every = months_per_interval(p.deposit_frequency)
    withdraw_every = months_per_interval(p.withdrawal_frequency)

    if min(p.initial_balance, p.rate, p.deposit_amount, p.withdrawal_amount) < 0:
        logger.debug("savings_negative_input", params=p)
        return SavingsResult.empty()

    n = total_months(p.years, p.months)
    if n == 0:
        return SavingsResult(p.initial_balance, p.initial_balance, 0.0, 0.0, 0.0, [], [])

    accrual = InterestAccrual(rate, p.compounding_frequency)
    deposit_growth = 1.0 + p.deposit_increase_rate / 100.0
    withdrawal_growth = 1.0 + p.withdrawal_increase_rate / 100.0
    withdrawal_share = min(p.withdrawal_amount, 100.0) / 100.0

    balance = p.initial_balance
    total_interest = 0.0
    total_deposits = 0.0
    total_withdrawals = 0.0
    interest_since_withdrawal = 0.0

    monthly: List[MonthlyBreakdown] = []
    yearly: List[YearlyBreakdown] = []

    for month in range(1, n + 1):
        year_index = (month - 1) // 12

        deposit = 0.0
        if p.deposit_amount > 0 and (month - 1) % deposit_every == 0:
            deposit = p.deposit_amount * deposit_growth ** year_index
            balance += deposit
            total_deposits += deposit

        interest = accrual.advance(balance)
        if month == n:
            interest += accrual.flush()
        balance += interest
        total_interest += interest
        interest_since_withdrawal += interest

        withdrawal = 0.0
        if p.withdrawal_amount > 0 and month % withdraw_every == 0:
            if p.withdrawal_type == "fixed-amount":
                wanted = p.withdrawal_amount * withdrawal_growth ** year_index
            elif p.withdrawal_type == "percent-of-balance":
                wanted = balance * withdrawal_share
            else:
                wanted = interest_since_withdrawal * withdrawal_share

            withdrawal = min(max(wanted, 0.0), balance)
            balance -= withdrawal
            total_withdrawals += withdrawal
            interest_since_withdrawal = 0.0

        monthly.append(MonthlyBreakdown(month, balance, interest, deposit, withdrawal))

        if month % 12 == 0 or month == n:
            yearly.append(
                YearlyBreakdown(
                    year=month / 12,
                    balance=balance,
                    interest_earned=total_interest,
                    deposits=p.initial_balance + total_deposits,
                    withdrawals=total_withdrawals,
                )
            )

    return SavingsResult(
        initial_balance=p.initial_balance,
        final_balance=balance,
        total_interest=total_interest,
        additional_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        monthly_breakdown=monthly,
        yearly_breakdown=yearly,
    )


@dataclass(frozen=True)
class InvestmentParams:
    principal: float
    annual_rate: float
    compounding_frequency: int = 12
    years: int = 5
    months: int = 0
    regular_deposit: float = 0.0
    deposit_interval: str = "monthly"
    regular_withdrawal: float = 0.0
    withdrawal_type: str = "fixed-amount"
    withdrawal_interval: str = "monthly"
    annual_deposit_increase: float = 0.0
    annual_withdrawal_increase: float = 0.0


def calculate_investment(params: InvestmentParams) -> SavingsResult:
    """Investment growth with regular deposits/withdrawals; same engine as calculate_savings."""
    return calculate_savings(
        SavingsParams(
            initial_balance=params.principal,
            rate=params.annual_rate,
            rate_interval="yearly",
            rate_type="nominal",
            compounding_frequency=params.compounding_frequency,
            years=params.years,
            months=params.months,
            deposit_amount=params.regular_deposit,
            deposit_frequency=params.deposit_interval,
            deposit_increase_rate=params.annual_deposit_increase,
            withdrawal_amount=params.regular_withdrawal,
            withdrawal_frequency=params.withdrawal_interval,
            withdrawal_type=params.withdrawal_type,
            withdrawal_increase_rate=params.annual_withdrawal_increase,
        )
    )


# ---- Forex compounding ----

@dataclass(frozen=True)
class ForexParams:
    principal: float
    rate: float
    rate_interval: str = "monthly"   # daily | weekly | monthly | yearly
    compounding_frequency: int = 12
    years: int = 1
    months: int = 0
    additional_deposits: float = 0.0
    additional_deposit_frequency: str = "monthly"


@dataclass
class ForexResult:
    initial_balance: float
    final_balance: float
    additional_deposits: float
    total_earning: float
    annualized_return: float
    monthly_breakdown: List[MonthlyBreakdown] = field(default_factory=list)


def calculate_forex_compounding(params: ForexParams) -> ForexResult:
    """
    Trading return quoted per day/week/month/year, annualised and compounded
    through the savings engine. annualized_return is the CAGR (percent) on
    everything invested.
    """
    p = params
    annual_rate = annualize_rate(p.rate, p.rate_interval)

    res = calculate_savings(
        SavingsParams(
            initial_balance=p.principal,
            rate=annual_rate,
            compounding_frequency=p.compounding_frequency,
            years=p.years,
            months=p.months,
            deposit_amount=p.additional_deposits,
            deposit_frequency=p.additional_deposit_frequency,
        )
    )

    invested = res.initial_balance + res.additional_deposits
    t = p.years + p.months / 12.0
    if t > 0 and invested > 0 and res.final_balance > 0:
        annualized = ((res.final_balance / invested) ** (1.0 / t) - 1.0) * 100.0
    else:
        annualized = 0.0

    return ForexResult(
        initial_balance=res.initial_balance,
        final_balance=res.final_balance,
        additional_deposits=res.additional_deposits,
        total_earning=res.total_interest,
        annualized_return=annualized,
        monthly_breakdown=res.monthly_breakdown,
    )


# ---- Daily compounding on a calendar ----

@dataclass(frozen=True)
class DailyCompoundParams:
    principal: float
    rate: float
    rate_interval: str = "yearly"     # daily | weekly | monthly | yearly
    years: int = 1
    months: int = 0
    days: int = 0
    reinvestment_rate: float = 100.0  # % of each day's interest that compounds
    included_days: Tuple[str, ...] = WEEKDAY_CODES
    additional_contribution: float = 0.0
    contribution_frequency: int = 0   # 0 (none), 365, 52 or 12 per year
    start_date: Optional[str] = None


@dataclass
class DailyCompoundResult:
    final_amount: float
    total_interest: float
    total_deposits: float
    total_withdrawals: float
    total_days: int
    business_days: int
    monthly_breakdown: List[MonthlyBreakdown] = field(default_factory=list)


_DAILY_RATE_DIVISOR = {"daily": 1.0, "weekly": 7.0, "monthly": 365.0 / 12.0, "yearly": 365.0}


def calculate_daily_compound_interest(params: DailyCompoundParams) -> DailyCompoundResult:
    """
    Calendar simulation from start_date, one day at a time.

    Interest accrues only on included weekdays. reinvestment_rate percent of it is
    added to the balance; the rest is paid out and reported as withdrawals.
    Contributions land after the day's interest: every day (365), every 7th day (52)
    or on each monthly anniversary of start_date (12).
    """
    p = params
    if p.rate_interval not in _DAILY_RATE_DIVISOR:
        raise ValueError(f"Unsupported rate interval: {p.rate_interval}")
    if p.contribution_frequency not in (0, 12, 52, 365):
        raise ValueError(f"Unsupported contribution frequency: {p.contribution_frequency}")
    unknown = set(p.included_days) - set(WEEKDAY_CODES)
    if unknown:
        raise ValueError(f"Unknown weekday codes: {sorted(unknown)}")

    start = to_timestamp(p.start_date)
    end = start + pd.DateOffset(years=max(0, p.years), months=max(0, p.months), days=max(0, p.days))
    n_days = int((end - start).days)

    if min(p.principal, p.rate, p.additional_contribution) < 0 or n_days <= 0:
        logger.debug("daily_compound_degenerate_input", params=p, days=n_days)
        principal = max(p.principal, 0.0)
        return DailyCompoundResult(principal, 0.0, 0.0, 0.0, max(n_days, 0), 0, [])

    daily_rate = p.rate / 100.0 / _DAILY_RATE_DIVISOR[p.rate_interval]
    reinvest = min(max(p.reinvestment_rate, 0.0), 100.0) / 100.0

    dates = pd.date_range(start + pd.Timedelta(days=1), periods=n_days, freq="D")
    included = set(p.included_days)
    accrues = np.array([weekday_code(d) in included for d in dates], dtype=bool)

    contributes = np.zeros(n_days, dtype=bool)
    if p.additional_contribution > 0 and p.contribution_frequency:
        if p.contribution_frequency == 365:
            contributes[:] = True
        elif p.contribution_frequency == 52:
            contributes[6::7] = True
        else:
            anniversaries = set(payment_dates(start, n_days // 28 + 1))
            contributes = np.array([d in anniversaries for d in dates], dtype=bool)

    balance = p.principal
    total_interest = total_deposits = total_withdrawals = 0.0
    business_days = 0

    monthly: List[MonthlyBreakdown] = []
    month_index = 1
    boundary = add_months(start, 1)
    m_interest = m_deposits = m_withdrawals = 0.0

    for i, day in enumerate(dates):
        if accrues[i]:
            interest = balance * daily_rate
            kept = interest * reinvest
            balance += kept
            total_interest += interest
            total_withdrawals += interest - kept
            m_interest += interest
            m_withdrawals += interest - kept
            business_days += 1

        if contributes[i]:
            balance += p.additional_contribution
            total_deposits += p.additional_contribution
            m_deposits += p.additional_contribution

        if day >= boundary or i == n_days - 1:
            monthly.append(MonthlyBreakdown(month_index, balance, m_interest, m_deposits, m_withdrawals))
            m_interest = m_deposits = m_withdrawals = 0.0
            month_index += 1
            boundary = add_months(start, month_index)

    return DailyCompoundResult(
        final_amount=balance,
        total_interest=total_interest,
        total_deposits=total_deposits,
        total_withdrawals=total_withdrawals,
        total_days=n_days,
        business_days=business_days,
        monthly_breakdown=monthly,
    )


# ---- SIP ----

@dataclass(frozen=True)
class SIPParams:
    regular_investment: float
    expected_return: float
    years: int = 5
    months: int = 0
    investment_frequency: str = "monthly"
    initial_balance: float = 0.0
    investment_increase_rate: float = 0.0


@dataclass(frozen=True)
class SIPResult:
    maturity_amount: float
    total_investment: float
    total_returns: float
    additional_deposits: float


def calculate_sip(params: SIPParams) -> SIPResult:
    """
    Systematic investment plan: contributions at the start of each period (annuity due),
    stepped up once a year by investment_increase_rate.

    Periods = years * ppy + floor(months / months_per_period); partial periods are dropped.
    """
    p = params
    every = months_per_interval(p.investment_frequency)
    ppy = 12 // every

    if min(p.regular_investment, p.expected_return, p.initial_balance) < 0:
        logger.debug("sip_negative_input", params=p)
        return SIPResult(0.0, 0.0, 0.0, 0.0)

    n = max(0, p.years) * ppy + max(0, p.months) // every
    i = p.expected_return / 100.0 / ppy
    step_up = 1.0 + p.investment_increase_rate / 100.0

    balance = p.initial_balance
    contributed = 0.0
    for k in range(n):
        amount = p.regular_investment * step_up ** (k // ppy)
        contributed += amount
        balance = (balance + amount) * (1.0 + i)

    total_investment = p.initial_balance + contributed
    return SIPResult(
        maturity_amount=balance,
        total_investment=total_investment,
        total_returns=balance - total_investment,
        additional_deposits=contributed,
    )


# ---- Goal seeking and depletion ----

@dataclass(frozen=True)
class SavingsGoalParams:
    target_amount: float
    current_savings: float
    contribution: float
    interest_rate: float
    compounding_frequency: int = 12
    contribution_frequency: str = "monthly"  # daily | weekly | fortnightly | monthly


@dataclass(frozen=True)
class SavingsGoalResult:
    months_to_goal: int
    years_to_goal: float
    total_contributions: float
    interest_earned: float


def calculate_savings_goal(params: SavingsGoalParams) -> SavingsGoalResult:
    """
    Months of saving until the balance reaches target_amount.

    Contributions are converted to a monthly amount (weekly x 52/12, ...). All fields are -1
    when the target is not reached within MAX_GOAL_MONTHS.
    """
    p = params
    monthly_contribution = p.contribution * periods_per_year(p.contribution_frequency) / 12.0

    if min(p.target_amount, p.current_savings, p.contribution, p.interest_rate) < 0:
        logger.debug("savings_goal_negative_input", params=p)
        return SavingsGoalResult(0, 0.0, 0.0, 0.0)

    if p.current_savings >= p.target_amount:
        return SavingsGoalResult(0, 0.0, 0.0, 0.0)

    monthly_rate = equivalent_monthly_rate(p.interest_rate / 100.0, p.compounding_frequency)
    cap = get_settings().MAX_GOAL_MONTHS

    balance = p.current_savings
    contributions = 0.0
    months = 0
    while balance < p.target_amount and months < cap:
        balance += monthly_contribution
        contributions += monthly_contribution
        balance += balance * monthly_rate
        months += 1

    if balance < p.target_amount:
        logger.warning("savings_goal_unreachable", target=p.target_amount, cap_months=cap)
        return SavingsGoalResult(-1, -1.0, -1.0, -1.0)

    return SavingsGoalResult(
        months_to_goal=months,
        years_to_goal=months / 12.0,
        total_contributions=contributions,
        interest_earned=balance - p.current_savings - contributions,
    )


def calculate_how_long_money_lasts(current_amount: float, monthly_withdrawal: float, interest_rate: float) -> int:
    """Months until the balance is exhausted; -1 if it outlives MAX_GOAL_MONTHS."""
    if current_amount <= 0:
        return 0

    monthly_rate = interest_rate / 100.0 / 12.0
    if monthly_withdrawal <= current_amount * monthly_rate:
        logger.debug("money_never_depletes", amount=current_amount, withdrawal=monthly_withdrawal)
        return -1

    cap = get_settings().MAX_GOAL_MONTHS
    balance = current_amount
    months = 0
    while balance > 0 and months < cap:
        balance = balance + balance * monthly_rate - monthly_withdrawal
        months += 1

    return months if balance <= 0 else -1


# ---- Retirement ----

@dataclass(frozen=True)
class RetirementParams:
    current_age: int
    retirement_age: int
    current_savings: float
    monthly_contribution: float
    expected_return: float
    inflation_rate: float
    desired_monthly_income: float


@dataclass(frozen=True)
class RetirementResult:
    total_savings_at_retirement: float
    monthly_income_generated: float
    shortfall: float
    recommended_monthly_savings: float


def _annuity_factor(monthly_rate: float, months: int) -> float:
    if monthly_rate == 0:
        return float(months)
    return ((1.0 + monthly_rate) ** months - 1.0) / monthly_rate


def calculate_retirement(params: RetirementParams) -> RetirementResult:
    p = params
    years = p.retirement_age - p.current_age
    if years <= 0 or min(p.current_savings, p.monthly_contribution, p.desired_monthly_income) < 0:
        logger.debug("retirement_degenerate_input", params=p)
        return RetirementResult(0.0, 0.0, 0.0, 0.0)

    months = years * 12
    monthly_rate = p.expected_return / 100.0 / 12.0
    withdrawal_rate = get_settings().SAFE_WITHDRAWAL_RATE

    fv_savings = p.current_savings * (1.0 + monthly_rate) ** months
    factor = _annuity_factor(monthly_rate, months)
    total = fv_savings + p.monthly_contribution * factor

    income = total * withdrawal_rate / 12.0
    desired_then = p.desired_monthly_income * (1.0 + p.inflation_rate / 100.0) ** years
    shortfall = max(0.0, desired_then - income)

    required_nest_egg = desired_then * 12.0 / withdrawal_rate
    gap = max(0.0, required_nest_egg - fv_savings)
    recommended = gap / factor if factor > 0 else 0.0

    return RetirementResult(
        total_savings_at_retirement=total,
        monthly_income_generated=income,
        shortfall=shortfall,
        recommended_monthly_savings=recommended,
    )
