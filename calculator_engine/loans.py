from __future__ import annotations

import math
import numpy as np
import pandas as pd
import structlog
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .config import get_settings
from .utils import (
    FREQUENCY_PER_YEAR,
    MONTHLY_INTERVALS,
    add_months,
    annualize_rate,
    cached_payment_dates,
    format_date,
    growth_factor,
    to_timestamp,
    total_months,
)

logger = structlog.get_logger(__name__)


def monthly_payment(principal: float, annual_rate: float, months: int, balloon: float = 0.0) -> float:
    """
    Level monthly payment for a fixed-rate loan (annual_rate in percent).

      A = (P - B / (1+r)^n) * r / (1 - (1+r)^-n)

    B is a balloon left outstanding after the n-th regular payment. Zero rate
    repays (P - B) in equal parts.
    """
    if months <= 0 or principal <= 0:
        return 0.0

    balloon = min(max(balloon, 0.0), principal)
    r = annual_rate / 100.0 / 12.0
    if r == 0:
        return (principal - balloon) / months

    pv_balloon = balloon / (1.0 + r) ** months
    return (principal - pv_balloon) * r / (1.0 - (1.0 + r) ** -months)


# ---- Plain amortization ----

@dataclass(frozen=True)
class AmortizationRow:
    month: int
    payment: float
    principal: float
    interest: float
    balance: float


@dataclass(frozen=True)
class LoanParams:
    principal: float
    rate: float
    term: float  # years


@dataclass
class LoanResult:
    monthly_payment: float
    total_payment: float
    total_interest: float
    amortization_schedule: List[AmortizationRow] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "LoanResult":
        return cls(0.0, 0.0, 0.0, [])


def calculate_loan(params: LoanParams) -> LoanResult:
    """
    Fixed-rate amortization schedule.

    The last row repays whatever balance is left, so principal payments sum to the
    principal and the schedule ends at exactly zero.
    """
    p = params
    n = total_months(p.term)
    if p.principal <= 0 or p.rate < 0 or n == 0:
        logger.debug("loan_degenerate_input", params=p)
        return LoanResult.empty()

    r = p.rate / 100.0 / 12.0
    payment = monthly_payment(p.principal, p.rate, n)

    balance = p.principal
    rows: List[AmortizationRow] = []
    for month in range(1, n + 1):
        interest = balance * r
        principal_part = balance if month == n else payment - interest
        balance = 0.0 if month == n else balance - principal_part
        rows.append(AmortizationRow(month, interest + principal_part, principal_part, interest, balance))

    total_payment = float(sum(row.payment for row in rows))
    return LoanResult(
        monthly_payment=payment,
        total_payment=total_payment,
        total_interest=total_payment - p.principal,
        amortization_schedule=rows,
    )


# ---- Dated schedule with extras, fees and one-time payments ----

@dataclass(frozen=True)
class OneTimePayment:
    amount: float = 0.0
    type: str = "balloon"  # balloon (left to the final payment) | at_date
    date: Optional[str] = None


@dataclass(frozen=True)
class LoanScheduleParams:
    loan_amount: float
    interest_rate: float
    loan_term_years: int = 30
    loan_term_months: int = 0
    start_date: Optional[str] = None
    extra_payment: float = 0.0
    extra_payment_frequency: str = "monthly"
    extra_fees: float = 0.0
    add_fees_to_loan: bool = False
    one_time_payment: OneTimePayment = field(default_factory=OneTimePayment)


@dataclass(frozen=True)
class ScheduledPayment:
    payment_number: int
    payment_date: str
    monthly_payment: float
    principal_payment: float
    interest_payment: float
    extra_payment: float
    ending_balance: float


@dataclass
class LoanScheduleResult:
    effective_loan_amount: float
    monthly_payment: float
    total_amount: float
    total_interest: float
    payoff_date: str
    number_of_payments: int
    interest_saved_with_extra: float
    time_saved_with_extra: int
    amortization_schedule: List[ScheduledPayment] = field(default_factory=list)


def _extra_schedule(amount: float, frequency: str) -> Callable[[int], float]:
    """Extra principal paid in a given month (1-based)."""
    if amount <= 0:
        return lambda month: 0.0

    key = frequency.lower()
    if key in MONTHLY_INTERVALS:
        every = MONTHLY_INTERVALS[key]
        return lambda month: amount if month % every == 0 else 0.0
    if key in FREQUENCY_PER_YEAR:
        # sub-monthly extras are pooled into one monthly amount
        per_month = amount * FREQUENCY_PER_YEAR[key] / 12.0
        return lambda month: per_month
    raise ValueError(f"Unsupported frequency: {frequency}")


def _run_dated_schedule(
    principal: float,
    annual_rate: float,
    payment: float,
    n: int,
    start: pd.Timestamp,
    extra: Callable[[int], float],
    lump_month: Optional[int] = None,
    lump_amount: float = 0.0,
) -> List[ScheduledPayment]:
    r = annual_rate / 100.0 / 12.0
    eps = get_settings().PAYOFF_BALANCE_EPSILON
    dates = cached_payment_dates(start, n)

    balance = principal
    rows: List[ScheduledPayment] = []
    for k in range(1, n + 1):
        if balance <= eps:
            break

        interest = balance * r
        principal_part = balance if k == n else min(payment - interest, balance)
        extra_part = extra(k) + (lump_amount if k == lump_month else 0.0)
        extra_part = min(extra_part, balance - principal_part)

        balance -= principal_part + extra_part
        if balance <= eps:
            principal_part += balance
            balance = 0.0

        rows.append(
            ScheduledPayment(
                payment_number=k,
                payment_date=format_date(dates[k - 1]),
                monthly_payment=interest + principal_part,
                principal_payment=principal_part,
                interest_payment=interest,
                extra_payment=extra_part,
                ending_balance=balance,
            )
        )
    return rows


def calculate_loan_schedule(params: LoanScheduleParams) -> LoanScheduleResult:
    """
    Dated amortization with optional extras.

    - extra_fees are financed (added to the principal) or paid upfront (added to total_amount)
    - recurring extra_payment reduces principal; weekly/fortnightly extras are pooled monthly
    - one_time_payment of type balloon is left outstanding until the final payment and
      lowers the level payment; at_date is a lump prepayment on the first payment on or
      after its date
    Savings are measured against the same loan with no recurring extra and no at_date lump.
    """
    p = params
    start = to_timestamp(p.start_date)
    n = total_months(p.loan_term_years, p.loan_term_months)
    fees = max(p.extra_fees, 0.0)
    effective = p.loan_amount + (fees if p.add_fees_to_loan else 0.0)

    if p.loan_amount <= 0 or p.interest_rate < 0 or n == 0:
        logger.debug("loan_schedule_degenerate_input", params=p)
        return LoanScheduleResult(max(effective, 0.0), 0.0, 0.0, 0.0, format_date(start), 0, 0.0, 0, [])

    one_time = p.one_time_payment
    if one_time.type not in ("balloon", "at_date"):
        raise ValueError(f"Unsupported one-time payment type: {one_time.type}")

    balloon = min(one_time.amount, effective) if one_time.type == "balloon" and one_time.amount > 0 else 0.0
    payment = monthly_payment(effective, p.interest_rate, n, balloon)

    lump_month = None
    lump_amount = 0.0
    if one_time.type == "at_date" and one_time.amount > 0:
        target = to_timestamp(one_time.date)
        for k, when in enumerate(cached_payment_dates(start, n), start=1):
            if when >= target:
                lump_month, lump_amount = k, one_time.amount
                break

    extra = _extra_schedule(p.extra_payment, p.extra_payment_frequency)
    rows = _run_dated_schedule(effective, p.interest_rate, payment, n, start, extra, lump_month, lump_amount)
    base = _run_dated_schedule(effective, p.interest_rate, payment, n, start, _extra_schedule(0.0, "monthly"))

    total_interest = float(sum(row.interest_payment for row in rows))
    base_interest = float(sum(row.interest_payment for row in base))
    paid = float(sum(row.monthly_payment + row.extra_payment for row in rows))

    return LoanScheduleResult(
        effective_loan_amount=effective,
        monthly_payment=payment,
        total_amount=paid + (0.0 if p.add_fees_to_loan else fees),
        total_interest=total_interest,
        payoff_date=rows[-1].payment_date if rows else format_date(start),
        number_of_payments=len(rows),
        interest_saved_with_extra=base_interest - total_interest,
        time_saved_with_extra=len(base) - len(rows),
        amortization_schedule=rows,
    )


# ---- Mortgage ----

@dataclass(frozen=True)
class MortgageParams:
    principal: float
    rate: float
    term: int  # years
    interest_interval: str = "monthly"  # monthly | yearly compounding


@dataclass(frozen=True)
class RepaymentSummary:
    monthly_payment: float
    yearly_payment: float
    total_payment: float
    total_interest: float


@dataclass(frozen=True)
class MortgageResult:
    capital_and_repayment: RepaymentSummary
    interest_only: RepaymentSummary


def calculate_mortgage(params: MortgageParams) -> MortgageResult:
    """Capital-and-repayment versus interest-only (principal repaid at the end)."""
    p = params
    zero = RepaymentSummary(0.0, 0.0, 0.0, 0.0)
    if p.principal <= 0 or p.rate < 0 or p.term <= 0:
        return MortgageResult(zero, zero)

    if p.interest_interval == "monthly":
        monthly = monthly_payment(p.principal, p.rate, p.term * 12)
    elif p.interest_interval == "yearly":
        R = p.rate / 100.0
        annual = p.principal / p.term if R == 0 else p.principal * R / (1.0 - (1.0 + R) ** -p.term)
        monthly = annual / 12.0
    else:
        raise ValueError(f"Unsupported interest interval: {p.interest_interval}")

    repay_total = monthly * 12 * p.term
    repayment = RepaymentSummary(monthly, monthly * 12, repay_total, repay_total - p.principal)

    yearly_interest = p.principal * p.rate / 100.0
    interest_only = RepaymentSummary(
        monthly_payment=yearly_interest / 12.0,
        yearly_payment=yearly_interest,
        total_payment=yearly_interest * p.term + p.principal,
        total_interest=yearly_interest * p.term,
    )
    return MortgageResult(repayment, interest_only)


# ---- Car loan ----

@dataclass(frozen=True)
class CarLoanParams:
    principal: float
    rate: float
    term: int  # years
    balloon_payment: float = 0.0


@dataclass(frozen=True)
class CarLoanResult:
    monthly_payment: float
    total_payment: float
    total_interest: float


def calculate_car_loan(params: CarLoanParams) -> CarLoanResult:
    p = params
    n = total_months(p.term)
    if p.principal <= 0 or p.rate < 0 or n == 0:
        return CarLoanResult(0.0, 0.0, 0.0)

    balloon = min(max(p.balloon_payment, 0.0), p.principal)
    payment = monthly_payment(p.principal, p.rate, n, balloon)
    total = payment * n + balloon
    return CarLoanResult(payment, total, total - p.principal)


# ---- Payoff simulations ----

@dataclass(frozen=True)
class PayoffRun:
    months: int
    total_interest: float
    total_paid: float
    rows: List[ScheduledPayment]


def _simulate_payoff(
    balance: float,
    annual_rate: float,
    payment: float,
    start: Optional[pd.Timestamp] = None,
) -> Optional[PayoffRun]:
    """
    Pay `payment` every month until the balance is gone.

    None when the payment does not exceed the interest charge or the debt
    outlives MAX_PAYOFF_MONTHS.
    """
    settings = get_settings()
    r = annual_rate / 100.0 / 12.0

    months = 0
    total_interest = 0.0
    total_paid = 0.0
    rows: List[ScheduledPayment] = []

    while balance > settings.PAYOFF_BALANCE_EPSILON and months < settings.MAX_PAYOFF_MONTHS:
        interest = balance * r
        principal_part = payment - interest
        if principal_part <= 0:
            logger.debug("payment_below_interest", payment=payment, interest=interest)
            return None

        principal_part = min(principal_part, balance)
        balance -= principal_part
        months += 1
        total_interest += interest
        total_paid += interest + principal_part

        if start is not None:
            rows.append(
                ScheduledPayment(
                    payment_number=months,
                    payment_date=format_date(add_months(start, months)),
                    monthly_payment=interest + principal_part,
                    principal_payment=principal_part,
                    interest_payment=interest,
                    extra_payment=0.0,
                    ending_balance=balance,
                )
            )

    if balance > settings.PAYOFF_BALANCE_EPSILON:
        logger.warning("payoff_cap_reached", cap_months=settings.MAX_PAYOFF_MONTHS, balance=balance)
        return None

    return PayoffRun(months, total_interest, total_paid, rows)


@dataclass(frozen=True)
class CreditCardParams:
    balance: float
    interest_rate: float
    monthly_payment: float


@dataclass(frozen=True)
class CreditCardResult:
    payoff_time: int
    total_interest: float
    total_payment: float

    @property
    def never_pays_off(self) -> bool:
        return self.payoff_time == -1


def calculate_credit_card_payoff(params: CreditCardParams) -> CreditCardResult:
    """
    Months to clear a card balance at a fixed monthly payment.

    Every field is -1 when the payment never clears the balance (payment not above the
    monthly interest, or longer than MAX_PAYOFF_MONTHS).
    """
    p = params
    if p.balance <= 0:
        return CreditCardResult(0, 0.0, 0.0)

    run = _simulate_payoff(p.balance, p.interest_rate, p.monthly_payment)
    if run is None:
        return CreditCardResult(-1, -1.0, -1.0)

    return CreditCardResult(run.months, run.total_interest, p.balance + run.total_interest)


@dataclass(frozen=True)
class LoanPayoffParams:
    current_balance: float
    interest_rate: float
    current_payment: float
    extra_payment: float = 0.0
    start_date: Optional[str] = None


@dataclass
class LoanPayoffResult:
    months_to_payoff: int
    total_interest: float
    interest_saved: float
    time_saved: int
    total_paid: float
    payoff_date: Optional[str]
    amortization_schedule: List[ScheduledPayment] = field(default_factory=list)


def calculate_loan_payoff(params: LoanPayoffParams) -> LoanPayoffResult:
    """
    Payoff at current_payment + extra_payment, compared to current_payment alone.

    months/interest/paid are -1 when the accelerated payment never clears the loan;
    interest_saved/time_saved are -1 when only the baseline never clears it.
    """
    p = params
    start = to_timestamp(p.start_date)
    if p.current_balance <= 0:
        return LoanPayoffResult(0, 0.0, 0.0, 0, 0.0, format_date(start), [])

    faster = _simulate_payoff(p.current_balance, p.interest_rate, p.current_payment + max(p.extra_payment, 0.0), start)
    if faster is None:
        return LoanPayoffResult(-1, -1.0, -1.0, -1, -1.0, None, [])

    baseline = _simulate_payoff(p.current_balance, p.interest_rate, p.current_payment)
    if baseline is None:
        interest_saved, time_saved = -1.0, -1
    else:
        interest_saved = baseline.total_interest - faster.total_interest
        time_saved = baseline.months - faster.months

    return LoanPayoffResult(
        months_to_payoff=faster.months,
        total_interest=faster.total_interest,
        interest_saved=interest_saved,
        time_saved=time_saved,
        total_paid=faster.total_paid,
        payoff_date=faster.rows[-1].payment_date if faster.rows else format_date(start),
        amortization_schedule=faster.rows,
    )


# ---- Refinance ----

@dataclass(frozen=True)
class MortgageRefinanceParams:
    current_balance: float
    current_monthly_payment: float
    current_rate: float
    refinance_rate: float
    refinance_term: int  # years
    closing_costs: float = 0.0
    finance_closing_costs: bool = False


@dataclass(frozen=True)
class MortgageRefinanceResult:
    new_monthly_payment: float
    monthly_payment_reduction: float
    current_total_interest: float
    refinance_total_interest: float
    interest_saved: float
    net_savings: float
    break_even_months: int


def calculate_mortgage_refinance(params: MortgageRefinanceParams) -> MortgageRefinanceResult:
    """
    Remaining interest on the current mortgage versus a new loan over refinance_term.

    net_savings = interest_saved - closing_costs. Interest figures involving the current
    loan are -1 when its payment never clears the balance. break_even_months is -1 when
    the monthly payment does not go down.
    """
    p = params
    if p.current_balance <= 0 or p.refinance_term <= 0:
        return MortgageRefinanceResult(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, -1)

    closing = max(p.closing_costs, 0.0)
    new_principal = p.current_balance + (closing if p.finance_closing_costs else 0.0)
    n = p.refinance_term * 12
    new_payment = monthly_payment(new_principal, p.refinance_rate, n)
    refinance_interest = new_payment * n - new_principal
    reduction = p.current_monthly_payment - new_payment

    current = _simulate_payoff(p.current_balance, p.current_rate, p.current_monthly_payment)
    if current is None:
        current_interest = interest_saved = net = -1.0
    else:
        current_interest = current.total_interest
        interest_saved = current_interest - refinance_interest
        net = interest_saved - closing

    break_even = int(math.ceil(closing / reduction)) if reduction > 0 else -1

    return MortgageRefinanceResult(
        new_monthly_payment=new_payment,
        monthly_payment_reduction=reduction,
        current_total_interest=current_interest,
        refinance_total_interest=refinance_interest,
        interest_saved=interest_saved,
        net_savings=net,
        break_even_months=break_even,
    )


# ---- Financing versus paying cash ----

@dataclass(frozen=True)
class FinancingParams:
    total_payment: float
    max_downpayment: float
    loan_interest_rate: float
    investment_returns_rate: float
    loan_rate_period: str = "yearly"  # monthly | yearly
    investment_compounding: int = 12
    loan_years: int = 5
    loan_months: int = 0
    inflation_rate: float = 0.0


@dataclass(frozen=True)
class FinancingOption:
    downpayment: float
    loan_amount: float
    total_loan_payment: float
    investment_principal: float
    investment_final_value: float
    net_profit: float
    real_net_profit: float


@dataclass
class FinancingResult:
    optimal_downpayment: float
    max_profit: float
    max_real_profit: float
    details: List[FinancingOption] = field(default_factory=list)


def calculate_financing(params: FinancingParams) -> FinancingResult:
    """
    Compare downpayments from 0 to max_downpayment.

    For each downpayment the rest of the price is financed, and the cash not put down
    (max_downpayment - downpayment) is invested for the loan term. Net profit is the
    investment gain minus the loan interest; real profit deflates it by inflation over
    the term. The optimal downpayment maximises net profit.
    """
    p = params
    cash = min(max(p.max_downpayment, 0.0), max(p.total_payment, 0.0))
    if p.total_payment <= 0:
        return FinancingResult(0.0, 0.0, 0.0, [])

    if p.loan_rate_period not in ("monthly", "yearly"):
        raise ValueError(f"Unsupported rate period: {p.loan_rate_period}")
    annual_loan_rate = annualize_rate(p.loan_interest_rate, p.loan_rate_period)

    n = total_months(p.loan_years, p.loan_months)
    years = n / 12.0
    deflator = (1.0 + p.inflation_rate / 100.0) ** years
    growth = growth_factor(p.investment_returns_rate / 100.0, p.investment_compounding, years)

    steps = max(1, get_settings().FINANCING_DOWNPAYMENT_STEPS)
    options: List[FinancingOption] = []
    for down in np.linspace(0.0, cash, steps + 1):
        down = float(down)
        loan = p.total_payment - down
        repaid = monthly_payment(loan, annual_loan_rate, n) * n if n > 0 else loan
        invested = cash - down
        final_value = invested * growth
        profit = (final_value - invested) - (repaid - loan)
        options.append(
            FinancingOption(
                downpayment=down,
                loan_amount=loan,
                total_loan_payment=repaid,
                investment_principal=invested,
                investment_final_value=final_value,
                net_profit=profit,
                real_net_profit=profit / deflator,
            )
        )

    best = options[int(np.argmax([o.net_profit for o in options]))]
    return FinancingResult(
        optimal_downpayment=best.downpayment,
        max_profit=best.net_profit,
        max_real_profit=best.real_net_profit,
        details=options,
    )
