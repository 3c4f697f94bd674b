"""
Optional pre-call validation.

Calculators never raise for out-of-range numbers; they return zeroed or sentinel results.
Callers that would rather reject bad input up front run these validators first: every
violation is collected and raised together as InvalidCalculationInput.
"""
from __future__ import annotations

import math
from typing import List, Sequence

from .compounding import SavingsParams, WITHDRAWAL_TYPES
from .loans import LoanParams


class InvalidCalculationInput(ValueError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def _non_negative(errors: List[str], name: str, value: float) -> None:
    if not math.isfinite(value):
        errors.append(f"{name} must be finite")
    elif value < 0:
        errors.append(f"{name} must be non-negative")


def _positive(errors: List[str], name: str, value: float) -> None:
    if not math.isfinite(value):
        errors.append(f"{name} must be finite")
    elif value <= 0:
        errors.append(f"{name} must be positive")


def validate_loan_params(params: LoanParams) -> None:
    errors: List[str] = []
    _positive(errors, "principal", params.principal)
    _non_negative(errors, "rate", params.rate)
    _positive(errors, "term", params.term)
    if errors:
        raise InvalidCalculationInput(errors)


def validate_savings_params(params: SavingsParams) -> None:
    errors: List[str] = []
    _non_negative(errors, "initial_balance", params.initial_balance)
    _non_negative(errors, "rate", params.rate)
    _non_negative(errors, "deposit_amount", params.deposit_amount)
    _non_negative(errors, "withdrawal_amount", params.withdrawal_amount)

    if params.years < 0 or not 0 <= params.months <= 11:
        errors.append("term must be years >= 0 and 0 <= months <= 11")
    elif params.years * 12 + params.months == 0:
        errors.append("term must be at least one month")

    if params.compounding_frequency <= 0:
        errors.append("compounding_frequency must be positive")
    if params.withdrawal_type not in WITHDRAWAL_TYPES:
        errors.append(f"withdrawal_type must be one of {', '.join(WITHDRAWAL_TYPES)}")
    elif params.withdrawal_type != "fixed-amount" and params.withdrawal_amount > 100:
        errors.append("percentage withdrawals cannot exceed 100")

    if errors:
        raise InvalidCalculationInput(errors)


def validate_cash_flows(cash_flows: Sequence[float]) -> None:
    errors: List[str] = []
    if len(cash_flows) < 2:
        errors.append("at least two cash flows are required")
    if any(not math.isfinite(cf) for cf in cash_flows):
        errors.append("cash flows must be finite")
    if not (any(cf > 0 for cf in cash_flows) and any(cf < 0 for cf in cash_flows)):
        errors.append("cash flows need at least one inflow and one outflow")
    if errors:
        raise InvalidCalculationInput(errors)
