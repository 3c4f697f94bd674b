from __future__ import annotations

import numpy as np
import structlog
from dataclasses import dataclass
from typing import Optional, Sequence

from scipy.optimize import brentq, newton

from .config import get_settings
from .utils import effective_annual_rate, nominal_from_effective

logger = structlog.get_logger(__name__)

# Rate grid scanned for a sign change when Newton fails: dense near zero, coarse up to 1000 %.
_FALLBACK_GRID = np.concatenate([np.linspace(-0.99, 1.0, 400), np.linspace(1.0, 10.0, 91)[1:]])


def npv(rate: float, cash_flows: Sequence[float]) -> float:
    """NPV of flows at t = 0, 1, 2, ... discounted at a decimal rate per period."""
    cfs = np.asarray(cash_flows, dtype=float)
    t = np.arange(len(cfs), dtype=float)
    with np.errstate(all="ignore"):
        return float(np.sum(cfs / (1.0 + rate) ** t))


def npv_derivative(rate: float, cash_flows: Sequence[float]) -> float:
    """d NPV / d rate."""
    cfs = np.asarray(cash_flows, dtype=float)
    t = np.arange(len(cfs), dtype=float)
    with np.errstate(all="ignore"):
        return float(np.sum(-t * cfs / (1.0 + rate) ** (t + 1.0)))


def _bracketed_root(f, grid: np.ndarray, xtol: float) -> Optional[float]:
    """Root of f by brentq on the first sign change along grid, or None."""
    with np.errstate(all="ignore"):
        values = np.array([f(x) for x in grid], dtype=float)

    finite = np.isfinite(values)
    for i in range(len(grid) - 1):
        if not (finite[i] and finite[i + 1]):
            continue
        if values[i] == 0.0:
            return float(grid[i])
        if values[i] * values[i + 1] < 0:
            return float(brentq(f, grid[i], grid[i + 1], xtol=xtol, maxiter=500))
    return None


@dataclass(frozen=True)
class IRRResult:
    rate: float        # decimal per period, nan when no rate was found
    iterations: int
    converged: bool
    method: str        # newton | brentq | newton-unconverged | none


def solve_irr(cash_flows: Sequence[float], guess: Optional[float] = None) -> IRRResult:
    """
    Rate r with NPV(r) = 0 for flows at t = 0, 1, 2, ...

    1. Newton-Raphson with the analytic derivative from `guess` (IRR_INITIAL_GUESS),
       capped at IRR_MAX_ITERATIONS, tolerance IRR_TOLERANCE on the step.
    2. If Newton does not converge to a rate above -100 %, brentq on the first sign
       change of NPV along a fixed rate grid.
    3. Otherwise the last finite Newton iterate, flagged converged=False.

    Flows with several sign changes can have several IRRs; the result is whichever
    root the steps above reach first.
    """
    settings = get_settings()
    cfs = np.asarray(cash_flows, dtype=float)

    if len(cfs) < 2 or not (np.any(cfs > 0) and np.any(cfs < 0)):
        logger.debug("irr_undefined", reason="flows need both signs", n_flows=len(cfs))
        return IRRResult(float("nan"), 0, False, "none")

    x0 = settings.IRR_INITIAL_GUESS if guess is None else guess

    def f(r: float) -> float:
        return npv(r, cfs)

    def fprime(r: float) -> float:
        return npv_derivative(r, cfs)

    with np.errstate(all="ignore"):
        root, info = newton(
            f,
            x0,
            fprime=fprime,
            tol=settings.IRR_TOLERANCE,
            maxiter=settings.IRR_MAX_ITERATIONS,
            full_output=True,
            disp=False,
        )
    root = float(root)

    if info.converged and np.isfinite(root) and root > -1.0:
        return IRRResult(root, int(info.iterations), True, "newton")

    logger.warning("irr_newton_failed", iterations=int(info.iterations), last_rate=root, flag=info.flag)

    bracketed = _bracketed_root(f, _FALLBACK_GRID, settings.IRR_TOLERANCE)
    if bracketed is not None:
        return IRRResult(bracketed, int(info.iterations), True, "brentq")

    if np.isfinite(root):
        return IRRResult(root, int(info.iterations), False, "newton-unconverged")
    return IRRResult(float("nan"), int(info.iterations), False, "none")


def calculate_irr(cash_flows: Sequence[float]) -> float:
    """IRR in percent (nan when undefined)."""
    return solve_irr(cash_flows).rate * 100.0


def calculate_required_interest_rate(present_value: float, future_value: float, periods: float) -> float:
    """Rate (percent per period) growing present_value into future_value: (FV/PV)^(1/n) - 1."""
    if present_value <= 0 or periods <= 0 or future_value < 0:
        return 0.0
    return ((future_value / present_value) ** (1.0 / periods) - 1.0) * 100.0


@dataclass(frozen=True)
class InterestRateParams:
    principal: float
    second_figure: float
    type_of_second_figure: str = "end-balance"  # end-balance | interest | interest-rate
    years: int = 5
    months: int = 0
    compounding_frequency: int = 12


@dataclass(frozen=True)
class InterestRateResult:
    nominal_rate: float  # percent, compounded compounding_frequency times a year
    apy_rate: float      # percent
    total_interest: float
    end_balance: float


def calculate_interest_rate(params: InterestRateParams) -> InterestRateResult:
    """
    Rate implied by a principal and a second figure over years + months.

    The second figure is the end balance, the interest earned, or the nominal rate itself
    (in which case the end balance is projected instead).
    """
    p = params
    kind = p.type_of_second_figure
    if kind not in ("end-balance", "interest", "interest-rate"):
        raise ValueError(f"Unsupported second figure type: {kind}")

    t = p.years + p.months / 12.0
    if p.principal <= 0 or t <= 0:
        return InterestRateResult(0.0, 0.0, 0.0, 0.0)

    m = p.compounding_frequency
    if kind == "interest-rate":
        nominal = p.second_figure / 100.0
        apy = effective_annual_rate(nominal, m)
        end = p.principal * (1.0 + apy) ** t
    else:
        end = p.second_figure if kind == "end-balance" else p.principal + p.second_figure
        if end < 0:
            return InterestRateResult(0.0, 0.0, 0.0, 0.0)
        apy = (end / p.principal) ** (1.0 / t) - 1.0
        nominal = nominal_from_effective(apy, m)

    return InterestRateResult(
        nominal_rate=nominal * 100.0,
        apy_rate=apy * 100.0,
        total_interest=end - p.principal,
        end_balance=end,
    )


def annuity_balance(rate: float, periods: int, payment: float, present_value: float, future_value: float = 0.0) -> float:
    """
    Spreadsheet-convention annuity identity (payments at period end):

      pv * (1+r)^n + pmt * ((1+r)^n - 1) / r + fv = 0
    """
    if abs(rate) < 1e-12:
        return present_value + payment * periods + future_value
    with np.errstate(all="ignore"):
        growth = float(np.power(1.0 + rate, float(periods)))
    return present_value * growth + payment * (growth - 1.0) / rate + future_value


def solve_annuity_rate(
    periods: int,
    payment: float,
    present_value: float,
    future_value: float = 0.0,
    guess: float = 0.01,
) -> float:
    """
    Periodic rate (decimal) solving the annuity identity, like a spreadsheet RATE().

    Money received is positive, money paid negative: a 200000 loan repaid by 360 payments of
    1013.37 is solve_annuity_rate(360, -1013.37, 200000). Secant Newton first, then a bracketed
    brentq; nan when neither finds a rate.
    """
    if periods <= 0:
        return float("nan")

    settings = get_settings()

    def f(r: float) -> float:
        return annuity_balance(r, periods, payment, present_value, future_value)

    with np.errstate(all="ignore"):
        root, info = newton(
            f,
            guess,
            tol=settings.IRR_TOLERANCE * 1e-3,
            maxiter=settings.IRR_MAX_ITERATIONS,
            full_output=True,
            disp=False,
        )
    root = float(root)
    if info.converged and np.isfinite(root) and root > -1.0:
        return root

    bracketed = _bracketed_root(f, _FALLBACK_GRID, settings.IRR_TOLERANCE * 1e-3)
    if bracketed is None:
        logger.warning("annuity_rate_not_found", periods=periods, payment=payment, pv=present_value)
        return float("nan")
    return bracketed
