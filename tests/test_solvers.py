import math

import pytest

from calculator_engine.compounding import calculate_future_value
from calculator_engine.loans import monthly_payment
from calculator_engine.solvers import (
    InterestRateParams,
    annuity_balance,
    calculate_interest_rate,
    calculate_irr,
    calculate_required_interest_rate,
    npv,
    solve_annuity_rate,
    solve_irr,
)


@pytest.fixture(scope="module")
def project_flows():
    return [-10000, 3000, 4000, 5000, 2000]


def test_npv_at_zero_is_sum(project_flows):
    assert npv(0.0, project_flows) == pytest.approx(sum(project_flows))


def test_irr_matches_closed_form():
    # -P now, F after n periods: (F / P)^(1/n) - 1
    assert abs(calculate_irr([-1000, 0, 0, 1331]) - 10.0) < 1e-4
    assert abs(calculate_irr([-1000, 1200]) - 20.0) < 1e-4


def test_irr_zeroes_npv(project_flows):
    res = solve_irr(project_flows)
    assert res.converged
    assert res.method == "newton"
    assert abs(npv(res.rate, project_flows)) < 1e-3, "NPV at the IRR should be ~0"
    assert 0.1 < res.rate < 0.2


def test_irr_undefined_without_sign_change():
    assert math.isnan(calculate_irr([100, 200, 300]))
    assert math.isnan(calculate_irr([-100, -200]))
    assert math.isnan(calculate_irr([-100]))
    assert solve_irr([100, 200]).method == "none"


def test_irr_multiple_roots_returns_one_of_them():
    # NPV(r) = 0 at r = 10% and r = 20%
    rate = solve_irr([-100, 230, -132]).rate
    assert min(abs(rate - 0.1), abs(rate - 0.2)) < 1e-6


def test_irr_falls_back_to_bracketing(engine_env):
    engine_env(IRR_MAX_ITERATIONS=1)
    res = solve_irr([-1000, 1200])
    assert res.method == "brentq"
    assert res.converged
    assert abs(res.rate - 0.2) < 1e-5


def test_required_rate_round_trip():
    rate = calculate_required_interest_rate(1000, 2000, 10)
    assert rate == pytest.approx((2 ** 0.1 - 1) * 100)
    assert calculate_future_value(1000, rate, 10) == pytest.approx(2000.0)
    assert calculate_required_interest_rate(0, 2000, 10) == 0.0
    assert calculate_required_interest_rate(1000, 2000, 0) == 0.0


def test_interest_rate_from_end_balance():
    res = calculate_interest_rate(InterestRateParams(principal=10000, second_figure=15000, years=5))
    assert res.apy_rate == pytest.approx((1.5 ** 0.2 - 1) * 100)
    assert res.total_interest == pytest.approx(5000.0)

    from_interest = calculate_interest_rate(
        InterestRateParams(10000, 5000, type_of_second_figure="interest", years=5)
    )
    assert from_interest.nominal_rate == pytest.approx(res.nominal_rate)

    projected = calculate_interest_rate(
        InterestRateParams(10000, res.nominal_rate, type_of_second_figure="interest-rate", years=5)
    )
    assert projected.end_balance == pytest.approx(15000.0)


def test_interest_rate_degenerate_and_unknown_type():
    assert calculate_interest_rate(InterestRateParams(0, 15000)).nominal_rate == 0.0
    with pytest.raises(ValueError):
        calculate_interest_rate(InterestRateParams(10000, 15000, type_of_second_figure="price"))


def test_annuity_identity_zero_rate():
    assert annuity_balance(0.0, 10, -100, 1000) == pytest.approx(0.0)


def test_annuity_rate_recovers_loan_rate():
    payment = monthly_payment(200000, 4.5, 360)
    rate = solve_annuity_rate(360, -payment, 200000)
    assert abs(rate - 0.00375) < 1e-7


def test_annuity_rate_edge_cases():
    assert abs(solve_annuity_rate(10, -100, 1000)) < 1e-6
    assert math.isnan(solve_annuity_rate(0, -100, 1000))
