import numpy as np
import pytest

from calculator_engine.compounding import (
    CompoundInterestParams,
    DailyCompoundParams,
    ForexParams,
    InterestAccrual,
    InvestmentParams,
    RetirementParams,
    SIPParams,
    SavingsGoalParams,
    SavingsParams,
    calculate_compound_interest,
    calculate_daily_compound_interest,
    calculate_forex_compounding,
    calculate_future_value,
    calculate_how_long_money_lasts,
    calculate_investment,
    calculate_retirement,
    calculate_savings,
    calculate_savings_goal,
    calculate_simple_interest,
    calculate_sip,
)
from calculator_engine.utils import growth_factor


@pytest.fixture(scope="module")
def base_savings():
    return SavingsParams(initial_balance=10000, rate=8, years=1)


def test_accrual_monthly_credits_every_month():
    accrual = InterestAccrual(0.12, 12)
    assert accrual.advance(1000.0) == pytest.approx(10.0)


def test_accrual_quarterly_credits_every_third_month():
    accrual = InterestAccrual(0.12, 4)
    credited = [accrual.advance(1000.0) for _ in range(3)]
    assert credited[0] == 0.0
    assert credited[1] == 0.0
    assert credited[2] == pytest.approx(30.0)


def test_compound_interest_without_flows():
    res = calculate_compound_interest(CompoundInterestParams(principal=10000, rate=5, compounding_frequency=12, time=10))
    expected = 10000 * (1 + 0.05 / 12) ** 120
    assert res.final_amount == pytest.approx(expected, rel=1e-9)
    assert len(res.yearly_breakdown) == 10
    assert res.yearly_breakdown[-1].balance == res.final_amount
    assert res.total_interest == pytest.approx(res.final_amount - 10000)


def test_compound_interest_honours_frequency():
    monthly = calculate_compound_interest(CompoundInterestParams(10000, 6, 12, 5))
    yearly = calculate_compound_interest(CompoundInterestParams(10000, 6, 1, 5))
    assert yearly.final_amount == pytest.approx(10000 * 1.06 ** 5, rel=1e-9)
    assert monthly.final_amount > yearly.final_amount


def test_compound_interest_deposits_counted_with_principal():
    res = calculate_compound_interest(CompoundInterestParams(10000, 5, 12, 10, monthly_deposit=100))
    assert res.total_deposits == pytest.approx(10000 + 100 * 120)
    balances = np.array([row.balance for row in res.yearly_breakdown])
    assert np.all(np.diff(balances) > 0)


def test_compound_interest_withdrawal_clamped_to_balance():
    res = calculate_compound_interest(CompoundInterestParams(1000, 0, 12, 1, monthly_withdrawal=300))
    assert res.final_amount == 0.0
    assert res.total_withdrawals == pytest.approx(1000.0)


def test_compound_interest_negative_input_is_zeroed():
    res = calculate_compound_interest(CompoundInterestParams(-1, 5))
    assert res.final_amount == 0.0
    assert res.yearly_breakdown == []


def test_simple_interest_and_future_value():
    assert calculate_simple_interest(1000, 5, 2) == pytest.approx(100.0)
    assert calculate_future_value(1000, 10, 2) == pytest.approx(1210.0)
    assert calculate_future_value(0, 10, 2, payment_per_period=100) == pytest.approx(210.0)
    assert calculate_future_value(1000, 0, 5, payment_per_period=100) == pytest.approx(1500.0)


def test_savings_without_flows_matches_monthly_compounding(base_savings):
    res = calculate_savings(base_savings)
    assert res.final_balance == pytest.approx(10000 * (1 + 0.08 / 12) ** 12, rel=1e-9)
    assert len(res.monthly_breakdown) == 12
    assert len(res.yearly_breakdown) == 1


@pytest.mark.parametrize("frequency", [1, 2, 4, 12, 52, 365])
def test_savings_matches_growth_factor(frequency):
    res = calculate_savings(SavingsParams(10000, 8, compounding_frequency=frequency, years=1, months=1))
    expected = 10000 * growth_factor(0.08, frequency, 13 / 12)
    assert res.final_balance == pytest.approx(expected, rel=1e-9)


def test_savings_apy_and_monthly_rates():
    apy = calculate_savings(SavingsParams(10000, 5, rate_type="apy", years=1))
    assert apy.final_balance == pytest.approx(10500.0, rel=1e-9)
    monthly = calculate_savings(SavingsParams(10000, 1, rate_interval="monthly", years=1))
    assert monthly.final_balance == pytest.approx(10000 * 1.01 ** 12, rel=1e-9)


def test_savings_deposits_step_up_yearly():
    res = calculate_savings(SavingsParams(10000, 0, years=2, deposit_amount=100, deposit_increase_rate=10))
    assert res.additional_deposits == pytest.approx(1200 + 1320)
    assert res.final_balance == pytest.approx(10000 + 2520)


def test_savings_quarterly_deposits_land_at_interval_start():
    res = calculate_savings(SavingsParams(0, 0, years=1, deposit_amount=100, deposit_frequency="quarterly"))
    months = [row.month for row in res.monthly_breakdown if row.deposits > 0]
    assert months == [1, 4, 7, 10]
    assert res.additional_deposits == pytest.approx(400.0)


def test_fixed_withdrawal_clamped_to_balance():
    res = calculate_savings(SavingsParams(1000, 0, years=1, withdrawal_amount=400))
    withdrawals = [row.withdrawals for row in res.monthly_breakdown]
    assert withdrawals[:4] == pytest.approx([400.0, 400.0, 200.0, 0.0])
    assert res.final_balance == 0.0
    assert res.total_withdrawals == pytest.approx(1000.0)


def test_percent_of_balance_never_negative():
    res = calculate_savings(
        SavingsParams(10000, 6, years=2, withdrawal_amount=50, withdrawal_type="percent-of-balance")
    )
    for row in res.monthly_breakdown:
        assert row.balance >= 0.0, f"Negative balance in month {row.month}"
        assert row.withdrawals == pytest.approx(row.balance)


def test_share_above_hundred_percent_empties_account():
    res = calculate_savings(
        SavingsParams(10000, 6, years=1, withdrawal_amount=150, withdrawal_type="percent-of-balance")
    )
    assert res.monthly_breakdown[0].balance == 0.0
    assert res.final_balance == 0.0


def test_percent_of_interest_keeps_principal():
    res = calculate_savings(
        SavingsParams(10000, 6, years=3, withdrawal_amount=100, withdrawal_type="percent-of-interest")
    )
    assert res.final_balance == pytest.approx(10000.0, rel=1e-9)
    assert res.total_withdrawals == pytest.approx(res.total_interest)


def test_savings_rejects_unknown_enums(base_savings):
    from dataclasses import replace

    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, withdrawal_type="everything"))
    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, rate_interval="hourly"))
    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, deposit_frequency="weekly"))


def test_savings_negative_input_is_zeroed(base_savings):
    from dataclasses import replace

    res = calculate_savings(replace(base_savings, initial_balance=-5))
    assert res.final_balance == 0.0
    assert res.monthly_breakdown == []


def test_investment_runs_savings_engine():
    inv = calculate_investment(InvestmentParams(principal=5000, annual_rate=7, years=3, regular_deposit=50))
    sav = calculate_savings(SavingsParams(5000, 7, years=3, deposit_amount=50))
    assert inv.final_balance == sav.final_balance


def test_forex_monthly_return():
    res = calculate_forex_compounding(ForexParams(principal=1000, rate=1, rate_interval="monthly", years=1))
    assert res.final_balance == pytest.approx(1000 * 1.01 ** 12, rel=1e-9)
    assert res.total_earning == pytest.approx(res.final_balance - 1000)
    assert res.annualized_return == pytest.approx((1.01 ** 12 - 1) * 100)


def test_daily_compound_every_day():
    res = calculate_daily_compound_interest(
        DailyCompoundParams(10000, 3.65, years=0, months=0, days=10, start_date="2025-01-01")
    )
    assert res.total_days == 10
    assert res.business_days == 10
    assert res.final_amount == pytest.approx(10000 * 1.0001 ** 10, rel=1e-12)
    assert len(res.monthly_breakdown) == 1


def test_daily_compound_business_days_only():
    # 2025-01-06 is a Monday; accrual runs Jan 7 to Jan 20
    res = calculate_daily_compound_interest(
        DailyCompoundParams(
            10000, 3.65, years=0, days=14, start_date="2025-01-06",
            included_days=("M", "TU", "W", "TH", "F"),
        )
    )
    assert res.business_days == 10
    assert res.final_amount == pytest.approx(10000 * 1.0001 ** 10, rel=1e-12)


def test_daily_compound_without_reinvestment():
    res = calculate_daily_compound_interest(
        DailyCompoundParams(10000, 3.65, years=0, days=10, reinvestment_rate=0, start_date="2025-01-01")
    )
    assert res.final_amount == pytest.approx(10000.0)
    assert res.total_interest == pytest.approx(10.0)
    assert res.total_withdrawals == pytest.approx(res.total_interest)


def test_daily_compound_contribution_schedules():
    weekly = calculate_daily_compound_interest(
        DailyCompoundParams(1000, 0, years=0, days=14, additional_contribution=25,
                            contribution_frequency=52, start_date="2025-01-01")
    )
    assert weekly.total_deposits == pytest.approx(50.0)

    monthly = calculate_daily_compound_interest(
        DailyCompoundParams(1000, 0, years=1, additional_contribution=100,
                            contribution_frequency=12, start_date="2025-01-31")
    )
    assert monthly.total_days == 365
    assert monthly.total_deposits == pytest.approx(1200.0)
    assert len(monthly.monthly_breakdown) == 12


def test_daily_compound_rejects_unknown_weekday():
    with pytest.raises(ValueError):
        calculate_daily_compound_interest(DailyCompoundParams(1000, 5, included_days=("MO",)))


def test_sip_matches_annuity_due():
    res = calculate_sip(SIPParams(regular_investment=5000, expected_return=12, years=5))
    expected = 5000 * ((1.01 ** 60 - 1) / 0.01) * 1.01
    assert res.maturity_amount == pytest.approx(expected, rel=1e-9)
    assert res.total_investment == pytest.approx(300000.0)
    assert res.total_returns == pytest.approx(expected - 300000.0, rel=1e-9)


def test_sip_step_up_and_partial_periods():
    stepped = calculate_sip(SIPParams(5000, 12, years=5, investment_increase_rate=10))
    assert stepped.total_investment == pytest.approx(60000 * (1 + 1.1 + 1.21 + 1.331 + 1.4641))

    quarterly = calculate_sip(SIPParams(1000, 8, years=1, months=7, investment_frequency="quarterly"))
    assert quarterly.total_investment == pytest.approx(6000.0)


def test_savings_goal_months():
    res = calculate_savings_goal(SavingsGoalParams(target_amount=1200, current_savings=0, contribution=100, interest_rate=0))
    assert res.months_to_goal == 12
    assert res.years_to_goal == pytest.approx(1.0)
    assert res.interest_earned == pytest.approx(0.0)

    weekly = calculate_savings_goal(SavingsGoalParams(5000, 0, 100, 0, contribution_frequency="weekly"))
    assert weekly.months_to_goal == 12


def test_savings_goal_already_met_and_unreachable():
    met = calculate_savings_goal(SavingsGoalParams(1000, 1500, 0, 0))
    assert met.months_to_goal == 0

    never = calculate_savings_goal(SavingsGoalParams(1000, 0, 0, 0))
    assert never.months_to_goal == -1
    assert never.total_contributions == -1


def test_interest_shortens_goal():
    plain = calculate_savings_goal(SavingsGoalParams(50000, 1000, 500, 0))
    earning = calculate_savings_goal(SavingsGoalParams(50000, 1000, 500, 6))
    assert earning.months_to_goal < plain.months_to_goal
    assert earning.interest_earned > 0


def test_how_long_money_lasts():
    assert calculate_how_long_money_lasts(10000, 1000, 0) == 10
    assert calculate_how_long_money_lasts(10000, 50, 12) == -1
    assert calculate_how_long_money_lasts(0, 100, 5) == 0
    assert calculate_how_long_money_lasts(10000, 1000, 6) > 10


def test_retirement_without_growth():
    res = calculate_retirement(
        RetirementParams(current_age=30, retirement_age=40, current_savings=0, monthly_contribution=1000,
                         expected_return=0, inflation_rate=0, desired_monthly_income=1000)
    )
    assert res.total_savings_at_retirement == pytest.approx(120000.0)
    assert res.monthly_income_generated == pytest.approx(400.0)
    assert res.shortfall == pytest.approx(600.0)
    assert res.recommended_monthly_savings == pytest.approx(2500.0)


def test_retirement_past_retirement_age_is_zeroed():
    res = calculate_retirement(RetirementParams(65, 60, 1000, 100, 5, 2, 3000))
    assert res.total_savings_at_retirement == 0.0


def test_daily_compound_weekly_rate_matches_daily_equivalent():
    weekly = calculate_daily_compound_interest(
        DailyCompoundParams(10000, 0.7, rate_interval="weekly", years=0, days=30, start_date="2025-01-01")
    )
    daily = calculate_daily_compound_interest(
        DailyCompoundParams(10000, 0.1, rate_interval="daily", years=0, days=30, start_date="2025-01-01")
    )
    assert weekly.final_amount == pytest.approx(daily.final_amount, rel=1e-12)
    assert weekly.final_amount == pytest.approx(10000 * 1.001 ** 30, rel=1e-9)


def test_savings_rate_type_checked_for_every_interval(base_savings):
    from dataclasses import replace

    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, rate_interval="monthly", rate_type="bogus"))
    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, rate_interval="yearly", rate_type="bogus"))
    # an APY is an annual figure
    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, rate=1, rate_interval="monthly", rate_type="apy"))

    nominal = calculate_savings(replace(base_savings, rate=1, rate_interval="monthly", rate_type="nominal"))
    assert nominal.final_balance == pytest.approx(10000 * 1.01 ** 12, rel=1e-9)


@pytest.mark.parametrize("frequency", [0, -4])
def test_non_positive_compounding_frequency_rejected(base_savings, frequency):
    from dataclasses import replace

    with pytest.raises(ValueError):
        InterestAccrual(0.12, frequency)
    with pytest.raises(ValueError):
        calculate_savings(replace(base_savings, compounding_frequency=frequency))
    with pytest.raises(ValueError):
        calculate_compound_interest(CompoundInterestParams(1000, 12, compounding_frequency=frequency))
