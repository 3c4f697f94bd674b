"""
Financial Calculator Engine

Stateless calculators, one entry function per calculator:
- compounding: compound interest, savings/investment, daily and forex compounding, SIP, goals, retirement
- loans: amortization, dated loan schedules, mortgage, car loan, credit card and loan payoff, refinance, financing
- solvers: NPV, IRR, required rate, interest-rate and annuity-rate solving
- converters: APY/CAGR, margin/markup, unit, money, cash back, stock average and currency conversion
- reports: DataFrame views and QC flags over schedules
- validation: optional pre-call input checks
- config / logging_config: engine settings and structlog setup
"""
