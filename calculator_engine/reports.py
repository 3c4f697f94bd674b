from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import asdict, fields, is_dataclass
from typing import Sequence

from .loans import LoanResult


def schedule_frame(rows: Sequence[object]) -> pd.DataFrame:
    """Any breakdown or schedule (sequence of dataclass rows) as a DataFrame, one column per field."""
    rows = list(rows)
    if not rows:
        return pd.DataFrame()
    if not is_dataclass(rows[0]):
        raise TypeError("schedule rows must be dataclass instances")
    return pd.DataFrame([asdict(r) for r in rows], columns=[f.name for f in fields(rows[0])])


def amortization_qc_report(result: LoanResult, tol: float = 1e-6) -> pd.DataFrame:
    """
    Amortization schedule with QC flags:
    - balance_non_negative: ending balance never below zero
    - balance_monotone: balance never increases
    - split_consistent: payment == principal + interest
    """
    df = schedule_frame(result.amortization_schedule)
    if df.empty:
        return df

    df["balance_non_negative"] = df["balance"] >= -tol
    df["balance_monotone"] = np.r_[True, np.diff(df["balance"].to_numpy()) <= tol]
    df["split_consistent"] = np.isclose(df["payment"], df["principal"] + df["interest"], atol=tol)
    return df


def yearly_amortization_summary(result: LoanResult) -> pd.DataFrame:
    """Payments grouped by loan year (months 1-12 -> year 1, ...)."""
    df = schedule_frame(result.amortization_schedule)
    if df.empty:
        return df

    df["year"] = (df["month"] - 1) // 12 + 1
    out = df.groupby("year", as_index=False).agg(
        payment=("payment", "sum"),
        principal=("principal", "sum"),
        interest=("interest", "sum"),
        balance=("balance", "last"),
    )
    return out


def breakdown_qc_report(rows: Sequence[object], tol: float = 1e-9) -> pd.DataFrame:
    """Savings/compound breakdown with a balance_non_negative flag."""
    df = schedule_frame(rows)
    if df.empty:
        return df
    df["balance_non_negative"] = df["balance"] >= -tol
    return df
