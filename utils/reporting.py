"""Tabular views and display formatting for projection results."""
from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Sequence

import numpy as np
import pandas as pd

from utils.precision import coerce_finite, round_half_up, to_decimal

if TYPE_CHECKING:  # pragma: no cover - import only needed for annotations
    from services.simulation_core import ProjectionYear


PROJECTION_COLUMNS: tuple[str, ...] = (
    "year",
    "production_kwh",
    "degradation_percent",
    "energy_savings",
    "net_metering_income",
    "total_benefit",
    "cumulative_savings",
    "utility_cost_without_solar",
    "solar_system_cumulative",
)

# Columns that are annual flows and get spread evenly across months.
_MONTHLY_FLOW_COLUMNS: tuple[str, ...] = (
    "production_kwh",
    "energy_savings",
    "net_metering_income",
    "total_benefit",
    "utility_cost_without_solar",
)


def projection_to_frame(projection: Sequence["ProjectionYear"]) -> pd.DataFrame:
    """Return one row per projection year with the standard column order."""

    if not projection:
        return pd.DataFrame(columns=list(PROJECTION_COLUMNS))
    return pd.DataFrame([asdict(row) for row in projection], columns=list(PROJECTION_COLUMNS))


def expand_monthly_rows(projection: Sequence["ProjectionYear"]) -> pd.DataFrame:
    """Spread each projection year across 12 monthly rows.

    Flow columns are divided evenly by 12. Cumulative savings restart from
    the value at the start of the year and grow by one month of benefit per
    row, so the twelfth month lands on the year-end cumulative. Degradation
    and the remaining system cost are carried from the yearly row.
    """

    yearly = projection_to_frame(projection)
    columns = ["period_label", "month"] + list(PROJECTION_COLUMNS)
    if yearly.empty:
        return pd.DataFrame(columns=columns)

    monthly = yearly.loc[yearly.index.repeat(12)].reset_index(drop=True)
    month = np.tile(np.arange(1, 13), len(yearly))
    monthly.insert(0, "month", month)

    start_of_year = (yearly["cumulative_savings"] - yearly["total_benefit"]).clip(lower=0.0)
    monthly_benefit = yearly["total_benefit"] / 12.0
    monthly["cumulative_savings"] = np.repeat(start_of_year.to_numpy(), 12) + np.repeat(
        monthly_benefit.to_numpy(), 12
    ) * month

    for column in _MONTHLY_FLOW_COLUMNS:
        monthly[column] = monthly[column] / 12.0

    monthly.insert(
        0,
        "period_label",
        [f"Year {year} - Month {m:02d}" for year, m in zip(monthly["year"], monthly["month"])],
    )
    return monthly[columns]


def format_number(value: float, maximum_fraction_digits: int = 1, minimum_fraction_digits: int = 0) -> str:
    """Format with thousands separators, rounding half-up to at most ``maximum_fraction_digits``."""

    rounded = round_half_up(to_decimal(value), maximum_fraction_digits)
    text = f"{rounded:,f}"
    if "." in text:
        whole, fraction = text.split(".")
        fraction = fraction.rstrip("0")
        if len(fraction) < minimum_fraction_digits:
            fraction = fraction.ljust(minimum_fraction_digits, "0")
        text = f"{whole}.{fraction}" if fraction else whole
    elif minimum_fraction_digits > 0:
        text = f"{text}.{'0' * minimum_fraction_digits}"
    if text.startswith("-") and text.strip("-0.,") == "":
        text = text[1:]
    return text


def format_currency(value: float, maximum_fraction_digits: int = 0, minimum_fraction_digits: int = 0) -> str:
    """Format a USD amount, e.g. ``-$1,250``."""

    amount = coerce_finite(value)
    text = format_number(abs(amount), maximum_fraction_digits, minimum_fraction_digits)
    if amount < 0 and text.strip("0.,") != "":
        return f"-${text}"
    return f"${text}"


def format_percent(value: float, maximum_fraction_digits: int = 1) -> str:
    return f"{format_number(value, maximum_fraction_digits)}%"


__all__ = [
    "PROJECTION_COLUMNS",
    "projection_to_frame",
    "expand_monthly_rows",
    "format_number",
    "format_currency",
    "format_percent",
]
