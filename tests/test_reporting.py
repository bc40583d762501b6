import pandas as pd
import pytest

from services.simulation_core import SolarConfig, build_model_snapshot
from utils.reporting import (
    PROJECTION_COLUMNS,
    expand_monthly_rows,
    format_currency,
    format_number,
    format_percent,
    projection_to_frame,
)


def test_projection_frame_has_one_row_per_year() -> None:
    snapshot = build_model_snapshot(SolarConfig())
    frame = projection_to_frame(snapshot.projection)

    assert list(frame.columns) == list(PROJECTION_COLUMNS)
    assert len(frame) == 25
    assert frame["year"].tolist() == list(range(1, 26))
    assert frame["cumulative_savings"].is_monotonic_increasing


def test_empty_projection_frames_keep_columns() -> None:
    assert list(projection_to_frame([]).columns) == list(PROJECTION_COLUMNS)
    monthly = expand_monthly_rows([])
    assert monthly.empty
    assert "period_label" in monthly.columns


def test_monthly_rows_spread_each_year() -> None:
    snapshot = build_model_snapshot(SolarConfig())
    yearly = projection_to_frame(snapshot.projection)
    monthly = expand_monthly_rows(snapshot.projection)

    assert len(monthly) == 25 * 12
    assert monthly.loc[0, "period_label"] == "Year 1 - Month 01"
    assert monthly.loc[299, "period_label"] == "Year 25 - Month 12"

    first_year = monthly[monthly["year"] == 1]
    assert first_year["production_kwh"].sum() == pytest.approx(yearly.loc[0, "production_kwh"])
    assert first_year["total_benefit"].iloc[0] == pytest.approx(yearly.loc[0, "total_benefit"] / 12)
    assert first_year["degradation_percent"].eq(yearly.loc[0, "degradation_percent"]).all()

    # Month 12 lands on the year-end cumulative for every year.
    december = monthly[monthly["month"] == 12].reset_index(drop=True)
    pd.testing.assert_series_equal(
        december["cumulative_savings"],
        yearly["cumulative_savings"],
        check_names=False,
        rtol=1e-9,
    )


def test_monthly_cumulative_grows_within_year() -> None:
    monthly = expand_monthly_rows(build_model_snapshot(SolarConfig()).projection)
    first_year = monthly[monthly["year"] == 1]["cumulative_savings"]

    assert first_year.is_monotonic_increasing
    assert first_year.iloc[0] == pytest.approx(first_year.iloc[-1] / 12)


def test_format_helpers() -> None:
    assert format_currency(1234.5) == "$1,235"
    assert format_currency(-1250) == "-$1,250"
    assert format_currency(-0.2) == "$0"
    assert format_currency(99.456, maximum_fraction_digits=2) == "$99.46"
    assert format_number(1234.5678, 2) == "1,234.57"
    assert format_number(5.0) == "5"
    assert format_number(0.05) == "0.1"
    assert format_number(3, 2, minimum_fraction_digits=2) == "3.00"
    assert format_percent(12.345) == "12.3%"
    assert format_number(float("nan")) == "0"
