import pytest

from services.simulation_core import (
    BatterySimulationResult,
    SimulationInputs,
    SolarConfig,
    build_model_snapshot,
    run_battery_simulation,
)


def test_default_battery_autonomy_and_bill_offset() -> None:
    cfg = SolarConfig()
    snapshot = build_model_snapshot(cfg)

    result = run_battery_simulation(cfg, SimulationInputs(), snapshot)

    assert isinstance(result, BatterySimulationResult)
    # 13.5 kWh * 90% usable over a 0.6 kW critical load
    assert result.autonomy_hours == pytest.approx(20.25)
    monthly_production = 17320.69248 / 12
    expected_savings = 900 * 0.18 + (monthly_production - 900) * 0.08
    assert result.savings_in_expensive_month == pytest.approx(expected_savings)
    assert result.covers_expensive_month is False


def test_disabled_battery_has_no_autonomy() -> None:
    cfg = SolarConfig(battery_enabled=False)

    for load in (1.0, 600.0, 5_000.0):
        result = run_battery_simulation(cfg, SimulationInputs(critical_load_watts=load))
        assert result.autonomy_hours == 0.0


def test_zero_or_negative_critical_load_has_no_autonomy() -> None:
    cfg = SolarConfig()

    assert run_battery_simulation(cfg, SimulationInputs(critical_load_watts=0)).autonomy_hours == 0.0
    assert run_battery_simulation(cfg, SimulationInputs(critical_load_watts=-250)).autonomy_hours == 0.0


def test_small_bill_is_fully_covered() -> None:
    cfg = SolarConfig(net_metering=False)

    result = run_battery_simulation(cfg, SimulationInputs(expensive_month_bill=150))

    assert result.covers_expensive_month is True
    assert result.savings_in_expensive_month == pytest.approx(150.0)


def test_net_metering_off_only_counts_self_consumption() -> None:
    cfg = SolarConfig(net_metering=False)

    result = run_battery_simulation(cfg, SimulationInputs(expensive_month_bill=500))

    assert result.savings_in_expensive_month == pytest.approx(900 * 0.18)
    assert result.covers_expensive_month is False


def test_snapshot_is_optional_and_matches_derived_average() -> None:
    cfg = SolarConfig(panel_count=12)
    sim = SimulationInputs(critical_load_watts=900, expensive_month_bill=120)

    with_snapshot = run_battery_simulation(cfg, sim, build_model_snapshot(cfg))
    without_snapshot = run_battery_simulation(cfg, sim)

    assert with_snapshot.savings_in_expensive_month == pytest.approx(without_snapshot.savings_in_expensive_month)
    assert with_snapshot.covers_expensive_month == without_snapshot.covers_expensive_month


def test_non_finite_simulation_inputs_are_treated_as_zero() -> None:
    sim = SimulationInputs(critical_load_watts=float("nan"), expensive_month_bill=None)  # type: ignore[arg-type]

    result = run_battery_simulation(SolarConfig(), sim)

    assert result.autonomy_hours == 0.0
    assert result.savings_in_expensive_month == 0.0
    assert result.covers_expensive_month is True
