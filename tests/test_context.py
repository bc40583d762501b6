from services.simulation_core import SolarConfig, build_model_snapshot
from utils.context import build_context_text, find_missing_fields


def test_context_block_lists_headline_figures() -> None:
    cfg = SolarConfig()
    snapshot = build_model_snapshot(cfg)

    text = build_context_text(snapshot, cfg)

    assert text.startswith("System Summary:\n")
    assert "Array Size: 9.60 kWdc" in text
    assert "Annual Production: 17321 kWh" in text
    assert f"Break-Even Year: {snapshot.summary.break_even_year}" in text
    assert f"Net Upfront Cost: ${snapshot.summary.net_upfront_cost:.0f}" in text
    assert "Average Monthly Production: 1443 kWh" in text
    assert "Net Metering: Enabled" in text
    assert "Monthly Loan Payment" not in text
    assert text.endswith("\n")


def test_context_reports_unreached_break_even_and_loan() -> None:
    cfg = SolarConfig(
        other_fees=5_000_000,
        net_metering=False,
        financing_mode="loan",
        loan_amount=10_000,
        loan_term_years=10,
        loan_interest_rate=5,
    )
    text = build_context_text(build_model_snapshot(cfg), cfg)

    assert "Break-Even Year: Not reached" in text
    assert "Net Metering: Disabled" in text
    assert "Monthly Loan Payment: $106.07" in text


def test_missing_fields_flag_zero_values_only() -> None:
    cfg = SolarConfig(mounting_cost=0, battery_enabled=False)
    missing = find_missing_fields(cfg)

    assert "mounting_cost" in missing
    assert "panel_bulk_count" in missing
    assert "battery_enabled" not in missing
    assert "panel_count" not in missing


def test_missing_fields_section_can_be_omitted() -> None:
    cfg = SolarConfig()
    text = build_context_text(build_model_snapshot(cfg), cfg, include_missing=False)

    assert "Missing/Zero Fields" not in text
