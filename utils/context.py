"""Plain-text system summaries handed to downstream text-generation tools."""
from __future__ import annotations

from dataclasses import fields
from typing import TYPE_CHECKING, List

from utils.reporting import format_number

if TYPE_CHECKING:  # pragma: no cover - import only needed for annotations
    from services.simulation_core import ModelSnapshot, SolarConfig


def find_missing_fields(config: "SolarConfig") -> List[str]:
    """Return config fields left at zero or blank, which usually means unset."""

    missing: List[str] = []
    for f in fields(config):
        value = getattr(config, f.name)
        if isinstance(value, bool):
            continue
        if value is None or value == "" or value == 0:
            missing.append(f.name)
    return missing


def build_context_text(snapshot: "ModelSnapshot", config: "SolarConfig", include_missing: bool = True) -> str:
    """Serialize the headline snapshot figures into a "System Summary" block."""

    summary = snapshot.summary
    break_even = summary.break_even_year if summary.break_even_year is not None else "Not reached"
    lines = [
        "System Summary:",
        f"Array Size: {snapshot.system_size_kw:.2f} kWdc",
        f"Annual Production: {snapshot.annual_production:.0f} kWh",
        f"Break-Even Year: {break_even}",
        f"25-Year Savings: ${summary.total_savings:.0f}",
        f"ROI: {format_number(summary.roi_percent, 1)}%",
        f"Net Upfront Cost: ${summary.net_upfront_cost:.0f}",
        f"Average Monthly Production: {snapshot.average_monthly_production:.0f} kWh",
        f"Net Metering: {'Enabled' if config.net_metering else 'Disabled'}",
    ]
    if config.financing_mode == "loan":
        lines.append(f"Monthly Loan Payment: ${summary.monthly_loan_payment:.2f}")
    if include_missing:
        missing = find_missing_fields(config)
        lines.append(f"Missing/Zero Fields: {', '.join(missing) if missing else 'None'}")
    return "\n".join(lines) + "\n"


__all__ = ["find_missing_fields", "build_context_text"]
