from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from utils.economics import (
    FinancialSummary,
    build_financial_summary,
    calculate_net_upfront_cost,
    calculate_total_upfront_cost,
)
from utils.precision import (
    HUNDRED,
    ONE,
    ZERO,
    coerce_finite,
    engine_context,
    to_decimal,
    to_number,
)

PROJECTION_YEARS = 25
BASELINE_PANEL_EFFICIENCY = 21  # STC reference efficiency (%) that yield data is quoted against
DAYS_PER_YEAR = 365
MONTHS_PER_YEAR = 12

SUN_HOURS_MODES = ("daily", "yearly")
PRICING_MODES = ("perUnit", "bulk")
INVERTER_TYPES = ("String", "Micro")
FINANCING_MODES = ("cash", "loan")

_CHOICE_FIELDS: Dict[str, Tuple[str, ...]] = {
    "sun_hours_mode": SUN_HOURS_MODES,
    "pricing_mode": PRICING_MODES,
    "inverter_type": INVERTER_TYPES,
    "inverter_pricing_mode": PRICING_MODES,
    "battery_pricing_mode": PRICING_MODES,
    "financing_mode": FINANCING_MODES,
}

# Export keys that do not follow the plain camelCase conversion.
_EXPORT_KEY_OVERRIDES = {"battery_dod": "batteryDoD"}


def _export_key(name: str) -> str:
    if name in _EXPORT_KEY_OVERRIDES:
        return _EXPORT_KEY_OVERRIDES[name]
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class SolarConfig:
    """Residential PV + battery system description.

    Percent fields (inflation, tax credit, efficiencies, losses, DoD,
    degradation, APR) hold 0-100 values and are converted where used.
    """

    utility_cost_per_kwh: float = 0.18
    net_metering: bool = True
    net_metering_sell_rate: float = 0.08
    utility_inflation_rate: float = 3.0
    monthly_usage: float = 900.0
    federal_tax_credit: float = 30.0
    peak_sun_hours: float = 5.2
    sun_hours_mode: str = "daily"  # 'daily'|'yearly'
    panel_count: float = 24
    panel_wattage: float = 400.0
    panel_efficiency: float = 21.0
    panel_degradation_rate: float = 0.5
    # Panel pricing
    pricing_mode: str = "perUnit"  # 'perUnit'|'bulk'
    cost_per_panel: float = 280.0
    panel_bulk_count: float = 0
    panel_bulk_cost: float = 0.0
    inverter_type: str = "String"  # 'String'|'Micro'
    inverter_efficiency: float = 97.0
    # Inverter pricing
    inverter_pricing_mode: str = "perUnit"
    inverter_cost: float = 3500.0
    inverter_bulk_count: float = 0
    inverter_bulk_cost: float = 0.0
    cabling_loss: float = 2.0
    battery_enabled: bool = True
    battery_capacity: float = 13.5
    battery_dod: float = 90.0
    battery_power: float = 5.0
    # Battery pricing
    battery_pricing_mode: str = "perUnit"
    battery_cost: float = 12000.0
    battery_bulk_count: float = 0
    battery_bulk_cost: float = 0.0
    mounting_cost: float = 2500.0
    monitoring_cost: float = 800.0
    labor_cost: float = 6000.0
    other_fees: float = 1000.0
    # Loan financing
    financing_mode: str = "cash"  # 'cash'|'loan'
    loan_amount: float = 0.0
    loan_term_years: float = 0
    loan_interest_rate: float = 0.0
    credit_score: float = 0

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase mapping used by exports."""

        return {_export_key(name): value for name, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional["SolarConfig"] = None) -> "SolarConfig":
        """Build a config from camelCase or snake_case keys, ignoring unknown keys."""

        updates = {
            CONFIG_FIELD_BY_KEY[key]: value for key, value in data.items() if key in CONFIG_FIELD_BY_KEY
        }
        return replace(base or cls(), **updates)


@dataclass(frozen=True)
class SimulationInputs:
    """Outage and bill assumptions used only by the battery simulator."""

    critical_load_watts: float = 600.0
    cheapest_month_bill: float = 110.0
    expensive_month_bill: float = 260.0

    def to_dict(self) -> Dict[str, Any]:
        return {_export_key(name): value for name, value in asdict(self).items()}

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], base: Optional["SimulationInputs"] = None
    ) -> "SimulationInputs":
        updates = {
            SIMULATION_FIELD_BY_KEY[key]: value
            for key, value in data.items()
            if key in SIMULATION_FIELD_BY_KEY
        }
        return replace(base or cls(), **updates)


def _field_lookup(model: type) -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for f in fields(model):
        lookup[f.name] = f.name
        lookup[_export_key(f.name)] = f.name
    return lookup


CONFIG_FIELD_BY_KEY = _field_lookup(SolarConfig)
SIMULATION_FIELD_BY_KEY = _field_lookup(SimulationInputs)
CONFIG_EXPORT_KEYS: Tuple[str, ...] = tuple(_export_key(f.name) for f in fields(SolarConfig))
SIMULATION_EXPORT_KEYS: Tuple[str, ...] = tuple(_export_key(f.name) for f in fields(SimulationInputs))

DEFAULT_SOLAR_CONFIG = SolarConfig()
DEFAULT_SIMULATION_INPUTS = SimulationInputs()


@dataclass(frozen=True)
class ProjectionYear:
    year: int
    production_kwh: float
    degradation_percent: float
    energy_savings: float
    net_metering_income: float
    total_benefit: float
    cumulative_savings: float
    utility_cost_without_solar: float
    solar_system_cumulative: float

    def to_dict(self) -> Dict[str, Any]:
        return {_export_key(name): value for name, value in asdict(self).items()}


@dataclass(frozen=True)
class BatterySimulationResult:
    autonomy_hours: float
    savings_in_expensive_month: float
    covers_expensive_month: bool

    def to_dict(self) -> Dict[str, Any]:
        return {_export_key(name): value for name, value in asdict(self).items()}


@dataclass(frozen=True)
class ModelSnapshot:
    """Complete result of one simulation run, rebuilt from scratch each time."""

    projection: List[ProjectionYear]
    summary: FinancialSummary
    net_upfront_cost: float
    total_upfront_cost: float
    annual_production: float
    system_size_kw: float
    average_monthly_production: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projection": [row.to_dict() for row in self.projection],
            "summary": self.summary.to_dict(),
            "netUpfrontCost": self.net_upfront_cost,
            "totalUpfrontCost": self.total_upfront_cost,
            "annualProduction": self.annual_production,
            "systemSizeKw": self.system_size_kw,
            "averageMonthlyProduction": self.average_monthly_production,
        }


def _sanitize(instance: Any, defaults: Any) -> Tuple[Any, List[str]]:
    """Return a copy with numeric fields forced finite and choice fields validated.

    Flags only accept real booleans; anything else (such as the string
    ``"false"``) falls back to the default.
    """

    updates: Dict[str, Any] = {}
    replaced: List[str] = []
    for f in fields(instance):
        value = getattr(instance, f.name)
        default = getattr(defaults, f.name)
        if isinstance(default, bool):
            clean = value if isinstance(value, bool) else default
        elif isinstance(default, str):
            clean = value if value in _CHOICE_FIELDS.get(f.name, ()) else default
        else:
            clean = coerce_finite(value)
        # NaN never compares equal, so it is always replaced here.
        if clean != value:
            updates[f.name] = clean
            replaced.append(f.name)
    return (replace(instance, **updates) if updates else instance), replaced


def sanitize_config(config: SolarConfig) -> SolarConfig:
    """Return ``config`` with every numeric field coerced to a finite float."""

    clean, replaced = _sanitize(config, DEFAULT_SOLAR_CONFIG)
    if replaced:
        logging.getLogger(__name__).debug("Coerced config fields to defaults/zero: %s", replaced)
    return clean


def sanitize_simulation_inputs(simulation: SimulationInputs) -> SimulationInputs:
    """Return ``simulation`` with every numeric field coerced to a finite float."""

    clean, replaced = _sanitize(simulation, DEFAULT_SIMULATION_INPUTS)
    if replaced:
        logging.getLogger(__name__).debug("Coerced simulation fields to zero: %s", replaced)
    return clean


def calculate_system_size_kw(config: SolarConfig) -> float:
    """Return DC array size in kW."""

    with engine_context():
        return to_number(to_decimal(config.panel_count) * to_decimal(config.panel_wattage) / 1000)


def _daily_sun_hours(config: SolarConfig) -> Decimal:
    hours = to_decimal(config.peak_sun_hours)
    if config.sun_hours_mode == "yearly":
        return hours / DAYS_PER_YEAR
    return hours


def calculate_annual_production(config: SolarConfig) -> float:
    """Return first-year AC production (kWh).

    Panel efficiency scales yield relative to the STC baseline so a higher
    rated panel produces proportionally more from the same nameplate.
    """

    with engine_context():
        system_size = to_decimal(calculate_system_size_kw(config))
        inverter = to_decimal(config.inverter_efficiency) / HUNDRED
        cabling = ONE - to_decimal(config.cabling_loss) / HUNDRED
        efficiency = to_decimal(config.panel_efficiency) / BASELINE_PANEL_EFFICIENCY
        annual = system_size * _daily_sun_hours(config) * DAYS_PER_YEAR * inverter * cabling * efficiency
        return to_number(annual)


def build_projection(
    config: SolarConfig,
    annual_production: Optional[float] = None,
    net_upfront_cost: Optional[float] = None,
    years: int = PROJECTION_YEARS,
) -> List[ProjectionYear]:
    """Return the year-by-year production and savings series.

    Each row depends on the previous one through the running cumulative
    savings, and the utility rate compounds once per year. Both are carried
    as Decimals for the whole run; rows only hold the rounded floats.
    """

    if annual_production is None:
        annual_production = calculate_annual_production(config)
    if net_upfront_cost is None:
        net_upfront_cost = calculate_net_upfront_cost(config)

    with engine_context():
        base_production = to_decimal(annual_production)
        net_cost = to_decimal(net_upfront_cost)
        annual_consumption = to_decimal(config.monthly_usage) * MONTHS_PER_YEAR
        retention = ONE - to_decimal(config.panel_degradation_rate) / HUNDRED
        inflation = ONE + to_decimal(config.utility_inflation_rate) / HUNDRED
        sell_rate = to_decimal(config.net_metering_sell_rate)
        current_rate = to_decimal(config.utility_cost_per_kwh)
        cumulative = ZERO

        projection: List[ProjectionYear] = []
        for year_idx in range(years):
            # Decimal rejects 0 ** 0, which a 100% degradation rate would hit in year 1.
            degradation_factor = retention ** year_idx if year_idx > 0 else ONE
            production = base_production * degradation_factor
            consumed_on_site = min(production, annual_consumption)
            savings = consumed_on_site * current_rate
            surplus = max(production - annual_consumption, ZERO)
            net_meter_income = surplus * sell_rate if config.net_metering else ZERO
            total_benefit = savings + net_meter_income
            cumulative = cumulative + total_benefit
            remaining_cost = max(net_cost - cumulative, ZERO)
            utility_cost = annual_consumption * current_rate

            projection.append(
                ProjectionYear(
                    year=year_idx + 1,
                    production_kwh=to_number(production),
                    degradation_percent=to_number((ONE - degradation_factor) * HUNDRED),
                    energy_savings=to_number(savings),
                    net_metering_income=to_number(net_meter_income),
                    total_benefit=to_number(total_benefit),
                    cumulative_savings=to_number(cumulative),
                    utility_cost_without_solar=to_number(utility_cost),
                    solar_system_cumulative=to_number(remaining_cost),
                )
            )
            current_rate = current_rate * inflation

    return projection


def build_model_snapshot(
    config: SolarConfig, simulation: Optional[SimulationInputs] = None
) -> ModelSnapshot:
    """Run production, cost, projection and summary for one configuration.

    The snapshot is recomputed in full on every call; callers re-run it
    whenever any configuration value changes. ``simulation`` is accepted for
    call-site symmetry with :func:`run_battery_simulation` and does not
    affect the snapshot.
    """

    config = sanitize_config(config)

    system_size_kw = calculate_system_size_kw(config)
    annual_production = calculate_annual_production(config)
    total_upfront_cost = calculate_total_upfront_cost(config)
    net_upfront_cost = calculate_net_upfront_cost(config)

    projection = build_projection(config, annual_production, net_upfront_cost)
    summary = build_financial_summary(projection, net_upfront_cost, config)

    with engine_context():
        average_monthly_production = to_number(to_decimal(annual_production) / MONTHS_PER_YEAR)

    return ModelSnapshot(
        projection=projection,
        summary=summary,
        net_upfront_cost=net_upfront_cost,
        total_upfront_cost=total_upfront_cost,
        annual_production=annual_production,
        system_size_kw=system_size_kw,
        average_monthly_production=average_monthly_production,
    )


def run_battery_simulation(
    config: SolarConfig,
    simulation: SimulationInputs,
    snapshot: Optional[ModelSnapshot] = None,
) -> BatterySimulationResult:
    """Estimate outage autonomy and how much of the priciest bill is offset."""

    config = sanitize_config(config)
    simulation = sanitize_simulation_inputs(simulation)

    with engine_context():
        if snapshot is not None:
            avg_production = to_decimal(snapshot.average_monthly_production)
        else:
            avg_production = to_decimal(calculate_annual_production(config)) / MONTHS_PER_YEAR

        usable_capacity = (
            to_decimal(config.battery_capacity) * (to_decimal(config.battery_dod) / HUNDRED)
            if config.battery_enabled
            else ZERO
        )
        critical_load_watts = to_decimal(simulation.critical_load_watts)
        critical_load_kw = critical_load_watts / 1000 if critical_load_watts > 0 else ZERO
        autonomy_hours = usable_capacity / critical_load_kw if critical_load_kw > 0 else ZERO

        monthly_usage = to_decimal(config.monthly_usage)
        self_consumption = min(avg_production, monthly_usage)
        monthly_savings = self_consumption * to_decimal(config.utility_cost_per_kwh)
        if config.net_metering:
            surplus = max(avg_production - monthly_usage, ZERO)
            monthly_savings += surplus * to_decimal(config.net_metering_sell_rate)

        expensive_bill = to_decimal(simulation.expensive_month_bill)
        return BatterySimulationResult(
            autonomy_hours=to_number(autonomy_hours),
            savings_in_expensive_month=to_number(min(expensive_bill, monthly_savings)),
            covers_expensive_month=monthly_savings >= expensive_bill,
        )


__all__ = [
    "PROJECTION_YEARS",
    "BASELINE_PANEL_EFFICIENCY",
    "SUN_HOURS_MODES",
    "PRICING_MODES",
    "INVERTER_TYPES",
    "FINANCING_MODES",
    "CONFIG_FIELD_BY_KEY",
    "SIMULATION_FIELD_BY_KEY",
    "CONFIG_EXPORT_KEYS",
    "SIMULATION_EXPORT_KEYS",
    "DEFAULT_SOLAR_CONFIG",
    "DEFAULT_SIMULATION_INPUTS",
    "SolarConfig",
    "SimulationInputs",
    "ProjectionYear",
    "BatterySimulationResult",
    "ModelSnapshot",
    "FinancialSummary",
    "sanitize_config",
    "sanitize_simulation_inputs",
    "calculate_system_size_kw",
    "calculate_annual_production",
    "build_projection",
    "build_model_snapshot",
    "run_battery_simulation",
]
