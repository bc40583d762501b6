from __future__ import annotations

import os
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator, model_validator

from services.simulation_core import (
    FINANCING_MODES,
    INVERTER_TYPES,
    PRICING_MODES,
    SUN_HOURS_MODES,
    SimulationInputs,
    SolarConfig,
    build_model_snapshot,
    run_battery_simulation,
)
from utils.context import build_context_text
from utils.economics import estimate_loan_rate
from utils.io import ConfigImportError, build_export_payload, export_filename, import_config
from utils.reporting import expand_monthly_rows

_DEFAULT_CFG = SolarConfig()
_DEFAULT_SIM = SimulationInputs()


def _check_choice(value: str, choices: tuple, field_name: str) -> str:
    if value not in choices:
        raise ValueError(f"{field_name} must be one of {choices}")
    return value


class SolarConfigPayload(BaseModel):
    """Pydantic mirror of :class:`SolarConfig` for FastAPI requests.

    Numeric fields accept ``null``; the engine treats missing numbers as zero.
    """

    utility_cost_per_kwh: Optional[float] = _DEFAULT_CFG.utility_cost_per_kwh
    net_metering: bool = _DEFAULT_CFG.net_metering
    net_metering_sell_rate: Optional[float] = _DEFAULT_CFG.net_metering_sell_rate
    utility_inflation_rate: Optional[float] = _DEFAULT_CFG.utility_inflation_rate
    monthly_usage: Optional[float] = _DEFAULT_CFG.monthly_usage
    federal_tax_credit: Optional[float] = _DEFAULT_CFG.federal_tax_credit
    peak_sun_hours: Optional[float] = _DEFAULT_CFG.peak_sun_hours
    sun_hours_mode: str = _DEFAULT_CFG.sun_hours_mode
    panel_count: Optional[float] = _DEFAULT_CFG.panel_count
    panel_wattage: Optional[float] = _DEFAULT_CFG.panel_wattage
    panel_efficiency: Optional[float] = _DEFAULT_CFG.panel_efficiency
    panel_degradation_rate: Optional[float] = _DEFAULT_CFG.panel_degradation_rate
    pricing_mode: str = _DEFAULT_CFG.pricing_mode
    cost_per_panel: Optional[float] = _DEFAULT_CFG.cost_per_panel
    panel_bulk_count: Optional[float] = _DEFAULT_CFG.panel_bulk_count
    panel_bulk_cost: Optional[float] = _DEFAULT_CFG.panel_bulk_cost
    inverter_type: str = _DEFAULT_CFG.inverter_type
    inverter_efficiency: Optional[float] = _DEFAULT_CFG.inverter_efficiency
    inverter_pricing_mode: str = _DEFAULT_CFG.inverter_pricing_mode
    inverter_cost: Optional[float] = _DEFAULT_CFG.inverter_cost
    inverter_bulk_count: Optional[float] = _DEFAULT_CFG.inverter_bulk_count
    inverter_bulk_cost: Optional[float] = _DEFAULT_CFG.inverter_bulk_cost
    cabling_loss: Optional[float] = _DEFAULT_CFG.cabling_loss
    battery_enabled: bool = _DEFAULT_CFG.battery_enabled
    battery_capacity: Optional[float] = _DEFAULT_CFG.battery_capacity
    battery_dod: Optional[float] = _DEFAULT_CFG.battery_dod
    battery_power: Optional[float] = _DEFAULT_CFG.battery_power
    battery_pricing_mode: str = _DEFAULT_CFG.battery_pricing_mode
    battery_cost: Optional[float] = _DEFAULT_CFG.battery_cost
    battery_bulk_count: Optional[float] = _DEFAULT_CFG.battery_bulk_count
    battery_bulk_cost: Optional[float] = _DEFAULT_CFG.battery_bulk_cost
    mounting_cost: Optional[float] = _DEFAULT_CFG.mounting_cost
    monitoring_cost: Optional[float] = _DEFAULT_CFG.monitoring_cost
    labor_cost: Optional[float] = _DEFAULT_CFG.labor_cost
    other_fees: Optional[float] = _DEFAULT_CFG.other_fees
    financing_mode: str = _DEFAULT_CFG.financing_mode
    loan_amount: Optional[float] = _DEFAULT_CFG.loan_amount
    loan_term_years: Optional[float] = _DEFAULT_CFG.loan_term_years
    loan_interest_rate: Optional[float] = _DEFAULT_CFG.loan_interest_rate
    credit_score: Optional[float] = _DEFAULT_CFG.credit_score

    @field_validator("sun_hours_mode")
    @classmethod
    def _validate_sun_hours_mode(cls, value: str) -> str:
        return _check_choice(value, SUN_HOURS_MODES, "sun_hours_mode")

    @field_validator("pricing_mode", "inverter_pricing_mode", "battery_pricing_mode")
    @classmethod
    def _validate_pricing_mode(cls, value: str) -> str:
        return _check_choice(value, PRICING_MODES, "pricing modes")

    @field_validator("inverter_type")
    @classmethod
    def _validate_inverter_type(cls, value: str) -> str:
        return _check_choice(value, INVERTER_TYPES, "inverter_type")

    @field_validator("financing_mode")
    @classmethod
    def _validate_financing_mode(cls, value: str) -> str:
        return _check_choice(value, FINANCING_MODES, "financing_mode")

    def build(self) -> SolarConfig:
        """Return a :class:`SolarConfig` for the engine."""

        return SolarConfig.from_dict(self.model_dump())


class SimulationInputsPayload(BaseModel):
    critical_load_watts: Optional[float] = _DEFAULT_SIM.critical_load_watts
    cheapest_month_bill: Optional[float] = _DEFAULT_SIM.cheapest_month_bill
    expensive_month_bill: Optional[float] = _DEFAULT_SIM.expensive_month_bill

    def build(self) -> SimulationInputs:
        return SimulationInputs.from_dict(self.model_dump())


class SnapshotRequest(BaseModel):
    config: SolarConfigPayload = Field(default_factory=SolarConfigPayload)
    simulation: SimulationInputsPayload = Field(default_factory=SimulationInputsPayload)
    include_context: bool = False
    include_monthly_rows: bool = False


class ExportRequest(BaseModel):
    config: SolarConfigPayload = Field(default_factory=SolarConfigPayload)
    simulation: SimulationInputsPayload = Field(default_factory=SimulationInputsPayload)
    kind: Literal["inputs", "snapshot"] = "inputs"


class ImportRequest(BaseModel):
    """Either the raw file text or an already-parsed envelope."""

    content: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    base: Optional[SolarConfigPayload] = None

    @model_validator(mode="after")
    def _require_source(self) -> "ImportRequest":
        if self.content is None and self.payload is None:
            raise ValueError("Provide either 'content' or 'payload'.")
        return self


app = FastAPI(
    title="SolarLab API",
    description="Lightweight REST API for residential solar payback snapshots.",
    version="0.1.0",
)


_default_cors_origins = [
    # Vite dev/preview servers
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
]
_allowed_origins_env = os.getenv("SOLARLAB_CORS_ORIGINS", "")
_allowed_origins = [
    origin.strip()
    for origin in _allowed_origins_env.split(",")
    if origin.strip()
] or _default_cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> Dict[str, str]:
    """Simple liveness probe for container orchestrators."""
    return {"status": "ok"}


@app.post("/snapshot")
def snapshot(request: SnapshotRequest) -> Dict[str, Any]:
    """Build a fresh model snapshot plus the battery resilience estimate."""

    cfg = request.config.build()
    sim = request.simulation.build()
    model = build_model_snapshot(cfg, sim)
    battery = run_battery_simulation(cfg, sim, model)

    response: Dict[str, Any] = {
        "snapshot": model.to_dict(),
        "battery": battery.to_dict(),
    }
    if request.include_context:
        response["context"] = build_context_text(model, cfg)
    if request.include_monthly_rows:
        response["monthly_rows"] = expand_monthly_rows(model.projection).to_dict(orient="records")
    return response


@app.post("/export")
def export(request: ExportRequest) -> Dict[str, Any]:
    """Return an export envelope and the suggested download filename."""

    cfg = request.config.build()
    sim = request.simulation.build()
    return {
        "filename": export_filename(request.kind),
        "payload": build_export_payload(cfg, sim, kind=request.kind),
    }


@app.post("/import")
def import_file(request: ImportRequest) -> Dict[str, Any]:
    """Apply an exported file and report which config keys were used."""

    source: Union[str, Dict[str, Any]] = request.content if request.content is not None else request.payload
    base = request.base.build() if request.base is not None else None
    try:
        result = import_config(source, base=base)
    except ConfigImportError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    skipped: List[str] = list(result.skipped)
    return {
        "applied": result.applied,
        "skipped": skipped,
        "config": result.config.to_dict(),
        "simulation": result.simulation.to_dict() if result.simulation is not None else None,
    }


@app.get("/loan-rate")
def loan_rate(credit_score: float) -> Dict[str, float]:
    """Return the indicative APR used by the configurator's rate estimate."""

    return {"credit_score": credit_score, "estimated_rate_pct": estimate_loan_rate(credit_score)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=False)
