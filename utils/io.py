"""Export and import of configuration and snapshot JSON envelopes."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from services.simulation_core import (
    CONFIG_EXPORT_KEYS,
    CONFIG_FIELD_BY_KEY,
    SIMULATION_FIELD_BY_KEY,
    SimulationInputs,
    SolarConfig,
    build_model_snapshot,
)

ExportKind = Literal["inputs", "snapshot"]
EXPORT_KINDS = ("inputs", "snapshot")
_FALLBACK_VERSION = "0.1.0"


class ConfigImportError(ValueError):
    """Raised when an import file cannot be read as a configuration export."""


@dataclass
class ImportResult:
    """Outcome of applying an import file on top of a base configuration."""

    config: SolarConfig
    applied: int
    skipped: List[str] = field(default_factory=list)
    simulation: Optional[SimulationInputs] = None


def get_app_version() -> str:
    """Return the version stamped into exports.

    The lookup order is environment variable → installed package metadata →
    built-in default.
    """

    env_version = os.environ.get("SOLARLAB_APP_VERSION")
    if env_version:
        return env_version
    try:
        return version("solarlab")
    except PackageNotFoundError:
        return _FALLBACK_VERSION


def build_export_payload(
    config: SolarConfig,
    simulation: Optional[SimulationInputs] = None,
    kind: ExportKind = "inputs",
    app_version: Optional[str] = None,
    exported_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Return the export envelope for the current inputs or a full snapshot."""

    if kind not in EXPORT_KINDS:
        raise ValueError(f"kind must be one of {EXPORT_KINDS}")

    simulation = simulation or SimulationInputs()
    timestamp = exported_at or datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "kind": kind,
        "appVersion": app_version or get_app_version(),
        "exportedAt": timestamp.isoformat().replace("+00:00", "Z"),
        "config": config.to_dict(),
        "simulation": simulation.to_dict(),
    }
    if kind == "snapshot":
        payload["snapshot"] = build_model_snapshot(config, simulation).to_dict()
    return payload


def export_filename(kind: ExportKind, now: Optional[datetime] = None) -> str:
    """Return ``solar-calculator-<kind>-<epoch ms>.json``."""

    moment = now or datetime.now(timezone.utc)
    return f"solar-calculator-{kind}-{int(moment.timestamp() * 1000)}.json"


def dumps_payload(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2)


def _load_envelope(source: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(source, Mapping):
        return source
    try:
        data = json.loads(source)
    except (TypeError, ValueError) as exc:
        raise ConfigImportError("Invalid JSON file") from exc
    if not isinstance(data, Mapping):
        raise ConfigImportError("File missing config section")
    return data


def import_config(
    source: Union[str, bytes, Mapping[str, Any]],
    base: Optional[SolarConfig] = None,
    base_simulation: Optional[SimulationInputs] = None,
) -> ImportResult:
    """Apply the ``config`` section of an export on top of ``base``.

    Keys are filtered against the known config schema; unknown keys are
    reported in ``skipped`` rather than rejected. An optional ``simulation``
    section is applied the same way.
    """

    envelope = _load_envelope(source)
    section = envelope.get("config")
    if section is None or not isinstance(section, Mapping):
        raise ConfigImportError("File missing config section")

    applied: Dict[str, Any] = {}
    skipped: List[str] = []
    for key, value in section.items():
        if key in CONFIG_FIELD_BY_KEY:
            applied[key] = value
        else:
            skipped.append(key)
    if skipped:
        logging.getLogger(__name__).warning("Skipped unknown config keys on import: %s", skipped)

    config = SolarConfig.from_dict(applied, base=base)

    simulation = None
    simulation_section = envelope.get("simulation")
    if isinstance(simulation_section, Mapping):
        known = {k: v for k, v in simulation_section.items() if k in SIMULATION_FIELD_BY_KEY}
        simulation = SimulationInputs.from_dict(known, base=base_simulation)

    return ImportResult(config=config, applied=len(applied), skipped=skipped, simulation=simulation)


__all__ = [
    "EXPORT_KINDS",
    "CONFIG_EXPORT_KEYS",
    "ConfigImportError",
    "ImportResult",
    "get_app_version",
    "build_export_payload",
    "export_filename",
    "dumps_payload",
    "import_config",
]
