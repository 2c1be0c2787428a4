# picarro_flux/core/config.py
from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Iterable
import yaml

from .errors import ConfigError

REQUIRED_KEYS: tuple[str, ...] = (
    "input_dir", "output_dir", "log_dir",
    "system_volume", "chamber_area", "measurement_interval", "subsample_fraction",
)


@dataclass(frozen=True)
class PhysicalConstants:
    """
    Constants of the flux conversion.

    The unit chain (umol_per_mol .. seconds_per_day) turns umol/g/s into
    mgC/kg/day for the default setup; change it for other unit conventions.
    """
    pressure_kpa: float = 101.0         # Pa, kPa
    gas_constant: float = 8.3e-3        # R, m-3 kPa mol-1 K-1
    kelvin_offset: float = 273.1        # degC -> K
    umol_per_mol: float = 1e6
    molar_mass: float = 12.0            # g C per mol
    mass_scale: float = 1000.0          # g -> mg
    amount_scale: float = 1000.0        # g soil -> kg soil
    seconds_per_day: float = 86400.0


@dataclass(frozen=True)
class FluxConfig:
    input_dir: Path
    output_dir: Path
    log_dir: Path
    system_volume: float                # m^3
    chamber_area: float                 # cm^2
    measurement_interval: float         # s, nominal length of one measurement window
    subsample_fraction: float = 1.0
    file_pattern: str = "*.dat"
    recurse: bool = True
    path_levels: tuple[str, ...] = ("treatment", "rep")
    valve_schedule: Path | None = None
    field_metadata: Path = Path("core_data.csv")
    field_keys: tuple[str, ...] | None = None
    field_id_field: str | None = "Plot"
    valve_field: str = "solenoid_valves"
    time_field: str = "EPOCH_TIME"
    flux_gas: str = "CO2_dry"
    ceiling_field: str = "CH4_dry"
    ceiling: float | None = 5.0
    group_id_field: str | None = "dwp_core"
    normalize_group_fields: tuple[str, ...] = ("treatment", "rep")
    flux_group_fields: tuple[str, ...] = ("file", "solenoid_valves")
    air_temperature_field: str = "Tair"
    default_air_temperature: float | None = None
    summary_fields: tuple[str, ...] = ("Day", "Month")
    random_seed: int | None = None
    read_workers: int = 1
    report_format: str = "csv"
    plots_enabled: bool = True
    constants: PhysicalConstants = field(default_factory=PhysicalConstants)


def _to_float(cfg: dict, key: str) -> float:
    try:
        return float(cfg[key])
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {cfg[key]!r}") from None


def _opt_float(value, key: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from None


def _names(value, key: str, default: tuple[str, ...] | None) -> tuple[str, ...] | None:
    if value is None:
        return default
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(str(v) for v in value)
    raise ConfigError(f"'{key}' must be a name or list of names, got {value!r}")


def _resolve(value, base: Path) -> Path | None:
    if value is None or str(value).strip() == "":
        return None
    p = Path(str(value)).expanduser()
    return p if p.is_absolute() else base / p


def _constants(raw) -> PhysicalConstants:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError("'constants' must be a mapping")
    known = {f.name for f in fields(PhysicalConstants)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown constants: {', '.join(unknown)}")
    return PhysicalConstants(**{k: _to_float(raw, k) for k in raw})


def _section(cfg: dict, key: str) -> dict:
    raw = cfg.get(key) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return raw


def config_from_dict(cfg: dict) -> FluxConfig:
    """Validate a raw (YAML) mapping and freeze it into a FluxConfig."""
    if not isinstance(cfg, dict):
        raise ConfigError("configuration must be a mapping")
    missing = [k for k in REQUIRED_KEYS if cfg.get(k) is None]
    if missing:
        raise ConfigError(f"missing required configuration: {', '.join(missing)}")

    input_dir = Path(str(cfg["input_dir"])).expanduser()
    system_volume = _to_float(cfg, "system_volume")
    chamber_area = _to_float(cfg, "chamber_area")
    interval = _to_float(cfg, "measurement_interval")
    fraction = _to_float(cfg, "subsample_fraction")
    if system_volume <= 0 or chamber_area <= 0:
        raise ConfigError("system_volume and chamber_area must be positive")
    if interval <= 0:
        raise ConfigError("measurement_interval must be positive")
    if not 0.0 < fraction <= 1.0:
        raise ConfigError(f"subsample_fraction must be in (0, 1], got {fraction}")

    quality = _section(cfg, "quality")
    reports = _section(cfg, "reports")
    plots = _section(cfg, "plots")

    fmt = str(reports.get("format", "csv")).lower()
    if fmt not in ("csv", "mat", "both"):
        raise ConfigError(f"reports.format must be csv, mat or both, got {fmt!r}")

    try:
        workers = int(cfg.get("read_workers", 1) or 1)
    except (TypeError, ValueError):
        raise ConfigError("read_workers must be an integer") from None
    if workers < 1:
        raise ConfigError("read_workers must be >= 1")

    field_metadata = _resolve(cfg.get("field_metadata", "core_data.csv"), input_dir)
    if field_metadata is None:
        raise ConfigError("field_metadata must name the field data table")

    seed = cfg.get("random_seed")
    if seed is not None:
        try:
            seed = int(seed)
        except (TypeError, ValueError):
            raise ConfigError(f"random_seed must be an integer, got {seed!r}") from None
    field_id = cfg.get("field_id_field", "Plot")
    valve_field = str(cfg.get("valve_field", "solenoid_valves"))
    group_id = quality.get("group_id_field", "dwp_core")

    return FluxConfig(
        input_dir=input_dir,
        output_dir=Path(str(cfg["output_dir"])).expanduser(),
        log_dir=Path(str(cfg["log_dir"])).expanduser(),
        system_volume=system_volume,
        chamber_area=chamber_area,
        measurement_interval=interval,
        subsample_fraction=fraction,
        file_pattern=str(cfg.get("file_pattern", "*.dat")),
        recurse=bool(cfg.get("recurse", True)),
        path_levels=_names(cfg.get("path_levels"), "path_levels", ("treatment", "rep")),
        valve_schedule=_resolve(cfg.get("valve_schedule"), input_dir),
        field_metadata=field_metadata,
        field_keys=_names(cfg.get("field_keys"), "field_keys", None),
        field_id_field=None if field_id is None else str(field_id),
        valve_field=valve_field,
        time_field=str(cfg.get("time_field", "EPOCH_TIME")),
        flux_gas=str(cfg.get("flux_gas", "CO2_dry")),
        ceiling_field=str(quality.get("ceiling_field", "CH4_dry")),
        ceiling=_opt_float(quality.get("ceiling", 5.0), "quality.ceiling"),
        group_id_field=None if group_id is None else str(group_id),
        normalize_group_fields=_names(cfg.get("normalize_group_fields"),
                                      "normalize_group_fields", ("treatment", "rep")),
        flux_group_fields=_names(cfg.get("flux_group_fields"),
                                 "flux_group_fields", ("file", valve_field)),
        air_temperature_field=str(cfg.get("air_temperature_field", "Tair")),
        default_air_temperature=_opt_float(cfg.get("default_air_temperature"),
                                           "default_air_temperature"),
        summary_fields=_names(cfg.get("summary_fields"), "summary_fields", ("Day", "Month")),
        random_seed=seed,
        read_workers=workers,
        report_format=fmt,
        plots_enabled=bool(plots.get("enabled", True)),
        constants=_constants(cfg.get("constants")),
    )


def load_config(cfg_path: Path) -> FluxConfig:
    if not cfg_path.is_file():
        raise ConfigError(f"configuration file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"cannot parse {cfg_path}: {e}") from e
    return config_from_dict(raw)
