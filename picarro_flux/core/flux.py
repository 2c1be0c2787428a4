# picarro_flux/core/flux.py
from __future__ import annotations
import logging
import warnings
import numpy as np
import pandas as pd

from .config import FluxConfig
from .errors import ConfigError, DataQualityWarning, RegressionUndefined
from .model import FluxResult
from .normalize import to_float, to_seconds

_LOG = logging.getLogger(__name__)

def ols_fit(x, y) -> tuple[float, float, float]:
    """
    Closed-form least squares line y = intercept + slope * x.
    Returns (slope, intercept, r_squared); non-finite pairs are ignored.
    """
    x = np.asarray(x, float)
    y = np.asarray(y, float)
    ok = np.isfinite(x) & np.isfinite(y)
    x, y = x[ok], y[ok]
    if np.unique(x).size < 2:
        raise RegressionUndefined(f"need at least 2 distinct time points, got {np.unique(x).size}")
    xm, ym = x.mean(), y.mean()
    sxx = np.sum((x - xm) ** 2)
    slope = float(np.sum((x - xm) * (y - ym)) / sxx)
    intercept = float(ym - slope * xm)
    ss_tot = float(np.sum((y - ym) ** 2))
    ss_res = float(np.sum((y - (intercept + slope * x)) ** 2))
    r_squared = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot
    return slope, intercept, r_squared

def _group_mean(g: pd.DataFrame, column: str, fallback: float) -> float:
    if column not in g.columns:
        return fallback
    m = to_float(g[column]).mean()
    return fallback if pd.isna(m) else float(m)

def convert_slope(slope: float, volume: float, area: float, mass: float, tair: float, cfg: FluxConfig) -> float:
    """
    Raw respiration dC/dt to flux, A = dC/dt * V/S * Pa/RT (Steduto et al. 2002),
    divided by mass where given, then through the configured unit chain.
    """
    c = cfg.constants
    resp_corrected = slope * volume / area / mass * c.pressure_kpa / (c.gas_constant * (c.kelvin_offset + tair))
    return resp_corrected / c.umol_per_mol * c.molar_mass * c.mass_scale * c.amount_scale * c.seconds_per_day

def compute_flux(g: pd.DataFrame, group: dict, cfg: FluxConfig) -> FluxResult:
    secs = to_seconds(g[cfg.time_field]).to_numpy()
    x = secs - np.nanmin(secs) if np.isfinite(secs).any() else secs
    y = to_float(g[cfg.flux_gas]).to_numpy()
    slope, intercept, r2 = ols_fit(x, y)
    used = int(np.sum(np.isfinite(x) & np.isfinite(y)))

    area = _group_mean(g, "chamber_area", cfg.chamber_area)
    volume = _group_mean(g, "chamber_volume", cfg.system_volume)
    mass = _group_mean(g, "sample_mass", 1.0)
    tair = _group_mean(g, cfg.air_temperature_field,
                       np.nan if cfg.default_air_temperature is None else cfg.default_air_temperature)

    duration = float(np.nanmax(x))
    if duration > cfg.measurement_interval:
        msg = (f"group {group}: readings span {duration:.0f} s, longer than the "
               f"measurement interval of {cfg.measurement_interval:.0f} s")
        _LOG.warning(msg)
        warnings.warn(msg, DataQualityWarning, stacklevel=2)

    extras = {}
    for name in cfg.summary_fields:
        if name in g.columns:
            extras[name] = _group_mean(g, name, np.nan)

    return FluxResult(
        group=group, n=used, tair=tair,
        slope=slope, intercept=intercept, r_squared=r2,
        flux=convert_slope(slope, volume, area, mass, tair, cfg),
        volume=volume, area=area, mass=mass,
        duration_s=duration, extras=extras,
    )

def estimate_fluxes(df: pd.DataFrame, cfg: FluxConfig) -> tuple[list[FluxResult], int]:
    """
    One FluxResult per measurement group (cfg.flux_group_fields). Groups where
    the regression is undefined are left out and counted.
    """
    if df.empty:
        _LOG.info("Computing fluxes... no readings, no groups")
        return [], 0

    fields = list(cfg.flux_group_fields)
    missing = [f for f in (*fields, cfg.time_field, cfg.flux_gas) if f not in df.columns]
    if missing:
        raise ConfigError(f"cannot compute fluxes, missing field(s): {', '.join(missing)}")
    if cfg.air_temperature_field not in df.columns and cfg.default_air_temperature is None:
        raise ConfigError(
            f"no '{cfg.air_temperature_field}' field and no default_air_temperature configured"
        )

    _LOG.info("Computing fluxes per %s ...", "/".join(fields))
    results: list[FluxResult] = []
    skipped = 0
    for key, g in df.groupby(fields, sort=True):
        key = key if isinstance(key, tuple) else (key,)
        group = dict(zip(fields, key))
        try:
            results.append(compute_flux(g, group, cfg))
        except RegressionUndefined as e:
            skipped += 1
            _LOG.warning("skipping group %s: %s", group, e)

    _LOG.info("fluxes computed for %d group(s), %d skipped", len(results), skipped)
    return results, skipped
