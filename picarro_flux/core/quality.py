# picarro_flux/core/quality.py
from __future__ import annotations
import logging
import warnings
import numpy as np
import pandas as pd

from .config import FluxConfig
from .errors import DataQualityWarning
from .normalize import to_float

_LOG = logging.getLogger(__name__)

def _report(step: str, before: int, after: int) -> None:
    _LOG.info("%s: rows before = %d, after = %d (dropped %d)", step, before, after, before - after)

def drop_fractional_valves(df: pd.DataFrame, valve_field: str) -> pd.DataFrame:
    """
    Fractional valve values mean the analyzer was switching between two
    samples; those readings are discarded.
    """
    if valve_field not in df.columns:
        _LOG.info("no '%s' field; fractional valve filter skipped", valve_field)
        return df.copy()
    v = to_float(df[valve_field]).to_numpy()
    keep = np.isfinite(v) & (v == np.trunc(v))
    out = df.loc[keep].copy()
    _report("Removing fractional " + valve_field, len(df), len(out))
    return out

def drop_out_of_range(df: pd.DataFrame, field: str, ceiling: float | None) -> pd.DataFrame:
    if ceiling is None:
        return df.copy()
    if field not in df.columns:
        _LOG.info("no '%s' field; ceiling filter skipped", field)
        return df.copy()
    out = df.loc[~(to_float(df[field]) > ceiling)].copy()
    _report(f"Getting rid of crazy values ({field} > {ceiling})", len(df), len(out))
    return out

def drop_missing_group(df: pd.DataFrame, field: str | None) -> pd.DataFrame:
    if field is None:
        return df.copy()
    if field not in df.columns:
        msg = f"group identifier field '{field}' not present; nothing dropped"
        _LOG.warning(msg)
        warnings.warn(msg, DataQualityWarning, stacklevel=2)
        return df.copy()
    out = df.loc[df[field].notna()].copy()
    _report(f"Focusing on rows with a {field}", len(df), len(out))
    return out

def apply_quality_filter(df: pd.DataFrame, cfg: FluxConfig) -> pd.DataFrame:
    """Fractional valves, then sanity ceiling, then missing group ids. Never raises."""
    out = drop_fractional_valves(df, cfg.valve_field)
    out = drop_out_of_range(out, cfg.ceiling_field, cfg.ceiling)
    out = drop_missing_group(out, cfg.group_id_field)
    return out
