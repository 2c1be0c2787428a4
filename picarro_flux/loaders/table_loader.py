# picarro_flux/loaders/table_loader.py
from __future__ import annotations
from pathlib import Path
import logging
import warnings
import pandas as pd

from ..core.errors import DataQualityWarning, JoinError
from ..core.normalize import canonical_geometry, find_column, to_float

_LOG = logging.getLogger(__name__)

def read_table(path: Path, **kwargs) -> pd.DataFrame:
    """Open a delimited metadata table; missing files are fatal for the caller."""
    _LOG.info("Opening %s", path)
    if not path.is_file():
        raise FileNotFoundError(f"metadata table not found: {path}")
    df = pd.read_csv(path, **kwargs)
    _LOG.info("%s rows = %d cols = %d", path.name, df.shape[0], df.shape[1])
    return df

def read_valve_schedule(path: Path, valve_field: str = "solenoid_valves") -> pd.DataFrame:
    """
    Valve schedule: one row per valve position. Must carry the valve field;
    may carry Mass / Area / Volume (any case). Lines starting with '#' are comments.
    """
    df = read_table(path, comment="#", skipinitialspace=True)
    col = find_column(df, valve_field)
    if col is None:
        raise JoinError(f"{path.name}: valve schedule has no '{valve_field}' field")
    df = canonical_geometry(df.rename(columns={col: valve_field}))
    df[valve_field] = to_float(df[valve_field])
    for name in ("Mass", "Area", "Volume"):
        if name in df.columns:
            df[name] = to_float(df[name])
    present = [n for n in ("Mass", "Area", "Volume") if n in df.columns]
    _LOG.info("Valve schedule read OK (%d positions; geometry fields: %s)",
              len(df), ", ".join(present) or "none")
    return df

def read_field_metadata(path: Path, expected: tuple[str, ...] | None = None) -> pd.DataFrame:
    df = read_table(path, skipinitialspace=True)
    missing = [k for k in (expected or ()) if k not in df.columns]
    if missing:
        msg = f"{path.name}: field data read, but no {', '.join(repr(m) for m in missing)} field"
        _LOG.warning(msg)
        warnings.warn(msg, DataQualityWarning, stacklevel=2)
    else:
        _LOG.info("Field data read OK")
    return df
