# picarro_flux/core/normalize.py
from __future__ import annotations
import pandas as pd

GEOMETRY_FIELDS = ("Mass", "Area", "Volume")

def find_column(df: pd.DataFrame, name: str):
    """Case/whitespace-insensitive lookup; returns the actual column label or None."""
    if name in df.columns:
        return name
    cmap = {str(c).strip().lower(): c for c in df.columns}
    return cmap.get(name.strip().lower())

def canonical_geometry(df: pd.DataFrame) -> pd.DataFrame:
    """Rename mass/area/volume columns (any case) to Mass/Area/Volume."""
    renames = {}
    for want in GEOMETRY_FIELDS:
        col = find_column(df, want)
        if col is not None and col != want:
            renames[col] = want
    return df.rename(columns=renames) if renames else df

def to_seconds(series) -> pd.Series:
    """Epoch seconds as float; datetime-like strings are parsed first."""
    s = to_float(series)
    if s.notna().sum() == 0 and len(series):
        z = pd.to_datetime(series, errors="coerce")
        if z.notna().any():
            return (z - pd.Timestamp("1970-01-01")).dt.total_seconds()
    return s

def to_float(s) -> pd.Series:
    if pd.api.types.is_numeric_dtype(s):
        return s.astype(float)
    return pd.to_numeric(s.astype(str).str.replace(",", ".", regex=False), errors="coerce")
