# picarro_flux/core/join.py
from __future__ import annotations
import logging
import pandas as pd

from .config import FluxConfig
from .errors import JoinError
from ..loaders.picarro_loader import split_group_path

_LOG = logging.getLogger(__name__)

def attach_path_keys(df: pd.DataFrame, levels: tuple[str, ...]) -> pd.DataFrame:
    """Add one column per directory level (treatment, rep, ...) from the 'dir' stamp."""
    if not levels:
        return df.copy()
    if "dir" not in df.columns:
        raise JoinError("reading table has no 'dir' field to split into group keys")
    _LOG.info("Splitting file path data into %s ...", "/".join(levels))
    keys = {d: split_group_path(d, levels) for d in df["dir"].unique()}
    out = df.copy()
    for level in levels:
        out[level] = out["dir"].map(lambda d, lv=level: keys[d][lv]).astype(object)
    return out

def _key_text(s: pd.Series) -> pd.Series:
    # a blank cell turns an integer column into float: 1.0 must still read as "1"
    if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
        vals = s.dropna()
        if (vals % 1 == 0).all():
            return s.astype("Int64").astype(str)
    return s.astype(str)

def _align_key_dtypes(left: pd.DataFrame, right: pd.DataFrame, keys: list[str]):
    """Numeric vs text keys ('1' vs 1) would refuse to merge; compare them as text."""
    for k in keys:
        l_num = pd.api.types.is_numeric_dtype(left[k])
        r_num = pd.api.types.is_numeric_dtype(right[k])
        if l_num != r_num:
            left = left.assign(**{k: _key_text(left[k])})
            right = right.assign(**{k: _key_text(right[k])})
    return left, right

def join_valve_schedule(df: pd.DataFrame, schedule: pd.DataFrame | None, valve_field: str) -> pd.DataFrame:
    """
    Inner join with the valve schedule. Only done when the readings carry the
    valve field; readings at positions missing from the schedule are dropped.
    """
    if schedule is None:
        return df.copy()
    if valve_field not in df.columns:
        _LOG.info("No '%s' field in analyzer data; valve schedule not merged", valve_field)
        return df.copy()
    if valve_field not in schedule.columns:
        raise JoinError(f"valve schedule has no '{valve_field}' field")

    _LOG.info("Merging analyzer and %s data...", valve_field)
    before = len(df)
    left, right = _align_key_dtypes(df, schedule, [valve_field])
    out = left.merge(right, on=valve_field, how="inner", suffixes=("", "_valve"))
    _LOG.info("rows before = %d, after = %d", before, len(out))
    return out

def apply_chamber_geometry(df: pd.DataFrame, cfg: FluxConfig) -> pd.DataFrame:
    """
    Per-row chamber area, volume and sample mass:
      area   = schedule Area where given, else cfg.chamber_area (override)
      volume = cfg.system_volume + schedule Volume where given (added, not replaced)
      mass   = schedule Mass where given, else 1.0
    """
    def _col(name: str, fill: float) -> pd.Series:
        if name in df.columns:
            return df[name].fillna(fill)
        return pd.Series(fill, index=df.index, dtype=float)

    area = _col("Area", cfg.chamber_area)
    extra = _col("Volume", 0.0)
    mass = _col("Mass", 1.0)
    return df.assign(
        chamber_area=area.astype(float),
        chamber_volume=(cfg.system_volume + extra).astype(float),
        sample_mass=mass.astype(float),
    )

def join_field_metadata(df: pd.DataFrame, field_data: pd.DataFrame,
                        keys: tuple[str, ...] | None = None) -> pd.DataFrame:
    """
    Inner join with the field metadata table. Without explicit 'keys' every
    column common to both tables is a key (natural join).
    """
    if keys is None:
        on = [c for c in df.columns if c in field_data.columns]
        if not on:
            raise JoinError("field data shares no field with the analyzer data")
    else:
        on = list(keys)
        missing_left = [k for k in on if k not in df.columns]
        missing_right = [k for k in on if k not in field_data.columns]
        if missing_left or missing_right:
            raise JoinError(
                f"field data join key(s) missing: analyzer data {missing_left or '-'}, "
                f"field data {missing_right or '-'}"
            )

    _LOG.info("Merging analyzer and field data on %s...", ", ".join(on))
    before = len(df)
    left, right = _align_key_dtypes(df, field_data, on)
    out = left.merge(right, on=on, how="inner", suffixes=("", "_field"))
    _LOG.info("rows before = %d, after = %d", before, len(out))
    return out
