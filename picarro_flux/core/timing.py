# picarro_flux/core/timing.py
from __future__ import annotations
import logging
import pandas as pd

from .errors import ConfigError
from .normalize import to_seconds

_LOG = logging.getLogger(__name__)

ELAPSED = "ELAPSED_TIME"

def compute_elapsed(df: pd.DataFrame, group_fields: tuple[str, ...], time_field: str) -> pd.DataFrame:
    """
    Minutes since the first reading of each group.

    Rows are ordered by group, then by time; equal timestamps keep their
    incoming order (stable sort). The baseline is the first row of the group
    as it stands now, so rerun after any change to upstream filtering.
    """
    missing = [f for f in (*group_fields, time_field) if f not in df.columns]
    if missing:
        raise ConfigError(f"cannot compute elapsed time, missing field(s): {', '.join(missing)}")
    if df.empty:
        return df.assign(**{ELAPSED: pd.Series(dtype=float)})

    _LOG.info("Computing time elapsed per %s", "/".join(group_fields) or "run")
    t = to_seconds(df[time_field])
    out = df.assign(_t=t.to_numpy())
    out = out.sort_values([*group_fields, "_t"], kind="mergesort")
    if group_fields:
        t0 = out.groupby(list(group_fields), sort=False, dropna=False)["_t"].transform("first")
    else:
        t0 = out["_t"].iloc[0]
    out[ELAPSED] = (out["_t"] - t0) / 60.0
    return out.drop(columns="_t").reset_index(drop=True)
