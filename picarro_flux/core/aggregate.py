# picarro_flux/core/aggregate.py
from __future__ import annotations
import logging
import warnings
import pandas as pd

from .errors import DataQualityWarning
from .model import FluxResult

_LOG = logging.getLogger(__name__)

RESULT_COLUMNS = ["N", "Tair", "V", "S", "M", "slope", "intercept", "r_squared", "duration_s"]

def aggregate_fluxes(results: list[FluxResult], group_fields: tuple[str, ...]) -> pd.DataFrame:
    """
    Stack FluxResults into one table, in the order given. Duplicate group keys
    are reported, never merged.
    """
    extra_cols: list[str] = []
    for r in results:
        for k in r.extras:
            if k not in extra_cols:
                extra_cols.append(k)
    cols = [*group_fields, *RESULT_COLUMNS, *extra_cols, "flux"]
    if not results:
        return pd.DataFrame(columns=cols)

    out = pd.DataFrame([r.as_row() for r in results], columns=cols)
    keys = list(group_fields)
    if keys:
        dup = out.duplicated(subset=keys, keep=False)
        if dup.any():
            msg = f"{int(dup.sum())} flux rows share a group key ({', '.join(keys)})"
            _LOG.warning(msg)
            warnings.warn(msg, DataQualityWarning, stacklevel=2)
    return out
