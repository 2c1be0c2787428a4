# picarro_flux/core/reports.py
from __future__ import annotations
from pathlib import Path
from typing import Literal
import logging
import numpy as np
import pandas as pd
from scipy.io import savemat

ReportFormat = Literal["csv", "mat", "both"]

_LOG = logging.getLogger(__name__)

def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> Path:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    df_out.to_csv(out_csv, index=False, encoding="utf-8")
    _LOG.info("Saving %s -> %s", title, out_csv)
    return out_csv

def _to_mat_cellstr(seq: list) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    seq2 = [("" if s is None else str(s)) for s in seq]
    arr = np.empty((len(seq2), 1), dtype=object)
    arr[:, 0] = seq2
    return arr

def _write_mat(df_out: pd.DataFrame, out_mat: Path, varname: str, title: str) -> Path:
    """
    Save a MATLAB struct with one field per column.
    Numeric columns become double (Nx1), everything else a cell array (Nx1).
    """
    out_mat.parent.mkdir(parents=True, exist_ok=True)
    mat_struct = {}
    for col in df_out.columns:
        # MATLAB field names: letters, digits, underscore
        name = "".join(ch if ch.isalnum() else "_" for ch in str(col))
        if not name[:1].isalpha():
            name = "f_" + name
        s = df_out[col]
        if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
            mat_struct[name] = s.to_numpy(dtype=float).reshape(-1, 1)
        else:
            mat_struct[name] = _to_mat_cellstr(s.astype(str).replace("nan", "", regex=False).tolist())
    savemat(out_mat, {varname: mat_struct})
    _LOG.info("Saving %s -> %s", title, out_mat)
    return out_mat

def write_table(df_out: pd.DataFrame, out_base: Path, title: str,
                fmt: ReportFormat = "csv", mat_variable: str | None = None) -> list[Path]:
    """
    Write a table in the requested format.
    - out_base is a *base path without extension* (e.g., .../fluxes)
    - fmt: "csv" | "mat" | "both"
    """
    written: list[Path] = []
    if fmt in ("csv", "both"):
        written.append(_write_csv(df_out, out_base.with_suffix(".csv"), title))
    if fmt in ("mat", "both"):
        written.append(_write_mat(df_out, out_base.with_suffix(".mat"), mat_variable or out_base.name, title))
    return written
