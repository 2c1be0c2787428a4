# picarro_flux/core/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
import pandas as pd

@dataclass(frozen=True)
class SourceFile:
    path: Path                # analyzer output file on disk
    file: str                 # basename, stamped on every row
    dir: str                  # parent dir relative to input_dir, e.g. "Control/Rep 1"
    df: pd.DataFrame          # analyzer columns + file, dir
    n_raw: int                # rows before subsampling

@dataclass(frozen=True)
class FluxResult:
    group: dict               # flux group field -> value
    n: int                    # readings used
    tair: float               # mean air temperature, degC
    slope: float              # dC/dt, mole fraction per second
    intercept: float
    r_squared: float
    flux: float
    volume: float             # V used
    area: float               # S used
    mass: float               # M used
    duration_s: float
    extras: dict = field(default_factory=dict)   # means of summary fields (Day, Month, ...)

    def as_row(self) -> dict:
        row = dict(self.group)
        row.update({
            "N": self.n, "Tair": self.tair, "V": self.volume, "S": self.area, "M": self.mass,
            "slope": self.slope, "intercept": self.intercept, "r_squared": self.r_squared,
            "duration_s": self.duration_s,
        })
        row.update(self.extras)
        row["flux"] = self.flux
        return row

@dataclass(frozen=True)
class PipelineResult:
    readings: pd.DataFrame    # cleaned, time-normalized, field-joined table
    fluxes: pd.DataFrame      # one row per measurement group
    files_read: int
    files_skipped: int
    groups_skipped: int
    outputs: tuple[Path, ...] = ()
