# picarro_flux/loaders/picarro_loader.py
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
import logging
import numpy as np
import pandas as pd

from ..core.config import FluxConfig
from ..core.errors import ConfigError
from ..core.model import SourceFile

_LOG = logging.getLogger(__name__)

SEPARATOR = "-------------------"

# ---------- path helpers ----------
def relative_dir(path: Path, input_root: Path) -> str:
    """Parent directory of 'path' relative to 'input_root', POSIX separators ('.' at top level)."""
    root = input_root.resolve()
    if root.is_file():
        root = root.parent
    try:
        rel = path.resolve().parent.relative_to(root)
    except ValueError:
        raise ConfigError(f"{path} is not below input_dir {root}") from None
    return rel.as_posix()

def split_group_path(rel_dir: str, levels: tuple[str, ...]) -> dict[str, str]:
    """
    Decompose 'treatment/rep'-style directory paths into named group fields.

    e.g. split_group_path("Control/Rep 1", ("treatment", "rep"))
         -> {"treatment": "Control", "rep": "Rep 1"}
    """
    if not levels:
        return {}
    parts = [p for p in PurePosixPath(rel_dir).parts if p not in ("", ".")]
    if len(parts) != len(levels):
        raise ConfigError(
            f"directory '{rel_dir}' has {len(parts)} level(s) below input_dir, "
            f"expected {len(levels)} ({'/'.join(levels)})"
        )
    return dict(zip(levels, parts))

# ---------- table reading ----------
def _df_from_dat(path: Path) -> pd.DataFrame:
    # analyzer files are whitespace-delimited with a single header row
    return pd.read_csv(path, sep=r"\s+", low_memory=False)

def subsample(df: pd.DataFrame, fraction: float, rng: np.random.Generator | None = None) -> pd.DataFrame:
    """Uniform sample of floor(n*fraction) rows without replacement, kept in file order."""
    if fraction >= 1.0:
        return df
    rng = rng if rng is not None else np.random.default_rng()
    n = len(df)
    size = int(np.floor(n * fraction))
    picked = np.sort(rng.choice(n, size=size, replace=False))
    return df.iloc[picked].reset_index(drop=True)

def read_output_file(path: Path, input_root: Path, subsample_fraction: float = 1.0,
                     rng: np.random.Generator | None = None) -> SourceFile:
    if not path.is_file():
        raise FileNotFoundError(f"analyzer file not found: {path}")
    _LOG.info("Reading %s", path)
    df = _df_from_dat(path)
    n_raw = len(df)
    _LOG.info("%s rows = %d cols = %d", path.name, n_raw, df.shape[1])

    if subsample_fraction < 1.0:
        _LOG.info("Subsampling at %s ...", subsample_fraction)
        df = subsample(df, subsample_fraction, rng)
        _LOG.info("%s rows = %d after subsampling", path.name, len(df))

    rel = relative_dir(path, input_root)
    df = df.assign(file=path.name, dir=rel)
    return SourceFile(path=path, file=path.name, dir=rel, df=df, n_raw=n_raw)

# ---------- batch ----------
def read_all(paths: list[Path], cfg: FluxConfig) -> tuple[list[SourceFile], int]:
    """
    Read every analyzer file. Failures are isolated per file and counted.
    Output order follows the sorted paths whatever 'read_workers' is.
    """
    paths = sorted(paths, key=str)
    # one child generator per file so parallel reads stay reproducible
    seeds = np.random.SeedSequence(cfg.random_seed).spawn(len(paths))

    def _one(k: int):
        _LOG.info(SEPARATOR)
        _LOG.info("Processing file %d of %d", k + 1, len(paths))
        try:
            return read_output_file(paths[k], cfg.input_dir, cfg.subsample_fraction,
                                    np.random.default_rng(seeds[k]))
        except (FileNotFoundError, pd.errors.ParserError, pd.errors.EmptyDataError,
                UnicodeDecodeError) as e:
            _LOG.warning("skipping %s: %s", paths[k].name, e)
            return None

    if cfg.read_workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=cfg.read_workers) as pool:
            results = list(pool.map(_one, range(len(paths))))
    else:
        results = [_one(k) for k in range(len(paths))]

    records = [r for r in results if r is not None]
    skipped = len(results) - len(records)
    _LOG.info(SEPARATOR)
    _LOG.info("All done reading: %d file(s) read, %d skipped", len(records), skipped)
    return records, skipped
