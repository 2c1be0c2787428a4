# picarro_flux/core/plotting.py
from __future__ import annotations
from pathlib import Path
import logging
import matplotlib.pyplot as plt
import pandas as pd

from .timing import ELAPSED

_LOG = logging.getLogger(__name__)

def _sanitize(name: str) -> str:
    import re
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_")
    return s[:120] if len(s) > 120 else s

def save_gas_summary_plot(df: pd.DataFrame, gas: str, out_dir: Path,
                          facet_field: str = "treatment", color_field: str = "rep") -> Path | None:
    """Concentration vs elapsed time, one panel per treatment, one color per rep."""
    if df.empty or gas not in df.columns or ELAPSED not in df.columns:
        _LOG.info("column '%s' missing or no data; skipping %s summary plot", gas, gas)
        return None
    out_dir.mkdir(parents=True, exist_ok=True)

    facets = sorted(df[facet_field].astype(str).unique()) if facet_field in df.columns else [None]
    fig, axes = plt.subplots(len(facets), 1, figsize=(11, 3 * len(facets) + 1), squeeze=False, sharex=True)
    for ax, facet in zip(axes[:, 0], facets):
        part = df if facet is None else df[df[facet_field].astype(str) == facet]
        groups = part.groupby(part[color_field].astype(str)) if color_field in part.columns else [("all", part)]
        for label, g in groups:
            ax.plot(g[ELAPSED].values, pd.to_numeric(g[gas], errors="coerce").values,
                    ".", markersize=2, label=label)
        ax.set_ylabel(gas)
        if facet is not None:
            ax.set_title(facet, fontsize=9)
        ax.grid(True, alpha=0.3)
    axes[-1, 0].set_xlabel("Elapsed time [min]")
    axes[0, 0].legend(fontsize=8, ncol=4, loc="upper right", frameon=False, markerscale=4)
    fig.tight_layout()
    out_path = out_dir / f"summary_{_sanitize(gas.lower())}_allreps.png"
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    _LOG.info("Saving %s", out_path)
    return out_path

def save_flux_plot(fluxes: pd.DataFrame, out_dir: Path, x_field: str = "Day",
                   series_field: str | None = None) -> Path | None:
    """Flux per measurement group; x = x_field when present, else group order."""
    if fluxes.empty or "flux" not in fluxes.columns:
        _LOG.info("no fluxes; skipping flux summary plot")
        return None
    out_dir.mkdir(parents=True, exist_ok=True)

    has_x = x_field in fluxes.columns and fluxes[x_field].notna().any()
    plt.figure(figsize=(9, 5))
    if series_field and series_field in fluxes.columns:
        series = fluxes.groupby(fluxes[series_field].astype(str), sort=True)
    else:
        series = [("flux", fluxes)]
    for label, g in series:
        xs = g[x_field].values if has_x else g.index.values
        plt.plot(xs, g["flux"].values, "o-", label=label)
    plt.xlabel(x_field if has_x else "group")
    plt.ylabel("flux")
    plt.title("Flux summary")
    plt.grid(True, alpha=0.3)
    plt.legend(fontsize=8, ncol=4, frameon=False)
    plt.tight_layout()
    out_path = out_dir / "flux_summary.png"
    plt.savefig(out_path, dpi=160)
    plt.close()
    _LOG.info("Saving %s", out_path)
    return out_path
