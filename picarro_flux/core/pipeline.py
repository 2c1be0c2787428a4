# picarro_flux/core/pipeline.py
from __future__ import annotations
from pathlib import Path
import logging
import pandas as pd

from .aggregate import aggregate_fluxes
from .config import FluxConfig
from .flux import estimate_fluxes
from .join import apply_chamber_geometry, attach_path_keys, join_field_metadata, join_valve_schedule
from .model import PipelineResult
from .plotting import save_flux_plot, save_gas_summary_plot
from .quality import apply_quality_filter
from .reports import write_table
from .timing import compute_elapsed
from ..loaders.picarro_loader import SEPARATOR, read_all, relative_dir, split_group_path
from ..loaders.table_loader import read_field_metadata, read_valve_schedule
from ..utils.detect import discover_inputs

_LOG = logging.getLogger(__name__)

def _dims(name: str, df: pd.DataFrame) -> None:
    _LOG.info("%s rows = %d cols = %d", name, df.shape[0], df.shape[1])

def assemble_readings(frames: list[pd.DataFrame], cfg: FluxConfig,
                      valve_schedule: pd.DataFrame | None,
                      field_data: pd.DataFrame) -> pd.DataFrame:
    """raw tables -> joined -> filtered -> time-normalized reading table."""
    alldata = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=["file", "dir"])
    _dims("alldata", alldata)

    alldata = attach_path_keys(alldata, cfg.path_levels)
    alldata = join_valve_schedule(alldata, valve_schedule, cfg.valve_field)
    alldata = apply_chamber_geometry(alldata, cfg)
    alldata = join_field_metadata(alldata, field_data, cfg.field_keys)
    _dims("alldata (joined)", alldata)

    alldata = apply_quality_filter(alldata, cfg)
    _dims("alldata (filtered)", alldata)

    return compute_elapsed(alldata, cfg.normalize_group_fields, cfg.time_field)

def run_pipeline(cfg: FluxConfig) -> PipelineResult:
    _LOG.info("input=%s (pattern=%s, recurse=%s)", cfg.input_dir, cfg.file_pattern, cfg.recurse)
    _LOG.info("output=%s", cfg.output_dir)
    _LOG.info("system_volume=%s chamber_area=%s measurement_interval=%s subsample_fraction=%s",
              cfg.system_volume, cfg.chamber_area, cfg.measurement_interval, cfg.subsample_fraction)

    # ---------- discover & validate layout ----------
    paths = discover_inputs(cfg.input_dir, cfg.file_pattern, cfg.recurse)
    _LOG.info("found %d analyzer file(s) under %s", len(paths), cfg.input_dir)
    for p in paths:
        split_group_path(relative_dir(p, cfg.input_dir), cfg.path_levels)

    # ---------- metadata (required once configured) ----------
    valve_schedule = None
    if cfg.valve_schedule is not None:
        valve_schedule = read_valve_schedule(cfg.valve_schedule, cfg.valve_field)
    expected = cfg.field_keys or ((cfg.field_id_field,) if cfg.field_id_field else None)
    field_data = read_field_metadata(cfg.field_metadata, expected)

    # ---------- read ----------
    records, files_skipped = read_all(paths, cfg)

    cfg.output_dir.mkdir(parents=True, exist_ok=True)
    if not records:
        _LOG.info("No analyzer data loaded; nothing to compute.")
        empty = aggregate_fluxes([], cfg.flux_group_fields)
        return PipelineResult(readings=pd.DataFrame(), fluxes=empty, files_read=0,
                              files_skipped=files_skipped, groups_skipped=0)

    alldata = assemble_readings([r.df for r in records], cfg, valve_schedule, field_data)

    # ---------- fluxes ----------
    results, groups_skipped = estimate_fluxes(alldata, cfg)
    fluxes = aggregate_fluxes(results, cfg.flux_group_fields)
    _dims("fluxes", fluxes)

    # ---------- outputs ----------
    _LOG.info(SEPARATOR)
    outputs: list[Path] = []
    outputs += write_table(alldata, cfg.output_dir / "alldata", "cleaned readings", fmt=cfg.report_format)
    outputs += write_table(fluxes, cfg.output_dir / "fluxes", "flux summary", fmt=cfg.report_format)
    if cfg.plots_enabled:
        facet, color = (cfg.path_levels + (None, None))[:2]
        for gas in dict.fromkeys((cfg.ceiling_field, cfg.flux_gas)):
            p = save_gas_summary_plot(alldata, gas, cfg.output_dir,
                                      facet_field=facet or "treatment", color_field=color or "rep")
            if p is not None:
                outputs.append(p)
        x_field = cfg.summary_fields[0] if cfg.summary_fields else "Day"
        p = save_flux_plot(fluxes, cfg.output_dir, x_field=x_field,
                           series_field=cfg.flux_group_fields[-1] if cfg.flux_group_fields else None)
        if p is not None:
            outputs.append(p)

    _LOG.info(SEPARATOR)
    _LOG.info("files read = %d, files skipped = %d, groups skipped = %d",
              len(records), files_skipped, groups_skipped)
    return PipelineResult(
        readings=alldata, fluxes=fluxes, files_read=len(records),
        files_skipped=files_skipped, groups_skipped=groups_skipped, outputs=tuple(outputs),
    )
