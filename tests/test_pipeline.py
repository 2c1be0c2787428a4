import logging
import numpy as np
import pandas as pd
from pathlib import Path
import tempfile
import unittest
import warnings
import yaml

from picarro_flux.core.config import config_from_dict, load_config
from picarro_flux.core.errors import ConfigError, DataQualityWarning
from picarro_flux.core.pipeline import assemble_readings, run_pipeline
from picarro_flux.core.timing import ELAPSED
from picarro_flux.loaders.picarro_loader import read_all
from picarro_flux.loaders.table_loader import read_field_metadata, read_valve_schedule
from picarro_flux.main import main
from picarro_flux.utils.detect import discover_inputs

VALVES = [1, 1, 1, 2, 2, 2, 1.5, 1, 1, 1]


def _write_session(path: Path, start: float) -> None:
    t = 10.0 * np.arange(len(VALVES))
    df = pd.DataFrame({
        "EPOCH_TIME": start + t,
        "CO2_dry": 400.0 + 0.01 * t,
        "CH4_dry": [2.0] * len(VALVES),
        "solenoid_valves": VALVES,
        "Tair": [20.0] * len(VALVES),
    })
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep="\t", index=False)


def _campaign(root: Path, with_schedule: bool = True) -> dict:
    in_dir = root / "in"
    _write_session(in_dir / "A" / "1" / "f1.dat", 1.4e9)
    _write_session(in_dir / "A" / "1" / "f2.dat", 1.4e9 + 1000.0)
    (in_dir / "core_data.csv").write_text("treatment,rep,Plot,dwp_core,Day,Month\nA,1,P1,5,12,6\n")
    raw = {
        "input_dir": str(in_dir), "output_dir": str(root / "out"), "log_dir": str(root / "logs"),
        "system_volume": 1.5e-5, "chamber_area": 5.5, "measurement_interval": 600,
        "subsample_fraction": 1, "plots": {"enabled": False},
    }
    if with_schedule:
        (in_dir / "solenoid_valves.csv").write_text(
            "# position, chamber area override\nsolenoid_valves,area\n1,12.0\n2,\n"
        )
        raw["valve_schedule"] = "solenoid_valves.csv"
    return raw


class AssemblyTests(unittest.TestCase):
    def test_fractional_reading_is_dropped_before_elapsed_time(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = config_from_dict(_campaign(Path(tmpdir), with_schedule=False))
            paths = discover_inputs(cfg.input_dir, cfg.file_pattern)
            records, skipped = read_all(paths, cfg)
            field_data = read_field_metadata(cfg.field_metadata)

            one = assemble_readings([records[0].df], cfg, None, field_data)
            both = assemble_readings([r.df for r in records], cfg, None, field_data)

        self.assertEqual(0, skipped)
        self.assertEqual(9, len(one))
        self.assertEqual(18, len(both))
        self.assertNotIn(1.5, both["solenoid_valves"].tolist())
        group = both[(both["treatment"] == "A") & (both["rep"] == "1")]
        self.assertEqual(18, len(group))
        self.assertEqual(0.0, group[ELAPSED].iloc[0])
        self.assertTrue(group[ELAPSED].is_monotonic_increasing)
        self.assertEqual({5}, set(both["dwp_core"]))


class PipelineTests(unittest.TestCase):
    def test_end_to_end_writes_tables_and_uses_schedule_area(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cfg = config_from_dict(_campaign(Path(tmpdir)))
            result = run_pipeline(cfg)

            self.assertEqual(2, result.files_read)
            self.assertEqual(0, result.files_skipped)
            self.assertEqual(0, result.groups_skipped)
            self.assertTrue((cfg.output_dir / "alldata.csv").exists())
            self.assertTrue((cfg.output_dir / "fluxes.csv").exists())

            fluxes = pd.read_csv(cfg.output_dir / "fluxes.csv")
            self.assertEqual(4, len(fluxes))
            self.assertEqual(["f1.dat", "f1.dat", "f2.dat", "f2.dat"], fluxes["file"].tolist())
            by_valve = fluxes.groupby("solenoid_valves")["S"].unique()
            self.assertEqual([12.0], by_valve[1.0].tolist())
            self.assertEqual([5.5], by_valve[2.0].tolist())
            self.assertEqual([6, 3, 6, 3], fluxes["N"].tolist())
            np.testing.assert_allclose(fluxes["slope"], 0.01, rtol=1e-9)
            self.assertEqual({12.0}, set(fluxes["Day"]))

    def test_plots_are_written_when_enabled(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            raw = _campaign(Path(tmpdir))
            raw["plots"] = {"enabled": True}
            raw["reports"] = {"format": "both"}
            cfg = config_from_dict(raw)
            result = run_pipeline(cfg)

            names = {p.name for p in result.outputs}
            self.assertIn("fluxes.mat", names)
            self.assertIn("summary_co2_dry_allreps.png", names)
            self.assertIn("flux_summary.png", names)

    def test_wrong_directory_depth_aborts_before_reading(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            raw = _campaign(Path(tmpdir))
            _write_session(Path(raw["input_dir"]) / "stray.dat", 1.4e9)
            with self.assertRaises(ConfigError):
                run_pipeline(config_from_dict(raw))

    def test_no_input_files_gives_empty_result(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            raw = _campaign(Path(tmpdir))
            raw["file_pattern"] = "*.none"
            result = run_pipeline(config_from_dict(raw))
            self.assertEqual(0, result.files_read)
            self.assertTrue(result.fluxes.empty)

    def test_field_data_without_plot_is_warned(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            raw = _campaign(Path(tmpdir))
            core = Path(raw["input_dir"]) / "core_data.csv"
            core.write_text("treatment,rep,dwp_core,Day,Month\nA,1,5,12,6\n")

            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                result = run_pipeline(config_from_dict(raw))
            self.assertEqual(4, len(result.fluxes))
            self.assertTrue(any(issubclass(w.category, DataQualityWarning) and "Plot" in str(w.message)
                                for w in caught))

            raw["field_id_field"] = None
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                run_pipeline(config_from_dict(raw))
            self.assertFalse(any(issubclass(w.category, DataQualityWarning) and "Plot" in str(w.message)
                                 for w in caught))

    def test_blank_rep_cell_in_field_data_still_joins(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            raw = _campaign(Path(tmpdir))
            core = Path(raw["input_dir"]) / "core_data.csv"
            core.write_text("treatment,rep,Plot,dwp_core,Day,Month\nA,1,P1,5,12,6\nB,,P2,6,12,6\n")
            result = run_pipeline(config_from_dict(raw))

            self.assertEqual(4, len(result.fluxes))
            self.assertEqual({5}, set(result.readings["dwp_core"]))


class ConfigTests(unittest.TestCase):
    def _raw(self, **extra):
        raw = {
            "input_dir": "in", "output_dir": "out", "log_dir": "logs",
            "system_volume": 1.5e-5, "chamber_area": 5.5, "measurement_interval": 600,
            "subsample_fraction": 0.1,
        }
        raw.update(extra)
        return raw

    def test_required_keys_and_ranges(self):
        raw = self._raw()
        del raw["chamber_area"]
        with self.assertRaises(ConfigError):
            config_from_dict(raw)
        for bad in (0, 1.5, "lots"):
            with self.assertRaises(ConfigError):
                config_from_dict(self._raw(subsample_fraction=bad))
        with self.assertRaises(ConfigError):
            config_from_dict(self._raw(constants={"planck": 6.6e-34}))
        with self.assertRaises(ConfigError):
            config_from_dict(self._raw(reports={"format": "xlsx"}))

    def test_defaults_and_relative_metadata_paths(self):
        cfg = config_from_dict(self._raw(valve_field="valve", valve_schedule="sv.csv"))
        self.assertEqual(("file", "valve"), cfg.flux_group_fields)
        self.assertEqual(Path("in") / "sv.csv", cfg.valve_schedule)
        self.assertEqual(Path("in") / "core_data.csv", cfg.field_metadata)
        self.assertEqual(101.0, cfg.constants.pressure_kpa)
        with self.assertRaises(Exception):
            cfg.chamber_area = 1.0

    def test_load_config_from_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(yaml.safe_dump(self._raw(constants={"molar_mass": 44.0})))
            cfg = load_config(path)
            self.assertEqual(44.0, cfg.constants.molar_mass)
            with self.assertRaises(ConfigError):
                load_config(Path(tmpdir) / "missing.yaml")

    def test_valve_schedule_columns_are_canonical(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sv.csv"
            path.write_text("# comment\nSolenoid_Valves,AREA,volume\n1,12,\n")
            sv = read_valve_schedule(path)
            self.assertEqual(["solenoid_valves", "Area", "Volume"], list(sv.columns))

    def test_bad_seed_and_non_mapping_sections_are_config_errors(self):
        with self.assertRaises(ConfigError):
            config_from_dict(self._raw(random_seed="abc"))
        with self.assertRaises(ConfigError):
            config_from_dict(self._raw(random_seed=[1, 2]))
        for section in ("quality", "reports", "plots"):
            with self.assertRaises(ConfigError):
                config_from_dict(self._raw(**{section: "yes"}))
        self.assertEqual(7, config_from_dict(self._raw(random_seed="7")).random_seed)
        self.assertEqual("Plot", config_from_dict(self._raw()).field_id_field)


class MainTests(unittest.TestCase):
    def setUp(self):
        self._handlers = list(logging.getLogger().handlers)

    def tearDown(self):
        root = logging.getLogger()
        for h in list(root.handlers):
            if h not in self._handlers:
                root.removeHandler(h)
                h.close()
        logging.captureWarnings(False)

    def test_main_runs_from_yaml_and_reports_config_errors(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            cfg_path = root / "config.yaml"
            cfg_path.write_text(yaml.safe_dump(_campaign(root)))

            self.assertEqual(0, main([str(cfg_path)]))
            self.assertTrue((root / "logs" / "picarro_flux.log").exists())
            self.assertTrue((root / "out" / "fluxes.csv").exists())
            self.assertEqual(2, main([str(root / "missing.yaml")]))


if __name__ == "__main__":
    unittest.main()
