# picarro_flux/main.py
from __future__ import annotations
from pathlib import Path
import logging
import sys

from .core.config import FluxConfig, load_config
from .core.errors import ConfigError, JoinError
from .core.pipeline import run_pipeline

SCRIPTNAME = "picarro_flux"

def setup_logging(cfg: FluxConfig, verbose: bool = True) -> Path:
    cfg.log_dir.mkdir(parents=True, exist_ok=True)
    log_path = cfg.log_dir / f"{SCRIPTNAME}.log"
    fmt = logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(logging.INFO if verbose else logging.WARNING)
    for h in (logging.StreamHandler(), logging.FileHandler(log_path, encoding="utf-8")):
        h.setFormatter(fmt)
        root.addHandler(h)
    logging.captureWarnings(True)
    return log_path

def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    # ---------- config ----------
    here = Path(__file__).resolve().parent
    cfg_path = Path(argv[0]) if argv else here / "config.yaml"
    try:
        cfg = load_config(cfg_path)
    except ConfigError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    log_path = setup_logging(cfg)
    log = logging.getLogger(SCRIPTNAME)
    log.info("Welcome to %s (config %s, log %s)", SCRIPTNAME, cfg_path, log_path)

    try:
        result = run_pipeline(cfg)
    except (ConfigError, JoinError, FileNotFoundError) as e:
        log.error("aborting: %s", e)
        return 1

    log.info("All done with %s: %d flux group(s), %d group(s) skipped, %d file(s) skipped",
             SCRIPTNAME, len(result.fluxes), result.groups_skipped, result.files_skipped)
    return 0

if __name__ == "__main__":
    sys.exit(main())
