# picarro_flux/utils/detect.py
from __future__ import annotations
from pathlib import Path

def discover_inputs(root: Path, pattern: str = "*.dat", recurse: bool = True) -> list[Path]:
    """
    If 'root' is a file -> return it when it matches 'pattern'.
    If 'root' is a folder -> walk (optionally recursively) and collect matching files.
    Metadata tables living in the same tree are not picked up unless they match.
    """
    if root.is_file():
        return [root.resolve()] if root.match(pattern) else []
    if not root.is_dir():
        raise FileNotFoundError(f"input directory not found: {root}")

    it = root.rglob(pattern) if recurse else root.glob(pattern)
    items = [p.resolve() for p in it if p.is_file()]

    # deterministic ordering
    items.sort(key=lambda p: str(p))
    return items
