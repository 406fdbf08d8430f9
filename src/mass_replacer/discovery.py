"""World layout helpers: region file discovery and world copy.

Expected layout (names are matched by substring, as the game's own tools do)::

  <world>/region/r.0.0.mca            overworld
  <world>/DIM-1/region/r.0.0.mca      nether
  <world>/DIM1/region/r.0.0.mca       end
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from mass_replacer.engine.region import REGION_SUFFIX
from mass_replacer.errors import UsageError

logger = logging.getLogger(__name__)

DIM_FOLDERS_BASE_NAME = "DIM"
REGION_FOLDERS_BASE_NAME = "region"


def _region_files_in(region_dir: Path) -> list[Path]:
    return [p for p in region_dir.iterdir() if p.is_file() and p.name.endswith(REGION_SUFFIX)]


def find_region_dirs(world: Path) -> list[Path]:
    root = Path(world)
    if not root.is_dir():
        raise UsageError(f"world non è una directory: {root}")
    dirs: list[Path] = []
    for child in root.iterdir():
        if not child.is_dir():
            continue
        if DIM_FOLDERS_BASE_NAME in child.name:
            for sub in child.iterdir():
                if sub.is_dir() and REGION_FOLDERS_BASE_NAME in sub.name:
                    dirs.append(sub)
        elif REGION_FOLDERS_BASE_NAME in child.name:
            dirs.append(child)
    dirs.sort(key=lambda p: p.relative_to(root).as_posix())
    return dirs


def find_region_files(world: Path, *, log: logging.Logger | None = None) -> list[Path]:
    """Every ``*.mca`` file of every dimension, sorted by relative path."""
    log = log or logger
    root = Path(world)
    files: list[Path] = []
    for region_dir in find_region_dirs(root):
        found = _region_files_in(region_dir)
        log.info("Adding %d region files from %s", len(found), region_dir.relative_to(root).as_posix())
        files.extend(found)
    files.sort(key=lambda p: p.relative_to(root).as_posix())
    return files


def copy_world(src: Path, dest: Path, *, log: logging.Logger | None = None) -> None:
    """Copy the whole world tree, overwriting files that already exist in dest."""
    log = log or logger
    s = Path(src)
    d = Path(dest)
    if not s.is_dir():
        raise UsageError(f"world sorgente non è una directory: {s}")
    if d.resolve() == s.resolve() or d.resolve().is_relative_to(s.resolve()):
        raise UsageError(f"output dentro la sorgente: {d}")
    log.info("Copying %s to %s", s.resolve(), d.resolve())
    shutil.copytree(s, d, dirs_exist_ok=True)
