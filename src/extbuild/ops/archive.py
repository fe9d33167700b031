from __future__ import annotations

import os
import zipfile
from pathlib import Path

from ..orchestrator.logging import get_logger
from .version import RawTag


log = get_logger("extbuild.archive")


def archive_name(uuid: str, version: RawTag) -> str:
    return f"{uuid}-{version.value}.zip"


def write_archive(build_root: Path, dist_dir: Path, name: str) -> Path:
    """Zip the contents of `build_root` (not the directory itself) into `dist_dir/name`."""
    build_root = Path(build_root)
    if not build_root.is_dir():
        raise FileNotFoundError(f"Build output {build_root} does not exist")
    dist_dir = Path(dist_dir)
    dist_dir.mkdir(parents=True, exist_ok=True)
    out = dist_dir / name
    count = 0
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for dirpath, dirnames, filenames in os.walk(build_root):
            dirnames.sort()
            for fname in sorted(filenames):
                full = Path(dirpath) / fname
                zf.write(full, full.relative_to(build_root).as_posix())
                count += 1
    log.info("Packaged %d file(s) into %s", count, out)
    return out
