"""Installing the built extension into the user or system extensions directory."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List

from ..orchestrator.logging import get_logger
from ..orchestrator.utils import DEFAULTS, _get


log = get_logger("extbuild.install")


class InstallMode(str, Enum):
    SYMLINK = "symlink"
    COPY = "copy"


class TargetKind(str, Enum):
    LOCAL = "local"
    GLOBAL = "global"


@dataclass(frozen=True)
class InstallTarget:
    kind: TargetKind
    path: Path


class InstallManager:
    def __init__(self, build_root: Path, targets: Dict[TargetKind, InstallTarget]):
        self.build_root = Path(build_root)
        self.targets = targets

    @classmethod
    def from_params(cls, params: Dict, uuid: str, build_root: Path) -> "InstallManager":
        def resolve(key: str) -> Path:
            root = _get(params, "install", key, default=_get(DEFAULTS, "install", key))
            return Path(os.path.expanduser(str(root))).absolute() / uuid

        return cls(
            build_root,
            {
                TargetKind.LOCAL: InstallTarget(TargetKind.LOCAL, resolve("local_root")),
                TargetKind.GLOBAL: InstallTarget(TargetKind.GLOBAL, resolve("global_root")),
            },
        )

    def target(self, kind: TargetKind | str) -> InstallTarget:
        return self.targets[TargetKind(kind)]

    def all_targets(self) -> List[InstallTarget]:
        return [self.targets[k] for k in (TargetKind.LOCAL, TargetKind.GLOBAL)]

    def uninstall(self) -> List[Path]:
        """Remove every known install location; missing ones are skipped."""
        removed: List[Path] = []
        for t in self.all_targets():
            p = t.path
            if p.is_symlink() or p.is_file():
                p.unlink()
            elif p.is_dir():
                shutil.rmtree(p)
            else:
                continue
            log.info("Removed %s install at %s", t.kind.value, p)
            removed.append(p)
        return removed

    def install(self, mode: InstallMode | str, target: InstallTarget) -> Path:
        mode = InstallMode(mode)
        if not self.build_root.is_dir():
            raise FileNotFoundError(f"Build output {self.build_root} does not exist")
        dest = target.path
        dest.parent.mkdir(parents=True, exist_ok=True)
        if mode is InstallMode.SYMLINK:
            os.symlink(self.build_root.resolve(), dest, target_is_directory=True)
        else:
            shutil.copytree(self.build_root, dest, symlinks=True, dirs_exist_ok=True)
        log.info("Installed (%s) to %s", mode.value, dest)
        return dest
