from __future__ import annotations

"""Small helpers for reading build settings out of config params."""

import copy
from pathlib import Path
from typing import Dict, List

import yaml

from .errors import ConfigError


DEFAULTS: Dict = {
    "project": {
        "build_dir": "build",
        "dist_dir": "dist",
        "metadata": "src/metadata.json",
        "runs_dir": None,
        "log_file": None,
    },
    "filesets": {
        "copy": [
            "src/**/*",
            "!src/**/*~",
            "!src/schemas{,/**/*}",
            "!src/metadata.json",
        ],
        "lib": ["lib/**/*"],
        "license": ["LICENSE"],
        "metadata": ["src/metadata.json"],
        "schemas": ["src/schemas/**/*"],
    },
    "schemas": {
        "compiler": ["glib-compile-schemas", "--strict"],
        "src_dir": "src/schemas/",
        "optional": False,
    },
    "lint": {"command": ["eslint", "."]},
    "install": {
        "local_root": "~/.local/share/gnome-shell/extensions",
        "global_root": "/usr/share/gnome-shell/extensions",
    },
    "dconf": {"path": "/org/gnome/shell/extensions/gravatar/"},
    "release": {
        "version_file": "package.json",
        "version_key": "version",
        "tag_prefix": "v",
        "remote": "origin",
        "commit_message": "Bump version",
    },
    "watch": {"interval_seconds": 1.0},
}


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def deep_merge(base: Dict, override: Dict) -> Dict:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str | Path | None) -> Dict:
    """Load YAML settings and layer them over DEFAULTS.

    `None` means no settings file: the defaults describe the standard
    extension layout. A path that does not exist raises ConfigError.
    """
    if path is None:
        return copy.deepcopy(DEFAULTS)
    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Config file not found: {p}")
    with open(p, "r", encoding="utf-8") as f:
        return deep_merge(DEFAULTS, yaml.safe_load(f) or {})


DEFAULT_CONFIG = "configs/base.yaml"


def config_path(option: str | None, root: str | Path) -> Path | None:
    """Explicit `--config` wins; otherwise `configs/base.yaml` under the root if present."""
    if option is not None:
        return Path(option)
    candidate = Path(root) / DEFAULT_CONFIG
    return candidate if candidate.is_file() else None


def log_file(p: Dict) -> Path | None:
    lf = _get(p, "project", "log_file")
    return root_dir(p) / lf if lf else None


def root_dir(p: Dict) -> Path:
    return Path(_get(p, "runtime", "root", default="."))


def _path(p: Dict, *keys) -> Path:
    return root_dir(p) / _get(p, *keys, default=_get(DEFAULTS, *keys))


def build_dir(p: Dict) -> Path:
    return _path(p, "project", "build_dir")


def dist_dir(p: Dict) -> Path:
    return _path(p, "project", "dist_dir")


def metadata_path(p: Dict) -> Path:
    return _path(p, "project", "metadata")


def version_file(p: Dict) -> Path:
    return _path(p, "release", "version_file")


def schemas_src_dir(p: Dict) -> Path:
    return _path(p, "schemas", "src_dir")


def runs_dir(p: Dict) -> Path | None:
    rd = _get(p, "project", "runs_dir")
    return root_dir(p) / rd if rd else None


def fileset_patterns(p: Dict, name: str) -> List[str]:
    patterns = _get(p, "filesets", name, default=_get(DEFAULTS, "filesets", name))
    if patterns is None:
        raise KeyError(f"Unknown file set: {name}")
    return [str(x) for x in patterns]


def command(p: Dict, *keys) -> List[str]:
    cmd = _get(p, *keys, default=_get(DEFAULTS, *keys))
    if isinstance(cmd, str):
        return cmd.split()
    return [str(x) for x in cmd]


def dconf_path(p: Dict) -> str:
    path = str(_get(p, "dconf", "path", default=_get(DEFAULTS, "dconf", "path")))
    return path if path.endswith("/") else path + "/"


def release_setting(p: Dict, key: str):
    return _get(p, "release", key, default=_get(DEFAULTS, "release", key))
