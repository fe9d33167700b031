"""File set selection and copying.

Patterns follow the gulp/minimatch conventions used by extension projects:
`*` and `?` stay inside one path segment, `**` spans directories (including
none), `{a,b}` expands to alternatives, and a leading `!` in a config list
marks an exclusion. As with minimatch, wildcards skip dotfiles. Each
include pattern copies relative to its glob base, so `src/**/*` lands
`src/foo/bar.js` at `<dest>/foo/bar.js`.
"""

from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from ..orchestrator.logging import get_logger


log = get_logger("extbuild.fileset")

_MAGIC = "*?[{"
_BRACE = re.compile(r"\{([^{}]*)\}")


@dataclass(frozen=True)
class FileSet:
    include: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> "FileSet":
        include: List[str] = []
        exclude: List[str] = []
        for pat in patterns:
            if pat.startswith("!"):
                exclude.append(pat[1:])
            else:
                include.append(pat)
        return cls(include=tuple(include), exclude=tuple(exclude))


def has_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in _MAGIC)


def expand_braces(pattern: str) -> List[str]:
    m = _BRACE.search(pattern)
    if not m:
        return [pattern]
    out: List[str] = []
    for alt in m.group(1).split(","):
        out.extend(expand_braces(pattern[: m.start()] + alt + pattern[m.end():]))
    return out


def glob_base(pattern: str) -> str:
    """Literal directory prefix of a pattern (`src/**/*` -> `src`)."""
    base: List[str] = []
    for part in pattern.split("/")[:-1]:
        if has_magic(part):
            break
        base.append(part)
    return "/".join(base)


_SEGMENT = r"(?!\.)[^/]*"


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a glob into a regex over `/`-separated relative paths.

    Wildcards never match a leading `.` in a path segment, so hidden files
    and directories are only selected by a segment that itself starts
    with `.`.
    """
    out: List[str] = []
    i, n = 0, len(pattern)
    seg_start = True
    while i < n:
        c = pattern[i]
        if c == "*" and pattern.startswith("**", i) and seg_start:
            i += 2
            if i < n and pattern[i] == "/":
                i += 1
                out.append(f"(?:{_SEGMENT}/)*")
                continue
            out.append(f"(?:{_SEGMENT}(?:/{_SEGMENT})*)?")
            seg_start = False
            continue
        if seg_start and c in "*?[":
            out.append(r"(?!\.)")
        seg_start = False
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 2)
            if j == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = j + 1
                continue
        else:
            if c == "/":
                seg_start = True
            out.append(re.escape(c))
        i += 1
    return re.compile("".join(out) + r"\Z")


def _walk_files(base: Path) -> List[Path]:
    files: List[Path] = []
    if not base.is_dir():
        return files
    for dirpath, dirnames, filenames in os.walk(base):
        dirnames.sort()
        for name in sorted(filenames):
            files.append(Path(dirpath) / name)
    return files


def select(fileset: FileSet, root: Path) -> List[Tuple[Path, Path]]:
    """Return (source, path relative to destination) pairs in stable order."""
    root = Path(root)
    excludes = [glob_to_regex(p) for pat in fileset.exclude for p in expand_braces(pat)]
    picked: Dict[str, Path] = {}
    for pattern in fileset.include:
        for expanded in expand_braces(pattern):
            base = glob_base(expanded)
            base_path = root / base if base else root
            rx = glob_to_regex(expanded)
            if has_magic(expanded):
                candidates = _walk_files(base_path)
            else:
                literal = root / expanded
                candidates = [literal] if literal.is_file() else []
            for f in candidates:
                rel = f.relative_to(root).as_posix()
                if rel in picked or not rx.match(rel):
                    continue
                if any(x.match(rel) for x in excludes):
                    continue
                picked[rel] = f.relative_to(base_path)
    return [(root / rel, out) for rel, out in picked.items()]


def materialize(fileset: FileSet, dest: Path, root: Path = Path(".")) -> List[Path]:
    """Copy every selected file into `dest`, keeping structure below the glob base.

    Contents and timestamps are copied, so running twice over an unchanged
    source leaves an identical tree. Files already in `dest` that no longer
    match are left alone; cleaning is a separate task.
    """
    dest = Path(dest)
    written: List[Path] = []
    for src, rel in select(fileset, root):
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, target)
        written.append(target)
    log.debug("Copied %d file(s) into %s", len(written), dest)
    return written


def snapshot(fileset: FileSet, root: Path = Path(".")) -> Dict[str, Tuple[int, int]]:
    """(mtime_ns, size) for every selected file, used by the watch loop."""
    snap: Dict[str, Tuple[int, int]] = {}
    for src, _ in select(fileset, root):
        try:
            st = src.stat()
        except FileNotFoundError:
            continue
        snap[src.as_posix()] = (st.st_mtime_ns, st.st_size)
    return snap
