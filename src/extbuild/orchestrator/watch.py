"""Polling watcher that re-runs a task whenever its file set changes.

Each re-run is a fresh orchestrator run, so the watched task executes again
even though it already completed during the initial build. The loop only
ends when the process is interrupted (or after `max_cycles`, for tests).
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Tuple

from ..ops.fileset import FileSet, snapshot
from .core import Orchestrator
from .errors import BuildError
from .logging import get_logger


log = get_logger("extbuild.watch")

Snapshot = Dict[str, Tuple[int, int]]


async def watch(
    orchestrator: Orchestrator,
    watches: Dict[str, FileSet],
    root: Path,
    *,
    interval_seconds: float = 1.0,
    max_cycles: int | None = None,
) -> None:
    """Poll `watches` (task name -> file set) and re-run tasks on change."""
    sleep_s = max(0.01, float(interval_seconds))
    state: Dict[str, Snapshot] = {
        name: snapshot(fs, root) for name, fs in watches.items()
    }
    log.info("Watching %s", ", ".join(sorted(watches)))
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        await asyncio.sleep(sleep_s)
        cycles += 1
        for name, fs in watches.items():
            current = snapshot(fs, root)
            if current == state[name]:
                continue
            state[name] = current
            log.info("Change detected, re-running %s", name)
            try:
                await orchestrator.run(name)
            except BuildError as exc:
                # Keep watching; the next save may fix it
                log.error("%s", exc)
