"""Process execution for the external tools the build shells out to."""

from __future__ import annotations

import asyncio
import os
import shlex
import time
from dataclasses import dataclass
from typing import Protocol

from .errors import ToolError
from .logging import get_logger


log = get_logger("extbuild.process")


@dataclass
class CommandResult:
    """Result of executing a command."""

    code: int
    stdout: str
    stderr: str
    argv: list[str]
    duration_s: float = 0.0
    cwd: str | None = None

    def check(self) -> "CommandResult":
        if self.code != 0:
            raise ToolError(
                f"Command failed ({self.code}): {format_argv(self.argv)}\n{self.stderr.strip()}"
            )
        return self


class Runner(Protocol):
    async def run(self, argv: list[str], cwd: str | None = None) -> CommandResult:
        ...


def format_argv(argv: list[str]) -> str:
    return " ".join(map(shlex.quote, argv))


class ProcessRunner:
    """Runs commands as asyncio subprocesses and captures their output."""

    def __init__(self, env: dict[str, str] | None = None) -> None:
        self.env = env

    async def run(self, argv: list[str], cwd: str | None = None) -> CommandResult:
        cmd = list(argv)
        proc_env = os.environ.copy()
        if self.env:
            proc_env.update(self.env)

        log.debug("Exec: %s", format_argv(cmd))
        start = time.time()
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                env=proc_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise ToolError(f"Command not found: {cmd[0]}") from exc
        out, err = await proc.communicate()
        return CommandResult(
            code=proc.returncode if proc.returncode is not None else -1,
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
            argv=cmd,
            duration_s=time.time() - start,
            cwd=cwd,
        )
