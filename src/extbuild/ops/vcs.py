"""Git operations used by the build and release tasks."""

from __future__ import annotations

from ..orchestrator.errors import RepositoryError
from ..orchestrator.process import CommandResult, Runner, format_argv


class GitClient:
    """Thin wrapper over the git commands the tool issues.

    Read methods never change repository state. Write methods raise
    RepositoryError on a non-zero exit.
    """

    def __init__(self, runner: Runner, cwd: str | None = None, binary: str = "git") -> None:
        self.runner = runner
        self.cwd = cwd
        self.binary = binary

    async def _git(self, *args: str) -> CommandResult:
        return await self.runner.run([self.binary, *args], cwd=self.cwd)

    async def _checked(self, *args: str) -> CommandResult:
        res = await self._git(*args)
        if res.code != 0:
            raise RepositoryError(
                f"{format_argv(res.argv)} failed ({res.code}): {res.stderr.strip()}"
            )
        return res

    async def short_head(self) -> str:
        res = await self._checked("rev-parse", "--short", "HEAD")
        sha = res.stdout.strip()
        if not sha:
            raise RepositoryError("git rev-parse returned an empty commit id")
        return sha

    async def exact_tag(self, commit: str) -> str | None:
        res = await self._git("describe", "--tags", "--exact-match", commit)
        if res.code != 0:
            return None
        return res.stdout.strip() or None

    async def tag_exists(self, tag: str) -> bool:
        res = await self._git("rev-parse", "-q", "--verify", f"refs/tags/{tag}")
        return res.code == 0

    async def pending_changes(self) -> list[str]:
        res = await self._checked("status", "--porcelain")
        return [line for line in res.stdout.splitlines() if line.strip()]

    async def commit_file(self, path: str, message: str) -> None:
        await self._checked("commit", path, "-m", message)

    async def tag(self, name: str) -> None:
        await self._checked("tag", name)

    async def reset_hard(self, ref: str) -> None:
        await self._checked("reset", "--hard", ref)

    async def push(self, remote: str) -> None:
        await self._checked("push", remote)

    async def push_tags(self, remote: str) -> None:
        await self._checked("push", remote, "--tags")
