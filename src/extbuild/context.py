from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .ops.fileset import FileSet
from .ops.install import InstallManager, TargetKind
from .ops.metadata import MetadataDocument, load_metadata
from .ops.vcs import GitClient
from .ops.version import VersionResolver
from .orchestrator.process import CommandResult, ProcessRunner, Runner
from .orchestrator.utils import build_dir, fileset_patterns, metadata_path, release_setting


@dataclass
class BuildContext:
    """Everything a task function receives: settings plus the external seams."""

    params: Dict
    root: Path
    runner: Runner
    git: GitClient
    resolver: VersionResolver
    install_kind: TargetKind = TargetKind.LOCAL

    @classmethod
    def create(
        cls,
        params: Dict,
        root: Path | str = ".",
        runner: Runner | None = None,
        install_kind: TargetKind | str = TargetKind.LOCAL,
    ) -> "BuildContext":
        root = Path(root).absolute()
        params = dict(params)
        params["runtime"] = {**params.get("runtime", {}), "root": str(root)}
        runner = runner or ProcessRunner()
        git = GitClient(runner, cwd=str(root))
        return cls(
            params=params,
            root=root,
            runner=runner,
            git=git,
            resolver=VersionResolver(git, tag_prefix=str(release_setting(params, "tag_prefix") or "")),
            install_kind=TargetKind(install_kind),
        )

    def fileset(self, name: str) -> FileSet:
        return FileSet.from_patterns(fileset_patterns(self.params, name))

    def metadata(self) -> MetadataDocument:
        # Read fresh every time; bump and metadata tasks change it mid-run
        return load_metadata(metadata_path(self.params))

    def installer(self) -> InstallManager:
        return InstallManager.from_params(
            self.params, self.metadata().uuid, build_dir(self.params)
        )

    async def run_tool(self, argv: list[str]) -> CommandResult:
        res = await self.runner.run(argv, cwd=str(self.root))
        return res.check()
