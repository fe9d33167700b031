from __future__ import annotations


class BuildError(RuntimeError):
    """Base class for every failure the build tool reports."""


class GraphError(BuildError):
    """Invalid task graph: unknown reference, duplicate name or cycle."""


class ConfigError(BuildError):
    """Settings file missing, unreadable or pointing at something absent."""


class ToolError(BuildError):
    """An external command exited non-zero or could not be started."""


class RepositoryError(BuildError):
    """A git query or write failed."""


class VersionFormatError(BuildError):
    """A tag or counter is not a valid non-negative integer version."""


class DirtyTreeError(BuildError):
    pass


class MetadataReadError(BuildError):
    pass


class MetadataWriteError(BuildError):
    pass


class TaskFailure(BuildError):
    """Raised by the orchestrator when a task's action fails.

    `task` is the name of the task whose action raised, which is not
    necessarily the task that was requested on the command line.
    """

    def __init__(self, task: str, cause: BaseException):
        self.task = task
        self.cause = cause
        super().__init__(f"Task '{task}' failed: {cause}")
