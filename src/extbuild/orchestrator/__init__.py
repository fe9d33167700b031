"""In-repo task orchestrator for building and releasing the extension.

Provides TaskSpec/GraphBuilder/Orchestrator primitives, a `task` decorator for
declaring tasks, and the Typer CLI in `cli`.
"""

from .core import GraphBuilder, Orchestrator, RunReport, TaskGraph, TaskSpec, task  # re-export for convenience

__all__ = ["GraphBuilder", "Orchestrator", "RunReport", "TaskGraph", "TaskSpec", "task"]
