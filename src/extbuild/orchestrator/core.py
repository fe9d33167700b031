from __future__ import annotations

import asyncio
import inspect
import itertools
import json
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Collection, Iterable, Union

from .errors import GraphError, TaskFailure
from .logging import get_logger


# A sequence step is a single task name or a group of names run concurrently
Step = Union[str, Collection[str]]


@dataclass(frozen=True)
class TaskSpec:
    name: str
    fn: Callable[..., Any] | None = None
    deps: frozenset[str] = frozenset()
    sequence: tuple[str | frozenset[str], ...] = ()
    description: str = ""

    def references(self) -> set[str]:
        refs = set(self.deps)
        for step in self.sequence:
            if isinstance(step, str):
                refs.add(step)
            else:
                refs.update(step)
        return refs


def _normalize_sequence(sequence: Iterable[Step]) -> tuple[str | frozenset[str], ...]:
    out: list[str | frozenset[str]] = []
    for step in sequence:
        if isinstance(step, str):
            out.append(step)
        else:
            group = frozenset(step)
            if not group:
                raise GraphError("Empty group in task sequence")
            out.append(group)
    return tuple(out)


def make_spec(
    name: str,
    fn: Callable[..., Any] | None = None,
    deps: Iterable[str] = (),
    sequence: Iterable[Step] = (),
    description: str | None = None,
) -> TaskSpec:
    if description is None:
        doc = inspect.getdoc(fn) if fn is not None else None
        description = doc.splitlines()[0] if doc else ""
    return TaskSpec(
        name=name,
        fn=fn,
        deps=frozenset(deps),
        sequence=_normalize_sequence(sequence),
        description=description,
    )


def task(
    name: str,
    deps: Iterable[str] = (),
    sequence: Iterable[Step] = (),
    description: str | None = None,
):
    """Decorator to declare a task on a function.

    The wrapped function receives the build context as its only argument and
    may be a coroutine function. `deps` are prerequisites that may run
    concurrently; `sequence` steps run strictly one after another, after
    `deps` and before the function itself.
    """

    def deco(fn: Callable[..., Any]):
        spec = make_spec(name, fn, deps=deps, sequence=sequence, description=description)
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


def topo_sort(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    nodes = list(nodes)
    incoming: dict[str, set[str]] = {n: set() for n in nodes}
    outgoing: dict[str, set[str]] = {n: set() for n in nodes}
    for u, v in edges:
        if u not in incoming or v not in incoming:
            raise GraphError(f"Edge references unknown node: {(u, v)}")
        outgoing[u].add(v)
        incoming[v].add(u)
    ordered: list[str] = []
    roots = sorted((n for n in nodes if not incoming[n]), reverse=True)
    while roots:
        n = roots.pop()
        ordered.append(n)
        for m in sorted(outgoing[n]):
            incoming[m].discard(n)
            outgoing[n].discard(m)
            if not incoming[m]:
                roots.append(m)
    if any(incoming[n] for n in nodes):
        cyclic = sorted(n for n in nodes if incoming[n])
        raise GraphError(f"Cycle detected between tasks: {', '.join(cyclic)}")
    return ordered


class TaskGraph:
    """Validated, read-only set of task specs."""

    def __init__(self, specs: dict[str, TaskSpec]):
        self._specs = dict(specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __getitem__(self, name: str) -> TaskSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise GraphError(f"Unknown task: {name}") from None

    def requirements(self, name: str) -> set[str]:
        """Transitive closure of everything `name` needs, including itself."""
        seen: set[str] = set()
        stack = [name]
        while stack:
            cur = stack.pop()
            if cur in seen:
                continue
            seen.add(cur)
            stack.extend(self[cur].references())
        return seen

    def plan(self, name: str) -> list[str]:
        required = self.requirements(name)
        edges = [
            (ref, n) for n in required for ref in self._specs[n].references()
        ]
        return topo_sort(sorted(required), edges)


class GraphBuilder:
    """Collects task specs and produces a validated TaskGraph."""

    def __init__(self) -> None:
        self._specs: dict[str, TaskSpec] = {}

    def add(self, spec: TaskSpec) -> "GraphBuilder":
        if spec.name in self._specs:
            raise GraphError(f"Duplicate task: {spec.name}")
        self._specs[spec.name] = spec
        return self

    def register(
        self,
        name: str,
        fn: Callable[..., Any] | None = None,
        *,
        deps: Iterable[str] = (),
        sequence: Iterable[Step] = (),
        description: str | None = None,
    ) -> "GraphBuilder":
        return self.add(
            make_spec(name, fn, deps=deps, sequence=sequence, description=description)
        )

    def build(self) -> TaskGraph:
        for spec in self._specs.values():
            unknown = sorted(r for r in spec.references() if r not in self._specs)
            if unknown:
                raise GraphError(
                    f"Task '{spec.name}' references unknown task(s): {', '.join(unknown)}"
                )
            if spec.name in spec.references():
                raise GraphError(f"Task '{spec.name}' depends on itself")
        edges = [
            (ref, spec.name)
            for spec in self._specs.values()
            for ref in spec.references()
        ]
        topo_sort(self._specs.keys(), edges)
        return TaskGraph(self._specs)


@dataclass
class StepRecord:
    name: str
    status: str
    duration_s: float = 0.0
    error: str | None = None


@dataclass
class RunReport:
    run_id: str
    target: str
    steps: list[StepRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(s.status == "ok" for s in self.steps)

    def completed(self) -> list[str]:
        """Names of tasks that finished successfully, in completion order."""
        return [s.name for s in self.steps if s.status == "ok"]

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "target": self.target,
            "steps": [s.__dict__ for s in self.steps],
            "python": sys.version,
        }


class _Run:
    """Completion table for one invocation; each task maps to a single future."""

    def __init__(self, orchestrator: "Orchestrator", report: RunReport):
        self.orch = orchestrator
        self.report = report
        self.futures: dict[str, asyncio.Future] = {}

    def ensure(self, name: str) -> asyncio.Future:
        fut = self.futures.get(name)
        if fut is None:
            fut = asyncio.ensure_future(self._execute(name))
            self.futures[name] = fut
        return fut

    async def _await_all(self, names: Iterable[str]) -> None:
        # Siblings are never cancelled: let them all settle, then surface the first failure
        results = await asyncio.gather(
            *(self.ensure(n) for n in names), return_exceptions=True
        )
        for res in results:
            if isinstance(res, BaseException):
                raise res

    async def _execute(self, name: str) -> None:
        spec = self.orch.graph[name]
        logger = get_logger(f"extbuild.task.{name}")
        try:
            if spec.deps:
                await self._await_all(sorted(spec.deps))
            for step in spec.sequence:
                await self._await_all([step] if isinstance(step, str) else sorted(step))
        except TaskFailure as failure:
            logger.debug("Skip: %s (prerequisite '%s' failed)", name, failure.task)
            self._record(StepRecord(name=name, status="skipped", error=str(failure)))
            raise

        if spec.fn is None:
            self._record(StepRecord(name=name, status="ok"))
            return

        logger.info("Run: %s", name)
        start = time.perf_counter()
        try:
            result = spec.fn(self.orch.context)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:  # noqa: BLE001
            elapsed = time.perf_counter() - start
            logger.error("Failed: %s after %.2fs: %s", name, elapsed, exc)
            logger.debug("Traceback for %s", name, exc_info=True)
            self._record(
                StepRecord(name=name, status="error", duration_s=elapsed, error=str(exc))
            )
            raise TaskFailure(name, exc) from exc
        elapsed = time.perf_counter() - start
        logger.info("Done: %s (%.2fs)", name, elapsed)
        self._record(StepRecord(name=name, status="ok", duration_s=elapsed))

    def _record(self, record: StepRecord) -> None:
        self.report.steps.append(record)
        self.orch._write_state(self.report)


class Orchestrator:
    """Runs tasks of a TaskGraph on the current event loop.

    Every call to `run` is a fresh run: its own run id and its own completion
    table, so a task executes at most once per run but may run again in a
    later one (watch mode relies on this).
    """

    def __init__(
        self,
        graph: TaskGraph,
        context: Any = None,
        runs_dir: Path | None = None,
        name: str = "extbuild",
    ):
        self.graph = graph
        self.context = context
        self.runs_dir = runs_dir
        self.name = name
        self.logger = get_logger("extbuild.orchestrator")
        self._counter = itertools.count(1)

    def _new_run_id(self) -> str:
        return f"{time.strftime('%Y%m%d-%H%M%S')}-{next(self._counter)}"

    async def run(self, name: str) -> RunReport:
        if name not in self.graph:
            raise GraphError(f"Unknown task: {name}")
        report = RunReport(run_id=self._new_run_id(), target=name)
        self.logger.info("Plan [%s]: %s", report.run_id, " → ".join(self.graph.plan(name)))
        await _Run(self, report).ensure(name)
        return report

    def run_sync(self, name: str) -> RunReport:
        return asyncio.run(self.run(name))

    def _write_state(self, report: RunReport) -> None:
        if self.runs_dir is None:
            return
        run_dir = Path(self.runs_dir) / self.name / report.run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        with open(run_dir / "state.json", "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2)
