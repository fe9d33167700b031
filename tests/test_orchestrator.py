# tests/test_orchestrator.py

from __future__ import annotations

import asyncio
import json

import pytest

from extbuild.orchestrator.core import GraphBuilder, Orchestrator
from extbuild.orchestrator.errors import GraphError, TaskFailure


class Recorder:
    """Builds task actions that log start/end events and count invocations."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []
        self.counts: dict[str, int] = {}

    def action(self, name: str, delay: float = 0.0, error: Exception | None = None):
        async def fn(ctx):
            self.counts[name] = self.counts.get(name, 0) + 1
            self.events.append(("start", name))
            await asyncio.sleep(delay)
            if error is not None:
                raise error
            self.events.append(("end", name))

        return fn

    def index(self, kind: str, name: str) -> int:
        return self.events.index((kind, name))


@pytest.mark.asyncio
async def test_parallel_group_fans_in_before_dependent() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("a", rec.action("a", delay=0.03))
        .register("b", rec.action("b", delay=0.01))
        .register("c", rec.action("c"), deps=["a", "b"])
        .build()
    )

    await Orchestrator(graph).run("c")

    assert rec.index("start", "c") > rec.index("end", "a")
    assert rec.index("start", "c") > rec.index("end", "b")
    # a and b were in flight at the same time
    assert rec.index("start", "b") < rec.index("end", "a")


@pytest.mark.asyncio
async def test_shared_dependency_runs_once_per_run() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("clean", rec.action("clean", delay=0.01))
        .register("x", rec.action("x"), deps=["clean"])
        .register("y", rec.action("y"), sequence=["clean"])
        .register("all", None, deps=["x", "y"])
        .build()
    )

    report = await Orchestrator(graph).run("all")

    assert rec.counts == {"clean": 1, "x": 1, "y": 1}
    assert report.ok
    assert report.completed()[-1] == "all"


@pytest.mark.asyncio
async def test_forced_sequence_runs_strictly_in_order() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("a", rec.action("a", delay=0.03))
        .register("b", rec.action("b", delay=0.01))
        .register("c", rec.action("c"))
        .register("pipeline", None, sequence=["a", "b", "c"])
        .build()
    )

    await Orchestrator(graph).run("pipeline")

    assert rec.events == [
        ("start", "a"),
        ("end", "a"),
        ("start", "b"),
        ("end", "b"),
        ("start", "c"),
        ("end", "c"),
    ]


@pytest.mark.asyncio
async def test_sequence_group_step_waits_for_previous_step() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("clean", rec.action("clean", delay=0.02))
        .register("copy", rec.action("copy", delay=0.01))
        .register("meta", rec.action("meta", delay=0.01))
        .register("build", rec.action("build"), sequence=["clean", ("copy", "meta")])
        .build()
    )

    await Orchestrator(graph).run("build")

    clean_end = rec.index("end", "clean")
    assert rec.index("start", "copy") > clean_end
    assert rec.index("start", "meta") > clean_end
    assert rec.index("start", "build") > max(rec.index("end", "copy"), rec.index("end", "meta"))


@pytest.mark.asyncio
async def test_failure_stops_dependents_and_names_failing_task() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("ok", rec.action("ok", delay=0.02))
        .register("broken", rec.action("broken", error=RuntimeError("boom")))
        .register("after", rec.action("after"), deps=["ok", "broken"])
        .register("top", rec.action("top"), sequence=["after"])
        .build()
    )

    with pytest.raises(TaskFailure) as excinfo:
        await Orchestrator(graph).run("top")

    assert excinfo.value.task == "broken"
    assert "boom" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    # the sibling that was already in flight is allowed to finish
    assert ("end", "ok") in rec.events
    assert "after" not in rec.counts
    assert "top" not in rec.counts


@pytest.mark.asyncio
async def test_failed_sequence_step_aborts_later_steps() -> None:
    rec = Recorder()
    graph = (
        GraphBuilder()
        .register("check", rec.action("check", error=ValueError("dirty")))
        .register("mutate", rec.action("mutate"))
        .register("release", None, sequence=["check", "mutate"])
        .build()
    )

    with pytest.raises(TaskFailure) as excinfo:
        await Orchestrator(graph).run("release")

    assert excinfo.value.task == "check"
    assert "mutate" not in rec.counts


@pytest.mark.asyncio
async def test_each_run_has_its_own_completion_table() -> None:
    rec = Recorder()
    graph = GraphBuilder().register("copy", rec.action("copy")).build()
    orch = Orchestrator(graph)

    first = await orch.run("copy")
    second = await orch.run("copy")

    assert rec.counts["copy"] == 2
    assert first.run_id != second.run_id


@pytest.mark.asyncio
async def test_sync_actions_receive_context() -> None:
    seen = []
    graph = GraphBuilder().register("hello", lambda ctx: seen.append(ctx)).build()

    await Orchestrator(graph, context={"k": 1}).run("hello")

    assert seen == [{"k": 1}]


@pytest.mark.asyncio
async def test_unknown_task_is_rejected() -> None:
    graph = GraphBuilder().register("a", None).build()
    with pytest.raises(GraphError):
        await Orchestrator(graph).run("nope")


def test_builder_rejects_unknown_reference() -> None:
    with pytest.raises(GraphError, match="missing"):
        GraphBuilder().register("a", None, deps=["missing"]).build()


def test_builder_rejects_cycle() -> None:
    builder = (
        GraphBuilder()
        .register("a", None, deps=["b"])
        .register("b", None, sequence=["a"])
    )
    with pytest.raises(GraphError, match="Cycle"):
        builder.build()


def test_builder_rejects_duplicate_name() -> None:
    builder = GraphBuilder().register("a", None)
    with pytest.raises(GraphError, match="Duplicate"):
        builder.register("a", None)


def test_plan_lists_prerequisites_first() -> None:
    graph = (
        GraphBuilder()
        .register("clean", None)
        .register("copy", None)
        .register("build", None, sequence=["clean", ("copy",)])
        .register("unrelated", None)
        .build()
    )
    plan = graph.plan("build")
    assert plan[-1] == "build"
    assert set(plan) == {"clean", "copy", "build"}


def test_run_state_is_written_when_runs_dir_is_set(tmp_path) -> None:
    graph = GraphBuilder().register("a", lambda ctx: None).build()
    report = Orchestrator(graph, runs_dir=tmp_path).run_sync("a")

    state = json.loads((tmp_path / "extbuild" / report.run_id / "state.json").read_text())
    assert state["target"] == "a"
    assert state["steps"][0]["status"] == "ok"
