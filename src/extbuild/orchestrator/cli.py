from __future__ import annotations

import asyncio
import importlib
import pkgutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import typer
from dotenv import load_dotenv

from ..context import BuildContext
from .core import GraphBuilder, Orchestrator, TaskSpec
from .errors import BuildError, ConfigError
from .logging import get_logger, setup_logging
from .process import ProcessRunner
from .utils import _get, config_path, load_config, log_file, runs_dir


app = typer.Typer(
    add_completion=False,
    help="Build, install and release the extension.",
)
log = get_logger("extbuild.cli")

TASKS_PACKAGE = "extbuild.tasks"


def discover_tasks() -> Dict[str, TaskSpec]:
    """Import all modules in the tasks package and collect decorated functions."""
    specs: Dict[str, TaskSpec] = {}
    try:
        pkg = importlib.import_module(TASKS_PACKAGE)
    except ModuleNotFoundError:
        log.warning("No tasks package found.")
        return specs
    for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{TASKS_PACKAGE}."):
        try:
            mod = importlib.import_module(m.name)
        except Exception as e:  # noqa: BLE001
            log.warning("Failed to import %s: %s", m.name, e)
            continue
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            spec = getattr(obj, "_task_spec", None)
            if isinstance(spec, TaskSpec):
                specs[spec.name] = spec
    return specs


def build_graph():
    specs = discover_tasks()
    builder = GraphBuilder()
    for name in sorted(specs):
        builder.add(specs[name])
    return builder.build()


@dataclass
class CliState:
    params: dict
    root: Path


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _orchestrator(state: CliState, install_kind: str = "local") -> Orchestrator:
    context = BuildContext.create(
        state.params,
        root=state.root,
        runner=ProcessRunner(),
        install_kind=install_kind,
    )
    return Orchestrator(build_graph(), context, runs_dir=runs_dir(context.params))


def _fail(exc: BuildError) -> None:
    typer.echo(str(exc), err=True)
    raise typer.Exit(code=1)


def execute(ctx: typer.Context, name: str, install_kind: str = "local") -> None:
    state = _state(ctx)
    try:
        report = _orchestrator(state, install_kind).run_sync(name)
    except BuildError as e:
        _fail(e)
    else:
        log.info("%s finished: %d task(s) in run %s", name, len(report.completed()), report.run_id)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, help="Path to YAML config [default: configs/base.yaml under --root]"
    ),
    root: str = typer.Option(".", help="Extension project root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Build, install and release the extension."""
    load_dotenv()
    try:
        params = load_config(config_path(config, root))
    except ConfigError as e:
        _fail(e)
    params["runtime"] = {"root": str(Path(root).absolute())}
    setup_logging(verbose=verbose, log_file=log_file(params))
    ctx.obj = CliState(params=params, root=Path(root))
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


# BUILD


@app.command("clean", rich_help_panel="BUILD")
def clean_cmd(ctx: typer.Context):
    """Cleans the build/ directory"""
    execute(ctx, "clean")


@app.command("build", rich_help_panel="BUILD")
def build_cmd(ctx: typer.Context):
    """Builds the extension"""
    execute(ctx, "build")


@app.command("watch", rich_help_panel="BUILD")
def watch_cmd(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(None, help="Polling interval in seconds"),
):
    """Builds and watches the src/ directory for changes"""
    from ..tasks.build import WATCHED
    from .watch import watch

    state = _state(ctx)
    orch = _orchestrator(state)
    watches = {task_name: orch.context.fileset(fs) for fs, task_name in WATCHED.items()}
    seconds = interval if interval is not None else _get(state.params, "watch", "interval_seconds", default=1.0)

    async def _main():
        await orch.run("build")
        await watch(orch, watches, orch.context.root, interval_seconds=seconds)

    try:
        asyncio.run(_main())
    except KeyboardInterrupt:
        typer.echo("Stopped watching.")
    except BuildError as e:
        _fail(e)


# INSTALL


@app.command("install", rich_help_panel="INSTALL")
def install_cmd(
    ctx: typer.Context,
    global_: bool = typer.Option(False, "--global", help="Install to the system extensions directory"),
):
    """Installs the extension to ~/.local/share/gnome-shell/extensions/"""
    execute(ctx, "install", install_kind="global" if global_ else "local")


@app.command("install-link", rich_help_panel="INSTALL")
def install_link_cmd(
    ctx: typer.Context,
    global_: bool = typer.Option(False, "--global", help="Link from the system extensions directory"),
):
    """Installs as symlink to build/ directory"""
    execute(ctx, "install-link", install_kind="global" if global_ else "local")


@app.command("uninstall", rich_help_panel="INSTALL")
def uninstall_cmd(ctx: typer.Context):
    """Uninstalls the extension"""
    execute(ctx, "uninstall")


@app.command("reset-prefs", rich_help_panel="INSTALL")
def reset_prefs_cmd(ctx: typer.Context):
    """Resets extension preferences"""
    execute(ctx, "reset-prefs")


# PACKAGE


@app.command("lint", rich_help_panel="PACKAGE")
def lint_cmd(ctx: typer.Context):
    """Lint source files"""
    execute(ctx, "lint")


@app.command("dist", rich_help_panel="PACKAGE")
def dist_cmd(ctx: typer.Context):
    """Builds and packages the extension"""
    execute(ctx, "dist")


@app.command("release", rich_help_panel="PACKAGE")
def release_cmd(ctx: typer.Context):
    """Bumps/tags version and builds package"""
    execute(ctx, "release")


# DEBUG


@app.command("enable-debug", rich_help_panel="DEBUG")
def enable_debug_cmd(ctx: typer.Context):
    """Enables debug mode"""
    execute(ctx, "enable-debug")


@app.command("disable-debug", rich_help_panel="DEBUG")
def disable_debug_cmd(ctx: typer.Context):
    """Disables debug mode"""
    execute(ctx, "disable-debug")


# TASKS


@app.command("list", rich_help_panel="TASKS")
def list_tasks():
    """List discovered tasks."""
    specs = discover_tasks()
    if not specs:
        typer.echo("No tasks discovered.")
        raise typer.Exit(code=0)
    typer.echo("Discovered tasks:")
    for name in sorted(specs.keys()):
        spec = specs[name]
        line = f"- {name}"
        if spec.description:
            line += f": {spec.description}"
        typer.echo(line)


@app.command("run", rich_help_panel="TASKS")
def run_task(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Task name to run"),
):
    """Run a single task (and everything it requires) by name."""
    specs = discover_tasks()
    if name not in specs:
        typer.echo(f"Task not found: {name}", err=True)
        raise typer.Exit(code=1)
    execute(ctx, name)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
