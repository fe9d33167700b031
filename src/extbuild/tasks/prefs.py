"""dconf helpers for the extension's settings while developing."""

from __future__ import annotations

from ..orchestrator import task
from ..orchestrator.utils import dconf_path


@task(name="reset-prefs")
async def reset_prefs(ctx):
    """Resets extension preferences"""
    await ctx.run_tool(["dconf", "reset", "-f", dconf_path(ctx.params)])


async def _set_debug(ctx, enabled: bool):
    key = dconf_path(ctx.params) + "debug"
    await ctx.run_tool(["dconf", "write", key, "true" if enabled else "false"])


@task(name="enable-debug")
async def enable_debug(ctx):
    """Enables debug mode"""
    await _set_debug(ctx, True)


@task(name="disable-debug")
async def disable_debug(ctx):
    """Disables debug mode"""
    await _set_debug(ctx, False)
