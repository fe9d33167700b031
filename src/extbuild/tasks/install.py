"""Install tasks.

Both install flavours first uninstall every known location and rebuild, in
that order, so an install never mixes files from two builds.
"""

from __future__ import annotations

import asyncio

from ..ops.install import InstallMode
from ..orchestrator import task
from ..orchestrator.logging import get_logger


log = get_logger("extbuild.tasks.install")


@task(name="uninstall")
async def uninstall(ctx):
    """Uninstalls the extension"""
    removed = await asyncio.to_thread(ctx.installer().uninstall)
    if not removed:
        log.info("Nothing installed")


async def _install(ctx, mode: InstallMode):
    installer = ctx.installer()
    target = installer.target(ctx.install_kind)
    await asyncio.to_thread(installer.install, mode, target)


@task(name="install", sequence=["uninstall", "build"])
async def install(ctx):
    """Installs the extension to ~/.local/share/gnome-shell/extensions/"""
    await _install(ctx, InstallMode.COPY)


@task(name="install-link", sequence=["uninstall", "build"])
async def install_link(ctx):
    """Installs as symlink to build/ directory"""
    await _install(ctx, InstallMode.SYMLINK)
