"""Packaging and release tasks.

`release` is forward-only: require-clean-wd, bump, push and dist run strictly
in that order and a failure stops everything after it. Nothing that already
happened (a pushed tag, for instance) is undone.
"""

from __future__ import annotations

import asyncio
import os

from ..ops.archive import archive_name, write_archive
from ..ops.metadata import VersionCounter
from ..orchestrator import task
from ..orchestrator.errors import BuildError, DirtyTreeError, RepositoryError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import build_dir, dist_dir, release_setting, version_file


log = get_logger("extbuild.tasks.release")


@task(name="require-clean-wd")
async def require_clean_wd(ctx):
    """Fails when git reports uncommitted changes"""
    changes = await ctx.git.pending_changes()
    if changes:
        raise DirtyTreeError(
            f"There are uncommitted changes in the working directory ({len(changes)}). Aborting."
        )


@task(name="bump")
async def bump(ctx):
    """Increments the release counter, commits it and tags the commit"""
    counter = VersionCounter(
        version_file(ctx.params), key=str(release_setting(ctx.params, "version_key"))
    )
    _, current = await asyncio.to_thread(counter.load)
    tag = f"{release_setting(ctx.params, 'tag_prefix') or ''}{current + 1}"
    if await ctx.git.tag_exists(tag):
        raise RepositoryError(f"Tag {tag} already exists")

    new_value, original = await asyncio.to_thread(counter.bump)
    rel = os.path.relpath(counter.path, ctx.root)
    try:
        await ctx.git.commit_file(rel, str(release_setting(ctx.params, "commit_message")))
    except BuildError:
        counter.restore(original)
        raise
    try:
        await ctx.git.tag(tag)
    except BuildError as exc:
        # Tree was clean before the bump, so dropping the commit loses nothing
        log.error("Tagging %s failed, dropping the bump commit", tag)
        try:
            await ctx.git.reset_hard("HEAD~1")
        except BuildError as reset_exc:
            raise RepositoryError(
                f"Tagging {tag} failed ({exc}) and the bump commit could not be dropped: {reset_exc}"
            ) from exc
        raise
    log.info("Bumped version to %d (%s)", new_value, tag)


@task(name="push")
async def push(ctx):
    remote = str(release_setting(ctx.params, "remote"))
    await ctx.git.push(remote)
    await ctx.git.push_tags(remote)


@task(name="dist", deps=["lint"], sequence=["build"])
async def dist(ctx):
    """Builds and packages the extension"""
    uuid = ctx.metadata().uuid
    version = await ctx.resolver.resolve(raw_tag=True)
    await asyncio.to_thread(
        write_archive, build_dir(ctx.params), dist_dir(ctx.params), archive_name(uuid, version)
    )


@task(
    name="release",
    deps=["lint"],
    sequence=["require-clean-wd", "bump", "push", "dist"],
)
def release(ctx):
    """Bumps/tags version and builds package"""
    log.info("Release finished")
