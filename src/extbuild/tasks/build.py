"""Build tasks: assemble the extension into the build directory."""

from __future__ import annotations

import asyncio
import shutil

from ..ops.fileset import materialize
from ..ops.metadata import transform_metadata
from ..ops.version import version_value
from ..orchestrator import task
from ..orchestrator.errors import ConfigError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import _get, build_dir, command, metadata_path, schemas_src_dir


log = get_logger("extbuild.tasks.build")

# Watched file set -> task re-run when it changes
WATCHED = {
    "copy": "copy",
    "lib": "copy-lib",
    "metadata": "metadata",
    "schemas": "schemas",
}


@task(name="clean")
async def clean(ctx):
    """Cleans the build/ directory"""
    out = build_dir(ctx.params)
    if out.exists():
        await asyncio.to_thread(shutil.rmtree, out)
        log.info("Removed %s", out)


@task(name="copy")
async def copy(ctx):
    """Copies extension sources into build/"""
    await asyncio.to_thread(materialize, ctx.fileset("copy"), build_dir(ctx.params), ctx.root)


@task(name="copy-lib")
async def copy_lib(ctx):
    """Copies bundled libraries into build/lib"""
    await asyncio.to_thread(
        materialize, ctx.fileset("lib"), build_dir(ctx.params) / "lib", ctx.root
    )


@task(name="copy-license")
async def copy_license(ctx):
    await asyncio.to_thread(materialize, ctx.fileset("license"), build_dir(ctx.params), ctx.root)


@task(name="metadata")
async def metadata(ctx):
    """Writes metadata.json with the version taken from git"""
    version = await ctx.resolver.resolve()
    src = metadata_path(ctx.params)
    await asyncio.to_thread(
        transform_metadata,
        src,
        lambda doc: doc.with_version(version_value(version)),
        build_dir(ctx.params) / src.name,
    )
    log.info("metadata.json version=%s", version)


@task(name="schemas")
async def schemas(ctx):
    """Compiles GSettings schemas into build/schemas"""
    src = schemas_src_dir(ctx.params)
    if not src.is_dir():
        if _get(ctx.params, "schemas", "optional", default=False):
            log.info("No schema directory at %s, skipping", src)
            return
        raise ConfigError(f"Schema directory not found: {src} (set schemas.optional to skip)")
    target = build_dir(ctx.params) / "schemas"
    target.mkdir(parents=True, exist_ok=True)
    argv = command(ctx.params, "schemas", "compiler") + ["--targetdir", str(target), str(src)]
    await ctx.run_tool(argv)


@task(
    name="build",
    sequence=["clean", ("metadata", "schemas", "copy", "copy-lib", "copy-license")],
)
def build(ctx):
    """Builds the extension"""
    log.info("Build ready in %s", build_dir(ctx.params))
