from ..orchestrator import task
from ..orchestrator.utils import command


@task(name="lint")
async def lint(ctx):
    """Lint source files"""
    await ctx.run_tool(command(ctx.params, "lint", "command"))
