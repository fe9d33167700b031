"""Task modules live here.

Each module declares its tasks with `@orchestrator.task(name=..., deps=[...],
sequence=[...])`; the CLI discovers every decorated function in this package.

Do not implement logic here; the operations themselves live in `extbuild.ops`.
"""
