"""The build pipeline: workspace, plan, verification, native run or sh rendering.

Only leaf modules are re-exported here; ``plan`` and ``pipeline`` depend on
``platforms``/``target``, which import ``build.step``.
"""

from .step import Step
from .verify import PROBE_INPUT, PROBE_PATTERN, response_ok, verify_binary
from .workspace import InterruptGuard, Workspace

__all__ = [
    "InterruptGuard",
    "PROBE_INPUT",
    "PROBE_PATTERN",
    "Step",
    "Workspace",
    "response_ok",
    "verify_binary",
]
