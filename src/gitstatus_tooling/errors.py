"""Error types raised by the build orchestrator. Every one maps to exit status 1."""

from __future__ import annotations


class BuildError(RuntimeError):
    """Base class for all build failures."""


class ValidationError(BuildError):
    """Bad command line, configuration or unresolvable target."""


class PrerequisiteError(BuildError):
    """Missing tool, missing sources or unsupported platform. Message carries the remedy."""


class StageError(BuildError):
    """A build step (or the container running it) exited non-zero."""

    def __init__(self, step: str, returncode: int) -> None:
        self.step = step
        self.returncode = returncode
        super().__init__(f"{step} failed with exit code {returncode}")


class VerificationError(BuildError):
    """The freshly built binary did not answer the smoke probe."""


class BuildInterrupted(BuildError):
    """A catchable termination signal arrived mid-build."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"interrupted by signal {signum}")
