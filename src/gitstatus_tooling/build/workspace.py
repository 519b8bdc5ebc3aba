"""Private temporary build directory with guaranteed, single-fire cleanup.

The workspace is a context manager: entering installs handlers for the
catchable termination signals and creates the directory; leaving (normally,
through an exception, or because a handler raised BuildInterrupted) removes
the tree plus any pending artifact, then restores the previous handlers.
SIGKILL cannot be caught, so cleanup is best effort for it.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import tempfile
import threading
from pathlib import Path
from types import FrameType
from typing import Any

from gitstatus_tooling.errors import BuildInterrupted, ValidationError
from gitstatus_tooling.helpers import shell_quote

log = logging.getLogger(__name__)

WORKDIR_PREFIX = "gitstatus-build."
DEPENDENCY_SUBDIR = "libgit2"
OBJECTS_SUBDIR = "gitstatus"

CLEANUP_SIGNALS = ("SIGINT", "SIGQUIT", "SIGTERM", "SIGILL", "SIGPIPE")


def cleanup_signals() -> list[signal.Signals]:
    """CLEANUP_SIGNALS that exist on this platform."""
    return [getattr(signal, name) for name in CLEANUP_SIGNALS if hasattr(signal, name)]


def tmp_base() -> str:
    return os.environ.get("TMPDIR") or "/tmp"


def is_usable_path(path: str) -> bool:
    """A single whitespace-free token without ':' (those break flag strings like -L<dir>)."""
    return bool(path) and ":" not in path and len(path.split()) == 1 and path == path.strip()


class InterruptGuard:
    """While active, catchable termination signals raise BuildInterrupted.

    After ``disarm()`` further signals are ignored, so cleanup code runs to
    completion; the previous handlers come back on exit. Handlers can only be
    installed from the main thread; elsewhere the guard does nothing.
    """

    def __init__(self) -> None:
        self._previous: dict[int, Any] = {}
        self.disarmed = False

    def __enter__(self) -> InterruptGuard:
        if threading.current_thread() is not threading.main_thread():
            log.debug("not on the main thread; signal cleanup disabled")
            return self
        for sig in cleanup_signals():
            self._previous[sig] = signal.signal(sig, self.handle)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()

    def disarm(self) -> None:
        self.disarmed = True

    def handle(self, signum: int, frame: FrameType | None) -> None:
        if self.disarmed:
            return
        raise BuildInterrupted(signum)

    def restore(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()


class Workspace:
    """One run's build root: ``root/libgit2`` for the dependency, ``root/gitstatus`` for objects."""

    def __init__(self, pending: Path, base: str | None = None) -> None:
        self.pending = pending
        self.base = base
        self.root: Path | None = None
        self.guard = InterruptGuard()
        self._closing = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> Workspace:
        self.guard.__enter__()
        try:
            created = tempfile.mkdtemp(prefix=WORKDIR_PREFIX, dir=self.base or tmp_base())
            self.root = Path(os.path.realpath(created))
            if not is_usable_path(str(self.root)):
                msg = f"cannot build in this directory: {self.root}"
                raise ValidationError(msg)
        except BaseException:
            self.close()
            raise
        log.debug("workspace %s", self.root)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Remove the tree and the pending artifact. Runs once; later calls are no-ops."""
        if self._closing:
            return
        self._closing = True
        self.guard.disarm()
        if self.root is not None:
            shutil.rmtree(self.root, ignore_errors=True)
        self.pending.unlink(missing_ok=True)
        self.guard.restore()
        self._closed = True
        log.debug("workspace cleaned up")


def render_shell_workspace(pending: str) -> list[str]:
    """sh lines that create $workdir and trap cleanup of it and of pending, for the container."""
    prefix = f'"${{TMPDIR:-/tmp}}"/{WORKDIR_PREFIX}'
    return [
        "if command -v mktemp >/dev/null 2>&1; then",
        f'  workdir="$(mktemp -d {prefix}XXXXXXXXXX)"',
        "else",
        f'  workdir={prefix}"$$"',
        '  mkdir -- "$workdir"',
        "fi",
        'cd -- "$workdir"',
        'workdir="$(pwd)"',
        "narg() { echo $#; }",
        'if [ "$(narg $workdir)" != 1 -o -z "${workdir##*:*}" ]; then',
        '  >&2 echo "cannot build in this directory: $workdir"',
        "  exit 1",
        "fi",
        "cleanup() {",
        "  cd /",
        f'  rm -rf -- "$workdir" {shell_quote(pending)}',
        f"  trap - EXIT {' '.join(name[3:] for name in CLEANUP_SIGNALS)}",
        "}",
        "trap cleanup EXIT",
        f"trap 'cleanup; exit 1' {' '.join(name[3:] for name in CLEANUP_SIGNALS)}",
    ]
