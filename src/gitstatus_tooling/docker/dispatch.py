"""Choose where the pipeline runs and launch it.

Native kernels run the pipeline in this process. On Linux exactly one container
is started per build: the project root is bind-mounted read/write at /out, the
target triple is passed as GITSTATUS_* variables, and the rendered pipeline is
handed to /bin/sh. The container is removed on exit (--rm). Failures are not
retried.

The container belongs to the runtime daemon, not to this process: killing the
``docker run`` client leaves it running. It is therefore started under a known
name and removed with ``<runtime> rm -f`` when the build is interrupted.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import secrets
import subprocess
from pathlib import Path

from gitstatus_tooling.build.pipeline import render_script, run_native
from gitstatus_tooling.build.workspace import InterruptGuard
from gitstatus_tooling.errors import BuildInterrupted, PrerequisiteError, StageError
from gitstatus_tooling.target import BuildConfig

log = logging.getLogger(__name__)

CONTAINER_ROOT = "/out"


def container_name() -> str:
    return f"gitstatus-build-{os.getpid()}-{secrets.token_hex(4)}"


def container_command(config: BuildConfig, script: str, name: str) -> list[str]:
    sandbox = config.sandbox
    cmd = [sandbox.runtime, "run", "--name", name]
    for key, value in config.target.env().items():
        cmd += ["-e", f"{key}={value}"]
    cmd += [
        "-v",
        f"{config.project_root}:{CONTAINER_ROOT}",
        "-w",
        CONTAINER_ROOT,
        "--rm",
        "--",
        sandbox.image,
        "/bin/sh",
        "-uexc",
        script,
    ]
    return cmd


def remove_container(runtime: str, name: str) -> None:
    """Force-remove a container. Used on the interrupt path, so failures are only logged."""
    log.info("+ %s rm -f %s", runtime, name)
    try:
        r = subprocess.run([runtime, "rm", "-f", name], capture_output=True, text=True)
    except OSError as e:
        log.warning("cannot remove container %s: %s", name, e)
        return
    if r.returncode != 0:
        log.warning("cannot remove container %s: %s", name, r.stderr.strip())


def discard_pending(pending: Path) -> None:
    try:
        pending.unlink(missing_ok=True)
    except OSError as e:
        log.warning("cannot remove %s: %s", pending, e)


def run_in_container(config: BuildConfig) -> None:
    runtime = config.sandbox.runtime
    name = container_name()
    inner = dataclasses.replace(config, project_root=Path(CONTAINER_ROOT))
    cmd = container_command(config, render_script(inner), name)
    log.info("+ %s", " ".join(cmd[:-1]) + " <script>")
    with InterruptGuard() as guard:
        try:
            r = subprocess.run(cmd)
        except FileNotFoundError as e:
            msg = f"command not found: {runtime}"
            raise PrerequisiteError(msg) from e
        except (BuildInterrupted, KeyboardInterrupt):
            guard.disarm()
            remove_container(runtime, name)
            discard_pending(config.pending_path)
            raise
    if r.returncode != 0:
        raise StageError(f"{runtime} run", r.returncode)


def dispatch(config: BuildConfig) -> Path:
    """Build and publish. Returns the published artifact path on the host."""
    if config.sandbox.is_container:
        run_in_container(config)
    else:
        run_native(config)
    return config.artifact_path
