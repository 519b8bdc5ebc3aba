"""Run the build plan on the host, or render it as a POSIX sh script for the container."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from gitstatus_tooling.build.plan import make_plan
from gitstatus_tooling.build.step import Step
from gitstatus_tooling.build.verify import render_verify, verify_binary
from gitstatus_tooling.build.workspace import Workspace, render_shell_workspace
from gitstatus_tooling.errors import PrerequisiteError, StageError
from gitstatus_tooling.helpers import (
    CPUS_TOKEN,
    DEFAULT_CPUS,
    WORKDIR_TOKEN,
    detect_cpu_count,
    shell_command,
    shell_quote,
)
from gitstatus_tooling.platforms import profile_for
from gitstatus_tooling.target import BuildConfig

log = logging.getLogger(__name__)


def run_step(step: Step) -> None:
    """Run one step, inheriting stdout/stderr. Raises StageError on non-zero exit."""
    log.info("+ %s", shell_command(step.argv, step.env))
    env = {**os.environ, **step.env} if step.env else None
    try:
        r = subprocess.run(list(step.argv), cwd=step.cwd, env=env)
    except FileNotFoundError as e:
        msg = f"command not found: {step.argv[0]}"
        raise PrerequisiteError(msg) from e
    if r.returncode != 0:
        raise StageError(step.name, r.returncode)


def publish(pending: Path, final: Path) -> None:
    """Atomic on the same filesystem; the only way a binary reaches its final path."""
    os.replace(pending, final)
    log.info("published %s", final)


def run_native(config: BuildConfig, *, base: str | None = None, cpus: int | None = None) -> Path:
    """Whole pipeline on the host inside a private workspace. Returns the published path."""
    profile = profile_for(config.target.kernel)
    root = str(config.project_root)
    with Workspace(config.pending_path, base) as ws:
        profile.verify_toolchain()
        n = cpus or detect_cpu_count()
        plan = make_plan(config, profile, root=root, workdir=str(ws.root), cpus=str(n))
        for d in plan.directories:
            Path(d).mkdir(parents=True, exist_ok=True)
        profile.prepare_workspace(ws.root)
        for step in plan.steps:
            run_step(step)
        verify_binary(config.pending_path)
        publish(config.pending_path, config.artifact_path)
    return config.artifact_path


def render_script(config: BuildConfig) -> str:
    """The pipeline as an sh script. config.project_root must be the in-container path."""
    profile = profile_for(config.target.kernel)
    root = str(config.project_root)
    plan = make_plan(config, profile, root=root, workdir=WORKDIR_TOKEN, cpus=CPUS_TOKEN)
    pending = str(config.pending_path)
    lines = render_shell_workspace(pending)
    lines.append(
        'cpus="$(getconf _NPROCESSORS_ONLN)" || cpus="$(sysctl -n hw.ncpu)" || '
        f"cpus={DEFAULT_CPUS}"
    )
    lines.extend(f"mkdir -p -- {shell_quote(d)}" for d in plan.directories)
    for step in plan.steps:
        if step.cwd:
            lines.append(f"cd -- {shell_quote(step.cwd)}")
        lines.append(shell_command(step.argv, step.env))
    lines.extend(render_verify(pending))
    lines.append(f"mv -f -- {shell_quote(pending)} {shell_quote(str(config.artifact_path))}")
    lines.append("cleanup")
    return "\n".join(lines) + "\n"
