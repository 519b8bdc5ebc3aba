"""Pytest fixtures for gitstatus-build tests."""

from pathlib import Path

import pytest

from gitstatus_tooling.build.plan import BuildPlan
from gitstatus_tooling.build.step import Step
from gitstatus_tooling.layout import resolve_layout
from gitstatus_tooling.target import BuildConfig, BuildTarget, SandboxSpec


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Checkout-like tree: Makefile, src/ and deps/libgit2/CMakeLists.txt; no usrbin/."""
    root = tmp_path / "gitstatus"
    (root / "src").mkdir(parents=True)
    (root / "Makefile").write_text("all:\n")
    (root / "deps" / "libgit2").mkdir(parents=True)
    (root / "deps" / "libgit2" / "CMakeLists.txt").write_text("project(libgit2)\n")
    return root


@pytest.fixture
def linux_config(project_root: Path) -> BuildConfig:
    return BuildConfig(
        target=BuildTarget(kernel="linux", arch="x86_64", cpu="x86-64"),
        sandbox=SandboxSpec(kind="container", image="alpine:3.9.5", runtime="docker"),
        project_root=project_root,
        layout=resolve_layout(None),
    )


@pytest.fixture
def freebsd_config(project_root: Path) -> BuildConfig:
    return BuildConfig(
        target=BuildTarget(kernel="freebsd", arch="amd64", cpu="x86-64"),
        sandbox=SandboxSpec(),
        project_root=project_root,
        layout=resolve_layout(None),
    )


@pytest.fixture
def self_interrupting_plan(
    tmp_path: Path, freebsd_config: BuildConfig
) -> tuple[BuildPlan, Path]:
    """One-step plan whose child writes a pending binary, SIGTERMs this process, then sleeps.

    Returns the plan and the file the child writes its pid to.
    """
    pidfile = tmp_path / "child.pid"
    script = (
        f"echo $$ > '{pidfile}'; "
        f": > '{freebsd_config.pending_path}'; "
        "kill -TERM $PPID; "
        "exec sleep 30"
    )
    plan = BuildPlan(
        directories=(str(freebsd_config.output_dir),),
        install=(),
        dependency=(),
        application=(Step("build gitstatusd", ("sh", "-c", script)),),
    )
    return plan, pidfile
