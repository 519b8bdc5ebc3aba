"""Declarative build plan: toolchain install, libgit2 build, gitstatusd build.

The plan is plain data (Step lists) so the same description drives native
execution and the sh script run inside the container. Paths are strings; in
the container the workspace root and CPU count are placeholders resolved by the
script at run time.
"""

from __future__ import annotations

from dataclasses import dataclass

from gitstatus_tooling.build.step import Step
from gitstatus_tooling.build.workspace import DEPENDENCY_SUBDIR, OBJECTS_SUBDIR
from gitstatus_tooling.platforms import PlatformProfile, ToolchainFlags
from gitstatus_tooling.target import BuildConfig

# Static, deterministic libgit2: no network backends, bundled zlib, builtin regex.
CMAKE_OPTIONS: tuple[str, ...] = (
    "-DCMAKE_BUILD_TYPE=Release",
    "-DTHREADSAFE=ON",
    "-DUSE_BUNDLED_ZLIB=ON",
    "-DREGEX_BACKEND=builtin",
    "-DBUILD_CLAR=OFF",
    "-DUSE_SSH=OFF",
    "-DUSE_HTTPS=OFF",
    "-DBUILD_SHARED_LIBS=OFF",
    "-DZERO_NSEC=ON",
)

CXX = "g++"


@dataclass(frozen=True)
class BuildPlan:
    directories: tuple[str, ...]
    install: tuple[Step, ...]
    dependency: tuple[Step, ...]
    application: tuple[Step, ...]

    @property
    def steps(self) -> tuple[Step, ...]:
        return self.install + self.dependency + self.application


def dependency_steps(
    config: BuildConfig, flags: ToolchainFlags, *, root: str, workdir: str, cpus: str
) -> tuple[Step, ...]:
    build_dir = f"{workdir}/{DEPENDENCY_SUBDIR}"
    source = f"{root}/{config.layout['dependency_dir']}"
    cflags = " ".join((f"-march={config.target.cpu}", *flags.cflags))
    return (
        Step(
            "configure libgit2",
            ("cmake", *CMAKE_OPTIONS, *flags.cmake_flags, source),
            cwd=build_dir,
            env={"CFLAGS": cflags},
        ),
        Step("build libgit2", ("make", "-j", cpus, "VERBOSE=1"), cwd=build_dir),
    )


def application_steps(
    config: BuildConfig,
    profile: PlatformProfile,
    flags: ToolchainFlags,
    *,
    root: str,
    workdir: str,
    cpus: str,
) -> tuple[Step, ...]:
    target = config.target
    cxxflags = (
        f"-I{config.layout['dependency_dir']}/include",
        "-DGITSTATUS_ZERO_NSEC",
        "-D_GNU_SOURCE",
        f"-march={target.cpu}",
        *flags.cxxflags,
    )
    ldflags = (f"-L{workdir}/{DEPENDENCY_SUBDIR}", *flags.ldflags)
    env = {
        "APPNAME": f"{config.artifact_name}.tmp",
        "OBJDIR": f"{workdir}/{OBJECTS_SUBDIR}",
        "CXX": CXX,
        "CXXFLAGS": " ".join(cxxflags),
        "LDFLAGS": " ".join(ldflags),
        "LDLIBS": " ".join(flags.ldlibs),
    }
    return (
        Step(
            f"build {config.layout['app_name']}",
            (profile.make, "-C", root, "-j", cpus),
            cwd=root,
            env=env,
        ),
    )


def make_plan(
    config: BuildConfig, profile: PlatformProfile, *, root: str, workdir: str, cpus: str
) -> BuildPlan:
    flags = profile.flags(workdir)
    return BuildPlan(
        directories=(f"{workdir}/{DEPENDENCY_SUBDIR}", f"{root}/{config.layout['output_dir']}"),
        install=tuple(profile.install_steps()),
        dependency=dependency_steps(config, flags, root=root, workdir=workdir, cpus=cpus),
        application=application_steps(
            config, profile, flags, root=root, workdir=workdir, cpus=cpus
        ),
    )
