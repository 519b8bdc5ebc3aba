"""Resolve the build target and sandbox from CLI overrides and host introspection.

Architecture defaults to the host's ``uname -m``; CPU and container image are
looked up from fixed tables keyed by architecture. The kernel always comes from
the host. Nothing here guesses: an architecture missing from a table is an
error unless the caller supplied the value explicitly.
"""

from __future__ import annotations

import logging
import platform
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from gitstatus_tooling.errors import PrerequisiteError, ValidationError
from gitstatus_tooling.helpers import is_executable_file
from gitstatus_tooling.platforms import profile_for

log = logging.getLogger(__name__)

CPU_BY_ARCH: dict[str, str] = {
    "armv6l": "armv6",
    "armv7l": "armv7",
    "aarch64": "armv8-a",
    "x86_64": "x86-64",
    "amd64": "x86-64",
    "i386": "i386",
    "i586": "i586",
    "i686": "i686",
}

IMAGE_BY_ARCH: dict[str, str] = {
    "x86_64": "alpine:3.9.5",
    "i386": "i386/alpine:3.9.5",
    "i586": "i386/alpine:3.9.5",
    "i686": "i386/alpine:3.9.5",
    "armv6l": "arm32v6/alpine:3.9.5",
    "armv7l": "arm32v7/alpine:3.9.5",
    "aarch64": "arm64v8/alpine:3.9.5",
}

DEFAULT_RUNTIME = "docker"

_VERSIONED_KERNEL_PREFIXES = ("msys_nt-", "mingw32_nt-", "mingw64_nt-", "cygwin_nt-")
_VERSIONED_KERNEL = re.compile(r"([^-]+-[0-9]+\.[0-9]+)(-.*)?")


@dataclass(frozen=True)
class BuildTarget:
    kernel: str
    arch: str
    cpu: str

    def env(self) -> dict[str, str]:
        """Environment handed to the sandbox."""
        return {
            "GITSTATUS_KERNEL": self.kernel,
            "GITSTATUS_ARCH": self.arch,
            "GITSTATUS_CPU": self.cpu,
        }


@dataclass(frozen=True)
class SandboxSpec:
    kind: Literal["none", "container"] = "none"
    image: str | None = None
    runtime: str | None = None

    def __post_init__(self) -> None:
        if self.kind == "container":
            if not self.image or not self.runtime:
                msg = "container sandbox requires both image and runtime"
                raise ValueError(msg)
        elif self.kind == "none":
            if self.image is not None or self.runtime is not None:
                msg = "image and runtime are only valid for a container sandbox"
                raise ValueError(msg)
        else:
            msg = f"unknown sandbox kind: {self.kind}"
            raise ValueError(msg)

    @property
    def is_container(self) -> bool:
        return self.kind == "container"


@dataclass(frozen=True)
class BuildConfig:
    """Everything the pipeline needs, resolved once up front."""

    target: BuildTarget
    sandbox: SandboxSpec
    project_root: Path
    layout: dict[str, str]

    @property
    def artifact_name(self) -> str:
        return f"{self.layout['app_name']}-{self.target.kernel}-{self.target.arch}"

    @property
    def output_dir(self) -> Path:
        return self.project_root / self.layout["output_dir"]

    @property
    def artifact_path(self) -> Path:
        return self.output_dir / self.artifact_name

    @property
    def pending_path(self) -> Path:
        return self.output_dir / f"{self.artifact_name}.tmp"


def infer_cpu(arch: str) -> str:
    try:
        return CPU_BY_ARCH[arch]
    except KeyError:
        msg = "unable to infer target CPU architecture\nPlease specify explicitly with `-c CPU`."
        raise ValidationError(msg) from None


def infer_image(arch: str) -> str:
    try:
        return IMAGE_BY_ARCH[arch]
    except KeyError:
        msg = "unable to infer docker image\nPlease specify explicitly with `-i IMAGE`."
        raise ValidationError(msg) from None


def normalize_kernel(system: str) -> str:
    """Lower-case the kernel name; truncate MSYS/MinGW/Cygwin names to name-major.minor."""
    kernel = system.lower()
    if kernel.startswith(_VERSIONED_KERNEL_PREFIXES):
        m = _VERSIONED_KERNEL.fullmatch(kernel)
        if not m:
            msg = "unsupported kernel, sorry!"
            raise PrerequisiteError(msg)
        kernel = m.group(1)
    return kernel


def resolve_target(arch: str | None = None, cpu: str | None = None) -> BuildTarget:
    """Fill arch from the host and cpu from CPU_BY_ARCH; kernel always from the host."""
    arch = (arch or platform.machine()).lower()
    if not cpu:
        cpu = infer_cpu(arch)
    kernel = normalize_kernel(platform.system())
    return BuildTarget(kernel=kernel, arch=arch, cpu=cpu)


def _check_runtime(runtime: str) -> None:
    if "/" in runtime:
        if not is_executable_file(runtime):
            msg = f"not an executable file: {runtime}"
            raise PrerequisiteError(msg)
    elif shutil.which(runtime) is None:
        msg = f"command not found: {runtime}"
        raise PrerequisiteError(msg)


def resolve_sandbox(
    target: BuildTarget, image: str | None = None, runtime: str | None = None
) -> SandboxSpec:
    """Container on container-eligible kernels, native elsewhere.

    -i and -d are rejected on kernels that never build in a container.
    """
    profile = profile_for(target.kernel)
    if not profile.container_eligible:
        if image:
            msg = f"docker image (-i) is not supported on {profile.label}"
            raise ValidationError(msg)
        if runtime:
            msg = f"docker (-d) is not supported on {profile.label}"
            raise ValidationError(msg)
        return SandboxSpec()
    if not image:
        image = infer_image(target.arch)
    runtime = runtime or DEFAULT_RUNTIME
    _check_runtime(runtime)
    return SandboxSpec(kind="container", image=image, runtime=runtime)


def resolve_config(
    project_root: Path,
    layout: dict[str, str],
    *,
    arch: str | None = None,
    cpu: str | None = None,
    image: str | None = None,
    runtime: str | None = None,
) -> BuildConfig:
    target = resolve_target(arch, cpu)
    sandbox = resolve_sandbox(target, image, runtime)
    log.debug("resolved target=%s sandbox=%s", target, sandbox)
    return BuildConfig(target=target, sandbox=sandbox, project_root=project_root, layout=layout)
