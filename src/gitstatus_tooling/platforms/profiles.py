"""Platform profiles.

One class per supported kernel family. A profile knows whether builds may run
in a container, how to get a toolchain (install inside a disposable container,
only verify on a developer's machine), which make to call, and what extra
compiler/linker flags the kernel needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from gitstatus_tooling.build.step import Step
from gitstatus_tooling.errors import PrerequisiteError
from gitstatus_tooling.helpers import missing_commands

log = logging.getLogger(__name__)

STATIC = ("-static",)


@dataclass(frozen=True)
class ToolchainFlags:
    cmake_flags: tuple[str, ...] = ()
    cflags: tuple[str, ...] = ()
    cxxflags: tuple[str, ...] = ()
    ldflags: tuple[str, ...] = ()
    ldlibs: tuple[str, ...] = ()


class PlatformProfile:
    kernels: tuple[str, ...] = ()
    kernel_prefixes: tuple[str, ...] = ()
    label = ""
    container_eligible = False
    make = "make"

    @classmethod
    def matches(cls, kernel: str) -> bool:
        return kernel in cls.kernels or (
            bool(cls.kernel_prefixes) and kernel.startswith(cls.kernel_prefixes)
        )

    def install_steps(self) -> list[Step]:
        """Package-manager commands; only ever run inside a throwaway container."""
        return []

    def verify_toolchain(self) -> None:
        """Check (never install) the toolchain on the host. Raises PrerequisiteError."""

    def prepare_workspace(self, workdir: Path) -> None:
        """Host-side workspace setup before the dependency build."""

    def flags(self, workdir: str) -> ToolchainFlags:
        return ToolchainFlags(ldflags=STATIC)


class _NativeProfile(PlatformProfile):
    """Runs on the developer's machine: verify the toolchain, point at the package manager."""

    required: tuple[str, ...] = ()
    remedy = ""

    def verify_toolchain(self) -> None:
        missing = missing_commands(self.required)
        if missing:
            msg = f"command not found: {missing[0]}\n\n{self.remedy}"
            raise PrerequisiteError(msg)
        log.debug("%s toolchain present: %s", self.label, ", ".join(self.required))


class LinuxProfile(PlatformProfile):
    kernels = ("linux",)
    label = "linux"
    container_eligible = True

    def install_steps(self) -> list[Step]:
        return [
            Step("apk update", ("apk", "update")),
            Step(
                "apk add",
                ("apk", "add", "binutils", "cmake", "gcc", "g++", "make", "musl-dev"),
            ),
        ]


class FreeBSDProfile(_NativeProfile):
    kernels = ("freebsd",)
    label = "freebsd"
    make = "gmake"
    required = ("cmake", "gmake", "g++", "strip")
    remedy = "Install the toolchain with:\n\n  pkg install -y cmake gmake binutils gcc"


class NetBSDProfile(_NativeProfile):
    kernels = ("netbsd",)
    label = "netbsd"
    make = "gmake"
    required = ("cmake", "gmake", "g++", "strip")
    remedy = "Install the toolchain with:\n\n  pkgin -y install cmake gmake binutils"


class MsysProfile(_NativeProfile):
    kernel_prefixes = ("msys_nt-", "mingw32_nt-", "mingw64_nt-")
    label = "windows"
    required = ("cmake", "gcc", "g++", "make", "strip")
    remedy = (
        "Install the toolchain with:\n\n"
        "  pacman -S --needed --noconfirm binutils cmake gcc make"
    )


class CygwinProfile(_NativeProfile):
    kernel_prefixes = ("cygwin_nt-",)
    label = "windows"
    required = ("cmake", "gcc", "g++", "ld", "make")
    remedy = (
        "Make sure the following Cygwin packages are installed:\n\n"
        "  binutils\n  cmake\n  gcc-core\n  gcc-g++\n  make"
    )


class DarwinProfile(PlatformProfile):
    """macOS: Xcode command line tools plus Homebrew cmake and a static libiconv."""

    kernels = ("darwin",)
    label = "macOS"
    iconv_prefixes = ("/usr/local/opt/libiconv", "/opt/homebrew/opt/libiconv")

    def iconv_prefix(self) -> Path | None:
        for p in self.iconv_prefixes:
            if (Path(p) / "lib" / "libiconv.a").exists():
                return Path(p)
        return None

    def verify_toolchain(self) -> None:
        if missing_commands(("make", "gcc")):
            msg = "please run 'xcode-select --install' and retry"
            raise PrerequisiteError(msg)
        if missing_commands(("brew",)):
            msg = "please install homebrew from https://brew.sh/ and retry"
            raise PrerequisiteError(msg)
        if missing_commands(("cmake",)):
            msg = "please run 'brew install cmake' and retry"
            raise PrerequisiteError(msg)
        if self.iconv_prefix() is None:
            msg = "please run 'brew install libiconv' and retry"
            raise PrerequisiteError(msg)

    def prepare_workspace(self, workdir: Path) -> None:
        # Only libiconv.a in -L path, so the linker cannot pick the dylib.
        prefix = self.iconv_prefix() or Path(self.iconv_prefixes[0])
        lib = workdir / "lib"
        lib.mkdir()
        (lib / "libiconv.a").symlink_to(prefix / "lib" / "libiconv.a")

    def flags(self, workdir: str) -> ToolchainFlags:
        prefix = self.iconv_prefix() or Path(self.iconv_prefixes[0])
        include = f"-I{prefix / 'include'}"
        return ToolchainFlags(
            cmake_flags=("-DUSE_ICONV=ON",),
            cflags=(include,),
            cxxflags=(include,),
            ldflags=(f"-L{workdir}/lib",),
            ldlibs=("-liconv",),
        )


PROFILES: tuple[type[PlatformProfile], ...] = (
    LinuxProfile,
    FreeBSDProfile,
    NetBSDProfile,
    DarwinProfile,
    MsysProfile,
    CygwinProfile,
)


def profile_for(kernel: str) -> PlatformProfile:
    """Profile for a normalized kernel name. Raises PrerequisiteError for unsupported kernels."""
    for cls in PROFILES:
        if cls.matches(kernel):
            return cls()
    msg = "unsupported kernel, sorry!"
    raise PrerequisiteError(msg)
