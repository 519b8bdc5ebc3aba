"""Per-kernel platform profiles: toolchain provisioning, link flags, container eligibility."""

from .profiles import (
    PROFILES,
    CygwinProfile,
    DarwinProfile,
    FreeBSDProfile,
    LinuxProfile,
    MsysProfile,
    NetBSDProfile,
    PlatformProfile,
    ToolchainFlags,
    profile_for,
)

__all__ = [
    "PROFILES",
    "CygwinProfile",
    "DarwinProfile",
    "FreeBSDProfile",
    "LinuxProfile",
    "MsysProfile",
    "NetBSDProfile",
    "PlatformProfile",
    "ToolchainFlags",
    "profile_for",
]
