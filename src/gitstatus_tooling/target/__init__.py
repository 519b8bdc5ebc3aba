"""Target resolution: (kernel, arch, cpu) triple and sandbox selection."""

from .resolve import (
    CPU_BY_ARCH,
    IMAGE_BY_ARCH,
    BuildConfig,
    BuildTarget,
    SandboxSpec,
    infer_cpu,
    infer_image,
    normalize_kernel,
    resolve_config,
    resolve_sandbox,
    resolve_target,
)

__all__ = [
    "CPU_BY_ARCH",
    "IMAGE_BY_ARCH",
    "BuildConfig",
    "BuildTarget",
    "SandboxSpec",
    "infer_cpu",
    "infer_image",
    "normalize_kernel",
    "resolve_config",
    "resolve_sandbox",
    "resolve_target",
]
