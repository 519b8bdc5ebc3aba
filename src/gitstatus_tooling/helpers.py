"""Shared helpers: CPU detection, executable lookup, POSIX shell quoting."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Iterable, Mapping

log = logging.getLogger(__name__)

DEFAULT_CPUS = 8

# Placeholders for values only known inside the container script.
WORKDIR_TOKEN = "@WORKDIR@"
CPUS_TOKEN = "@CPUS@"

_SHELL_VARS = {
    WORKDIR_TOKEN: "workdir",
    CPUS_TOKEN: "cpus",
}


# --- Host ---


def detect_cpu_count(default: int = DEFAULT_CPUS) -> int:
    """Online CPUs: sysconf, then `sysctl -n hw.ncpu`, then default."""
    try:
        n = os.sysconf("SC_NPROCESSORS_ONLN")
        if n > 0:
            return n
    except (AttributeError, ValueError, OSError):
        pass
    try:
        r = subprocess.run(["sysctl", "-n", "hw.ncpu"], capture_output=True, text=True)
        if r.returncode == 0:
            n = int(r.stdout.strip())
            if n > 0:
                return n
    except (OSError, ValueError) as e:
        log.debug("sysctl hw.ncpu unavailable: %s", e)
    return default


def is_executable_file(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def missing_commands(commands: Iterable[str]) -> list[str]:
    """Commands from the list that are not on PATH, in order."""
    return [c for c in commands if shutil.which(c) is None]


# --- Shell ---


def shell_quote(arg: str) -> str:
    """Single-quote arg for POSIX sh, expanding the WORKDIR/CPUS placeholders to shell variables.

    Always quotes, so placeholders are always inside single quotes and can be
    spliced as '"$var"'.
    """
    out = "'" + arg.replace("'", "'\"'\"'") + "'"
    for token, var in _SHELL_VARS.items():
        out = out.replace(token, f"'\"${var}\"'")
    return out


def shell_command(argv: Iterable[str], env: Mapping[str, str] | None = None) -> str:
    """Render argv (with optional VAR=value prefix assignments) as one sh command line."""
    parts = [f"{k}={shell_quote(v)}" for k, v in (env or {}).items()]
    parts.extend(shell_quote(a) for a in argv)
    return " ".join(parts)


def printf_octal(data: bytes) -> str:
    """printf format string reproducing data byte for byte (non-alnum bytes as octal escapes)."""
    return "".join(chr(b) if chr(b).isalnum() else f"\\{b:03o}" for b in data)
