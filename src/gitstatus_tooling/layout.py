"""Project layout: where the vendored dependency lives, what the app is called, where binaries go.

Defaults match the gitstatus repository. The app's Makefile writes
``usrbin/$(APPNAME)``, so ``app_name`` and ``output_dir`` are fixed; only the
dependency location can be moved with an optional ``build-layout.yaml`` in the
project root, e.g.::

    dependency_dir: third_party/libgit2
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from gitstatus_tooling.errors import PrerequisiteError, ValidationError

LAYOUT_FILE = "build-layout.yaml"

DEFAULT_LAYOUT: dict[str, str] = {
    "app_name": "gitstatusd",
    "dependency_dir": "deps/libgit2",
    "output_dir": "usrbin",
}

# Hard-coded in the app's Makefile.
FIXED_KEYS = ("app_name", "output_dir")

# Application sources that must sit in the project root next to the dependency.
APP_SOURCES = ("Makefile", "src")


def resolve_layout(layout: dict[str, Any] | None) -> dict[str, str]:
    """Return layout dict with defaults filled. Unknown keys are ignored; fixed keys rejected."""
    if layout is None:
        return dict(DEFAULT_LAYOUT)
    out = dict(DEFAULT_LAYOUT)
    for key, value in layout.items():
        if key not in out or value in (None, ""):
            continue
        if key in FIXED_KEYS and str(value) != DEFAULT_LAYOUT[key]:
            msg = f"{key} cannot be changed (the Makefile always builds {DEFAULT_LAYOUT[key]})"
            raise ValidationError(msg)
        out[key] = str(value)
    return out


def load_layout(project_root: Path) -> dict[str, str]:
    """Read project_root/build-layout.yaml if present, else defaults."""
    path = project_root / LAYOUT_FILE
    if not path.is_file():
        return resolve_layout(None)
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"cannot parse {path}: {e}"
        raise ValidationError(msg) from e
    if data is None:
        return resolve_layout(None)
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping, got {type(data).__name__}"
        raise ValidationError(msg)
    return resolve_layout(data)


def check_sources(project_root: Path, layout: dict[str, str]) -> None:
    """The app sources and the vendored dependency (CMakeLists.txt present) must be checked out."""
    for name in APP_SOURCES:
        path = project_root / name
        if not path.exists():
            msg = f"not found: {path}\n\nRun gitstatus-build from the root of a gitstatus checkout."
            raise PrerequisiteError(msg)
    dep = project_root / layout["dependency_dir"]
    if not dep.exists():
        msg = f"not found: {dep}"
        raise PrerequisiteError(msg)
    if not (dep / "CMakeLists.txt").exists():
        msg = (
            f"not found: {dep / 'CMakeLists.txt'}\n\n"
            "Pull submodules to fix:\n\n"
            f"  git -C {project_root} submodule update --init"
        )
        raise PrerequisiteError(msg)
