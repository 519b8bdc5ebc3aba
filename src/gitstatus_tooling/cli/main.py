"""Main CLI entry point: gitstatus-build [-m ARCH] [-c CPU] [-i IMAGE] [-d CMD]."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from gitstatus_tooling.cli.parse_common import parse_options
from gitstatus_tooling.docker import dispatch
from gitstatus_tooling.errors import BuildError
from gitstatus_tooling.layout import check_sources, load_layout
from gitstatus_tooling.target import BuildConfig, resolve_config

LOG_LEVEL_ENV = "GITSTATUS_BUILD_LOG_LEVEL"

USAGE = """\
Usage: gitstatus-build [-m ARCH] [-c CPU] [-i IMAGE] [-d CMD]

Options:

  -m ARCH   `uname -m` from the target machine; defaults to `uname -m`
            from the local machine
  -c CPU    generate machine instructions for CPU of this type; this
            value gets passed as -march to gcc; inferred from ARCH
            if not set explicitly
  -i IMAGE  docker image used for building gitstatusd; inferred from
            ARCH if not set explicitly
  -d CMD    use this command instead of 'docker'; it must understand
            the same command line arguments"""


def _print_banner(config: BuildConfig) -> None:
    print(f"Building {config.layout['app_name']}...", file=sys.stderr)
    print("", file=sys.stderr)
    if config.sandbox.is_container:
        print(f"  DOCKER={config.sandbox.runtime}", file=sys.stderr)
        print(f"  IMAGE={config.sandbox.image}", file=sys.stderr)
    print(f"  KERNEL={config.target.kernel}", file=sys.stderr)
    print(f"  ARCH={config.target.arch}", file=sys.stderr)
    print(f"  CPU={config.target.cpu}", file=sys.stderr)


def _print_success(config: BuildConfig) -> None:
    print("-------------------------------------------------", file=sys.stderr)
    print(
        f"SUCCESS: created ./{config.layout['output_dir']}/{config.artifact_name}",
        file=sys.stderr,
    )


def run(argv: list[str], project_root: Path | None = None) -> int:
    """Validate, resolve, build, verify, publish. Returns 0 or 1."""
    try:
        return _run_impl(argv, project_root or Path.cwd())
    except BuildError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("❌ interrupted", file=sys.stderr)
        return 1


def _run_impl(argv: list[str], project_root: Path) -> int:
    values, switches = parse_options(argv, "mcid", "h")
    if "h" in switches:
        print(USAGE)
        return 0
    layout = load_layout(project_root)
    config = resolve_config(
        project_root,
        layout,
        arch=values.get("m"),
        cpu=values.get("c"),
        image=values.get("i"),
        runtime=values.get("d"),
    )
    check_sources(project_root, layout)
    _print_banner(config)
    dispatch(config)
    _print_success(config)
    return 0


def main() -> None:
    """Console script entry point."""
    level = getattr(logging, os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
