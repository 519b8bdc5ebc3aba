"""Smoke test for a freshly linked gitstatusd.

gitstatusd reads requests separated by \\x1e with fields separated by \\x1f. The
probe asks about the repository at path "hello"; a correctly linked binary
answers with the request id "hello" followed by a record containing "0"
(not a git repo). Anything else means a broken or mismatched artifact.
"""

from __future__ import annotations

import fnmatch
import logging
import subprocess
from pathlib import Path

from gitstatus_tooling.errors import PrerequisiteError, StageError, VerificationError
from gitstatus_tooling.helpers import printf_octal, shell_quote

log = logging.getLogger(__name__)

PROBE_INPUT = b"hello\x1f\x1e"
PROBE_PATTERN = "hello*0*"


def response_ok(resp: str) -> bool:
    return bool(resp) and fnmatch.fnmatchcase(resp, PROBE_PATTERN)


def strip_binary(path: Path) -> None:
    try:
        r = subprocess.run(["strip", str(path)])
    except FileNotFoundError as e:
        msg = "command not found: strip"
        raise PrerequisiteError(msg) from e
    if r.returncode != 0:
        raise StageError("strip", r.returncode)


def probe_binary(path: Path) -> str:
    """Feed PROBE_INPUT to the binary; return stdout without trailing newlines."""
    try:
        r = subprocess.run([str(path)], input=PROBE_INPUT, capture_output=True)
    except OSError as e:
        msg = f"cannot execute {path}: {e}"
        raise VerificationError(msg) from e
    resp = r.stdout.decode(errors="replace").rstrip("\n")
    if r.returncode != 0:
        msg = f"{path.name} exited with code {r.returncode} on the smoke probe"
        raise VerificationError(msg)
    return resp


def verify_binary(path: Path) -> None:
    """Strip, then run the smoke probe. Raises VerificationError on a bad response."""
    strip_binary(path)
    resp = probe_binary(path)
    if not response_ok(resp):
        msg = f"{path.name} failed the smoke probe; response: {resp[:80]!r}"
        raise VerificationError(msg)
    log.info("smoke probe ok: %r", resp[:80])


def render_verify(pending: str) -> list[str]:
    """The same check as verify_binary, as sh lines for the container."""
    return [
        f"strip {shell_quote(pending)}",
        f"resp=\"$(printf '{printf_octal(PROBE_INPUT)}' | {shell_quote(pending)})\"",
        f'[ -n "$resp" -a -z "${{resp##{PROBE_PATTERN}}}" ]',
    ]
