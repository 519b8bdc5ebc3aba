"""Tests for gitstatus_tooling.build.plan and gitstatus_tooling.build.pipeline."""

import dataclasses
import os
import shutil
import signal
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gitstatus_tooling.build.pipeline import render_script, run_native, run_step
from gitstatus_tooling.build.plan import CMAKE_OPTIONS, BuildPlan, make_plan
from gitstatus_tooling.build.step import Step
from gitstatus_tooling.build.verify import probe_binary, response_ok
from gitstatus_tooling.errors import (
    BuildInterrupted,
    PrerequisiteError,
    StageError,
    VerificationError,
)
from gitstatus_tooling.platforms import DarwinProfile, FreeBSDProfile, LinuxProfile
from gitstatus_tooling.target import BuildConfig

PIPELINE = "gitstatus_tooling.build.pipeline"


def _fake_build(config: BuildConfig, body: str = "cat >/dev/null\necho hello 0\n"):
    """run_step stand-in: records steps, writes a fake gitstatusd for the app step."""
    seen: list[Step] = []

    def fake(step: Step) -> None:
        seen.append(step)
        if step.name == "build gitstatusd":
            config.pending_path.write_text("#!/bin/sh\n" + body)
            os.chmod(config.pending_path, 0o755)

    return seen, fake


class TestMakePlan:
    def test_dependency_then_application(self, freebsd_config: BuildConfig) -> None:
        plan = make_plan(freebsd_config, FreeBSDProfile(), root="/src", workdir="/w", cpus="4")
        assert plan.install == ()
        assert [s.name for s in plan.steps] == [
            "configure libgit2",
            "build libgit2",
            "build gitstatusd",
        ]
        assert plan.directories == ("/w/libgit2", "/src/usrbin")

    def test_libgit2_options(self, freebsd_config: BuildConfig) -> None:
        configure, build = make_plan(
            freebsd_config, FreeBSDProfile(), root="/src", workdir="/w", cpus="4"
        ).dependency
        assert configure.argv == ("cmake", *CMAKE_OPTIONS, "/src/deps/libgit2")
        assert "-DBUILD_SHARED_LIBS=OFF" in configure.argv
        assert "-DZERO_NSEC=ON" in configure.argv
        assert configure.env == {"CFLAGS": "-march=x86-64"}
        assert configure.cwd == "/w/libgit2"
        assert build.argv == ("make", "-j", "4", "VERBOSE=1")

    def test_application_env(self, freebsd_config: BuildConfig) -> None:
        (app,) = make_plan(
            freebsd_config, FreeBSDProfile(), root="/src", workdir="/w", cpus="4"
        ).application
        assert app.argv == ("gmake", "-C", "/src", "-j", "4")
        assert app.env["APPNAME"] == "gitstatusd-freebsd-amd64.tmp"
        assert app.env["OBJDIR"] == "/w/gitstatus"
        assert app.env["CXX"] == "g++"
        assert app.env["CXXFLAGS"] == (
            "-Ideps/libgit2/include -DGITSTATUS_ZERO_NSEC -D_GNU_SOURCE -march=x86-64"
        )
        assert app.env["LDFLAGS"] == "-L/w/libgit2 -static"
        assert app.env["LDLIBS"] == ""

    def test_darwin_iconv(self, freebsd_config: BuildConfig) -> None:
        cfg = dataclasses.replace(
            freebsd_config,
            target=dataclasses.replace(freebsd_config.target, kernel="darwin"),
        )
        with patch.object(DarwinProfile, "iconv_prefix", return_value=Path("/opt/iconv")):
            plan = make_plan(cfg, DarwinProfile(), root="/src", workdir="/w", cpus="2")
        configure = plan.dependency[0]
        assert "-DUSE_ICONV=ON" in configure.argv
        assert configure.env["CFLAGS"] == "-march=x86-64 -I/opt/iconv/include"
        app = plan.application[0]
        assert app.env["LDFLAGS"] == "-L/w/libgit2 -L/w/lib"
        assert app.env["LDLIBS"] == "-liconv"

    def test_linux_installs_first(self, linux_config: BuildConfig) -> None:
        plan = make_plan(linux_config, LinuxProfile(), root="/out", workdir="/w", cpus="8")
        assert [s.argv[0] for s in plan.steps[:2]] == ["apk", "apk"]


class TestRunStep:
    def test_success(self) -> None:
        with patch(f"{PIPELINE}.subprocess.run", return_value=MagicMock(returncode=0)) as m:
            run_step(Step("x", ("true",), cwd="/tmp", env={"CFLAGS": "-O2"}))
        (cmd,) = m.call_args[0]
        assert cmd == ["true"]
        assert m.call_args[1]["cwd"] == "/tmp"
        assert m.call_args[1]["env"]["CFLAGS"] == "-O2"
        assert "PATH" in m.call_args[1]["env"]

    def test_non_zero_exit(self) -> None:
        with patch(f"{PIPELINE}.subprocess.run", return_value=MagicMock(returncode=2)):
            with pytest.raises(StageError, match="build libgit2 failed with exit code 2"):
                run_step(Step("build libgit2", ("make",)))

    def test_missing_command(self) -> None:
        with patch(f"{PIPELINE}.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(PrerequisiteError, match="command not found: cmake"):
                run_step(Step("configure libgit2", ("cmake",)))


@pytest.fixture
def tmp_base(tmp_path: Path) -> str:
    base = tmp_path / "tmp"
    base.mkdir()
    return str(base)


class TestRunNative:
    def test_success_publishes_and_cleans_up(
        self, freebsd_config: BuildConfig, tmp_base: str
    ) -> None:
        seen, fake = _fake_build(freebsd_config)
        with (
            patch("gitstatus_tooling.platforms.profiles.missing_commands", return_value=[]),
            patch(f"{PIPELINE}.run_step", side_effect=fake),
            patch("gitstatus_tooling.build.verify.strip_binary"),
        ):
            out = run_native(freebsd_config, base=tmp_base, cpus=4)
        assert out == freebsd_config.artifact_path
        assert out.exists()
        assert not freebsd_config.pending_path.exists()
        assert os.listdir(tmp_base) == []
        assert [s.name for s in seen] == ["configure libgit2", "build libgit2", "build gitstatusd"]
        assert response_ok(probe_binary(out))

    def test_dependency_failure_publishes_nothing(
        self, freebsd_config: BuildConfig, tmp_base: str
    ) -> None:
        seen: list[Step] = []

        def fail(step: Step) -> None:
            seen.append(step)
            if step.name == "build libgit2":
                raise StageError(step.name, 2)

        with (
            patch("gitstatus_tooling.platforms.profiles.missing_commands", return_value=[]),
            patch(f"{PIPELINE}.run_step", side_effect=fail),
        ):
            with pytest.raises(StageError):
                run_native(freebsd_config, base=tmp_base, cpus=4)
        assert [s.name for s in seen] == ["configure libgit2", "build libgit2"]
        assert not freebsd_config.artifact_path.exists()
        assert not freebsd_config.pending_path.exists()
        assert os.listdir(tmp_base) == []

    def test_verification_failure_discards_pending(
        self, freebsd_config: BuildConfig, tmp_base: str
    ) -> None:
        _, fake = _fake_build(freebsd_config, body="echo garbage\n")
        with (
            patch("gitstatus_tooling.platforms.profiles.missing_commands", return_value=[]),
            patch(f"{PIPELINE}.run_step", side_effect=fake),
            patch("gitstatus_tooling.build.verify.strip_binary"),
        ):
            with pytest.raises(VerificationError):
                run_native(freebsd_config, base=tmp_base, cpus=4)
        assert not freebsd_config.artifact_path.exists()
        assert not freebsd_config.pending_path.exists()
        assert os.listdir(tmp_base) == []

    def test_missing_toolchain_runs_nothing(
        self, freebsd_config: BuildConfig, tmp_base: str
    ) -> None:
        with (
            patch("gitstatus_tooling.platforms.profiles.missing_commands", return_value=["cmake"]),
            patch(f"{PIPELINE}.run_step") as m_step,
        ):
            with pytest.raises(PrerequisiteError, match="command not found: cmake"):
                run_native(freebsd_config, base=tmp_base, cpus=4)
        m_step.assert_not_called()
        assert os.listdir(tmp_base) == []


class TestRenderScript:
    @pytest.fixture
    def script(self, linux_config: BuildConfig) -> str:
        return render_script(dataclasses.replace(linux_config, project_root=Path("/out")))

    def test_stages_in_order(self, script: str) -> None:
        markers = [
            "mktemp -d",
            "'apk' 'update'",
            "'cmake'",
            "'make' '-j'",
            "APPNAME=",
            "strip ",
            "mv -f --",
        ]
        positions = [script.index(m) for m in markers]
        assert positions == sorted(positions)
        assert script.rstrip().endswith("cleanup")

    def test_workspace_and_cpus_are_runtime_values(self, script: str) -> None:
        assert "LDFLAGS='-L'\"$workdir\"'/libgit2 -static'" in script
        assert "'-j' ''\"$cpus\"''" in script
        assert 'cpus="$(getconf _NPROCESSORS_ONLN)" || cpus="$(sysctl -n hw.ncpu)"' in script

    def test_publishes_to_mount(self, script: str) -> None:
        pending = "'/out/usrbin/gitstatusd-linux-x86_64.tmp'"
        assert f"mv -f -- {pending} '/out/usrbin/gitstatusd-linux-x86_64'" in script
        assert "'/out/deps/libgit2'" in script

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs sh")
    def test_is_valid_sh(self, script: str) -> None:
        r = subprocess.run(["sh", "-n", "-c", script], capture_output=True, text=True)
        assert r.returncode == 0, r.stderr


def _assert_reaped(pidfile: Path) -> None:
    pid = int(pidfile.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


@pytest.mark.skipif(shutil.which("sh") is None, reason="needs sh")
class TestInterruptedNativeBuild:
    def test_child_killed_and_everything_removed(
        self,
        freebsd_config: BuildConfig,
        tmp_base: str,
        self_interrupting_plan: tuple[BuildPlan, Path],
    ) -> None:
        plan, pidfile = self_interrupting_plan
        before = signal.getsignal(signal.SIGTERM)
        with (
            patch("gitstatus_tooling.platforms.profiles.missing_commands", return_value=[]),
            patch(f"{PIPELINE}.make_plan", return_value=plan),
        ):
            with pytest.raises(BuildInterrupted) as exc_info:
                run_native(freebsd_config, base=tmp_base, cpus=2)
        assert exc_info.value.signum == signal.SIGTERM
        _assert_reaped(pidfile)
        assert os.listdir(tmp_base) == []
        assert not freebsd_config.pending_path.exists()
        assert not freebsd_config.artifact_path.exists()
        assert signal.getsignal(signal.SIGTERM) == before
