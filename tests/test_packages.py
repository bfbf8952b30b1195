"""
Tests for the apt package installer and the repository registrar.
"""

from pathlib import Path

import pytest

from aiforge.adapters.mock import MockRunner
from aiforge.core.errors import FatalError, StepFailed
from aiforge.core.services.failures import FailureRecorder
from aiforge.core.services.packages import (
    BOOTSTRAP_PACKAGES,
    PackageIndex,
    PackageInstaller,
)
from aiforge.core.services.repositories import RepositoryRegistrar


def _updates(runner: MockRunner) -> int:
    return sum(1 for c in runner.commands() if c.startswith("apt-get update"))


# ── Package index ────────────────────────────────────────────────────


class TestPackageIndex:
    def test_fresh_index_needs_refresh(self):
        assert PackageIndex().needs_refresh

    def test_refresh_and_stale(self):
        index = PackageIndex()
        index.mark_refreshed()
        assert not index.needs_refresh
        index.mark_stale()
        assert index.needs_refresh


# ── Package installer ────────────────────────────────────────────────


class TestPackageInstaller:
    def test_install_refreshes_once(self, runner: MockRunner):
        apt = PackageInstaller(runner, FailureRecorder())
        apt.install(["jq"])
        apt.install(["fzf"])
        assert _updates(runner) == 1
        assert "apt-get install -y --no-install-recommends fzf" in runner.commands()

    def test_stale_index_refreshes_again(self, runner: MockRunner):
        index = PackageIndex()
        apt = PackageInstaller(runner, FailureRecorder(), index)
        apt.install(["jq"])
        index.mark_stale()
        apt.install(["nodejs"])
        assert _updates(runner) == 2

    def test_apt_runs_noninteractive_with_sudo(self, runner: MockRunner):
        PackageInstaller(runner, FailureRecorder()).install(["jq"])
        install = [c for c in runner.calls if c["cmd"][:2] == ["apt-get", "install"]][0]
        assert install["sudo"] is True
        assert install["env"] == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_install_failure_raises(self, runner: MockRunner):
        runner.set_failure("apt-get install", stderr="E: Unable to locate package")
        with pytest.raises(StepFailed) as exc:
            PackageInstaller(runner, FailureRecorder()).install(["nope"])
        assert exc.value.retry == "sudo apt-get install -y nope"
        assert "Unable to locate" in exc.value.detail

    def test_empty_install_does_nothing(self, runner: MockRunner):
        PackageInstaller(runner, FailureRecorder()).install([])
        assert runner.calls == []

    def test_bootstrap_failure_is_fatal(self, runner: MockRunner):
        runner.set_failure("apt-get update")
        with pytest.raises(FatalError):
            PackageInstaller(runner, FailureRecorder()).bootstrap()

    def test_bootstrap_packages(self, runner: MockRunner):
        PackageInstaller(runner, FailureRecorder()).bootstrap()
        assert runner.commands()[-1].endswith(" ".join(BOOTSTRAP_PACKAGES))


class TestInstallBestEffort:
    def test_one_invalid_package(self, runner: MockRunner):
        runner.set_failure(lambda cmd: cmd[0] == "apt-get" and "not-a-real-pkg" in cmd)
        recorder = FailureRecorder()
        failed = PackageInstaller(runner, recorder).install_best_effort(["jq", "not-a-real-pkg", "fzf"])

        assert failed == ["not-a-real-pkg"]
        assert recorder.summarize() == [
            "Could not install package: not-a-real-pkg "
            "(retry: sudo apt-get install -y not-a-real-pkg)"
        ]
        singles = [c for c in runner.commands() if c.startswith("apt-get install")][1:]
        assert [c.split()[-1] for c in singles] == ["jq", "not-a-real-pkg", "fzf"]

    def test_bulk_success_records_nothing(self, runner: MockRunner):
        recorder = FailureRecorder()
        assert PackageInstaller(runner, recorder).install_best_effort(["jq", "fzf"]) == []
        assert not recorder

    def test_never_raises_on_update_failure(self, runner: MockRunner):
        runner.set_failure("apt-get update")
        recorder = FailureRecorder()
        PackageInstaller(runner, recorder).install_best_effort(["jq"])
        assert len(recorder) == 1


class TestIsInstalled:
    def test_dpkg_probe(self, runner: MockRunner):
        runner.set_response("dpkg-query -W -f=${Status} jq", stdout="install ok installed")
        apt = PackageInstaller(runner, FailureRecorder())
        assert apt.is_installed("jq")
        assert not apt.is_installed("fzf")
        assert apt.missing(["jq", "fzf"]) == ["fzf"]
        assert runner.mutating_calls == []


# ── Repository registrar ─────────────────────────────────────────────


@pytest.fixture
def registrar(runner: MockRunner, apt_dirs: tuple[Path, Path]):
    sources, keyrings = apt_dirs
    index = PackageIndex(updated=True)
    recorder = FailureRecorder()
    return RepositoryRegistrar(runner, index, recorder, sources_dir=sources, keyrings_dir=keyrings)


class TestRepositoryRegistrar:
    def test_existing_list_is_noop(self, registrar, runner: MockRunner):
        registrar.source_path("docker").write_text("deb ...\n")
        assert registrar.ensure_known("docker") is True
        assert runner.calls == []
        assert not registrar.index.stale

    def test_register_marks_index_stale(self, registrar, runner: MockRunner):
        assert registrar.ensure_known("docker") is True
        assert registrar.index.stale
        cmds = runner.commands()
        assert any(c.startswith("install -m 0644") and c.endswith("docker.asc") for c in cmds)
        assert any(c.endswith(str(registrar.source_path("docker"))) for c in cmds)

    def test_dearmored_key(self, registrar, runner: MockRunner):
        registrar.ensure_known("nodesource", node_major="22")
        assert any(c.startswith("gpg --dearmor") for c in runner.commands())

    def test_source_line_placeholders(self, registrar, runner: MockRunner, monkeypatch):
        written: dict[str, str] = {}
        original = registrar._write_root_file

        def capture(path, content, *, step):
            written[path.name] = content
            original(path, content, step=step)

        monkeypatch.setattr(registrar, "_write_root_file", capture)
        registrar.ensure_known("nodesource", node_major="22")
        registrar.ensure_known("docker")
        assert "node_22.x nodistro main" in written["nodesource.list"]
        assert "arch=amd64" in written["docker.list"]
        assert "ubuntu noble stable" in written["docker.list"]

    def test_key_download_failure_is_fatal(self, registrar, runner: MockRunner):
        runner.fail_download("https://download.docker.com/linux/ubuntu/gpg")
        with pytest.raises(FatalError):
            registrar.ensure_known("docker")
        assert not registrar.index.stale

    def test_best_effort_records(self, registrar, runner: MockRunner):
        runner.set_failure("install -d")
        assert registrar.ensure_known("pgdg", best_effort=True) is False
        assert "pgdg" in registrar.recorder.summarize()[0]
