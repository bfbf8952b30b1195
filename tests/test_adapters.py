"""
Tests for the command runner and its mock.
"""

import sys
from pathlib import Path

from aiforge.adapters import CommandRunner, MockRunner
from aiforge.adapters.shell import command as command_module

# ── CommandRunner ────────────────────────────────────────────────────


class TestBuildCommand:
    def test_no_sudo(self):
        assert CommandRunner().build_command(["ls"]) == ["ls"]

    def test_sudo_with_env_assignments(self, monkeypatch):
        monkeypatch.setattr(command_module.os, "geteuid", lambda: 1000)
        argv = CommandRunner().build_command(
            ["apt-get", "update"], sudo=True, env={"DEBIAN_FRONTEND": "noninteractive"}
        )
        assert argv == ["sudo", "DEBIAN_FRONTEND=noninteractive", "apt-get", "update"]

    def test_root_skips_sudo(self, monkeypatch):
        monkeypatch.setattr(command_module.os, "geteuid", lambda: 0)
        assert CommandRunner().build_command(["apt-get", "update"], sudo=True) == ["apt-get", "update"]


class TestRun:
    def test_success(self):
        result = CommandRunner().run([sys.executable, "-c", "print('hi')"])
        assert result["ok"]
        assert result["stdout"].strip() == "hi"
        assert result["returncode"] == 0

    def test_failure_never_raises(self):
        result = CommandRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert not result["ok"]
        assert result["returncode"] == 3
        assert "exit 3" in result["error"]

    def test_missing_binary(self):
        result = CommandRunner().run(["definitely-not-a-command-xyz"])
        assert not result["ok"]
        assert result["returncode"] == 127

    def test_env_values_expanded(self, monkeypatch):
        monkeypatch.setenv("FORGE_BASE", "/base")
        result = CommandRunner().run(
            [sys.executable, "-c", "import os; print(os.environ['FORGE_X'])"],
            env={"FORGE_X": "$FORGE_BASE/bin"},
        )
        assert result["stdout"].strip() == "/base/bin"

    def test_dry_run_skips_mutations(self, tmp_path: Path):
        marker = tmp_path / "created"
        result = CommandRunner(dry_run=True).run(["touch", str(marker)])
        assert result["ok"] and result["dry_run"]
        assert not marker.exists()

    def test_dry_run_still_probes(self):
        result = CommandRunner(dry_run=True).run([sys.executable, "-c", "print(1)"], probe=True)
        assert result["stdout"].strip() == "1"


class TestDownload:
    def test_file_url(self, tmp_path: Path):
        src = tmp_path / "src.txt"
        src.write_text("payload")
        dest = tmp_path / "out" / "dest.txt"
        result = CommandRunner().download(src.as_uri(), dest)
        assert result["ok"]
        assert dest.read_text() == "payload"

    def test_empty_download_fails(self, tmp_path: Path):
        src = tmp_path / "empty.txt"
        src.write_text("")
        result = CommandRunner().download(src.as_uri(), tmp_path / "dest")
        assert not result["ok"]
        assert "empty" in result["error"]

    def test_transport_error(self, tmp_path: Path):
        result = CommandRunner().download((tmp_path / "missing").as_uri(), tmp_path / "dest")
        assert not result["ok"]
        assert "Download failed" in result["error"]

    def test_dry_run(self, tmp_path: Path):
        dest = tmp_path / "dest"
        assert CommandRunner(dry_run=True).download("https://example.invalid/x", dest)["ok"]
        assert not dest.exists()


# ── MockRunner ───────────────────────────────────────────────────────


class TestMockRunner:
    def test_default_success_and_recording(self):
        mock = MockRunner()
        assert mock.run(["apt-get", "update"], sudo=True)["ok"]
        assert mock.call_count == 1
        assert mock.calls[0]["sudo"] is True

    def test_prefix_response_newest_wins(self):
        mock = MockRunner()
        mock.set_response("node", stdout="v20.0.0")
        mock.set_response("node --version", stdout="v22.1.0")
        assert mock.run(["node", "--version"], probe=True)["stdout"] == "v22.1.0"

    def test_callable_matcher(self):
        mock = MockRunner()
        mock.set_failure(lambda cmd: "bad" in cmd)
        assert not mock.run(["apt-get", "install", "bad"])["ok"]
        assert mock.run(["apt-get", "install", "good"])["ok"]

    def test_mutating_calls_excludes_probes(self):
        mock = MockRunner()
        mock.run(["dpkg-query", "-W", "jq"], probe=True)
        mock.run(["apt-get", "install", "jq"])
        assert [c["cmd"][0] for c in mock.mutating_calls] == ["apt-get"]

    def test_which_uses_available(self):
        mock = MockRunner(available={"git"})
        assert mock.which("git") == "/usr/bin/git"
        assert mock.which("go") is None

    def test_download(self, tmp_path: Path):
        mock = MockRunner()
        mock.fail_download("https://bad")
        assert mock.download("https://ok", tmp_path / "f")["ok"]
        assert (tmp_path / "f").read_bytes() == b"mock-download"
        assert not mock.download("https://bad", tmp_path / "g")["ok"]

    def test_reset(self):
        mock = MockRunner()
        mock.set_failure("x")
        mock.run(["x"])
        mock.reset()
        assert mock.calls == []
        assert mock.run(["x"])["ok"]
