"""
Tests for CLI commands — install, components, config, and global options.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from aiforge.core.engine.dispatcher import RunReport
from aiforge.core.models.outcome import InstallOutcome
from aiforge.core.use_cases import install as install_use_case
from aiforge.core.use_cases.install import InstallResult
from aiforge.main import cli


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Isolated environment: temp HOME, no config file, no overrides."""
    home = tmp_path / "home"
    home.mkdir()
    return {
        "HOME": str(home),
        "AIFORGE_CONFIG": str(tmp_path / "config.yml"),
        "AIFORGE_LOG_LEVEL": "CRITICAL",
        "NONINTERACTIVE": "",
        "INSTALL_SELECTION": "",
        "NODE_MAJOR": "",
        "GO_VERSION": "",
    }


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Ubuntu 24.04" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestComponentsCommand:
    def test_lists_menu(self):
        result = CliRunner().invoke(cli, ["components"])
        assert result.exit_code == 0
        assert " 1) zsh" in result.output
        assert "requires rust; best effort" in result.output

    def test_json(self):
        result = CliRunner().invoke(cli, ["components", "--json"])
        data = json.loads(result.output)
        assert [c["key"] for c in data][:4] == ["zsh", "ruby", "beam", "node"]
        assert data[11]["requires"] == ["ollama"]


class TestConfigCommand:
    def test_sources(self, env, tmp_path: Path):
        (tmp_path / "config.yml").write_text('GO_VERSION: "1.24.0"\nEXTRA: x\n')
        env["NODE_MAJOR"] = "24"
        result = CliRunner().invoke(cli, ["config", "--json"], env=env)
        assert result.exit_code == 0
        data = json.loads(result.output)
        rows = {r["name"]: r for r in data["values"]}
        assert rows["NODE_MAJOR"] == {"name": "NODE_MAJOR", "value": "24", "source": "env"}
        assert rows["GO_VERSION"]["source"] == "file"
        assert rows["RUBY_VERSION"]["source"] == "default"
        assert data["unknown_keys"] == ["EXTRA"]

    def test_broken_file_exits_1(self, env, tmp_path: Path):
        (tmp_path / "config.yml").write_text("[1, 2]\n")
        result = CliRunner().invoke(cli, ["config"], env=env)
        assert result.exit_code == 1

    def test_explicit_config_option(self, env, tmp_path: Path):
        other = tmp_path / "other.yml"
        other.write_text("PGVECTOR_VERSION: 0.7.4\n")
        result = CliRunner().invoke(cli, ["--config", str(other), "config"], env=env)
        assert result.exit_code == 0
        assert "0.7.4" in result.output


class TestInstallCommand:
    def test_noninteractive_empty_selection_exits_1(self, env):
        env["NONINTERACTIVE"] = "1"
        result = CliRunner().invoke(cli, ["install"], env=env)
        assert result.exit_code == 1
        assert "No components selected" in result.output

    def test_json_empty_selection(self, env):
        result = CliRunner().invoke(cli, ["install", "--non-interactive", "--json"], env=env)
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["ok"] is False
        assert data["step"] == "SelectionError"

    def _fake(self, monkeypatch, result: InstallResult) -> dict:
        seen: dict = {}

        def fake_run_install(runner, **kwargs):
            seen["runner"] = runner
            seen.update(kwargs)
            return result

        monkeypatch.setattr(install_use_case, "run_install", fake_run_install)
        return seen

    def test_summary_and_failures(self, env, monkeypatch):
        report = RunReport(outcomes=[
            InstallOutcome.skip("node", "Node v24.1.0 already installed", warnings=["NODE_MAJOR=22 differs"]),
            InstallOutcome.success("go", "Go 1.25.6 installed"),
        ])
        result = InstallResult(report=report, failures=["Could not install package: mkcert (retry: x)"])
        seen = self._fake(monkeypatch, result)

        out = CliRunner().invoke(cli, ["install", "--non-interactive", "--select", "4,5", "--dry-run"], env=env)
        assert out.exit_code == 0
        assert "Complete." in out.output
        assert "NODE_MAJOR=22 differs" in out.output
        assert "Could not install package: mkcert" in out.output
        assert seen["raw_selection"] == "4,5"
        assert seen["interactive"] is False
        assert seen["runner"].dry_run is True

    def test_selection_from_environment(self, env, monkeypatch):
        env["INSTALL_SELECTION"] = "all"
        env["NONINTERACTIVE"] = "1"
        seen = self._fake(monkeypatch, InstallResult(report=RunReport()))
        CliRunner().invoke(cli, ["install"], env=env)
        assert seen["raw_selection"] == "all"

    def test_fatal_exits_1_with_step(self, env, monkeypatch):
        report = RunReport(outcomes=[InstallOutcome.failure("go", "download failed", step="Go download")])
        self._fake(monkeypatch, InstallResult(report=report, error="download failed", step="Go download"))
        out = CliRunner().invoke(cli, ["install", "--non-interactive", "--select", "go"], env=env)
        assert out.exit_code == 1
        assert "Failed step: Go download" in out.output
        assert "Re-running is safe" in out.output
        assert "Complete." not in out.output

    def test_interactive_prompts(self, env, monkeypatch):
        seen = self._fake(monkeypatch, InstallResult(report=RunReport()))
        answers = "\n".join(["24", "", "", "", "", "", "none", "", ""]) + "\n"
        out = CliRunner().invoke(cli, ["install"], env=env, input=answers)
        assert out.exit_code == 0
        assert seen["interactive"] is True
        assert seen["answers"]["NODE_MAJOR"] == "24"
        assert seen["answers"]["GO_VERSION"] == "1.25.6"
        assert seen["answers"]["OLLAMA_PULL_MODEL"] == ""
        assert seen["answers"]["PIP_CONSTRAINTS"] == ""
