"""
Tests for the environment file writer — fragments, include lines, re-runs.
"""

from pathlib import Path

import pytest

from aiforge.core.services.env_files import (
    DIALECTS,
    FRAGMENT_HEADER,
    append_once,
    render_fragment,
    setup_managed_env,
    write_fragment,
)


class TestAppendOnce:
    def test_creates_file_and_parent(self, tmp_path: Path):
        profile = tmp_path / "nested" / ".zshrc"
        assert append_once("source x", profile) is True
        assert profile.read_text() == "\nsource x\n"

    def test_second_call_is_noop(self, tmp_path: Path):
        profile = tmp_path / ".bashrc"
        profile.write_text("# existing\n")
        assert append_once("source x", profile) is True
        before = profile.read_text()
        assert append_once("source x", profile) is False
        assert profile.read_text() == before

    def test_existing_content_untouched(self, tmp_path: Path):
        profile = tmp_path / ".profile"
        profile.write_text("b\na\n")
        append_once("c", profile)
        assert profile.read_text().startswith("b\na\n")

    def test_substring_is_not_a_match(self, tmp_path: Path):
        profile = tmp_path / ".bashrc"
        profile.write_text("# source x is disabled\n")
        assert append_once("source x", profile) is True

    def test_non_utf8_profile(self, tmp_path: Path):
        profile = tmp_path / ".bashrc"
        original = b"# caf\xe9\nexport LANG=fr_FR.ISO-8859-1\n"
        profile.write_bytes(original)
        assert append_once("source x", profile) is True
        assert append_once("source x", profile) is False
        assert profile.read_bytes() == original + b"\nsource x\n"


class TestWriteFragment:
    def test_overwrites(self, tmp_path: Path):
        path = tmp_path / "cfg" / "env.sh"
        assert write_fragment(path, "one\n") is True
        assert write_fragment(path, "two\n") is True
        assert path.read_text() == "two\n"

    def test_unchanged_content_reports_false(self, tmp_path: Path):
        path = tmp_path / "env.sh"
        write_fragment(path, "same\n")
        assert write_fragment(path, "same\n") is False


class TestRenderFragment:
    def test_base_entries_and_venv(self, home: Path):
        text = render_fragment("sh", venv_dir="~/.venvs/agents", home=home)
        assert text.startswith(FRAGMENT_HEADER)
        assert 'export PATH="$HOME/.local/bin:$HOME/.cargo/bin:$HOME/.bun/bin:$PATH"' in text
        assert 'export AI_FORGE_VENV="${AI_FORGE_VENV:-$HOME/.venvs/agents}"' in text

    def test_absolute_venv_under_home_is_relative(self, home: Path):
        text = render_fragment("zsh", venv_dir=str(home / "venv"), home=home)
        assert "$HOME/venv" in text

    def test_extra_entries_come_first(self, home: Path):
        text = render_fragment("sh", venv_dir="~/v", home=home, extra_path_entries=["/usr/local/go/bin"])
        assert 'PATH="/usr/local/go/bin:$HOME/.local/bin' in text

    def test_unknown_dialect(self, home: Path):
        with pytest.raises(ValueError):
            render_fragment("fish", venv_dir="~/v", home=home)


class TestSetupManagedEnv:
    def test_writes_fragments_and_includes(self, home: Path):
        changes = setup_managed_env(home, venv_dir="~/.venvs/agents")
        assert (home / ".config" / "ai-forge" / "env.sh").is_file()
        assert (home / ".config" / "ai-forge" / "env.zsh").is_file()
        assert len(changes["written"]) == 2
        assert sorted(Path(p).name for p in changes["appended"]) == [".bashrc", ".profile", ".zshrc"]
        assert DIALECTS["zsh"]["include"] in (home / ".zshrc").read_text().splitlines()

    def test_rerun_changes_nothing(self, home: Path):
        setup_managed_env(home, venv_dir="~/.venvs/agents")
        snapshot = {p: (home / p).read_text() for p in (".bashrc", ".profile", ".zshrc")}
        changes = setup_managed_env(home, venv_dir="~/.venvs/agents")
        assert changes == {"written": [], "appended": []}
        for name, content in snapshot.items():
            assert (home / name).read_text() == content
        assert (home / ".bashrc").read_text().count("ai-forge/env.sh") == 2  # test + source

    def test_new_path_entry_rewrites_fragment_only(self, home: Path):
        setup_managed_env(home, venv_dir="~/v")
        changes = setup_managed_env(home, venv_dir="~/v", extra_path_entries=["$HOME/.asdf/shims"])
        assert len(changes["written"]) == 2
        assert changes["appended"] == []
        assert "$HOME/.asdf/shims" in (home / ".config" / "ai-forge" / "env.sh").read_text()

    def test_non_utf8_profile_keeps_its_bytes(self, home: Path):
        (home / ".profile").write_bytes(b"# \xff\n")
        changes = setup_managed_env(home, venv_dir="~/v")
        assert str(home / ".profile") in changes["appended"]
        data = (home / ".profile").read_bytes()
        assert data.startswith(b"# \xff\n")
        assert DIALECTS["sh"]["include"].encode() in data.splitlines()
