"""
Tests for the trustgate CLI.

Tests cover:
- digest from a file and from stdin
- check exit codes and JSON output
- list with notes, files and failed sources
- Editing trust sources in the settings file
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from trustgate import __version__
from trustgate.cli import app
from trustgate.hashing import digest
from trustgate.schema import GateSettings, load_settings, save_settings


runner = CliRunner()

CODE = 'dv.paragraph("hello")\n'


@pytest.fixture
def fragment(temp_dir: Path) -> Path:
    path = temp_dir / "snippet.js"
    path.write_text(CODE)
    return path


@pytest.fixture
def settings_path(temp_dir: Path) -> Path:
    return temp_dir / "trustgate.yaml"


# =============================================================================
# Basic Commands
# =============================================================================


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestDigestCommand:
    """Tests for `trustgate digest`."""

    def test_file(self, fragment: Path) -> None:
        result = runner.invoke(app, ["digest", str(fragment)])
        assert result.exit_code == 0
        assert result.stdout.strip() == digest(CODE)

    def test_stdin(self) -> None:
        result = runner.invoke(app, ["digest", "-"], input="print(1)")
        assert result.exit_code == 0
        assert result.stdout.strip() == digest("print(1)")

    def test_missing_file(self, temp_dir: Path) -> None:
        result = runner.invoke(app, ["digest", str(temp_dir / "missing.js")])
        assert result.exit_code == 2


# =============================================================================
# check
# =============================================================================


class TestCheckCommand:
    """Tests for `trustgate check`."""

    def test_untrusted_denied(self, fragment: Path, settings_path: Path) -> None:
        result = runner.invoke(app, ["check", str(fragment), "-s", str(settings_path)])
        assert result.exit_code == 1
        assert "deny" in result.stdout
        assert digest(CODE) in result.stdout

    def test_trusted_allowed(self, fragment: Path, settings_path: Path) -> None:
        save_settings(GateSettings(trusted_hashes=[digest(CODE)]), settings_path)
        result = runner.invoke(app, ["check", str(fragment), "-s", str(settings_path)])
        assert result.exit_code == 0
        assert "allow" in result.stdout

    def test_trusted_through_note(self, temp_dir: Path, fragment: Path, settings_path: Path) -> None:
        vault = temp_dir / "vault"
        (vault / "security").mkdir(parents=True)
        (vault / "security" / "trusted.md").write_text(f"# reviewed\n{digest(CODE)}\n")
        save_settings(GateSettings(trusted_hash_notes=["security/trusted"]), settings_path)

        result = runner.invoke(
            app,
            ["check", str(fragment), "-s", str(settings_path), "--vault", str(vault)],
        )
        assert result.exit_code == 0

    def test_integration_override(self, fragment: Path, settings_path: Path) -> None:
        save_settings(GateSettings(integration_overrides={"dataviewjs": True}), settings_path)

        bypassed = runner.invoke(
            app, ["check", str(fragment), "-s", str(settings_path), "-i", "dataviewjs"]
        )
        other = runner.invoke(
            app, ["check", str(fragment), "-s", str(settings_path), "-i", "meta-bind"]
        )

        assert bypassed.exit_code == 0
        assert other.exit_code == 1

    def test_json_output(self, fragment: Path, settings_path: Path) -> None:
        result = runner.invoke(
            app, ["check", str(fragment), "-s", str(settings_path), "--json", "-i", "dataviewjs"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["allowed"] is False
        assert data["verdict"] == "deny"
        assert data["digest"] == digest(CODE)
        assert data["rule_matched"] == "deny_by_default"
        assert data["integration"] == "dataviewjs"

    def test_invalid_settings(self, fragment: Path, settings_path: Path) -> None:
        settings_path.write_text("unknown_key: 1\n")
        result = runner.invoke(app, ["check", str(fragment), "-s", str(settings_path)])
        assert result.exit_code == 2


# =============================================================================
# list
# =============================================================================


class TestListCommand:
    """Tests for `trustgate list`."""

    def test_json(self, temp_dir: Path, settings_path: Path) -> None:
        external = temp_dir / "trusted.txt"
        external.write_text("bb\n")
        save_settings(
            GateSettings(trusted_hashes=["aa"], trusted_hash_files=[str(external)]),
            settings_path,
        )

        result = runner.invoke(app, ["list", "-s", str(settings_path), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["trusted_hashes"] == ["aa", "bb"]
        assert data["failed_sources"] == []
        assert data["allow_untrusted_code"] is False

    def test_table(self, settings_path: Path) -> None:
        save_settings(GateSettings(trusted_hashes=["aa"], allow_untrusted_code=True), settings_path)
        result = runner.invoke(app, ["list", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert "aa" in result.stdout
        assert "allow_untrusted_code" in result.stdout

    def test_unavailable_source_listed(self, temp_dir: Path, settings_path: Path) -> None:
        save_settings(GateSettings(trusted_hash_files=[str(temp_dir / "missing.txt")]), settings_path)
        result = runner.invoke(app, ["list", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert "Unavailable source" in result.stdout


# =============================================================================
# Editing Sources
# =============================================================================


class TestEditCommands:
    """Tests for trust/untrust/add-note/remove-note/add-file/remove-file."""

    def test_trust_creates_settings(self, settings_path: Path) -> None:
        result = runner.invoke(app, ["trust", "ABCD", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert load_settings(settings_path).trusted_hashes == ["abcd"]

    def test_trust_idempotent(self, settings_path: Path) -> None:
        runner.invoke(app, ["trust", "abcd", "-s", str(settings_path)])
        result = runner.invoke(app, ["trust", "abcd", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert load_settings(settings_path).trusted_hashes == ["abcd"]

    def test_untrust(self, settings_path: Path) -> None:
        save_settings(GateSettings(trusted_hashes=["abcd", "ef"]), settings_path)
        result = runner.invoke(app, ["untrust", "ABCD", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert load_settings(settings_path).trusted_hashes == ["ef"]

    def test_untrust_missing(self, settings_path: Path) -> None:
        result = runner.invoke(app, ["untrust", "abcd", "-s", str(settings_path)])
        assert result.exit_code == 1

    def test_notes(self, settings_path: Path) -> None:
        runner.invoke(app, ["add-note", "security/trusted", "-s", str(settings_path)])
        assert load_settings(settings_path).trusted_hash_notes == ["security/trusted"]

        result = runner.invoke(app, ["remove-note", "security/trusted", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert load_settings(settings_path).trusted_hash_notes == []

    def test_files(self, settings_path: Path) -> None:
        runner.invoke(app, ["add-file", "~/trusted.txt", "-s", str(settings_path)])
        assert load_settings(settings_path).trusted_hash_files == ["~/trusted.txt"]

        result = runner.invoke(app, ["remove-file", "~/trusted.txt", "-s", str(settings_path)])
        assert result.exit_code == 0
        assert load_settings(settings_path).trusted_hash_files == []

    def test_other_settings_preserved(self, settings_path: Path) -> None:
        save_settings(GateSettings(integration_overrides={"meta-bind": True}), settings_path)
        runner.invoke(app, ["trust", "abcd", "-s", str(settings_path)])
        assert load_settings(settings_path).integration_overrides == {"meta-bind": True}
