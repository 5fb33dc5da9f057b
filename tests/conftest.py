"""
Pytest configuration and fixtures for trustgate tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from trustgate.documents import MemoryDocumentStore
from trustgate.hashing import digest
from trustgate.report import RecordingReporter
from trustgate.schema import GateSettings


class FakeHost:
    """Document-rendering host with a mutable plugin registry."""

    def __init__(self, plugins: dict[str, Any] | None = None) -> None:
        self.plugins: dict[str, Any] = dict(plugins or {})
        self.lookups: list[str] = []
        self.rerenders = 0

    def get_plugin(self, plugin_id: str) -> Any | None:
        self.lookups.append(plugin_id)
        return self.plugins.get(plugin_id)

    def rerender(self) -> None:
        self.rerenders += 1


class FakeDataviewApi:
    """Stands in for Dataview's api object: records executed code."""

    def __init__(self) -> None:
        self.executed: list[str] = []

    def execute_js(self, code: str, container: Any = None, component: Any = None, file_path: str = "") -> str:
        self.executed.append(code)
        return f"ran:{code}"


class FakeDataviewPlugin:
    def __init__(self) -> None:
        self.api = FakeDataviewApi()


class FakeMetaBindInternal:
    """Stands in for Meta Bind's internal JS engine bridge (async)."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = dict(files or {})
        self.run_code_calls: list[str] = []
        self.run_file_calls: list[str] = []

    async def js_engine_run_code(
        self,
        code: str,
        calling_file_path: str = "",
        context_overrides: Any = None,
        container: Any = None,
    ) -> str:
        self.run_code_calls.append(code)
        return f"ran:{code}"

    async def js_engine_run_file(
        self,
        file_path: str,
        calling_file_path: str = "",
        context_overrides: Any = None,
        container: Any = None,
    ) -> str:
        self.run_file_calls.append(file_path)
        return await self.js_engine_run_code(self.files[file_path], calling_file_path)


class FakeMetaBindPlugin:
    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.internal = FakeMetaBindInternal(files)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def trusted_code() -> str:
    """A fragment that tests put on the trust list."""
    return 'dv.paragraph("hello")'


@pytest.fixture
def untrusted_code() -> str:
    """A fragment that is never trusted."""
    return 'app.vault.adapter.remove("notes")'


@pytest.fixture
def fast_settings(trusted_code: str) -> GateSettings:
    """Settings trusting trusted_code, with short retry and debounce timings."""
    return GateSettings(
        trusted_hashes=[digest(trusted_code)],
        debounce_seconds=0.05,
        resolve_max_attempts=3,
        resolve_base_delay=0.01,
        resolve_max_delay=0.02,
    )


@pytest.fixture
def documents() -> MemoryDocumentStore:
    """An empty in-memory document store."""
    return MemoryDocumentStore()


@pytest.fixture
def reporter() -> RecordingReporter:
    """A reporter that keeps every denial."""
    return RecordingReporter()


@pytest.fixture
def dataview_plugin() -> FakeDataviewPlugin:
    """A loaded Dataview plugin."""
    return FakeDataviewPlugin()


@pytest.fixture
def meta_bind_plugin() -> FakeMetaBindPlugin:
    """A loaded Meta Bind plugin with no script files."""
    return FakeMetaBindPlugin()


@pytest.fixture
def host(dataview_plugin: FakeDataviewPlugin, meta_bind_plugin: FakeMetaBindPlugin) -> FakeHost:
    """A host with both built-in integrations' plugins loaded."""
    return FakeHost({
        "dataview": dataview_plugin,
        "obsidian-meta-bind-plugin": meta_bind_plugin,
    })


@pytest.fixture
def empty_host() -> FakeHost:
    """A host with no plugins loaded."""
    return FakeHost()


@pytest.fixture
def sample_settings_yaml() -> str:
    """Return a settings YAML for testing."""
    return """
trusted_hash_notes:
  - security/trusted-hashes
trusted_hash_files:
  - ~/trusted.txt
trusted_hashes:
  - "  ABCDEF  "
allow_untrusted_code: false
integration_overrides:
  dataviewjs: true
"""
