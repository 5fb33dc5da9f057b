"""
Unit tests for integration declarations.

Tests cover:
- EntryPoint argument extraction and replacement
- PluginIntegration target resolution
- Built-in integration declarations
"""

from typing import Any

import pytest

from trustgate.errors import ContentExtractionError
from trustgate.integrations import (
    DATAVIEW,
    META_BIND,
    DenialMode,
    EntryPoint,
    PluginIntegration,
    builtin_integrations,
    dataview,
    meta_bind,
)


class Host:
    def __init__(self, plugins: dict[str, Any]) -> None:
        self.plugins = plugins

    def get_plugin(self, plugin_id: str) -> Any | None:
        return self.plugins.get(plugin_id)


class Namespace:
    def __init__(self, **kwargs: Any) -> None:
        self.__dict__.update(kwargs)


# =============================================================================
# EntryPoint Tests
# =============================================================================


class TestEntryPointContent:
    """Tests for EntryPoint.content()."""

    def test_positional(self) -> None:
        assert EntryPoint("run").content(("code", "x"), {}) == "code"

    def test_keyword_wins(self) -> None:
        entry = EntryPoint("run", content_kwarg="code")
        assert entry.content(("positional",), {"code": "keyword"}) == "keyword"

    def test_keyword_only(self) -> None:
        entry = EntryPoint("run", content_arg=None, content_kwarg="code")
        assert entry.content((), {"code": "k"}) == "k"

    def test_bytes_accepted(self) -> None:
        assert EntryPoint("run").content((b"code",), {}) == b"code"

    def test_missing(self) -> None:
        with pytest.raises(ContentExtractionError) as exc_info:
            EntryPoint("run").content((), {}, "dataviewjs")
        assert exc_info.value.integration == "dataviewjs"
        assert exc_info.value.entry_point == "run"

    def test_not_text(self) -> None:
        with pytest.raises(ContentExtractionError):
            EntryPoint("run").content((42,), {})


class TestEntryPointLocation:
    """Tests for EntryPoint.location()."""

    def test_positional(self) -> None:
        entry = EntryPoint("run", location_arg=1)
        assert entry.location(("code", "notes/a.md"), {}) == "notes/a.md"

    def test_keyword(self) -> None:
        entry = EntryPoint("run", location_arg=3, location_kwarg="file_path")
        assert entry.location(("code",), {"file_path": "notes/a.md"}) == "notes/a.md"

    def test_absent(self) -> None:
        assert EntryPoint("run", location_arg=3).location(("code",), {}) is None
        assert EntryPoint("run").location(("code",), {}) is None


class TestEntryPointWithContent:
    """Tests for EntryPoint.with_content()."""

    def test_positional(self) -> None:
        args, kwargs = EntryPoint("run").with_content(("a", "b"), {"k": 1}, "new")
        assert args == ("new", "b")
        assert kwargs == {"k": 1}

    def test_keyword(self) -> None:
        entry = EntryPoint("run", content_kwarg="code")
        args, kwargs = entry.with_content((), {"code": "a"}, "new")
        assert kwargs == {"code": "new"}

    def test_does_not_mutate_inputs(self) -> None:
        kwargs_in = {"code": "a"}
        EntryPoint("run", content_kwarg="code").with_content((), kwargs_in, "new")
        assert kwargs_in == {"code": "a"}


# =============================================================================
# PluginIntegration Tests
# =============================================================================


class TestPluginIntegration:
    """Tests for PluginIntegration.resolve()."""

    def test_not_loaded(self) -> None:
        integration = PluginIntegration("x", "plugin", [EntryPoint("run")], "api")
        assert integration.resolve(Host({})) is None

    def test_plugin_itself(self) -> None:
        plugin = Namespace()
        integration = PluginIntegration("x", "plugin", [EntryPoint("run")])
        assert integration.resolve(Host({"plugin": plugin})) is plugin

    def test_attribute_path(self) -> None:
        api = Namespace()
        plugin = Namespace(inner=Namespace(api=api))
        integration = PluginIntegration("x", "plugin", [EntryPoint("run")], "inner.api")
        assert integration.resolve(Host({"plugin": plugin})) is api

    def test_attribute_not_ready(self) -> None:
        """A plugin still initializing its api resolves to None."""
        integration = PluginIntegration("x", "plugin", [EntryPoint("run")], "api")
        assert integration.resolve(Host({"plugin": Namespace(api=None)})) is None
        assert integration.resolve(Host({"plugin": Namespace()})) is None

    def test_entry_points_copy(self) -> None:
        integration = PluginIntegration("x", "plugin", [EntryPoint("run")])
        integration.entry_points.clear()
        assert len(integration.entry_points) == 1

    def test_defaults(self) -> None:
        integration = PluginIntegration("x", "plugin", [])
        assert integration.denied_result is None
        assert "Blocked untrusted x execution. Hash: ab" in integration.blocked_notice("ab")
        assert repr(integration) == "<Integration: x>"


# =============================================================================
# Built-in Integration Tests
# =============================================================================


class TestBuiltins:
    """Tests for the built-in declarations."""

    def test_names(self) -> None:
        assert [i.name for i in builtin_integrations()] == [DATAVIEW, META_BIND]

    def test_fresh_instances(self) -> None:
        assert builtin_integrations()[0] is not builtin_integrations()[0]

    def test_dataview(self) -> None:
        integration = dataview()
        assert integration.plugin_id == "dataview"
        assert integration.attribute_path == "api"
        (entry,) = integration.entry_points
        assert entry.name == "execute_js"
        assert entry.denial == DenialMode.REPORT
        assert entry.location(("code", None, None, "notes/a.md"), {}) == "notes/a.md"

    def test_meta_bind(self) -> None:
        integration = meta_bind()
        assert integration.plugin_id == "obsidian-meta-bind-plugin"
        assert integration.attribute_path == "internal"
        run_code, run_file = integration.entry_points
        assert run_code.name == "js_engine_run_code"
        assert run_code.denial == DenialMode.SUBSTITUTE
        assert run_file.name == "js_engine_run_file"
        assert run_file.content_is_reference is True
        assert run_file.delegate_to == "js_engine_run_code"
