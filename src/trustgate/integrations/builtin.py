"""
Built-in integrations.

    dataviewjs: Dataview's execute_js(code, container, component, file_path).
        Denied calls are reported and return None.

    meta-bind: Meta Bind's JS engine bridge on plugin.internal:
        js_engine_run_code(code, calling_file_path, context_overrides, container)
        js_engine_run_file(file_path, calling_file_path, context_overrides, container)
        Denied calls run a logging notice instead of the code. run_file is
        resolved to the file's text, hashed, and handed to run_code so the
        text that was checked is the text that runs.
"""

from trustgate.integrations.base import DenialMode, EntryPoint, Integration, PluginIntegration

DATAVIEW = "dataviewjs"
META_BIND = "meta-bind"


def dataview() -> PluginIntegration:
    return PluginIntegration(
        name=DATAVIEW,
        plugin_id="dataview",
        attribute_path="api",
        entry_points=[
            EntryPoint("execute_js", content_arg=0, location_arg=3, location_kwarg="file_path"),
        ],
    )


def meta_bind() -> PluginIntegration:
    return PluginIntegration(
        name=META_BIND,
        plugin_id="obsidian-meta-bind-plugin",
        attribute_path="internal",
        entry_points=[
            EntryPoint(
                "js_engine_run_code",
                content_arg=0,
                location_arg=1,
                denial=DenialMode.SUBSTITUTE,
            ),
            EntryPoint(
                "js_engine_run_file",
                content_arg=0,
                location_arg=1,
                content_is_reference=True,
                denial=DenialMode.SUBSTITUTE,
                delegate_to="js_engine_run_code",
            ),
        ],
    )


def builtin_integrations() -> list[Integration]:
    """Fresh instances of every built-in integration."""
    return [dataview(), meta_bind()]
