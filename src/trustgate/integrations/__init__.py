"""
Integrations module for trustgate.

An integration is a foreign execution engine whose entry points are gated.

Architecture:
    - Integration: abstract base (name, entry points, resolve())
    - PluginIntegration: resolves through the host's plugin registry
    - EntryPoint: where the script text and location are in a call
    - Host: protocol for the document-rendering host

Built-in integrations: dataviewjs, meta-bind.
"""

from trustgate.integrations.base import (
    DenialMode,
    EntryPoint,
    Host,
    Integration,
    PluginIntegration,
)
from trustgate.integrations.builtin import (
    DATAVIEW,
    META_BIND,
    builtin_integrations,
    dataview,
    meta_bind,
)

__all__ = [
    "DATAVIEW",
    "META_BIND",
    "DenialMode",
    "EntryPoint",
    "Host",
    "Integration",
    "PluginIntegration",
    "builtin_integrations",
    "dataview",
    "meta_bind",
]
