"""
Base classes for foreign integrations.

An integration is one third-party execution engine whose entry points are
gated. trustgate never imports or controls the engine; it only knows:
- How to find the object owning the entry points (resolve())
- Which entry points execute script text, and where the text is in the
  call's arguments (EntryPoint)
- What to do when a call is denied (DenialMode)

Why ABC over Protocol?
    Integrations are declared by trustgate and its hosts, and share the
    argument-handling helpers on EntryPoint; nominal typing keeps the
    built-ins and host-defined integrations interchangeable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from trustgate.errors import ContentExtractionError


class Host(Protocol):
    """
    The document-rendering host.

    get_plugin() returns the loaded plugin object for an id, or None while
    it is not (yet) loaded. A host may also provide rerender(), called
    after the trusted set changes so rendered previews are re-evaluated.
    """

    def get_plugin(self, plugin_id: str) -> Any | None:
        ...


class DenialMode(str, Enum):
    """What a guard does with a denied call."""

    # Report the digest and return the integration's denied_result
    REPORT = "report"
    # Report, then delegate with the content replaced by a blocked notice
    SUBSTITUTE = "substitute"


@dataclass(frozen=True)
class EntryPoint:
    """
    One gated entry point.

    Attributes:
        name: Attribute name on the resolved target
        content_arg: Positional index of the script text
        content_kwarg: Keyword name of the script text
        location_arg: Positional index of the location to report
        location_kwarg: Keyword name of the location to report
        content_is_reference: The content argument names a document whose
            text is the script (e.g. "run file"); async entry points only
        denial: DenialMode for denied calls
        delegate_to: Entry point whose original receives the resolved text
            instead of this entry point's original
    """

    name: str
    content_arg: int | None = 0
    content_kwarg: str | None = None
    location_arg: int | None = None
    location_kwarg: str | None = None
    content_is_reference: bool = False
    denial: DenialMode = DenialMode.REPORT
    delegate_to: str | None = None

    def content(self, args: tuple[Any, ...], kwargs: dict[str, Any], integration: str = "") -> Any:
        """
        Get the content argument of a call.

        Raises:
            ContentExtractionError: If the argument is missing or not text
        """
        found, value = _argument(args, kwargs, self.content_arg, self.content_kwarg)
        if not found:
            raise ContentExtractionError(
                integration=integration,
                entry_point=self.name,
                underlying_error="content argument missing",
            )
        if not isinstance(value, (str, bytes)):
            raise ContentExtractionError(
                integration=integration,
                entry_point=self.name,
                underlying_error=f"content argument is {type(value).__name__}, not text",
            )
        return value

    def location(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        """Get the location argument of a call (None if absent)."""
        _, value = _argument(args, kwargs, self.location_arg, self.location_kwarg)
        return value

    def with_content(
        self,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        value: Any,
    ) -> tuple[tuple[Any, ...], dict[str, Any]]:
        """Return (args, kwargs) with the content argument replaced."""
        if self.content_kwarg and self.content_kwarg in kwargs:
            return args, {**kwargs, self.content_kwarg: value}
        if self.content_arg is not None and self.content_arg < len(args):
            new_args = list(args)
            new_args[self.content_arg] = value
            return tuple(new_args), kwargs
        if self.content_kwarg:
            return args, {**kwargs, self.content_kwarg: value}
        return args, kwargs


def _argument(
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    index: int | None,
    keyword: str | None,
) -> tuple[bool, Any]:
    if keyword and keyword in kwargs:
        return True, kwargs[keyword]
    if index is not None and index < len(args):
        return True, args[index]
    return False, None


class Integration(ABC):
    """
    Abstract base class for gated engines.

    Subclasses must implement:
    - name property: the integration's name (also its override key)
    - entry_points property: the EntryPoints to guard
    - resolve(): find the target object, or None if not available yet
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def entry_points(self) -> list[EntryPoint]:
        ...

    @abstractmethod
    def resolve(self, host: Host) -> Any | None:
        """
        Find the object owning the entry points.

        Called repeatedly during activation until it returns non-None;
        must not raise while the engine is still loading.
        """
        ...

    @property
    def denied_result(self) -> Any:
        """Value a REPORT-mode guard returns for a denied call."""
        return None

    def blocked_notice(self, digest: str) -> str:
        """Script text substituted for a denied call in SUBSTITUTE mode."""
        return f'console.log("trustgate: Blocked untrusted {self.name} execution. Hash: {digest}")'

    def __repr__(self) -> str:
        return f"<Integration: {self.name}>"


class PluginIntegration(Integration):
    """
    Integration found through the host's plugin registry.

    The target is host.get_plugin(plugin_id), followed by attribute_path
    (dot-separated, may be empty).

    Example:
        PluginIntegration(
            name="dataviewjs",
            plugin_id="dataview",
            attribute_path="api",
            entry_points=[EntryPoint("execute_js", location_arg=3)],
        )
    """

    def __init__(
        self,
        name: str,
        plugin_id: str,
        entry_points: list[EntryPoint],
        attribute_path: str = "",
    ) -> None:
        self._name = name
        self.plugin_id = plugin_id
        self.attribute_path = attribute_path
        self._entry_points = list(entry_points)

    @property
    def name(self) -> str:
        return self._name

    @property
    def entry_points(self) -> list[EntryPoint]:
        return list(self._entry_points)

    def resolve(self, host: Host) -> Any | None:
        target = host.get_plugin(self.plugin_id)
        if target is None or not self.attribute_path:
            return target
        for part in self.attribute_path.split("."):
            target = getattr(target, part, None)
            if target is None:
                return None
        return target
