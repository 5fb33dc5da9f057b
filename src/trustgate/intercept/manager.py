"""
Interception manager for trustgate.

The manager is the only component that writes foreign entry points. It keeps
a table of bindings keyed by (target, entry point name) and guarantees:

    - At most one binding per (target, name). A second install() is
      rejected, because overwriting would lose the true original.
    - uninstall() always writes the captured original back, even when some
      other code has replaced the guard in the meantime (that case is
      logged as a conflicting patch).

Usage:
    manager = InterceptionManager()
    binding = manager.install(api, "execute_js", guard)
    ...
    manager.uninstall(binding)
"""

import logging
from typing import Any, Callable, Iterator

from trustgate.errors import (
    AlreadyInstalledError,
    BindingNotFoundError,
    EntryPointNotFoundError,
)
from trustgate.intercept.binding import InterceptionBinding

logger = logging.getLogger(__name__)

_MISSING = object()


def _describe(target: Any) -> str:
    name = getattr(target, "__name__", None) or type(target).__name__
    return f"{name}@{id(target):#x}"


class InterceptionManager:
    """
    Registry of installed guards.

    Attributes:
        _bindings: Active bindings keyed by (id(target), name)
    """

    def __init__(self) -> None:
        """Initialize an empty manager."""
        self._bindings: dict[tuple[int, str], InterceptionBinding] = {}

    def install(
        self,
        target: Any,
        name: str,
        guard: Callable[..., Any],
        integration: str = "",
    ) -> InterceptionBinding:
        """
        Replace target.name with guard, remembering the original.

        Args:
            target: Foreign object owning the entry point
            name: Entry point attribute name
            guard: Wrapper to install
            integration: Integration the entry point belongs to

        Returns:
            The new binding, in state INSTALLED

        Raises:
            AlreadyInstalledError: If a binding exists for (target, name)
            EntryPointNotFoundError: If target has no callable attribute name
        """
        key = (id(target), name)
        if key in self._bindings:
            raise AlreadyInstalledError(target=_describe(target), entry_point=name)

        original = getattr(target, name, _MISSING)
        if original is _MISSING or not callable(original):
            raise EntryPointNotFoundError(target=_describe(target), entry_point=name)

        binding = InterceptionBinding(
            target=target,
            name=name,
            original=original,
            guard=guard,
            integration=integration,
        )
        binding._capture_ownership()
        binding._write_guard()
        binding._installed = True
        self._bindings[key] = binding

        logger.info(f"Guard installed on {integration or _describe(target)}.{name}")
        return binding

    def uninstall(self, binding: InterceptionBinding) -> None:
        """
        Restore the original value captured at install time.

        Raises:
            BindingNotFoundError: If the binding is not registered here
        """
        if self._bindings.get(binding.key) is not binding:
            raise BindingNotFoundError(target=_describe(binding.target), entry_point=binding.name)

        live = getattr(binding.target, binding.name, _MISSING)
        # Inside a sync delegation window the original is legitimately live
        swapped = binding._depth > 0 and not binding.is_async
        if live is not binding.guard and not swapped:
            logger.warning(
                f"Entry point {binding.integration or _describe(binding.target)}.{binding.name} "
                f"was replaced by other code while guarded; restoring original anyway"
            )

        del self._bindings[binding.key]
        binding._installed = False
        binding._write_original()
        logger.info(f"Original restored on {binding.integration or _describe(binding.target)}.{binding.name}")

    def uninstall_all(self) -> int:
        """
        Uninstall every binding.

        Returns:
            Number of bindings restored
        """
        count = 0
        for binding in list(self._bindings.values()):
            try:
                self.uninstall(binding)
            except BindingNotFoundError:
                continue
            count += 1
        return count

    def get(self, target: Any, name: str) -> InterceptionBinding | None:
        """Look up the binding for (target, name), if any."""
        return self._bindings.get((id(target), name))

    def has(self, target: Any, name: str) -> bool:
        """Whether a guard is installed on (target, name)."""
        return (id(target), name) in self._bindings

    def bindings(self) -> list[InterceptionBinding]:
        """All active bindings."""
        return list(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[InterceptionBinding]:
        return iter(list(self._bindings.values()))

    def __contains__(self, binding: object) -> bool:
        return isinstance(binding, InterceptionBinding) and self._bindings.get(binding.key) is binding

    def __repr__(self) -> str:
        names = ", ".join(f"{b.integration or '?'}.{b.name}" for b in self._bindings.values())
        return f"<InterceptionManager: [{names}]>"
