"""
Interception bindings.

A binding records one guard installed on a foreign object: the object, the
entry point name, the original value captured before installation and the
guard written in its place.

Lifecycle:
    UNINSTALLED -> INSTALLED -> UNINSTALLED

While a guard delegates to the original, the binding is DELEGATING. This is
never observable after the outer call returns.

Delegation window:
    Sync originals: the original is written back to the entry point for the
    duration of the call, so a recursive call made by the original reaches
    the original directly. The guard is rewritten on every exit path.

    Async originals: an awaited call can suspend, and a swapped entry point
    would then be unguarded for every other task. The guard stays installed
    and the window is tracked in a ContextVar instead; only calls made from
    inside the window (same task context) pass through to the original.

    Tasks and callbacks scheduled from inside a window copy the context,
    window included. A window is therefore closed in place when the outer
    call returns, so work that outlives the call is gated again.
"""

import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator


@dataclass(eq=False)
class _Window:
    """One delegation window; shared by every context copied while it is open."""

    binding_id: int
    open: bool = True


# Delegation windows entered in the current context
_delegating: ContextVar[tuple[_Window, ...]] = ContextVar(
    "trustgate_delegating",
    default=(),
)


class BindingState(str, Enum):
    """State of an interception binding."""

    UNINSTALLED = "uninstalled"
    INSTALLED = "installed"
    DELEGATING = "delegating"


@dataclass(eq=False)
class InterceptionBinding:
    """
    One installed guard and the original it can restore.

    Only InterceptionManager creates bindings and changes their state.

    Attributes:
        target: The foreign object owning the entry point
        name: Entry point attribute name
        original: Value of the entry point captured at install time
        guard: The wrapper written in place of the original
        integration: Name of the integration the entry point belongs to
    """

    target: Any
    name: str
    original: Callable[..., Any]
    guard: Callable[..., Any]
    integration: str = ""
    _installed: bool = field(default=False, repr=False)
    _depth: int = field(default=0, repr=False)
    _owns_attribute: bool = field(default=True, repr=False)

    @property
    def key(self) -> tuple[int, str]:
        """Identity of the (target, name) pair."""
        return (id(self.target), self.name)

    @property
    def state(self) -> BindingState:
        if not self._installed:
            return BindingState.UNINSTALLED
        if self._depth > 0:
            return BindingState.DELEGATING
        return BindingState.INSTALLED

    @property
    def is_async(self) -> bool:
        """Whether the original is a coroutine function."""
        return inspect.iscoroutinefunction(self.original)

    def live_value(self) -> Any:
        """Current value at the entry point (None if the attribute is gone)."""
        return getattr(self.target, self.name, None)

    def in_delegation(self) -> bool:
        """Whether the current context is inside an open delegation window of this binding."""
        return any(w.open and w.binding_id == id(self) for w in _delegating.get())

    @contextmanager
    def delegating(self) -> Iterator[Callable[..., Any]]:
        """
        Open the delegation window around one call to the original.

        Yields the original. The guard is back in place when the block
        exits, whether it returned or raised.

        Example:
            with binding.delegating() as original:
                return original(*args, **kwargs)
        """
        swap = not self.is_async
        window = _Window(binding_id=id(self))
        still_open = tuple(w for w in _delegating.get() if w.open)
        token = _delegating.set(still_open + (window,))
        self._depth += 1
        if swap and self._installed:
            self._write_original()
        try:
            yield self.original
        finally:
            window.open = False
            self._depth -= 1
            _delegating.reset(token)
            if swap and self._installed and self._depth == 0:
                self._write_guard()

    # =========================================================================
    # Entry point writes (InterceptionManager only)
    # =========================================================================

    def _capture_ownership(self) -> None:
        # Entry points inherited from a class are restored by deleting the
        # instance attribute, so class lookup resumes.
        own = getattr(self.target, "__dict__", None)
        self._owns_attribute = own is None or self.name in own

    def _write_guard(self) -> None:
        setattr(self.target, self.name, self.guard)

    def _write_original(self) -> None:
        if self._owns_attribute:
            setattr(self.target, self.name, self.original)
        else:
            try:
                delattr(self.target, self.name)
            except AttributeError:
                pass
