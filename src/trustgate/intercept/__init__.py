"""
Interception module for trustgate.

Redirects calls aimed at an entry point on a foreign object through a guard,
and can always undo the redirection.

Architecture:
    - InterceptionManager: installs and removes guards, one per (object, name)
    - InterceptionBinding: one installed guard plus the original it restores
    - BindingState: UNINSTALLED, INSTALLED, DELEGATING

The guard delegates through binding.delegating(), which keeps the guard from
intercepting the original's own recursive calls.
"""

from trustgate.intercept.binding import BindingState, InterceptionBinding
from trustgate.intercept.manager import InterceptionManager

__all__ = [
    "BindingState",
    "InterceptionBinding",
    "InterceptionManager",
]
