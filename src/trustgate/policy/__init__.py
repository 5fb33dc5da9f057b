"""
Policy module for trustgate.

Deny-by-default: a fragment runs only when its digest is trusted or an
operator override applies.

Key concepts:
    - decide(): pure verdict function (content, flags, trust set)
    - PolicyDecision: the verdict plus reason, rule and digest
    - PolicyEngine: decide() bound to live flags and a trust store
"""

from trustgate.policy.engine import PolicyEngine, decide

__all__ = [
    "PolicyEngine",
    "decide",
]
