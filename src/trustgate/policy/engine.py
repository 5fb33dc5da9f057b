"""
Decision policy for trustgate.

A fragment may execute iff at least one of:
    1. digest(content) is in the trust snapshot
    2. the global override is set
    3. the override for the invoking integration is set

Everything else is denied. decide() is a pure function of its inputs: no
hidden state, no clock. PolicyEngine binds it to live flags and a trust
store for use by guards.

Security Note:
    decide() reads the trust snapshot once. A refresh that completes while
    a decision is in progress cannot change that decision.
"""

from collections.abc import Set

from trustgate.hashing import digest, normalize_entry
from trustgate.schema import PolicyDecision, PolicyFlags, TrustSnapshot
from trustgate.trust.store import TrustStore

TrustSet = TrustStore | TrustSnapshot | Set[str]


def _entries(trust: TrustSet) -> Set[str]:
    if isinstance(trust, TrustStore):
        return trust.snapshot.entries
    if isinstance(trust, TrustSnapshot):
        return trust.entries
    return {normalize_entry(e) for e in trust}


def decide(
    content: str | bytes,
    flags: PolicyFlags,
    trust: TrustSet,
    integration: str = "",
) -> PolicyDecision:
    """
    Decide whether a fragment may execute.

    Args:
        content: Source text of the fragment
        flags: Operator overrides
        trust: Trust store, snapshot or plain set of digests
        integration: Name of the integration that owns the entry point

    Returns:
        PolicyDecision carrying the digest and the rule that decided
    """
    entries = _entries(trust)
    content_digest = digest(content)

    if content_digest in entries:
        return PolicyDecision.allow(
            "Content hash is trusted",
            rule="trusted_hash",
            digest=content_digest,
            integration=integration,
        )

    if flags.global_override:
        return PolicyDecision.allow(
            "Untrusted code allowed globally",
            rule="global_override",
            digest=content_digest,
            integration=integration,
        )

    if integration and flags.bypasses(integration):
        return PolicyDecision.allow(
            f"Security bypassed for {integration}",
            rule=f"integration_override[{integration}]",
            digest=content_digest,
            integration=integration,
        )

    return PolicyDecision.deny(
        "This code block hash does not match any trusted hash",
        rule="deny_by_default",
        digest=content_digest,
        integration=integration,
    )


class PolicyEngine:
    """
    Decision policy bound to live flags and a trust store.

    Usage:
        engine = PolicyEngine(settings.flags, store)
        decision = engine.evaluate(code, "dataviewjs")
        if decision.allowed:
            # delegate to the original entry point
        else:
            # report the blocked digest

    Attributes:
        flags: Override flags in effect
        trust_store: Store whose current snapshot is consulted
        _evaluation_counts: Evaluations per integration
    """

    def __init__(self, flags: PolicyFlags, trust_store: TrustStore) -> None:
        self.flags = flags
        self.trust_store = trust_store
        self._evaluation_counts: dict[str, int] = {}

    def evaluate(self, content: str | bytes, integration: str = "") -> PolicyDecision:
        """Evaluate one invocation against the current snapshot."""
        self._evaluation_counts[integration] = self._evaluation_counts.get(integration, 0) + 1
        return decide(content, self.flags, self.trust_store.snapshot, integration)

    def update_flags(self, flags: PolicyFlags) -> None:
        """Swap in new override flags (settings changed)."""
        self.flags = flags

    def evaluation_count(self, integration: str | None = None) -> int:
        """Evaluations so far, for one integration or all."""
        if integration is None:
            return sum(self._evaluation_counts.values())
        return self._evaluation_counts.get(integration, 0)

    def reset_counts(self) -> None:
        """Reset evaluation counts."""
        self._evaluation_counts.clear()
