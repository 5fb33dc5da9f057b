"""
Trust store for trustgate.

The trust store owns the set of digests that are allowed to execute. It is
built from configured sources and replaced wholesale by refresh().

Concurrency:
    - refresh() reads every source, then swaps one reference. Readers
      (contains(), snapshot) never wait and never see a half-built set.
    - Overlapping refresh() calls are serialized with an asyncio.Lock so
      the last configuration always wins.
    - An invocation that already read the snapshot is not affected by a
      refresh completing afterwards.

Failure semantics:
    A source that cannot be read is logged, listed in
    snapshot.failed_sources and contributes nothing. refresh() never raises
    for source errors.
"""

import asyncio
import logging
from typing import Callable

from trustgate.documents import DocumentStore
from trustgate.errors import SourceUnavailableError
from trustgate.hashing import normalize_entry
from trustgate.schema import (
    ExternalFileSource,
    GateSettings,
    ManualSource,
    NoteSource,
    TrustSnapshot,
)
from trustgate.trust.sources import read_source

logger = logging.getLogger(__name__)

AnySource = ManualSource | NoteSource | ExternalFileSource
RefreshListener = Callable[[TrustSnapshot], None]


class TrustStore:
    """
    Aggregated, refreshable set of trusted digests.

    Usage:
        store = TrustStore(settings.sources(), documents)
        await store.refresh()
        if store.contains(digest(code)):
            ...

    Attributes:
        documents: Document store used to read NoteSources
    """

    def __init__(
        self,
        sources: list[AnySource] | None = None,
        documents: DocumentStore | None = None,
    ) -> None:
        self.documents = documents
        self._sources: list[AnySource] = []
        for source in sources or []:
            self.add_source(source)
        self._snapshot = TrustSnapshot()
        self._refresh_lock = asyncio.Lock()
        self._listeners: list[RefreshListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: GateSettings,
        documents: DocumentStore | None = None,
    ) -> "TrustStore":
        """Create a store holding every source configured in settings."""
        return cls(settings.sources(), documents)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def snapshot(self) -> TrustSnapshot:
        """The snapshot currently in effect."""
        return self._snapshot

    def contains(self, entry: str) -> bool:
        """Whether a digest is trusted in the current snapshot."""
        return normalize_entry(entry) in self._snapshot.entries

    def __contains__(self, entry: object) -> bool:
        return isinstance(entry, str) and self.contains(entry)

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def sources(self) -> list[AnySource]:
        """A copy of the configured sources."""
        return list(self._sources)

    def note_sources(self) -> list[NoteSource]:
        """Configured NoteSources (the ones worth watching)."""
        return [s for s in self._sources if isinstance(s, NoteSource)]

    # =========================================================================
    # Configuration
    # =========================================================================

    def add_manual(self, entry: str) -> bool:
        """Trust a digest directly. Call refresh() for it to take effect."""
        return self.add_source(ManualSource(digest=entry))

    def remove_manual(self, entry: str) -> bool:
        """Stop trusting a manual digest. Call refresh() for it to take effect."""
        return self.remove_source(ManualSource(digest=entry))

    def add_source(self, source: AnySource) -> bool:
        """
        Add a source to the configuration.

        Returns:
            True if the source was added, False if it was already present
        """
        if source in self._sources:
            return False
        self._sources.append(source)
        return True

    def remove_source(self, source: AnySource) -> bool:
        """
        Remove a source from the configuration.

        Returns:
            True if the source was removed, False if it was not configured
        """
        if source not in self._sources:
            return False
        self._sources.remove(source)
        return True

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """Call listener with each new snapshot. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Refresh
    # =========================================================================

    async def refresh(self) -> TrustSnapshot:
        """
        Re-read every source and swap in a new snapshot.

        Returns:
            The snapshot now in effect
        """
        async with self._refresh_lock:
            sources = list(self._sources)
            entries: set[str] = set()
            failed: list[str] = []

            for source in sources:
                try:
                    entries |= await read_source(source, self.documents)
                except SourceUnavailableError as e:
                    logger.warning(f"Failed to load trusted hashes from {e.source}: {e.underlying_error}")
                    failed.append(source.describe())

            snapshot = TrustSnapshot(
                entries=frozenset(entries),
                failed_sources=tuple(failed),
            )
            self._snapshot = snapshot

        logger.info(
            f"Loaded {len(snapshot.entries)} trusted hashes from {len(sources)} sources"
            + (f" ({len(failed)} unavailable)" if failed else "")
        )
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Trust refresh listener failed: {e}")
        return snapshot
