"""
Document store collaborators for trustgate.

The trust store reads NoteSources through a DocumentStore and subscribes to
change notifications so an edited trust note takes effect without a restart.

Implementations:
    - FilesystemDocumentStore: notes are files under a vault directory
    - MemoryDocumentStore: notes held in a dict (embedding hosts, tests)

References are vault-relative paths, with or without the default ".md"
suffix: "security/trusted" and "security/trusted.md" name the same note.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Callable

import aiofiles

from trustgate.errors import DocumentNotFoundError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]
Unsubscribe = Callable[[], None]


class DocumentStore(ABC):
    """
    Access to the host's documents.

    Subclasses implement read_text(). Watch bookkeeping is shared: a host
    (or a subclass's own change detection) calls notify_changed() and every
    subscriber for that reference is called with the canonical reference.
    """

    def __init__(self, suffix: str = ".md") -> None:
        self.suffix = suffix
        self._watchers: dict[str, list[ChangeCallback]] = {}

    @abstractmethod
    async def read_text(self, reference: str) -> str:
        """
        Read a document's text.

        Raises:
            DocumentNotFoundError: If no document exists for the reference
        """
        ...

    def canonical(self, reference: str) -> str:
        """Canonical key for a reference: posix path without the default suffix."""
        path = PurePosixPath(reference.strip().replace("\\", "/"))
        text = str(path)
        if self.suffix and text.endswith(self.suffix):
            text = text[: -len(self.suffix)]
        return text

    def watch(self, reference: str, on_change: ChangeCallback) -> Unsubscribe:
        """
        Subscribe to changes of one document.

        Returns:
            A callable that removes this subscription
        """
        key = self.canonical(reference)
        self._watchers.setdefault(key, []).append(on_change)
        self._on_watch(key)

        def unsubscribe() -> None:
            callbacks = self._watchers.get(key, [])
            if on_change in callbacks:
                callbacks.remove(on_change)
            if not callbacks:
                self._watchers.pop(key, None)

        return unsubscribe

    def notify_changed(self, reference: str) -> int:
        """
        Report that a document changed.

        Returns:
            Number of subscribers notified
        """
        key = self.canonical(reference)
        callbacks = list(self._watchers.get(key, []))
        for callback in callbacks:
            callback(key)
        return len(callbacks)

    def watched(self) -> list[str]:
        """Canonical references that currently have subscribers."""
        return sorted(self._watchers)

    def _on_watch(self, key: str) -> None:
        """Hook for subclasses that need to record state when a watch starts."""


class FilesystemDocumentStore(DocumentStore):
    """
    Notes stored as files under a vault root.

    Changes are detected by comparing modification times in poll(), either
    on demand or from a background task started with start_polling().

    Attributes:
        root: Resolved vault directory
    """

    def __init__(self, root: str | Path, suffix: str = ".md") -> None:
        super().__init__(suffix=suffix)
        self.root = Path(root).resolve()
        self._mtimes: dict[str, int | None] = {}
        self._poll_task: asyncio.Task[None] | None = None

    def resolve(self, reference: str) -> Path:
        """
        Map a reference to a file path inside the vault.

        Raises:
            DocumentNotFoundError: If the reference escapes the vault root
        """
        key = self.canonical(reference)
        path = (self.root / (key + self.suffix)).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            raise DocumentNotFoundError(
                reference=reference,
                underlying_error="reference resolves outside the vault",
            ) from None
        return path

    async def read_text(self, reference: str) -> str:
        path = self.resolve(reference)
        if not path.is_file():
            raise DocumentNotFoundError(reference=reference, underlying_error="no such note")
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    def _mtime(self, key: str) -> int | None:
        try:
            return self.resolve(key).stat().st_mtime_ns
        except (OSError, DocumentNotFoundError):
            return None

    def _on_watch(self, key: str) -> None:
        self._mtimes.setdefault(key, self._mtime(key))

    async def poll(self) -> list[str]:
        """
        Check every watched note once and notify subscribers of changes.

        Returns:
            Canonical references that changed since the previous poll
        """
        changed = []
        for key in self.watched():
            current = self._mtime(key)
            if current != self._mtimes.get(key):
                self._mtimes[key] = current
                changed.append(key)
        for key in changed:
            logger.debug(f"Document changed: {key}")
            self.notify_changed(key)
        return changed

    def start_polling(self, interval: float = 1.0) -> None:
        """Start a background task that calls poll() every interval seconds."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop(interval))

    async def stop_polling(self) -> None:
        """Stop the background polling task."""
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None

    async def _poll_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.poll()
            except Exception as e:
                logger.error(f"Error polling documents: {e}")


class MemoryDocumentStore(DocumentStore):
    """Notes held in memory. write() and delete() notify watchers."""

    def __init__(self, documents: dict[str, str] | None = None, suffix: str = ".md") -> None:
        super().__init__(suffix=suffix)
        self._documents: dict[str, str] = {}
        for reference, text in (documents or {}).items():
            self._documents[self.canonical(reference)] = text

    async def read_text(self, reference: str) -> str:
        key = self.canonical(reference)
        if key not in self._documents:
            raise DocumentNotFoundError(reference=reference, underlying_error="no such note")
        return self._documents[key]

    def write(self, reference: str, text: str) -> None:
        self._documents[self.canonical(reference)] = text
        self.notify_changed(reference)

    def delete(self, reference: str) -> None:
        self._documents.pop(self.canonical(reference), None)
        self.notify_changed(reference)
