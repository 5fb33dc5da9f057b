"""
Reporter interface and simple reporters.

A reporter is called once per denied invocation. Its return value is
ignored; a reporter that raises is logged by the controller and does not
turn a denial into an execution.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


def render_placeholder(digest: str, integration: str) -> str:
    """Plain-text placeholder shown in place of a blocked fragment's output."""
    return (
        f"Untrusted {integration} Code\n"
        "This code block hash does not match any trusted hash.\n"
        f"Hash: {digest}"
    )


@dataclass(frozen=True)
class DeniedInvocation:
    """
    One blocked invocation.

    Attributes:
        location: Where the fragment came from (document path, element...)
        digest: Digest of the blocked content
        integration: Integration that tried to execute it
        denied_at: When it was blocked
    """

    location: Any
    digest: str
    integration: str
    denied_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def placeholder(self) -> str:
        return render_placeholder(self.digest, self.integration)


class Reporter(ABC):
    """Receives denied invocations."""

    @abstractmethod
    def report_denied(self, location: Any, digest: str, integration: str) -> None:
        """
        Surface a blocked fragment.

        Args:
            location: Where the fragment came from, as the integration passed it
            digest: Digest of the blocked content, for the operator to trust
            integration: Name of the integration that was blocked
        """
        ...


class LoggingReporter(Reporter):
    """Logs each denial as a warning."""

    def report_denied(self, location: Any, digest: str, integration: str) -> None:
        logger.warning(f"Blocked untrusted {integration} execution at {location}. Hash: {digest}")


class RecordingReporter(Reporter):
    """
    Keeps every denial in memory.

    Useful for hosts that render placeholders after the fact.
    """

    def __init__(self) -> None:
        self.denials: list[DeniedInvocation] = []

    def report_denied(self, location: Any, digest: str, integration: str) -> None:
        self.denials.append(DeniedInvocation(location=location, digest=digest, integration=integration))

    def clear(self) -> None:
        self.denials.clear()

    def __len__(self) -> int:
        return len(self.denials)
