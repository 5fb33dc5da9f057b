"""
Exception hierarchy for trustgate.

All trustgate exceptions inherit from TrustGateError, allowing callers to
catch all trustgate-specific exceptions with a single except clause.

Exception Categories:
    - SourceUnavailableError: A trust source could not be read
    - IntegrationUnavailableError: A foreign engine never became available
    - InterceptionError: Binding lifecycle contract was violated

A denied invocation is NOT an error. Denial is a normal verdict and is
reported through the reporter, never raised.

Propagation:
    - Source errors are absorbed by the trust store (logged, empty contribution)
    - Integration errors are absorbed per integration by the controller
    - Interception errors always propagate: they indicate a coherence bug
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Trust source errors: 1xxx
ERROR_SOURCE_UNAVAILABLE = 1001
ERROR_DOCUMENT_NOT_FOUND = 1002
ERROR_SETTINGS_INVALID = 1003

# Integration errors: 2xxx
ERROR_INTEGRATION_UNAVAILABLE = 2001
ERROR_CONTENT_EXTRACTION = 2002

# Interception errors: 3xxx
ERROR_INTERCEPTION = 3000
ERROR_ALREADY_INSTALLED = 3001
ERROR_BINDING_NOT_FOUND = 3002
ERROR_ENTRY_POINT_NOT_FOUND = 3003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TrustGateError(Exception):
    """
    Base exception for all trustgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Trust Source Errors
# =============================================================================


@dataclass
class SourceUnavailableError(TrustGateError):
    """
    Raised when a note or external file source cannot be read.

    The trust store catches this, logs it and treats the source as
    contributing no entries. It never escapes refresh().

    Attributes:
        source: Description of the source (kind and path)
        underlying_error: What went wrong while reading
    """

    source: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Trust source unavailable: {self.source}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_SOURCE_UNAVAILABLE
        if not self.suggestion:
            self.suggestion = "Check that the path exists and is readable, or remove the source"
        self.context.update({
            "source": self.source,
            "underlying_error": self.underlying_error,
        })


@dataclass
class DocumentNotFoundError(SourceUnavailableError):
    """Raised by a document store when a referenced note does not exist."""

    reference: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Document not found: {self.reference}"
        if self.code == 0:
            self.code = ERROR_DOCUMENT_NOT_FOUND
        if not self.source:
            self.source = f"note:{self.reference}"
        super().__post_init__()
        self.context["reference"] = self.reference


@dataclass
class SettingsError(TrustGateError):
    """Raised when a settings file cannot be loaded or validated."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid settings in {self.path or '<string>'}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_SETTINGS_INVALID
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Integration Errors
# =============================================================================


@dataclass
class IntegrationUnavailableError(TrustGateError):
    """
    Raised when an integration does not resolve within its retry budget.

    Fatal for that integration's gating only. The controller records it and
    keeps operating every integration that did resolve.
    """

    integration: str = ""
    attempts: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Integration {self.integration} not secured: "
                f"unavailable after {self.attempts} attempts"
            )
        if self.code == 0:
            self.code = ERROR_INTEGRATION_UNAVAILABLE
        if not self.suggestion:
            self.suggestion = "Check that the plugin is installed and enabled, then reactivate"
        self.context.update({
            "integration": self.integration,
            "attempts": self.attempts,
        })


@dataclass
class ContentExtractionError(TrustGateError):
    """Raised when a guard cannot find the source text in a call's arguments."""

    integration: str = ""
    entry_point: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Cannot extract script content for {self.integration}.{self.entry_point}: "
                f"{self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_CONTENT_EXTRACTION
        self.context.update({
            "integration": self.integration,
            "entry_point": self.entry_point,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Interception Errors
# =============================================================================


@dataclass
class InterceptionError(TrustGateError):
    """
    Base class for binding lifecycle violations.

    These never occur in correct operation. They are always surfaced so a
    lost original or a double patch is noticed instead of silently
    leaving an entry point unguarded.

    Attributes:
        target: repr() of the foreign object
        entry_point: Attribute name of the entry point
    """

    target: str = ""
    entry_point: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_INTERCEPTION
        self.context.update({
            "target": self.target,
            "entry_point": self.entry_point,
        })


@dataclass
class AlreadyInstalledError(InterceptionError):
    """Raised when installing a second guard on the same (target, name)."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Guard already installed on {self.target}.{self.entry_point}"
        if self.code == 0:
            self.code = ERROR_ALREADY_INSTALLED
        if not self.suggestion:
            self.suggestion = "Uninstall the existing binding before installing again"
        super().__post_init__()


@dataclass
class BindingNotFoundError(InterceptionError):
    """Raised when uninstalling a binding this manager does not own."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"No binding registered for {self.target}.{self.entry_point}"
        if self.code == 0:
            self.code = ERROR_BINDING_NOT_FOUND
        super().__post_init__()


@dataclass
class EntryPointNotFoundError(InterceptionError):
    """Raised when the target has no attribute with the entry point name."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Entry point not found: {self.target}.{self.entry_point}"
        if self.code == 0:
            self.code = ERROR_ENTRY_POINT_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "The integration may have changed its API; update the entry point name"
        super().__post_init__()
