"""
Schema definitions for trustgate.

This module defines the Pydantic models used throughout trustgate:
- TrustSource variants: Where trusted digests come from
- GateSettings: The persisted configuration surface
- PolicyFlags: Operator overrides consumed by the decision policy
- PolicyDecision: The verdict for one invocation
- TrustSnapshot: The materialized set of trusted digests

Design Decisions:
    - Models are immutable (frozen=True); mutation returns a copy
    - Unknown keys are rejected (extra="forbid")
    - Digests are normalized (trimmed, lowercase) on the way in
"""

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from trustgate.errors import SettingsError
from trustgate.hashing import DIGEST_ALGORITHM, normalize_entry


# =============================================================================
# Enums
# =============================================================================


class Verdict(str, Enum):
    """Outcome of the decision policy for one invocation."""

    ALLOW = "allow"
    DENY = "deny"


class SourceKind(str, Enum):
    """Kinds of trust source."""

    MANUAL = "manual"
    NOTE = "note"
    FILE = "file"


# =============================================================================
# Trust Sources
# =============================================================================


class ManualSource(BaseModel):
    """A digest stored directly in configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[SourceKind.MANUAL] = SourceKind.MANUAL
    digest: str = Field(..., min_length=1, description="Trusted digest")

    @field_validator("digest")
    @classmethod
    def normalize_digest(cls, v: str) -> str:
        """Trim and lowercase the digest."""
        return normalize_entry(v)

    def describe(self) -> str:
        return f"manual:{self.digest}"


class NoteSource(BaseModel):
    """
    A document in the host corpus listing trusted digests.

    The path is a document reference resolved by the document store
    (e.g. "security/trusted-hashes", with or without ".md").
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[SourceKind.NOTE] = SourceKind.NOTE
    path: str = Field(..., min_length=1, description="Document reference")

    def describe(self) -> str:
        return f"note:{self.path}"


class ExternalFileSource(BaseModel):
    """A file outside the document corpus listing trusted digests."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal[SourceKind.FILE] = SourceKind.FILE
    path: str = Field(..., min_length=1, description="Filesystem path")

    def describe(self) -> str:
        return f"file:{self.path}"


TrustSource = Annotated[
    ManualSource | NoteSource | ExternalFileSource,
    Field(discriminator="kind"),
]


# =============================================================================
# Configuration
# =============================================================================


class PolicyFlags(BaseModel):
    """
    Operator-controlled overrides.

    Attributes:
        global_override: Allow every fragment regardless of digest
        integration_overrides: Allow every fragment for the named integration
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    global_override: bool = Field(
        default=False,
        description="Allow all execution unconditionally",
    )
    integration_overrides: dict[str, bool] = Field(
        default_factory=dict,
        description="Per-integration bypass flags keyed by integration name",
    )

    def bypasses(self, integration: str) -> bool:
        """Whether the named integration has its override set."""
        return self.integration_overrides.get(integration, False)


class GateSettings(BaseModel):
    """
    Persisted configuration for the gate.

    Defaults leave everything blocked: no trusted digests, no overrides.

    Attributes:
        trusted_hash_notes: Document references listing trusted digests
        trusted_hash_files: External files listing trusted digests
        trusted_hashes: Manually trusted digests
        allow_untrusted_code: Global override (not recommended)
        integration_overrides: Per-integration bypass flags
        digest_algorithm: Recorded so a change is detectable
        debounce_seconds: Quiet period before reloading a changed note
        resolve_max_attempts: Attempts to find each integration at startup
        resolve_base_delay: First retry delay in seconds
        resolve_max_delay: Upper bound on the retry delay
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    trusted_hash_notes: list[str] = Field(
        default_factory=list,
        description="Document references listing trusted digests",
    )
    trusted_hash_files: list[str] = Field(
        default_factory=list,
        description="External files listing trusted digests",
    )
    trusted_hashes: list[str] = Field(
        default_factory=list,
        description="Manually trusted digests",
    )
    allow_untrusted_code: bool = Field(
        default=False,
        description="Execute everything regardless of trust status",
    )
    integration_overrides: dict[str, bool] = Field(
        default_factory=dict,
        description="Per-integration bypass flags",
    )
    digest_algorithm: Literal["sha256"] = Field(
        default=DIGEST_ALGORITHM,
        description="Digest algorithm the trusted hashes were computed with",
    )
    debounce_seconds: float = Field(
        default=1.0,
        description="Quiet period before reloading a changed note",
        ge=0,
    )
    resolve_max_attempts: int = Field(
        default=10,
        description="Attempts to resolve each integration",
        gt=0,
    )
    resolve_base_delay: float = Field(
        default=0.1,
        description="First retry delay in seconds",
        ge=0,
    )
    resolve_max_delay: float = Field(
        default=5.0,
        description="Upper bound on the retry delay in seconds",
        ge=0,
    )

    @field_validator("trusted_hashes")
    @classmethod
    def normalize_hashes(cls, v: list[str]) -> list[str]:
        """Normalize digests and drop blanks and duplicates, keeping order."""
        seen: list[str] = []
        for value in v:
            entry = normalize_entry(value)
            if entry and entry not in seen:
                seen.append(entry)
        return seen

    @property
    def flags(self) -> PolicyFlags:
        """The override flags the decision policy consumes."""
        return PolicyFlags(
            global_override=self.allow_untrusted_code,
            integration_overrides=dict(self.integration_overrides),
        )

    def sources(self) -> list[ManualSource | NoteSource | ExternalFileSource]:
        """Every configured trust source, manual entries first."""
        sources: list[ManualSource | NoteSource | ExternalFileSource] = [
            ManualSource(digest=h) for h in self.trusted_hashes
        ]
        sources.extend(NoteSource(path=p) for p in self.trusted_hash_notes)
        sources.extend(ExternalFileSource(path=p) for p in self.trusted_hash_files)
        return sources

    @classmethod
    def from_sources(
        cls,
        sources: list[ManualSource | NoteSource | ExternalFileSource],
        **kwargs: object,
    ) -> "GateSettings":
        """Build settings from a list of sources (inverse of sources())."""
        return cls(
            trusted_hashes=[s.digest for s in sources if isinstance(s, ManualSource)],
            trusted_hash_notes=[s.path for s in sources if isinstance(s, NoteSource)],
            trusted_hash_files=[s.path for s in sources if isinstance(s, ExternalFileSource)],
            **kwargs,
        )


# =============================================================================
# Runtime Models
# =============================================================================


class PolicyDecision(BaseModel):
    """
    Result of evaluating one invocation.

    Attributes:
        allowed: Whether the fragment may execute
        reason: Human-readable explanation of the decision
        rule_matched: Which rule produced the decision
        digest: Digest of the evaluated content
        integration: Integration the invocation belongs to
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool = Field(..., description="Whether the fragment may execute")
    reason: str = Field(..., description="Human-readable explanation")
    rule_matched: str | None = Field(default=None, description="Rule that decided")
    digest: str = Field(default="", description="Digest of the content")
    integration: str = Field(default="", description="Owning integration")

    @property
    def verdict(self) -> Verdict:
        """The decision as a Verdict enum."""
        return Verdict.ALLOW if self.allowed else Verdict.DENY

    @classmethod
    def allow(
        cls,
        reason: str,
        rule: str | None = None,
        digest: str = "",
        integration: str = "",
    ) -> "PolicyDecision":
        """Create an ALLOW decision."""
        return cls(
            allowed=True,
            reason=reason,
            rule_matched=rule,
            digest=digest,
            integration=integration,
        )

    @classmethod
    def deny(
        cls,
        reason: str,
        rule: str | None = None,
        digest: str = "",
        integration: str = "",
    ) -> "PolicyDecision":
        """Create a DENY decision."""
        return cls(
            allowed=False,
            reason=reason,
            rule_matched=rule,
            digest=digest,
            integration=integration,
        )


class TrustSnapshot(BaseModel):
    """
    The set of trusted digests in effect.

    Replaced wholesale by every refresh; never mutated.

    Attributes:
        entries: Union of every source's digests
        refreshed_at: When this snapshot was built
        failed_sources: Sources that could not be read and contributed nothing
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    entries: frozenset[str] = Field(default_factory=frozenset)
    refreshed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    failed_sources: tuple[str, ...] = Field(default_factory=tuple)

    def __contains__(self, entry: object) -> bool:
        return entry in self.entries

    def __len__(self) -> int:
        return len(self.entries)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_settings(path: Path | str, missing_ok: bool = False) -> GateSettings:
    """
    Load settings from a YAML (or JSON) file.

    Args:
        path: Path to the settings file
        missing_ok: Return default settings when the file does not exist

    Returns:
        Validated GateSettings object

    Raises:
        FileNotFoundError: If the file doesn't exist and missing_ok is False
        SettingsError: If the file is not valid YAML or fails validation
    """
    path = Path(path)
    if missing_ok and not path.exists():
        return GateSettings()

    with path.open(encoding="utf-8") as f:
        content = f.read()

    try:
        return _settings_from_text(content)
    except SettingsError as e:
        e.path = str(path)
        e.context["path"] = str(path)
        e.message = f"Invalid settings in {path}: {e.underlying_error}"
        raise


def load_settings_from_string(content: str) -> GateSettings:
    """Load settings from a YAML string."""
    return _settings_from_text(content)


def save_settings(settings: GateSettings, path: Path | str) -> None:
    """Write settings to a YAML file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(mode="json")
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)


def _settings_from_text(content: str) -> GateSettings:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsError(underlying_error=str(e)) from e

    try:
        return GateSettings.model_validate(data or {})
    except ValidationError as e:
        raise SettingsError(underlying_error=str(e)) from e
