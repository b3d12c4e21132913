"""Workflow outcome values and progress callbacks."""

from dataclasses import dataclass, field
from enum import Enum

from fontcache.core.exceptions import (
    AllVariantsFailedError,
    CatalogNotFoundError,
    FilesystemError,
    FontCacheError,
    FontNotCachedError,
    InFlightConflictError,
    InvalidCatalogReferenceError,
    NetworkError,
    NoFontFilesError,
    NoVariantsFoundError,
    ParseError,
)
from fontcache.core.models import FileEntry, FontRecord, VariantDescriptor


class WorkflowStage(Enum):
    """Steps of the cache workflows."""

    RESOLVING = "resolving"
    FETCHING = "fetching"
    PARSING = "parsing"
    SCANNING = "scanning"
    ENSURING_FOLDER = "ensuring_folder"
    DOWNLOADING = "downloading"
    COPYING = "copying"
    PERSISTING = "persisting"
    DELETING = "deleting"
    DONE = "done"


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"
    CONFLICT = "conflict"


@dataclass
class VariantWritten:
    """A variant stored in the cache."""

    descriptor: VariantDescriptor
    entry: FileEntry


@dataclass
class VariantFailure:
    """A variant that could not be stored."""

    descriptor: VariantDescriptor
    source: str
    error: FontCacheError

    def __str__(self) -> str:
        return f"{self.descriptor}: {self.error}"


@dataclass
class WorkflowOutcome:
    """Result of a cache, delete or rename workflow."""

    workflow: str
    family: str
    status: OutcomeStatus
    stage: WorkflowStage
    error: Exception | None = None
    record: FontRecord | None = None
    written: list[FileEntry] = field(default_factory=list)
    failed: list[VariantFailure] = field(default_factory=list)

    @classmethod
    def failure(
        cls, workflow: str, family: str, stage: WorkflowStage, error: Exception
    ) -> "WorkflowOutcome":
        status = (
            OutcomeStatus.CONFLICT
            if isinstance(error, InFlightConflictError)
            else OutcomeStatus.FAILED
        )
        return cls(workflow, family, status, stage, error=error)

    @property
    def ok(self) -> bool:
        """Whether the workflow committed its result (possibly partially)."""
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.PARTIAL)

    @property
    def message(self) -> str:
        """Human-readable summary."""
        if self.status == OutcomeStatus.SUCCEEDED:
            if self.workflow == "delete":
                return f"Removed {self.family}"
            if self.written:
                return f"Cached {len(self.written)} files for {self.family}"
            return f"Updated {self.family}"
        if self.status == OutcomeStatus.PARTIAL:
            return (
                f"Cached {len(self.written)} files for {self.family}, "
                f"{len(self.failed)} variants failed"
            )
        return _describe_error(self.family, self.stage, self.error)

    def raise_for_status(self) -> "WorkflowOutcome":
        """Raise the terminal error of a failed or conflicting workflow."""
        if not self.ok and self.error is not None:
            raise self.error
        return self

    def __str__(self) -> str:
        return self.message


def _describe_error(family: str, stage: WorkflowStage, error: Exception | None) -> str:
    if isinstance(error, CatalogNotFoundError):
        return f"{family} is not a recognized font"
    if isinstance(error, InvalidCatalogReferenceError):
        return f"Could not interpret font reference {error.reference!r}"
    if isinstance(error, NoVariantsFoundError):
        return f"No font variants are declared for {family}"
    if isinstance(error, AllVariantsFailedError):
        verb = "copied" if stage == WorkflowStage.COPYING else "downloaded"
        return f"No variants could be {verb} for {family}"
    if isinstance(error, NoFontFilesError):
        return f"No font files found in {error.folder}"
    if isinstance(error, InFlightConflictError):
        return f"{family} is already being cached or removed"
    if isinstance(error, FontNotCachedError):
        return f"{family} is not cached"
    if isinstance(error, ParseError):
        return f"Could not parse the stylesheet for {family}: {error}"
    if isinstance(error, NetworkError):
        return f"Network problem while {stage.value} {family}: {error}"
    if isinstance(error, FilesystemError):
        return f"Storage problem while {stage.value} {family}: {error}"
    return f"Failed while {stage.value} {family}: {error}"


class ProgressCallback:
    """Base class for per-variant progress callbacks."""

    def on_start(self, family: str, total_variants: int) -> None:
        """Called once the variants to transfer are known."""

    def on_variant_complete(self, descriptor: VariantDescriptor, success: bool) -> None:
        """Called as each variant finishes, in completion order."""

    def on_complete(self, outcome: WorkflowOutcome) -> None:
        """Called when the workflow has an outcome."""
