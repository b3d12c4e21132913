"""Custom exceptions for the font cache."""

from enum import Enum
from typing import Any


class NetworkErrorKind(Enum):
    """Distinguishable transport failure outcomes."""

    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"
    TOO_LARGE = "too_large"


class FilesystemErrorKind(Enum):
    """Distinguishable filesystem failure outcomes."""

    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"


class FontCacheError(Exception):
    """Base exception for all font cache errors."""

    def __init__(self, message: str, details: Any | None = None):
        super().__init__(message)
        self.details = details


class ConfigurationError(FontCacheError):
    """Exception raised for configuration errors."""


class NetworkError(FontCacheError):
    """Exception raised when a remote resource cannot be retrieved."""

    def __init__(self, url: str, kind: NetworkErrorKind, status_code: int | None = None):
        if kind == NetworkErrorKind.HTTP_STATUS:
            message = f"HTTP {status_code} for {url}"
        else:
            message = f"Network {kind.value} for {url}"
        super().__init__(message)
        self.url = url
        self.kind = kind
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        if self.kind in (NetworkErrorKind.TIMEOUT, NetworkErrorKind.UNREACHABLE):
            return True
        return (
            self.kind == NetworkErrorKind.HTTP_STATUS
            and self.status_code is not None
            and self.status_code >= 500
        )


class CatalogNotFoundError(FontCacheError):
    """Exception raised when the catalog has no such family."""

    def __init__(self, family: str):
        super().__init__(f"Font family not found in catalog: {family}")
        self.family = family


class InvalidCatalogReferenceError(FontCacheError):
    """Exception raised when a catalog URL or family name cannot be interpreted."""

    def __init__(self, reference: str):
        super().__init__(f"Invalid font reference: {reference!r}")
        self.reference = reference


class ParseError(FontCacheError):
    """Exception raised for malformed stylesheet input."""

    def __init__(self, reason: str, offset: int):
        super().__init__(f"{reason} (at offset {offset})")
        self.reason = reason
        self.offset = offset


class FilesystemError(FontCacheError):
    """Exception raised for storage operation errors."""

    def __init__(self, path: str, kind: FilesystemErrorKind, message: str | None = None):
        super().__init__(message or f"Filesystem {kind.value} error: {path}")
        self.path = str(path)
        self.kind = kind

    @classmethod
    def from_os_error(cls, path, error: OSError) -> "FilesystemError":
        """Map an OSError onto the filesystem error taxonomy."""
        if isinstance(error, PermissionError):
            kind = FilesystemErrorKind.PERMISSION
        elif isinstance(error, FileNotFoundError):
            kind = FilesystemErrorKind.NOT_FOUND
        else:
            kind = FilesystemErrorKind.IO_FAILURE
        return cls(str(path), kind, f"Filesystem {kind.value} error: {path}: {error}")


class RegistryPersistenceError(FilesystemError):
    """Exception raised when the registry cannot be written to disk."""


class AllVariantsFailedError(FontCacheError):
    """Exception raised when no variant of a family could be cached."""

    def __init__(self, family: str, failures: list | None = None):
        super().__init__(f"No variants could be cached for {family}", details=failures)
        self.family = family
        self.failures = failures or []


class NoVariantsFoundError(FontCacheError):
    """Exception raised when a stylesheet declares no usable variants."""

    def __init__(self, family: str):
        super().__init__(f"No font variants found for {family}")
        self.family = family


class NoFontFilesError(FontCacheError):
    """Exception raised when a folder contains no font files."""

    def __init__(self, folder: str):
        super().__init__(f"No font files found in {folder}")
        self.folder = str(folder)


class InFlightConflictError(FontCacheError):
    """Exception raised when a workflow for the family is already running."""

    def __init__(self, family: str):
        super().__init__(f"A cache operation for {family} is already in progress")
        self.family = family


class FontNotCachedError(FontCacheError):
    """Exception raised when a family is not present in the registry."""

    def __init__(self, family: str):
        super().__init__(f"Font is not cached: {family}")
        self.family = family


# Configuration loading
class ConfigFileNotFoundError(ConfigurationError):
    """Exception raised when configuration file is not found."""

    def __init__(self, config_path: str):
        super().__init__(f"Configuration file not found: {config_path}")


class EmptyConfigFileError(ConfigurationError):
    """Exception raised when configuration file is empty."""

    def __init__(self, config_path: str):
        super().__init__(f"Empty configuration file: {config_path}")


class InvalidYamlError(ConfigurationError):
    """Exception raised for invalid YAML content."""

    def __init__(self, config_path: str, error: str):
        super().__init__(f"Invalid YAML in {config_path}: {error}")


class ConfigLoadError(ConfigurationError):
    """Exception raised when configuration loading fails."""

    def __init__(self, error: str):
        super().__init__(f"Failed to load configuration: {error}")


class InvalidStyleError(ValueError):
    """Exception raised for invalid font styles."""

    def __init__(self, value: str):
        super().__init__(f"Style must be 'normal' or 'italic', got {value!r}")


class InvalidWeightError(ValueError):
    """Exception raised for out-of-range font weights."""

    def __init__(self, value: int):
        super().__init__(f"Font weight must be between 1 and 1000, got {value}")


class InvalidUrlSchemeError(ValueError):
    """Exception raised for non-HTTP catalog URLs."""

    def __init__(self):
        super().__init__("Catalog URL must start with https:// or http://")
