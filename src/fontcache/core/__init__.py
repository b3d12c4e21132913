"""Core components for the font cache."""

from .config import FontCacheConfig
from .exceptions import (
    AllVariantsFailedError,
    CatalogNotFoundError,
    ConfigurationError,
    FilesystemError,
    FilesystemErrorKind,
    FontCacheError,
    FontNotCachedError,
    InFlightConflictError,
    InvalidCatalogReferenceError,
    NetworkError,
    NetworkErrorKind,
    NoFontFilesError,
    NoVariantsFoundError,
    ParseError,
    RegistryPersistenceError,
)
from .models import (
    DiscoveryResult,
    FileEntry,
    FontFormat,
    FontRecord,
    FontStyle,
    VariantDescriptor,
)

__all__ = [
    "AllVariantsFailedError",
    "CatalogNotFoundError",
    "ConfigurationError",
    "DiscoveryResult",
    "FileEntry",
    "FilesystemError",
    "FilesystemErrorKind",
    "FontCacheConfig",
    "FontCacheError",
    "FontFormat",
    "FontNotCachedError",
    "FontRecord",
    "FontStyle",
    "InFlightConflictError",
    "InvalidCatalogReferenceError",
    "NetworkError",
    "NetworkErrorKind",
    "NoFontFilesError",
    "NoVariantsFoundError",
    "ParseError",
    "RegistryPersistenceError",
    "VariantDescriptor",
]
