"""Font asset cache: catalog and local font caching with a persisted registry."""

from .cache import CacheManager, WorkflowOutcome
from .core import FontCacheConfig, FontCacheError, FontRecord, FontStyle

__version__ = "0.1.0"

__all__ = [
    "CacheManager",
    "FontCacheConfig",
    "FontCacheError",
    "FontRecord",
    "FontStyle",
    "WorkflowOutcome",
]
