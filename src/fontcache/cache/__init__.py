"""Cache Management Module
=======================

Orchestrates catalog and local caching workflows on top of the registry
and the on-disk layout.
"""

from .manager import CacheManager
from .registry import Registry
from .results import (
    OutcomeStatus,
    ProgressCallback,
    VariantFailure,
    VariantWritten,
    WorkflowOutcome,
    WorkflowStage,
)

__all__ = [
    "CacheManager",
    "OutcomeStatus",
    "ProgressCallback",
    "Registry",
    "VariantFailure",
    "VariantWritten",
    "WorkflowOutcome",
    "WorkflowStage",
]
