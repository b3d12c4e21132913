"""Storage Module
==============

Filesystem access, folder creation and on-disk layout for cached fonts.
"""

from .filesystem import FileStorage, LocalFileStorage
from .folders import FolderOrganizer
from .paths import PathResolver, sanitize_family_name

__all__ = [
    "FileStorage",
    "FolderOrganizer",
    "LocalFileStorage",
    "PathResolver",
    "sanitize_family_name",
]
