"""Catalog Access Module
===================

Resolves catalog references, fetches `@font-face` stylesheets, parses them
into font variants and downloads variant files.
"""

from .downloader import VariantDownloader
from .fetcher import CatalogRequest, StylesheetFetcher
from .http import HttpClient
from .parser import FontFaceBlock, FontSource, StylesheetParser

__all__ = [
    "CatalogRequest",
    "FontFaceBlock",
    "FontSource",
    "HttpClient",
    "StylesheetFetcher",
    "StylesheetParser",
    "VariantDownloader",
]
