"""Local Font Module
=================

Derives font variants from folders of existing font files.
"""

from .scanner import LocalFontScanner, ScanResult, ScanWarning

__all__ = ["LocalFontScanner", "ScanResult", "ScanWarning"]
