"""
Variant Downloader
==================

Fetches the bytes of a single font variant. Each call is independent so the
cache manager can run many of them in parallel and retry them one by one.
"""

import base64
import binascii
import logging

from fontcache.core.config import FontCacheConfig
from fontcache.core.exceptions import NetworkError, NetworkErrorKind

from .http import HttpClient

logger = logging.getLogger(__name__)


class VariantDownloader:
    """Downloads one variant file per call."""

    def __init__(self, config: FontCacheConfig | None = None, http: HttpClient | None = None):
        self.config = config or FontCacheConfig()
        self.http = http or HttpClient(self.config)

    def download(self, source_url: str) -> bytes:
        """
        Download the raw bytes behind `source_url`.

        Args:
            source_url: Absolute URL of the font file, or an inline ``data:`` URL

        Returns:
            The file content

        Raises:
            NetworkError: transport failure, empty body or oversized body
        """
        if source_url.startswith("data:"):
            data = self._decode_data_url(source_url)
        else:
            data = self.http.fetch_bytes(source_url)

        if not data:
            raise NetworkError(source_url, NetworkErrorKind.EMPTY_RESPONSE)

        if len(data) > self.config.max_font_size_bytes:
            logger.warning(
                f"Rejecting {source_url}: {len(data)} bytes exceeds "
                f"{self.config.max_font_size_mb} MB"
            )
            raise NetworkError(source_url, NetworkErrorKind.TOO_LARGE)

        logger.debug(f"Downloaded {len(data)} bytes from {source_url}")
        return data

    @staticmethod
    def _decode_data_url(source_url: str) -> bytes:
        """Decode an inline ``data:[<mime>][;base64],<payload>`` source."""
        header, sep, payload = source_url.partition(",")
        if not sep:
            raise NetworkError(source_url[:64], NetworkErrorKind.EMPTY_RESPONSE)
        if not header.endswith(";base64"):
            return payload.encode("latin-1", errors="ignore")
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as e:
            raise NetworkError(source_url[:64], NetworkErrorKind.EMPTY_RESPONSE) from e
